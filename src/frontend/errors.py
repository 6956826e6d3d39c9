"""Error taxonomy for the frontend.

Verifiers and route dependencies raise IntegrationError with a closed ErrorKind;
the error classifier turns it into a status code and page exactly once.
"""

from enum import Enum


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    MAINTENANCE = "maintenance"
    UNKNOWN = "unknown"


class IntegrationError(Exception):
    """A request failure with a classified kind.

    The message is for logs only and is never rendered to the caller.
    """

    def __init__(self, kind: ErrorKind, message: str = "", cause: BaseException | None = None):
        self.kind = kind
        self.cause = cause
        super().__init__(message or kind.value)


class LoginRedirect(Exception):
    """Raised when a GitHub session is required but absent or no longer valid.

    This is not a failure: the response is a redirect to the login entry point.
    """

    def __init__(self, return_to: str | None = None):
        self.return_to = return_to
        super().__init__("GitHub login required")
