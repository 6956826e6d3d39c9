"""Credential verification protocol and result types.

Each verifier checks one kind of credential and reports the outcome as a
VerificationResult. Verifiers never build responses; the trust gate turns a
failed result into an IntegrationError with raise_for_result().
"""

from dataclasses import dataclass
from typing import Protocol

from src.frontend.errors import ErrorKind, IntegrationError


@dataclass
class VerificationResult:
    """Result of credential verification."""

    success: bool
    error: str | None = None
    kind: ErrorKind = ErrorKind.UNAUTHORIZED
    subject: str | None = None

    @classmethod
    def ok(cls, subject: str | None = None) -> "VerificationResult":
        return cls(success=True, subject=subject)

    @classmethod
    def failed(
        cls, error: str, kind: ErrorKind = ErrorKind.UNAUTHORIZED
    ) -> "VerificationResult":
        return cls(success=False, error=error, kind=kind)


class SharedSecretVerifier(Protocol):
    """Verifies a request signed with a per-tenant shared secret."""

    def verify(
        self,
        headers: dict[str, str],
        method: str,
        path: str,
        query: dict[str, list[str]],
        shared_secret: str,
    ) -> VerificationResult:
        """Verify the request credential against the tenant's shared secret.

        Args:
            headers: HTTP headers from the request (lower-cased names)
            method: HTTP method
            path: Request path relative to the app base URL
            query: Query parameters, each with all of its values
            shared_secret: Secret on file for the tenant

        Returns:
            VerificationResult indicating success or failure
        """
        ...


def raise_for_result(result: VerificationResult) -> None:
    """Raise the classified error carried by a failed result."""
    if not result.success:
        raise IntegrationError(result.kind, result.error or "Verification failed")
