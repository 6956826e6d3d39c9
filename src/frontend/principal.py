"""Request-scoped identities produced by successful trust verification."""

from dataclasses import dataclass

from fastapi import Request


@dataclass(frozen=True)
class GitHubUser:
    """Browser session holding a valid GitHub OAuth grant."""

    token: str
    login: str | None = None


@dataclass(frozen=True)
class TrackerTenant:
    """Request acting for a Jira tenant, identified by its base URL."""

    host: str


@dataclass(frozen=True)
class Anonymous:
    pass


AuthenticatedPrincipal = GitHubUser | TrackerTenant | Anonymous

ANONYMOUS = Anonymous()


def get_principal(request: Request) -> AuthenticatedPrincipal:
    """The principal attached to this request, Anonymous when no gate ran."""
    return getattr(request.state, "principal", ANONYMOUS)
