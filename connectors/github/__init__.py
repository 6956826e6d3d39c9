from connectors.github.github_oauth import (
    GitHubOAuthClient,
    GitHubOAuthError,
    GitHubSessionVerifier,
)

__all__ = [
    "GitHubOAuthClient",
    "GitHubOAuthError",
    "GitHubSessionVerifier",
]
