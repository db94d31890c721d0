"""GitHub GraphQL transports."""

from .cli_transport import GhCliTransport
from .client import (
    GitHubAuthError,
    GitHubClient,
    GitHubClientError,
    GitHubConnectionError,
    GitHubForbiddenError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubTimeoutError,
    GitHubTransportUnavailableError,
    GraphQLResponse,
    GraphQLTransport,
)

__all__ = [
    "GhCliTransport",
    "GitHubAuthError",
    "GitHubClient",
    "GitHubClientError",
    "GitHubConnectionError",
    "GitHubForbiddenError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
    "GitHubServerError",
    "GitHubTimeoutError",
    "GitHubTransportUnavailableError",
    "GraphQLResponse",
    "GraphQLTransport",
]
