"""GitHub GraphQL API client."""

from __future__ import annotations

import logging
import os
import re
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Enables sub-issue and issue-type fields in the GraphQL schema
FEATURE_HEADERS = {"GraphQL-Features": "sub_issues,issue_types"}


class GitHubClientError(Exception):
    """Base exception for GitHub client errors.

    ``status_code`` is the HTTP status when one was received, and
    ``retry_after`` the server's wait hint in seconds when it sent one.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


class GitHubAuthError(GitHubClientError):
    """Authentication failed."""

    pass


class GitHubNotFoundError(GitHubClientError):
    """Resource not found."""

    pass


class GitHubForbiddenError(GitHubClientError):
    """Permission denied."""

    pass


class GitHubRateLimitError(GitHubClientError):
    """Rate limit exceeded."""

    pass


class GitHubServerError(GitHubClientError):
    """Server-side failure (502/503/504)."""

    pass


class GitHubTimeoutError(GitHubClientError):
    """Request timed out."""

    pass


class GitHubConnectionError(GitHubClientError):
    """Connection could not be established or was reset."""

    pass


class GitHubTransportUnavailableError(GitHubClientError):
    """The transport itself cannot be used (e.g. gh CLI not installed)."""

    pass


@dataclass
class GraphQLResponse:
    """A decoded GraphQL response.

    ``data`` may be partial when ``errors`` is non-empty; aliased batch
    mutations rely on this to attribute failures per alias.
    """

    status_code: int
    data: dict[str, Any] | None = None
    errors: list[dict[str, Any]] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)  # lower-cased names

    @property
    def retry_after(self) -> float | None:
        return parse_retry_after(self.headers)

    @property
    def rate_limit_remaining(self) -> int | None:
        value = self.headers.get("x-ratelimit-remaining")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    def raise_for_rate_limit(self, op_name: str = "anonymous") -> None:
        """Raise if the GraphQL layer rejected the whole request as rate limited."""
        for error in self.errors:
            if error.get("type") == "RATE_LIMITED":
                logger.error("GraphQL %s: rate limited - %s", op_name, error.get("message", ""))
                raise GitHubRateLimitError(
                    error.get("message", "GitHub API rate limit exceeded"),
                    status_code=self.status_code,
                    retry_after=self.retry_after,
                )


def operation_name(query: str) -> str:
    """Extract the operation name for logging ("query GetProject" -> "GetProject")."""
    op_match = re.search(r"(?:query|mutation)\s+(\w+)", query)
    return op_match.group(1) if op_match else "anonymous"


def parse_retry_after(headers: dict[str, str], now: float | None = None) -> float | None:
    """Extract a wait hint in seconds from response headers.

    Uses ``Retry-After`` (seconds or HTTP date). Without it, an exhausted
    primary rate limit (``X-RateLimit-Remaining: 0``) yields the time until
    ``X-RateLimit-Reset``. Returns None when there is no positive hint.
    """
    now = time.time() if now is None else now

    value = headers.get("retry-after")
    if value:
        value = value.strip()
        if value.isdigit():
            seconds = float(value)
            return seconds if seconds > 0 else None
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=UTC)
        seconds = when.timestamp() - now
        return seconds if seconds > 0 else None

    if headers.get("x-ratelimit-remaining") == "0":
        reset = headers.get("x-ratelimit-reset")
        if reset and reset.isdigit():
            seconds = float(reset) - now
            return seconds if seconds > 0 else None

    return None


def raise_for_status(
    status_code: int,
    text: str,
    headers: dict[str, str],
    op_name: str,
    elapsed_ms: float,
) -> None:
    """Map an HTTP error status to the matching client exception."""
    if status_code == 401:
        logger.error("GraphQL %s: 401 Unauthorized (%.0fms)", op_name, elapsed_ms)
        raise GitHubAuthError(
            "Authentication failed. Run 'gh auth login' or check your GITHUB_TOKEN.\n"
            "Required scopes: read:project, project, repo",
            status_code=401,
        )
    if status_code == 403:
        retry_after = parse_retry_after(headers)
        # Secondary rate limits come back as 403
        if (
            "rate limit" in text.lower()
            or headers.get("x-ratelimit-remaining") == "0"
            or retry_after is not None
        ):
            logger.error("GraphQL %s: 403 Rate Limited (%.0fms)", op_name, elapsed_ms)
            raise GitHubRateLimitError(
                "GitHub API rate limit exceeded.",
                status_code=403,
                retry_after=retry_after,
            )
        logger.error("GraphQL %s: 403 Forbidden (%.0fms)", op_name, elapsed_ms)
        raise GitHubForbiddenError(
            "Permission denied. Check that your token has the required scopes:\n"
            "  - read:project (for reading project data)\n"
            "  - project (for modifying project items)\n"
            "  - repo (for issue operations)",
            status_code=403,
        )
    if status_code == 404:
        logger.error("GraphQL %s: 404 Not Found (%.0fms)", op_name, elapsed_ms)
        raise GitHubNotFoundError("Resource not found", status_code=404)
    if status_code == 429:
        logger.error("GraphQL %s: 429 Too Many Requests (%.0fms)", op_name, elapsed_ms)
        raise GitHubRateLimitError(
            "GitHub API rate limit exceeded.",
            status_code=429,
            retry_after=parse_retry_after(headers),
        )
    if status_code in (502, 503, 504):
        logger.error("GraphQL %s: HTTP %d (%.0fms)", op_name, status_code, elapsed_ms)
        raise GitHubServerError(
            f"HTTP {status_code}: server unavailable",
            status_code=status_code,
            retry_after=parse_retry_after(headers),
        )
    if status_code >= 400:
        logger.error("GraphQL %s: HTTP %d (%.0fms)", op_name, status_code, elapsed_ms)
        raise GitHubClientError(f"HTTP {status_code}: {text}", status_code=status_code)


def raise_for_errors(errors: list[dict[str, Any]], op_name: str, elapsed_ms: float) -> None:
    """Raise for GraphQL-level errors in an otherwise successful response."""
    if not errors:
        return

    error_messages = [e.get("message", str(e)) for e in errors]

    for error in errors:
        error_type = error.get("type", "")
        message = error.get("message", "")

        if error_type == "RATE_LIMITED":
            logger.error("GraphQL %s: Rate Limited - %s (%.0fms)", op_name, message, elapsed_ms)
            raise GitHubRateLimitError(message)
        if error_type == "NOT_FOUND" or "not found" in message.lower():
            logger.error("GraphQL %s: Not Found - %s (%.0fms)", op_name, message, elapsed_ms)
            raise GitHubNotFoundError(message)
        if error_type == "FORBIDDEN" or "permission" in message.lower():
            logger.error("GraphQL %s: Forbidden - %s (%.0fms)", op_name, message, elapsed_ms)
            raise GitHubForbiddenError(message)

    logger.error("GraphQL %s: errors=%s (%.0fms)", op_name, error_messages, elapsed_ms)
    raise GitHubClientError(f"GraphQL errors: {'; '.join(error_messages)}")


def decode_body(
    body: Any,
    status_code: int,
    headers: dict[str, str],
    op_name: str,
    elapsed_ms: float,
) -> GraphQLResponse:
    """Wrap a parsed JSON body into a GraphQLResponse."""
    if not isinstance(body, dict):
        logger.error("GraphQL %s: Unexpected response shape (%.0fms)", op_name, elapsed_ms)
        raise GitHubClientError("Invalid JSON response: expected an object")

    response = GraphQLResponse(
        status_code=status_code,
        data=body.get("data"),
        errors=body.get("errors") or [],
        headers=headers,
    )
    response.raise_for_rate_limit(op_name)
    return response


class GraphQLTransport(ABC):
    """Common behaviour of the GraphQL transports.

    Subclasses implement ``send``, which raises only for transport and HTTP
    level failures and returns partial data together with GraphQL errors.
    ``execute`` additionally raises on any GraphQL error.
    """

    @abstractmethod
    def send(self, payload: dict[str, Any]) -> GraphQLResponse:
        """Send one request body (``{"query": ..., "variables": ...}``)."""

    def close(self) -> None:
        """Release transport resources."""

    def __enter__(self) -> GraphQLTransport:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Execute a GraphQL query or mutation.

        Args:
            query: GraphQL query/mutation string
            variables: Query variables

        Returns:
            Response data (the 'data' field from GraphQL response)

        Raises:
            GitHubAuthError: Authentication failed
            GitHubNotFoundError: Resource not found
            GitHubForbiddenError: Permission denied
            GitHubRateLimitError: Rate limit exceeded
            GitHubClientError: Other errors
        """
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        start_time = time.monotonic()
        response = self.send(payload)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        raise_for_errors(response.errors, operation_name(query), elapsed_ms)
        return response.data or {}

    def query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Execute a GraphQL query (alias for execute)."""
        return self.execute(query, variables)

    def mutate(self, mutation: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Execute a GraphQL mutation (alias for execute)."""
        return self.execute(mutation, variables)


class GitHubClient(GraphQLTransport):
    """GitHub GraphQL API client over HTTPS.

    Provides a thin wrapper around the GitHub GraphQL API with:
    - Token authentication (from env var or gh CLI)
    - Enterprise support via custom base_url
    - Status and rate-limit signal extraction
    """

    def __init__(self, token: str, base_url: str = "api.github.com", timeout: float = 30.0):
        """Initialize the GitHub client.

        Args:
            token: GitHub personal access token
            base_url: API base URL (default: api.github.com, use custom for Enterprise)
            timeout: Per-request timeout in seconds
        """
        self.token = token
        self.base_url = base_url
        self._graphql_url = f"https://{base_url}/graphql"
        self._client = httpx.Client(
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                **FEATURE_HEADERS,
            },
            timeout=timeout,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    @classmethod
    def from_environment(cls, base_url: str = "api.github.com", timeout: float = 30.0) -> GitHubClient:
        """Create a client from environment variables or gh CLI.

        Tries in order:
        1. GITHUB_TOKEN environment variable
        2. gh auth token (if gh CLI is installed and authenticated)

        Raises:
            GitHubAuthError: If no token is available
        """
        token = os.environ.get("GITHUB_TOKEN")
        if token:
            logger.debug("Using token from GITHUB_TOKEN environment variable")
            return cls(token, base_url, timeout)

        try:
            result = subprocess.run(
                ["gh", "auth", "token"],
                capture_output=True,
                text=True,
                check=True,
            )
            token = result.stdout.strip()
            if token:
                logger.debug("Using token from gh CLI")
                return cls(token, base_url, timeout)
        except (subprocess.CalledProcessError, FileNotFoundError):
            logger.debug("gh CLI not available or not authenticated")

        logger.error("No GitHub token found")
        raise GitHubAuthError(
            "No GitHub token found. Either:\n"
            "  - Set GITHUB_TOKEN environment variable\n"
            "  - Run 'gh auth login' to authenticate with GitHub CLI"
        )

    def send(self, payload: dict[str, Any]) -> GraphQLResponse:
        op_name = operation_name(payload.get("query", ""))

        # Variables at DEBUG only to keep field values out of INFO logs
        logger.debug("GraphQL %s: variables=%s", op_name, payload.get("variables"))

        start_time = time.monotonic()
        try:
            response = self._client.post(self._graphql_url, json=payload)
        except httpx.TimeoutException as e:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            logger.error("GraphQL %s timed out after %.0fms: %s", op_name, elapsed_ms, e)
            raise GitHubTimeoutError(f"Request timed out: {e}") from e
        except httpx.TransportError as e:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            logger.error("GraphQL %s failed after %.0fms: %s", op_name, elapsed_ms, e)
            raise GitHubConnectionError(f"Request failed: {e}") from e
        except httpx.RequestError as e:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            logger.error("GraphQL %s failed after %.0fms: %s", op_name, elapsed_ms, e)
            raise GitHubClientError(f"Request failed: {e}") from e

        elapsed_ms = (time.monotonic() - start_time) * 1000
        headers = {name.lower(): value for name, value in response.headers.items()}

        raise_for_status(response.status_code, response.text, headers, op_name, elapsed_ms)

        try:
            body = response.json()
        except ValueError as e:
            logger.error("GraphQL %s: Invalid JSON response (%.0fms)", op_name, elapsed_ms)
            raise GitHubClientError(f"Invalid JSON response: {e}") from e

        result = decode_body(body, response.status_code, headers, op_name, elapsed_ms)
        logger.info("GraphQL %s: %d OK (%.0fms)", op_name, response.status_code, elapsed_ms)
        return result
