"""GraphQL transport that pipes requests through the gh CLI.

The request body is written to ``gh api graphql --input -`` on stdin, so a
batch of many aliased mutations never has to fit on a command line.
Authentication is whatever ``gh`` is logged in with. ``--include`` makes gh
print the HTTP status line and headers ahead of the body; those carry the
status code and rate-limit hints used by the retry controller.
"""

from __future__ import annotations

import json
import logging
import subprocess
import time
from collections.abc import Callable
from typing import Any

from .client import (
    FEATURE_HEADERS,
    GitHubAuthError,
    GitHubClientError,
    GitHubConnectionError,
    GitHubTimeoutError,
    GitHubTransportUnavailableError,
    GraphQLResponse,
    GraphQLTransport,
    decode_body,
    operation_name,
    raise_for_status,
)

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]

# gh stderr fragments that mean no HTTP exchange took place
_AUTH_MARKERS = ("gh auth login", "not logged in", "authentication required")
_CONNECTION_MARKERS = (
    "could not resolve host",
    "connection refused",
    "connection reset",
    "no such host",
    "network is unreachable",
    "i/o timeout",
    "tls handshake timeout",
)


def parse_included_output(output: str) -> tuple[int | None, dict[str, str], str]:
    """Split ``gh api --include`` output into status, headers and body.

    Returns ``(None, {}, output)`` when the output has no status line.
    """
    text = output.replace("\r\n", "\n")
    if not text.startswith("HTTP/"):
        return None, {}, output

    head, _, body = text.partition("\n\n")
    lines = head.split("\n")

    status_parts = lines[0].split()
    try:
        status_code = int(status_parts[1])
    except (IndexError, ValueError):
        return None, {}, output

    headers: dict[str, str] = {}
    for line in lines[1:]:
        name, sep, value = line.partition(":")
        if sep:
            headers[name.strip().lower()] = value.strip()

    return status_code, headers, body


class GhCliTransport(GraphQLTransport):
    """GraphQL transport backed by ``gh api graphql``."""

    def __init__(
        self,
        host: str = "github.com",
        timeout: float = 30.0,
        gh_path: str = "gh",
        runner: Runner = subprocess.run,
    ) -> None:
        """Initialize the transport.

        Args:
            host: GitHub hostname passed to ``--hostname`` (Enterprise)
            timeout: Per-request timeout in seconds
            gh_path: gh executable
            runner: ``subprocess.run`` compatible callable
        """
        self.host = host
        self.timeout = timeout
        self.gh_path = gh_path
        self._runner = runner

    def _command(self) -> list[str]:
        command = [self.gh_path, "api", "graphql", "--include", "--input", "-"]
        if self.host != "github.com":
            command.extend(["--hostname", self.host])
        for name, value in FEATURE_HEADERS.items():
            command.extend(["-H", f"{name}: {value}"])
        return command

    def send(self, payload: dict[str, Any]) -> GraphQLResponse:
        op_name = operation_name(payload.get("query", ""))
        body = json.dumps(payload)
        logger.debug("GraphQL %s via gh: %d bytes, variables=%s", op_name, len(body), payload.get("variables"))

        start_time = time.monotonic()
        try:
            completed = self._runner(
                self._command(),
                input=body,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            logger.error("gh CLI not found: %s", e)
            raise GitHubTransportUnavailableError(
                "gh CLI not found. Install it from https://cli.github.com/ "
                "or use the http transport."
            ) from e
        except subprocess.TimeoutExpired as e:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            logger.error("GraphQL %s timed out after %.0fms", op_name, elapsed_ms)
            raise GitHubTimeoutError(f"gh api timed out after {self.timeout:.0f}s") from e

        elapsed_ms = (time.monotonic() - start_time) * 1000
        status_code, headers, text = parse_included_output(completed.stdout or "")

        if status_code is None:
            self._raise_for_process(completed, op_name, elapsed_ms)
            status_code = 200

        raise_for_status(status_code, text, headers, op_name, elapsed_ms)

        try:
            parsed = json.loads(text)
        except ValueError as e:
            logger.error("GraphQL %s: Invalid JSON response (%.0fms)", op_name, elapsed_ms)
            raise GitHubClientError(f"Invalid JSON response: {e}") from e

        result = decode_body(parsed, status_code, headers, op_name, elapsed_ms)
        logger.info("GraphQL %s: %d OK via gh (%.0fms)", op_name, status_code, elapsed_ms)
        return result

    def _raise_for_process(
        self,
        completed: subprocess.CompletedProcess,
        op_name: str,
        elapsed_ms: float,
    ) -> None:
        """Raise for a gh failure that produced no HTTP response."""
        if completed.returncode == 0:
            return

        stderr = (completed.stderr or "").strip()
        lowered = stderr.lower()
        logger.error(
            "GraphQL %s: gh exited %d (%.0fms): %s", op_name, completed.returncode, elapsed_ms, stderr
        )

        if any(marker in lowered for marker in _AUTH_MARKERS):
            raise GitHubAuthError(f"gh is not authenticated: {stderr}")
        if any(marker in lowered for marker in _CONNECTION_MARKERS):
            raise GitHubConnectionError(f"gh api failed: {stderr}")
        raise GitHubClientError(f"gh api failed: {stderr or f'exit code {completed.returncode}'}")
