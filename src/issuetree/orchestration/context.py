"""Per-invocation run context."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Mapping
from typing import Any

from ..config import Settings
from ..github import GhCliTransport, GitHubClient, GraphQLTransport
from .batch import BatchMutator, BatchRequestBuilder
from .exceptions import IssueTreeError
from .pagination import PageWalker
from .retry import RetryController, RetryPolicy
from .schema_cache import FieldLoader, FieldSchemaCache

logger = logging.getLogger(__name__)


def create_transport(settings: Settings) -> GraphQLTransport:
    """Create the transport selected by ``settings.transport``.

    Raises:
        GitHubAuthError: The http transport found no token
    """
    if settings.transport == "http":
        logger.debug("Using httpx transport for %s", settings.api_host)
        return GitHubClient.from_environment(settings.api_host, settings.request_timeout)

    logger.debug("Using gh CLI transport for %s", settings.host)
    return GhCliTransport(host=settings.host, timeout=settings.request_timeout)


class RunContext:
    """Everything one command invocation shares: transport, retry controller,
    page walker, and the field schema cache of the project in use.

    Nothing here outlives the invocation; two contexts in the same process
    never share a cache.
    """

    def __init__(
        self,
        settings: Settings,
        transport: GraphQLTransport,
        retry: RetryController | None = None,
        pages: PageWalker | None = None,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.retry = retry or RetryController(RetryPolicy.from_settings(settings))
        self.pages = pages or PageWalker(self.retry, settings.max_pages)
        self.project_id: str | None = None
        self._schema: FieldSchemaCache | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: GraphQLTransport | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> RunContext:
        """Build a context, starting the deadline clock if one is configured."""
        deadline = None
        if settings.deadline_seconds is not None:
            deadline = clock() + settings.deadline_seconds

        retry = RetryController(
            RetryPolicy.from_settings(settings),
            sleep=sleep,
            rng=rng,
            clock=clock,
            deadline=deadline,
        )
        return cls(settings, transport or create_transport(settings), retry)

    def bind_project(
        self,
        project_id: str,
        loader: FieldLoader,
        aliases: Mapping[str, str] | None = None,
    ) -> FieldSchemaCache:
        """Select the project whose fields are read and written in this run."""
        if self.project_id is not None and self.project_id != project_id:
            raise IssueTreeError(
                f"Run is already bound to project {self.project_id}; cannot switch to {project_id}"
            )
        if self._schema is None:
            self.project_id = project_id
            self._schema = FieldSchemaCache(loader, aliases)
        return self._schema

    @property
    def schema(self) -> FieldSchemaCache:
        if self._schema is None:
            raise IssueTreeError("No project selected for this run")
        return self._schema

    def batch_mutator(self) -> BatchMutator:
        return BatchMutator(
            self.transport,
            self.schema,
            self.retry,
            BatchRequestBuilder.from_settings(self.settings),
        )

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> RunContext:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
