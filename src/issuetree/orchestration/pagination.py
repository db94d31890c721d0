"""Cursor pagination over GraphQL connections."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any, TypeVar

from ..models.pagination import Page, PageCursor
from .exceptions import FetchError, MalformedPageError, PaginationLoopError, RetryExhaustedError
from .retry import RetryController

logger = logging.getLogger(__name__)

T = TypeVar("T")

PageFetcher = Callable[[str | None], Page[T]]

DEFAULT_MAX_PAGES = 1000


def parse_connection(
    connection: Any,
    transform: Callable[[dict[str, Any]], T | None] | None = None,
) -> Page[T]:
    """Turn a GraphQL connection (``nodes`` + ``pageInfo``) into a Page.

    ``transform`` maps each node to a record; nodes it maps to None (and
    null nodes) are left out.

    Raises:
        MalformedPageError: If the connection does not have the expected shape
    """
    if not isinstance(connection, dict):
        raise MalformedPageError(f"Expected a connection object, got {type(connection).__name__}")

    nodes = connection.get("nodes")
    page_info = connection.get("pageInfo")
    if not isinstance(nodes, list):
        raise MalformedPageError("Connection has no 'nodes' list")
    if not isinstance(page_info, dict) or "hasNextPage" not in page_info:
        raise MalformedPageError("Connection has no 'pageInfo.hasNextPage'")

    has_next_page = bool(page_info["hasNextPage"])
    end_cursor = page_info.get("endCursor")
    if has_next_page and not end_cursor:
        raise MalformedPageError("Connection reports another page but no 'endCursor'")

    records: list[T] = []
    for node in nodes:
        if node is None:
            continue
        record = transform(node) if transform else node
        if record is not None:
            records.append(record)

    return Page(records=records, end_cursor=end_cursor, has_next_page=has_next_page)


class PageWalker:
    """Walks a cursor-paginated listing to completion.

    Each ``walk`` call starts a fresh listing from the first page and
    fetches every page exactly once, in order. Each page fetch runs through
    the retry controller.
    """

    def __init__(
        self,
        retry: RetryController | None = None,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> None:
        self._retry = retry
        self.max_pages = max_pages

    def walk(self, fetch: PageFetcher[T], description: str = "listing") -> Iterator[T]:
        """Yield every record of the listing.

        Args:
            fetch: Called with the cursor (None for the first page)
            description: Used in logs and error messages

        Raises:
            FetchError: A page exhausted its retry budget
            PaginationLoopError: A cursor repeated or the page ceiling was hit
            MalformedPageError: A page did not have the connection shape
        """
        cursor = PageCursor()
        seen_cursors: set[str] = set()
        page_number = 0
        total = 0

        while cursor.has_next:
            page_number += 1
            if page_number > self.max_pages:
                raise PaginationLoopError(
                    f"{description}: exceeded {self.max_pages} pages; the listing does not terminate"
                )

            page = self._fetch_page(fetch, cursor, page_number, description)

            if page.has_next_page:
                if page.end_cursor in seen_cursors or page.end_cursor == cursor.token:
                    raise PaginationLoopError(
                        f"{description}: cursor {page.end_cursor!r} repeated on page {page_number}"
                    )
                seen_cursors.add(page.end_cursor)

            logger.debug("%s: page %d returned %d records", description, page_number, len(page.records))
            total += len(page.records)
            yield from page.records

            cursor = cursor.advance(page.end_cursor, page.has_next_page)

        logger.debug("%s: %d records in %d pages", description, total, page_number)

    def collect(self, fetch: PageFetcher[T], description: str = "listing") -> list[T]:
        """Fetch the whole listing into a list."""
        return list(self.walk(fetch, description))

    def _fetch_page(
        self,
        fetch: PageFetcher[T],
        cursor: PageCursor,
        page_number: int,
        description: str,
    ) -> Page[T]:
        label = f"{description} page {page_number}"
        try:
            if self._retry is None:
                return fetch(cursor.token)
            return self._retry.execute(lambda: fetch(cursor.token), label)
        except RetryExhaustedError as e:
            raise FetchError(
                f"Failed to fetch {label}: {e.last_error}",
                page=page_number,
                cursor=cursor.token,
            ) from e
