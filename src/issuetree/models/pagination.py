"""Cursor pagination models."""

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class PageCursor:
    """Position in one paginated listing.

    ``token`` is the opaque ``endCursor`` of the previous page (None before the
    first fetch). Once ``has_next`` is False the listing is finished.
    """

    token: str | None = None
    has_next: bool = True

    @property
    def is_start(self) -> bool:
        return self.token is None

    def advance(self, end_cursor: str | None, has_next_page: bool) -> "PageCursor":
        """Return the cursor for the page after this one."""
        return PageCursor(token=end_cursor, has_next=has_next_page)


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a cursor-paginated listing."""

    records: list[T] = field(default_factory=list)
    end_cursor: str | None = None
    has_next_page: bool = False
