"""Tests for the page walker."""

import math
from unittest.mock import MagicMock

import pytest

from issuetree.github.client import GitHubNotFoundError, GitHubServerError
from issuetree.models import Page
from issuetree.orchestration import (
    FetchError,
    MalformedPageError,
    PageWalker,
    PaginationLoopError,
    RetryController,
    RetryPolicy,
    parse_connection,
)


def paged(records, page_size):
    """Fetch function serving ``records`` in pages, recording each cursor."""
    cursors = []

    def fetch(cursor):
        cursors.append(cursor)
        start = int(cursor) if cursor else 0
        end = start + page_size
        has_next = end < len(records)
        return Page(
            records=records[start:end],
            end_cursor=str(end) if has_next else None,
            has_next_page=has_next,
        )

    return fetch, cursors


@pytest.fixture
def retry():
    return RetryController(RetryPolicy(max_attempts=3, jitter=0.0), sleep=lambda _: None)


class TestPageWalkerWalk:
    """Tests for PageWalker.walk."""

    @pytest.mark.parametrize("total", [0, 1, 7, 20])
    @pytest.mark.parametrize("page_size", [1, 3, 7, 50])
    def test_every_record_exactly_once_in_order(self, total, page_size):
        """N records come back in order, once each, with one fetch per page."""
        records = [f"r{i}" for i in range(total)]
        fetch, cursors = paged(records, page_size)

        result = PageWalker().collect(fetch)

        assert result == records
        assert len(cursors) == max(1, math.ceil(total / page_size))
        assert len(set(cursors)) == len(cursors)

    def test_first_fetch_has_no_cursor(self):
        """The first page is fetched with cursor None, later pages with endCursor."""
        fetch, cursors = paged(list(range(5)), 2)
        PageWalker().collect(fetch)
        assert cursors == [None, "2", "4"]

    def test_walk_is_lazy(self):
        """Pages are fetched only as records are consumed."""
        fetch, cursors = paged(list(range(6)), 2)
        walk = PageWalker().walk(fetch)

        assert next(walk) == 0
        assert cursors == [None]

    def test_each_walk_starts_over(self):
        """Two walks over the same fetch function are independent listings."""
        fetch, cursors = paged(list(range(4)), 2)
        walker = PageWalker()

        assert walker.collect(fetch) == [0, 1, 2, 3]
        assert walker.collect(fetch) == [0, 1, 2, 3]
        assert cursors == [None, "2", None, "2"]

    def test_repeated_cursor_raises_loop_error(self):
        """A server repeating a cursor is reported, not followed forever."""
        fetch = MagicMock(
            side_effect=[
                Page(records=[1], end_cursor="a", has_next_page=True),
                Page(records=[2], end_cursor="b", has_next_page=True),
                Page(records=[3], end_cursor="a", has_next_page=True),
            ]
        )

        with pytest.raises(PaginationLoopError, match="cursor 'a' repeated"):
            PageWalker().collect(fetch, "items")

    def test_same_cursor_twice_in_a_row(self):
        """A page returning the cursor it was fetched with is a loop."""
        fetch = MagicMock(return_value=Page(records=[1], end_cursor="x", has_next_page=True))
        with pytest.raises(PaginationLoopError):
            PageWalker().collect(fetch)
        assert fetch.call_count == 2

    def test_page_ceiling(self):
        """Exceeding max_pages raises PaginationLoopError."""
        fetch, cursors = paged(list(range(10)), 1)
        with pytest.raises(PaginationLoopError, match="exceeded 3 pages"):
            PageWalker(max_pages=3).collect(fetch)
        assert len(cursors) == 3

    def test_records_before_loop_are_yielded(self):
        """Records of good pages are yielded before the loop is detected."""
        fetch = MagicMock(
            side_effect=[
                Page(records=[1], end_cursor="a", has_next_page=True),
                Page(records=[2], end_cursor="a", has_next_page=True),
            ]
        )
        seen = []
        with pytest.raises(PaginationLoopError):
            for record in PageWalker().walk(fetch):
                seen.append(record)
        assert seen == [1]

    def test_transient_page_failure_is_retried(self, retry):
        """A page fetch failing transiently is retried without duplicating records."""
        fetch, cursors = paged(list(range(4)), 2)
        flaky = MagicMock(side_effect=[fetch(None), GitHubServerError("503", status_code=503), fetch("2")])
        cursors.clear()

        assert PageWalker(retry).collect(flaky) == [0, 1, 2, 3]
        assert flaky.call_count == 3

    def test_exhausted_page_raises_fetch_error(self, retry):
        """A page that exhausts its retries raises FetchError naming the page."""
        fetch, _ = paged(list(range(4)), 2)

        def failing(cursor):
            if cursor == "2":
                raise GitHubServerError("503", status_code=503)
            return fetch(cursor)

        with pytest.raises(FetchError) as exc_info:
            PageWalker(retry).collect(failing, "sub-issues")

        assert exc_info.value.page == 2
        assert exc_info.value.cursor == "2"
        assert "sub-issues page 2" in str(exc_info.value)

    def test_permanent_failure_propagates(self, retry):
        """Permanent errors are not wrapped."""
        fetch = MagicMock(side_effect=GitHubNotFoundError("gone"))
        with pytest.raises(GitHubNotFoundError):
            PageWalker(retry).collect(fetch)
        assert fetch.call_count == 1


class TestParseConnection:
    """Tests for parse_connection."""

    def test_parses_nodes_and_page_info(self):
        """Nodes and pageInfo become a Page."""
        page = parse_connection(
            {"nodes": [{"id": 1}, {"id": 2}], "pageInfo": {"hasNextPage": True, "endCursor": "c2"}}
        )
        assert page.records == [{"id": 1}, {"id": 2}]
        assert page.end_cursor == "c2"
        assert page.has_next_page is True

    def test_transform_and_null_nodes(self):
        """Null nodes and nodes transformed to None are skipped."""
        page = parse_connection(
            {"nodes": [{"id": 1}, None, {}], "pageInfo": {"hasNextPage": False}},
            lambda node: node.get("id"),
        )
        assert page.records == [1]

    @pytest.mark.parametrize(
        "connection",
        [
            None,
            [],
            {"pageInfo": {"hasNextPage": False}},
            {"nodes": []},
            {"nodes": [], "pageInfo": {}},
            {"nodes": "x", "pageInfo": {"hasNextPage": False}},
            {"nodes": [], "pageInfo": {"hasNextPage": True, "endCursor": None}},
        ],
    )
    def test_malformed_shapes(self, connection):
        """Anything but a well-formed connection is a hard error."""
        with pytest.raises(MalformedPageError):
            parse_connection(connection)
