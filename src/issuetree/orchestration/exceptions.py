"""Exceptions raised by the orchestration layer."""

from __future__ import annotations

from ..github.client import GitHubAuthError, GitHubTransportUnavailableError


class IssueTreeError(Exception):
    """Base exception for orchestration errors."""


class FetchError(IssueTreeError):
    """A page of a listing could not be fetched within the retry budget."""

    def __init__(self, message: str, *, page: int, cursor: str | None) -> None:
        super().__init__(message)
        self.page = page
        self.cursor = cursor


class PaginationLoopError(IssueTreeError):
    """A listing repeated a cursor or exceeded the page ceiling."""


class MalformedPageError(IssueTreeError):
    """A page response did not have the nodes/pageInfo connection shape."""


class RetryExhaustedError(IssueTreeError):
    """A transient failure persisted through every allowed attempt."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class DeadlineExceededError(IssueTreeError):
    """The operation's wall-clock deadline would be crossed."""


class UnknownFieldError(IssueTreeError):
    """No project field matches the requested name."""

    def __init__(self, field_name: str, available: list[str]) -> None:
        available_str = ", ".join(sorted(available)) or "(none)"
        super().__init__(
            f"Field '{field_name}' not found in project. Available fields: {available_str}"
        )
        self.field_name = field_name
        self.available = available


class UnknownOptionError(IssueTreeError):
    """The field exists but the value is not one of its options."""

    def __init__(self, field_name: str, value: str, valid_options: list[str]) -> None:
        options_str = ", ".join(valid_options) or "(none)"
        super().__init__(
            f"Invalid value '{value}' for field '{field_name}'. Valid options: {options_str}"
        )
        self.field_name = field_name
        self.value = value
        self.valid_options = valid_options


class InvalidFieldValueError(IssueTreeError):
    """A value cannot be written to a field of this type."""

    def __init__(self, field_name: str, value: str | None, reason: str) -> None:
        super().__init__(f"Invalid value '{value}' for field '{field_name}': {reason}")
        self.field_name = field_name
        self.value = value
        self.reason = reason


class HierarchyCycleError(IssueTreeError):
    """A sub-issue link would make an issue its own ancestor."""


FATAL_ERRORS = (GitHubAuthError, GitHubTransportUnavailableError, DeadlineExceededError)


def is_fatal(error: BaseException) -> bool:
    """Whether an error means no further progress is possible in this run."""
    return isinstance(error, FATAL_ERRORS)
