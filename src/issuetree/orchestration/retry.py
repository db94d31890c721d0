"""Retry controller with jittered exponential backoff.

Every network operation in a run goes through ``RetryController.execute``.
Failures are classified as transient (rate limits, timeouts, dropped
connections, 502/503/504) or permanent (everything else). Transient failures
are retried after ``min(base * 2**n, max) * (1 +/- jitter)`` seconds, or
after the server's own wait hint when the error carries one. Permanent
failures propagate on the first occurrence.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from ..github.client import (
    GitHubConnectionError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubTimeoutError,
)
from .exceptions import DeadlineExceededError, IssueTreeError, RetryExhaustedError

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (
    GitHubRateLimitError,
    GitHubServerError,
    GitHubTimeoutError,
    GitHubConnectionError,
    TimeoutError,
    ConnectionError,
)


class FailureKind(str, Enum):
    """Retry classification of a failure."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"


def classify_failure(error: BaseException) -> FailureKind:
    """Classify an exception for retry purposes.

    Besides the known transient types, any error exposing ``status_code`` 429,
    or 403 together with a ``retry_after`` hint, is treated as a rate limit.
    """
    if isinstance(error, IssueTreeError):
        return FailureKind.PERMANENT
    if isinstance(error, TRANSIENT_ERRORS):
        return FailureKind.TRANSIENT

    status_code = getattr(error, "status_code", None)
    if status_code == 429:
        return FailureKind.TRANSIENT
    if status_code == 403 and getattr(error, "retry_after", None):
        return FailureKind.TRANSIENT

    return FailureKind.PERMANENT


def retry_hint(error: BaseException) -> float | None:
    """The error's "retry after N seconds" hint, if it has a positive one."""
    hint = getattr(error, "retry_after", None)
    if isinstance(hint, int | float) and not isinstance(hint, bool) and hint > 0:
        return float(hint)
    return None


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff constants."""

    base_delay: float = 1.0
    max_delay: float = 30.0
    max_attempts: int = 5  # total attempts, including the first
    jitter: float = 0.2  # +/- fraction applied to computed delays

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            max_attempts=settings.retry_max_attempts,
            jitter=settings.retry_jitter,
        )

    def backoff(self, attempt: int) -> float:
        """Un-jittered delay after the failed attempt with 0-based index ``attempt``."""
        return min(self.base_delay * (2**attempt), self.max_delay)


@dataclass
class RetryState:
    """Backoff bookkeeping for one logical operation."""

    attempts: int = 0
    delays: list[float] = field(default_factory=list)
    last_error: BaseException | None = None

    @property
    def total_delay(self) -> float:
        return sum(self.delays)


class RetryController:
    """Executes operations with bounded, jittered retries.

    The controller holds only configuration; each ``execute`` call gets its
    own ``RetryState``, so independent call sites never share backoff.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        deadline: float | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            policy: Backoff constants
            sleep: Called with each delay in seconds
            rng: Random source for jitter (seed it for reproducible delays)
            clock: Monotonic clock used for the deadline
            deadline: Absolute ``clock()`` value after which no attempt or wait starts
        """
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._clock = clock
        self.deadline = deadline

    def compute_delay(self, attempt: int, error: BaseException | None = None) -> float:
        """Delay before the next attempt after failed attempt ``attempt`` (0-based)."""
        if error is not None:
            hint = retry_hint(error)
            if hint is not None:
                return hint

        delay = self.policy.backoff(attempt)
        if self.policy.jitter:
            delay *= 1 + self._rng.uniform(-self.policy.jitter, self.policy.jitter)
        return max(delay, 0.0)

    def execute(self, operation: Callable[[], T], description: str = "operation") -> T:
        """Run ``operation`` until it succeeds, fails permanently, or attempts run out.

        Raises:
            RetryExhaustedError: A transient failure outlasted ``max_attempts``
            DeadlineExceededError: The deadline would be crossed
            Exception: Any permanent failure, unchanged
        """
        state = RetryState()

        while True:
            self._check_deadline(description)
            state.attempts += 1

            try:
                return operation()
            except Exception as error:
                if classify_failure(error) is FailureKind.PERMANENT:
                    raise

                state.last_error = error
                if state.attempts >= self.policy.max_attempts:
                    logger.error(
                        "%s failed after %d attempts: %s", description, state.attempts, error
                    )
                    raise RetryExhaustedError(state.attempts, error) from error

                delay = self.compute_delay(state.attempts - 1, error)
                self._check_deadline(description, upcoming=delay)

                logger.warning(
                    "%s failed (%s), retrying in %.1fs (attempt %d/%d)",
                    description,
                    error,
                    delay,
                    state.attempts + 1,
                    self.policy.max_attempts,
                )
                state.delays.append(delay)
                self._sleep(delay)

    def _check_deadline(self, description: str, upcoming: float = 0.0) -> None:
        if self.deadline is None:
            return
        if self._clock() + upcoming > self.deadline:
            logger.error("%s: deadline exceeded", description)
            raise DeadlineExceededError(f"Deadline exceeded during {description}")
