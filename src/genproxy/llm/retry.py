"""Retry logic and configuration for upstream requests."""

from dataclasses import dataclass
from typing import Optional

from genproxy.llm.outcome import FailureClass


@dataclass(frozen=True)
class RetryDecision:
    """Result of consulting the RetryPolicy after a failed attempt."""

    retry: bool
    delay: float = 0.0
    reason: str = ""


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior and time budgets.

    Exponential backoff: ``backoff_base * 2 ** (attempt - 1)`` seconds.
    Successive delays within one invocation strictly increase, even when a
    Retry-After hint raised an earlier one. The whole invocation, attempts
    plus sleeps, stays inside ``overall_deadline``.
    """

    max_attempts: int = 3
    backoff_base: float = 0.8
    request_timeout: float = 20.0
    overall_deadline: float = 28.0
    max_retry_after: float = 5.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_base <= 0:
            raise ValueError("backoff_base must be > 0")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        if self.overall_deadline <= 0:
            raise ValueError("overall_deadline must be > 0")
        if self.max_retry_after < 0:
            raise ValueError("max_retry_after must be >= 0")

    def backoff_delay(self, attempt: int) -> float:
        """Delay to wait after the given 1-based attempt failed."""
        if attempt < 1:
            raise ValueError("attempt must be >= 1")
        return self.backoff_base * (2 ** (attempt - 1))

    def decide(
        self,
        failure: FailureClass,
        attempt: int,
        remaining: Optional[float] = None,
        previous_delay: Optional[float] = None,
    ) -> RetryDecision:
        """Map a failure and attempt count to retry-after-delay or give-up.

        Args:
            failure: Classification of the attempt that just failed.
            attempt: 1-based index of that attempt.
            remaining: Seconds left in the overall deadline, if tracked.
            previous_delay: Delay slept before this attempt, if any. The
                returned delay is always longer.
        """
        if not failure.retryable:
            return RetryDecision(retry=False, reason="not_retryable")
        if attempt >= self.max_attempts:
            return RetryDecision(retry=False, reason="attempts_exhausted")

        delay = self.backoff_delay(attempt)
        if failure.retry_after is not None:
            delay = max(delay, min(failure.retry_after, self.max_retry_after))
        if previous_delay is not None:
            delay = max(delay, previous_delay * 2)

        # Sleeping past the deadline would leave no time for the next attempt
        if remaining is not None and delay >= remaining:
            return RetryDecision(retry=False, reason="deadline_exceeded")

        return RetryDecision(retry=True, delay=delay, reason="retry")
