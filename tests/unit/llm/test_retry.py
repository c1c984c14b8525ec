"""Unit tests for RetryPolicy."""

import pytest

from genproxy.llm.outcome import FailureClass, FailureKind
from genproxy.llm.retry import RetryDecision, RetryPolicy


def test_retry_policy_creation():
    """Test RetryPolicy dataclass creation and validation."""
    # Default values
    policy = RetryPolicy()
    assert policy.max_attempts == 3
    assert policy.backoff_base == 0.8
    assert policy.request_timeout == 20.0
    assert policy.overall_deadline == 28.0
    assert policy.max_retry_after == 5.0

    with pytest.raises(ValueError, match="max_attempts must be >= 1"):
        RetryPolicy(max_attempts=0)

    with pytest.raises(ValueError, match="backoff_base must be > 0"):
        RetryPolicy(backoff_base=-0.1)

    with pytest.raises(ValueError, match="backoff_base must be > 0"):
        RetryPolicy(backoff_base=0)

    with pytest.raises(ValueError, match="request_timeout must be > 0"):
        RetryPolicy(request_timeout=0)

    with pytest.raises(ValueError, match="overall_deadline must be > 0"):
        RetryPolicy(overall_deadline=0)

    with pytest.raises(ValueError, match="max_retry_after must be >= 0"):
        RetryPolicy(max_retry_after=-1)


def test_backoff_delays_double():
    policy = RetryPolicy(backoff_base=0.8)
    assert [policy.backoff_delay(n) for n in (1, 2, 3)] == [0.8, 1.6, 3.2]

    with pytest.raises(ValueError):
        policy.backoff_delay(0)


@pytest.mark.parametrize(
    "kind,retry",
    [
        (FailureKind.TRANSIENT, True),
        (FailureKind.NETWORK_TIMEOUT, True),
        (FailureKind.PERMANENT, False),
        (FailureKind.BLOCKED, False),
        (FailureKind.MALFORMED, False),
        (FailureKind.VALIDATION, False),
        (FailureKind.CONFIGURATION, False),
        (FailureKind.INTERNAL, False),
    ],
)
def test_only_transient_kinds_retry(kind, retry):
    decision = RetryPolicy().decide(FailureClass(kind=kind), attempt=1)
    assert decision.retry is retry
    if not retry:
        assert decision.reason == "not_retryable"


def test_retry_decision_carries_backoff():
    decision = RetryPolicy(backoff_base=0.5).decide(
        FailureClass(kind=FailureKind.TRANSIENT, status_code=503), attempt=2
    )
    assert decision == RetryDecision(retry=True, delay=1.0, reason="retry")


def test_attempts_exhausted():
    policy = RetryPolicy(max_attempts=3)
    failure = FailureClass(kind=FailureKind.TRANSIENT, status_code=503)

    assert policy.decide(failure, attempt=2).retry
    decision = policy.decide(failure, attempt=3)
    assert not decision.retry
    assert decision.reason == "attempts_exhausted"


def test_single_attempt_policy_never_retries():
    decision = RetryPolicy(max_attempts=1).decide(
        FailureClass(kind=FailureKind.NETWORK_TIMEOUT), attempt=1
    )
    assert decision.reason == "attempts_exhausted"


def test_retry_after_raises_delay_but_is_capped():
    policy = RetryPolicy(backoff_base=0.1, max_retry_after=2.0)

    hinted = FailureClass(kind=FailureKind.TRANSIENT, status_code=429, retry_after=1.5)
    assert policy.decide(hinted, attempt=1).delay == 1.5

    greedy = FailureClass(kind=FailureKind.TRANSIENT, status_code=429, retry_after=60)
    assert policy.decide(greedy, attempt=1).delay == 2.0


def test_retry_after_never_lowers_backoff():
    policy = RetryPolicy(backoff_base=1.0)
    failure = FailureClass(kind=FailureKind.TRANSIENT, status_code=429, retry_after=0)
    assert policy.decide(failure, attempt=2).delay == 2.0


def test_deadline_stops_retry():
    """A delay that would consume the remaining budget ends retrying."""
    policy = RetryPolicy(backoff_base=0.8)
    failure = FailureClass(kind=FailureKind.TRANSIENT, status_code=500)

    assert policy.decide(failure, attempt=1, remaining=5.0).retry
    decision = policy.decide(failure, attempt=1, remaining=0.5)
    assert not decision.retry
    assert decision.reason == "deadline_exceeded"


def test_delay_exceeds_previous_delay():
    """A long Retry-After wait is never followed by a shorter backoff."""
    policy = RetryPolicy(backoff_base=0.8, max_attempts=5)
    failure = FailureClass(kind=FailureKind.TRANSIENT, status_code=503)

    decision = policy.decide(failure, attempt=2, previous_delay=5.0)

    assert decision.retry
    assert decision.delay == 10.0


def test_previous_delay_below_backoff_keeps_backoff():
    policy = RetryPolicy(backoff_base=1.0, max_attempts=5)
    failure = FailureClass(kind=FailureKind.NETWORK_TIMEOUT)

    assert policy.decide(failure, attempt=3, previous_delay=1.0).delay == 4.0


def test_grown_delay_still_bounded_by_deadline():
    policy = RetryPolicy(backoff_base=0.8, max_attempts=5)
    failure = FailureClass(kind=FailureKind.TRANSIENT, status_code=429)

    decision = policy.decide(failure, attempt=2, remaining=8.0, previous_delay=5.0)

    assert not decision.retry
    assert decision.reason == "deadline_exceeded"
