"""Result types for the generation pipeline.

Classes:
    FailureKind: Failure taxonomy shared by every pipeline stage.
    FailureClass: A classified failure with optional status and detail.
    Attempt: Record of one dispatch try.
    Outcome: Final pipeline result, success text or classified failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

# Upper bound for any upstream excerpt surfaced to callers or logs.
DETAIL_LIMIT = 800


def truncate(text: Optional[str], limit: int = DETAIL_LIMIT) -> Optional[str]:
    """Bound ``text`` to ``limit`` characters, marking the cut."""
    if text is None:
        return None
    if len(text) <= limit:
        return text
    return text[:limit] + "…"


class FailureKind(str, Enum):
    """Failure taxonomy."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    BLOCKED = "blocked"
    NETWORK_TIMEOUT = "network_timeout"
    MALFORMED = "malformed_upstream_response"
    INTERNAL = "internal"


_RETRYABLE = frozenset({FailureKind.TRANSIENT, FailureKind.NETWORK_TIMEOUT})


@dataclass(frozen=True)
class FailureClass:
    """A classified failure.

    Attributes:
        kind: Failure category.
        status_code: Upstream HTTP status, when one was received.
        detail: Bounded excerpt of upstream detail, safe to return.
        safety: Safety/feedback metadata for BLOCKED failures.
        retry_after: Upstream Retry-After hint in seconds, if any.
    """

    kind: FailureKind
    status_code: Optional[int] = None
    detail: Optional[str] = None
    safety: Optional[Dict[str, Any]] = None
    retry_after: Optional[float] = None

    @property
    def retryable(self) -> bool:
        """Whether a retry may succeed."""
        return self.kind in _RETRYABLE


@dataclass(frozen=True)
class Attempt:
    """One dispatch try. ``failure`` is None when the attempt succeeded."""

    index: int
    elapsed: float
    failure: Optional[FailureClass] = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class Outcome:
    """Final result of one invocation.

    Exactly one of ``text`` or ``failure`` is set. Use the
    :meth:`success` and :meth:`fail` constructors.
    """

    text: Optional[str] = None
    failure: Optional[FailureClass] = None
    message: Optional[str] = None
    attempts: Tuple[Attempt, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        """Enforce the success/failure exclusivity."""
        if (self.text is None) == (self.failure is None):
            raise ValueError("Outcome requires exactly one of text or failure")
        if self.failure is not None and not self.message:
            raise ValueError("failed Outcome requires a message")

    @classmethod
    def success(cls, text: str) -> "Outcome":
        return cls(text=text)

    @classmethod
    def fail(
        cls,
        kind: FailureKind,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
        safety: Optional[Dict[str, Any]] = None,
    ) -> "Outcome":
        failure = FailureClass(
            kind=kind,
            status_code=status_code,
            detail=truncate(detail),
            safety=safety,
        )
        return cls(failure=failure, message=message)

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def kind(self) -> Optional[FailureKind]:
        return self.failure.kind if self.failure else None

    def with_attempts(self, attempts: Tuple[Attempt, ...]) -> "Outcome":
        """Return a copy carrying the dispatch attempt records."""
        return Outcome(
            text=self.text,
            failure=self.failure,
            message=self.message,
            attempts=tuple(attempts),
        )

    def to_body(self) -> Dict[str, Any]:
        """Render the inbound-contract response body."""
        if self.failure is None:
            return {"text": self.text}
        body: Dict[str, Any] = {"error": self.message}
        if self.failure.detail:
            body["details"] = self.failure.detail
        if self.failure.safety:
            body["safety"] = self.failure.safety
        return body
