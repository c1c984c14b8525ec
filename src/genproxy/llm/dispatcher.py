"""Bounded-time dispatch of upstream requests with retry."""

from __future__ import annotations

import asyncio
import dataclasses
import time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

import httpx
import structlog

from genproxy.llm.builder import WirePayload
from genproxy.llm.extractor import extract
from genproxy.llm.outcome import (
    Attempt,
    FailureClass,
    FailureKind,
    Outcome,
    truncate,
)
from genproxy.llm.retry import RetryPolicy

log = structlog.get_logger()

API_KEY_HEADER = "x-goog-api-key"
API_KEY_PARAM = "key"

EXHAUSTED_MESSAGE = "exhausted retries"
DEADLINE_MESSAGE = "deadline exceeded"


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        # HTTP-date form is not worth honoring inside a 30s budget
        return None
    return seconds if seconds >= 0 else None


class Dispatcher:
    """Sends one WirePayload upstream, retrying transient failures.

    Each call to :meth:`send` owns its HTTP client, attempt records and
    deadline, so one Dispatcher can serve concurrent invocations.
    Attempts are strictly sequential.

    ``asyncio.CancelledError`` is never intercepted: cancelling the
    awaiting task aborts the in-flight request or the pending backoff
    sleep and no Outcome is produced.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        *,
        auth_mode: str = "header",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            policy: Retry and timeout policy. Defaults to RetryPolicy().
            auth_mode: "header" sends the credential as x-goog-api-key,
                "query" as the ``key`` query parameter.
            transport: Optional httpx transport (e.g. for embedding or tests).
            sleep: Coroutine used for backoff delays.
            clock: Monotonic clock used for the overall deadline.
        """
        if auth_mode not in ("header", "query"):
            raise ValueError(f"unsupported auth_mode: {auth_mode!r}")
        self._policy = policy or RetryPolicy()
        self._auth_mode = auth_mode
        self._transport = transport
        self._sleep = sleep
        self._clock = clock

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def _auth(self, credential: str) -> Tuple[Dict[str, str], Dict[str, str]]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        params: Dict[str, str] = {}
        if self._auth_mode == "query":
            params[API_KEY_PARAM] = credential
        else:
            headers[API_KEY_HEADER] = credential
        return headers, params

    async def send(
        self, payload: WirePayload, endpoint: str, credential: str
    ) -> Outcome:
        """Dispatch ``payload`` to ``endpoint`` and return the final Outcome."""
        policy = self._policy
        body = payload.encode()
        headers, params = self._auth(credential)

        deadline = self._clock() + policy.overall_deadline
        attempts: List[Attempt] = []
        last_failure: Optional[FailureClass] = None
        stop_reason = "attempts_exhausted"
        previous_delay: Optional[float] = None

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(policy.request_timeout),
        ) as client:
            for index in range(1, policy.max_attempts + 1):
                remaining = deadline - self._clock()
                if remaining <= 0:
                    stop_reason = "deadline_exceeded"
                    break

                attempt_timeout = min(policy.request_timeout, remaining)
                attempt_start = self._clock()
                outcome: Optional[Outcome] = None

                try:
                    response = await asyncio.wait_for(
                        client.post(
                            endpoint, content=body, headers=headers, params=params
                        ),
                        timeout=attempt_timeout,
                    )
                except (asyncio.TimeoutError, httpx.TimeoutException):
                    failure: Optional[FailureClass] = FailureClass(
                        kind=FailureKind.NETWORK_TIMEOUT,
                        detail=f"no response within {attempt_timeout:.1f}s",
                    )
                except httpx.TransportError as e:
                    failure = FailureClass(
                        kind=FailureKind.NETWORK_TIMEOUT,
                        detail=truncate(f"{type(e).__name__}: {e}"),
                    )
                else:
                    outcome = extract(
                        response.content, response.is_success, response.status_code
                    )
                    failure = outcome.failure
                    if failure is not None and failure.kind is FailureKind.TRANSIENT:
                        failure = dataclasses.replace(
                            failure, retry_after=_retry_after(response)
                        )

                attempts.append(
                    Attempt(
                        index=index,
                        elapsed=self._clock() - attempt_start,
                        failure=failure,
                    )
                )

                # Success, or an upstream answer that retrying cannot change
                if outcome is not None and (failure is None or not failure.retryable):
                    if failure is not None:
                        log.warning(
                            "dispatch_failed",
                            endpoint=endpoint,
                            attempt=index,
                            kind=failure.kind.value,
                            status=failure.status_code,
                        )
                    return outcome.with_attempts(tuple(attempts))

                last_failure = failure
                decision = policy.decide(
                    failure,
                    index,
                    remaining=deadline - self._clock(),
                    previous_delay=previous_delay,
                )
                if not decision.retry:
                    stop_reason = decision.reason
                    break

                log.warning(
                    "dispatch_retry",
                    endpoint=endpoint,
                    attempt=index,
                    max_attempts=policy.max_attempts,
                    kind=failure.kind.value,
                    status=failure.status_code,
                    delay=decision.delay,
                )
                await self._sleep(decision.delay)
                previous_delay = decision.delay

        return self._give_up(last_failure, stop_reason, attempts)

    def _give_up(
        self,
        last_failure: Optional[FailureClass],
        stop_reason: str,
        attempts: List[Attempt],
    ) -> Outcome:
        message = (
            DEADLINE_MESSAGE if stop_reason == "deadline_exceeded" else EXHAUSTED_MESSAGE
        )
        if last_failure is None:
            last_failure = FailureClass(kind=FailureKind.NETWORK_TIMEOUT)

        log.error(
            "dispatch_exhausted",
            attempts=len(attempts),
            reason=stop_reason,
            kind=last_failure.kind.value,
            status=last_failure.status_code,
        )
        outcome = Outcome(
            failure=last_failure,
            message=message,
        )
        return outcome.with_attempts(tuple(attempts))
