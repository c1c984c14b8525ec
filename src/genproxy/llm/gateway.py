"""Entry point for the generation pipeline.

Orchestrates Validate → Build → Dispatch → Extract and always yields an
Outcome. This is the only object HTTP and CLI adapters talk to.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

import structlog

from genproxy.core.config import Settings
from genproxy.core.exceptions import ValidationError
from genproxy.llm.builder import build, endpoint_for
from genproxy.llm.dispatcher import Dispatcher
from genproxy.llm.outcome import FailureKind, Outcome
from genproxy.llm.request import validate

log = structlog.get_logger()


class Gateway:
    """Resilient generation gateway.

    Holds only read-only configuration; every invocation builds its own
    RequestSpec, WirePayload and attempt records, so a single Gateway is
    safe to share across concurrent requests.
    """

    def __init__(
        self,
        settings: Settings,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            settings: Resolved configuration (credential, defaults, retry).
            dispatcher: Optional pre-built dispatcher. Defaults to one built
                from ``settings.retry`` and ``settings.upstream.auth_mode``.
        """
        self._settings = settings
        self._dispatcher = dispatcher or Dispatcher(
            settings.retry.to_policy(),
            auth_mode=settings.upstream.auth_mode,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    async def invoke(self, raw: Any) -> Outcome:
        """Run one generation request end to end.

        Never raises for request, configuration or upstream problems; the
        failure is returned as an Outcome. Task cancellation propagates.
        """
        start = time.monotonic()
        try:
            outcome = await self._invoke(raw)
        except Exception as e:
            log.exception("gateway_internal_error", error_class=type(e).__name__)
            outcome = Outcome.fail(FailureKind.INTERNAL, "internal error")

        log.info(
            "gateway_invoked",
            ok=outcome.ok,
            kind=outcome.kind.value if outcome.kind else None,
            attempts=len(outcome.attempts),
            latency_ms=int((time.monotonic() - start) * 1000),
        )
        return outcome

    async def _invoke(self, raw: Any) -> Outcome:
        credential = self._settings.api_key
        if not credential:
            log.error("gateway_missing_credential")
            return Outcome.fail(FailureKind.CONFIGURATION, "API key missing")

        try:
            spec = validate(raw, self._settings.generation)
        except ValidationError as e:
            log.info("gateway_invalid_request", **e.context)
            return Outcome.fail(FailureKind.VALIDATION, e.message)

        payload = build(spec)
        endpoint = endpoint_for(self._settings.upstream.base_url, spec.model)
        return await self._dispatcher.send(payload, endpoint, credential)

    def invoke_sync(self, raw: Any) -> Outcome:
        """Blocking wrapper around :meth:`invoke` for synchronous callers."""
        return asyncio.run(self.invoke(raw))
