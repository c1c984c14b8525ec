"""
FastAPI adapter for the generation gateway.

Maps inbound HTTP onto Gateway.invoke and the resulting Outcome back onto
a status/body pair:
  - POST /generate (and POST /)   generation, or {"ping": true} liveness
  - OPTIONS on the same paths     CORS preflight (204)
  - anything else on those paths  405
  - GET /health                   health check

Run: genproxy serve  (or uvicorn genproxy.api.app:create_app --factory)
"""

from __future__ import annotations

import datetime
import json
import time
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from genproxy import __version__
from genproxy.core.config import Settings, get_settings
from genproxy.llm.gateway import Gateway
from genproxy.llm.outcome import FailureKind, Outcome

log = structlog.get_logger()

SERVICE_NAME = "gen-proxy"
GENERATE_PATHS = ("/generate", "/")

_STATUS_BY_KIND = {
    FailureKind.VALIDATION: 400,
    FailureKind.CONFIGURATION: 500,
    FailureKind.TRANSIENT: 502,
    FailureKind.NETWORK_TIMEOUT: 504,
    FailureKind.MALFORMED: 502,
    FailureKind.BLOCKED: 502,
    FailureKind.INTERNAL: 500,
}


def status_for(outcome: Outcome) -> int:
    """HTTP status equivalent of an Outcome."""
    if outcome.failure is None:
        return 200
    if outcome.failure.kind is FailureKind.PERMANENT:
        status = outcome.failure.status_code
        return status if status and 400 <= status < 600 else 400
    return _STATUS_BY_KIND[outcome.failure.kind]


def cors_headers(origin: str) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Headers": "Content-Type",
        "Access-Control-Allow-Methods": "POST, OPTIONS",
    }


def _is_ping(body: Any) -> bool:
    return isinstance(body, dict) and body.get("ping") is True


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[Gateway] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Resolved settings. Defaults to the process singleton.
        gateway: Optional gateway (tests inject one with a mocked dispatcher).
    """
    settings = settings or get_settings()
    gateway = gateway or Gateway(settings)
    headers = cors_headers(settings.server.cors_origin)

    app = FastAPI(
        title="gen-proxy",
        description="Resilient proxy for a generative-text API",
        version=__version__,
    )
    app.state.gateway = gateway

    async def generate(request: Request) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=headers)
        if request.method != "POST":
            return PlainTextResponse(
                "Method Not Allowed", status_code=405, headers=headers
            )

        raw = await request.body()
        try:
            body = json.loads(raw or b"{}")
        except ValueError:
            return JSONResponse(
                {"error": "invalid JSON body"}, status_code=400, headers=headers
            )

        if _is_ping(body):
            return JSONResponse(
                {
                    "ok": True,
                    "service": SERVICE_NAME,
                    "version": __version__,
                    "ts": int(time.time() * 1000),
                },
                headers=headers,
            )

        outcome = await gateway.invoke(body)
        return JSONResponse(
            outcome.to_body(), status_code=status_for(outcome), headers=headers
        )

    for path in GENERATE_PATHS:
        app.add_api_route(
            path,
            generate,
            methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            include_in_schema=path != "/",
        )

    @app.get("/health")
    async def health() -> JSONResponse:
        """Health check; never contacts upstream."""
        return JSONResponse(
            {
                "ok": True,
                "function": "health",
                "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            },
            headers=headers,
        )

    log.info("api_app_created", cors_origin=settings.server.cors_origin)
    return app
