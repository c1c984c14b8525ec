"""gen-proxy CLI Entry Point.

Run one generation from the terminal, serve the HTTP adapter, or inspect
the effective configuration.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import typer

from genproxy.core.config import ConfigurationError, Settings, get_settings
from genproxy.core.logging import configure_logging
from genproxy.llm.gateway import Gateway

log = structlog.get_logger()

app = typer.Typer(
    name="genproxy",
    help="gen-proxy - resilient gateway for a generative-text API",
    no_args_is_help=True,
)


def _load_settings(config: Optional[Path]) -> Settings:
    """Resolve settings and configure logging, exiting on bad config."""
    if config is not None and not config.exists():
        typer.echo(f"Error: Config file '{config}' not found", err=True)
        raise typer.Exit(code=1)

    try:
        settings = get_settings(force_reload=True, system_config_path=config)
    except ConfigurationError as e:
        typer.echo(f"Error loading config: {e}", err=True)
        raise typer.Exit(code=1)

    # stdout carries command output only
    configure_logging(settings.logging, stream=sys.stderr)
    if config is not None:
        log.info("config_loaded", path=str(config))
    return settings


ConfigOption = typer.Option(
    None, "--config", "-c", help="Path to configuration file"
)


@app.command()
def generate(
    prompt: str = typer.Argument(..., help="Prompt text"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Upstream model"),
    temperature: Optional[float] = typer.Option(None, "--temperature", "-t"),
    max_tokens: Optional[int] = typer.Option(
        None, "--max-tokens", help="Maximum output tokens (clamped)"
    ),
    system: Optional[str] = typer.Option(None, "--system", "-s", help="System instruction"),
    plain: bool = typer.Option(False, "--plain", help="Request plain text output"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Generate text for PROMPT and print it."""
    settings = _load_settings(config)

    request: Dict[str, Any] = {"prompt": prompt}
    if model is not None:
        request["model"] = model
    if temperature is not None:
        request["temperature"] = temperature
    if max_tokens is not None:
        request["max_output_tokens"] = max_tokens
    if system is not None:
        request["system"] = system
    if plain:
        request["response_format"] = "plain"

    outcome = Gateway(settings).invoke_sync(request)
    if outcome.ok:
        typer.echo(outcome.text)
        return

    typer.echo(json.dumps(outcome.to_body(), indent=2), err=True)
    raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Serve the HTTP adapter."""
    import uvicorn

    from genproxy.api.app import create_app

    settings = _load_settings(config)
    bind_host = host or settings.server.host
    bind_port = port or settings.server.port

    log.info("server_starting", host=bind_host, port=bind_port)
    uvicorn.run(create_app(settings), host=bind_host, port=bind_port, log_config=None)


@app.command("config")
def show_config(config: Optional[Path] = ConfigOption) -> None:
    """Print the effective configuration with secrets masked."""
    settings = _load_settings(config)
    typer.echo(json.dumps(settings.public_view(), indent=2))


if __name__ == "__main__":
    app()
