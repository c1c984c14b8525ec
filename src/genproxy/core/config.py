"""gen-proxy Configuration System.

Layered YAML configuration with Pydantic validation.
Supports a system config file, a .env file for secrets, environment
variables and in-memory runtime overrides.

Config Layer Priority (highest to lowest):
1. Runtime overrides (in-memory)
2. System config (~/.genproxy/config.yaml or an explicit path)
3. Environment variables (GENPROXY_ prefix, "__" for nesting; a bare
   GEMINI_API_KEY is accepted for upstream.api_key)
4. Defaults (defined in Pydantic models)

The pipeline never reads configuration on its own: entry points (CLI, HTTP
adapter) resolve a Settings value and pass it to the Gateway.

Usage:
    from genproxy.core.config import get_settings

    settings = get_settings()
    print(settings.retry.max_attempts)  # 3 (default)
"""

from __future__ import annotations

import os
import threading
import warnings
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    Field,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from genproxy.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from genproxy.llm.retry import RetryPolicy

DEFAULT_CONFIG_DIR = Path.home() / ".genproxy"

# Fallback secret name used by the hosted function this service replaces.
LEGACY_API_KEY_ENV = "GEMINI_API_KEY"


# =============================================================================
# Sub-configuration Models (nested sections)
# =============================================================================


class UpstreamConfig(BaseModel):
    """Upstream generative API connection configuration."""

    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    api_key: Optional[SecretStr] = None
    auth_mode: Literal["header", "query"] = "header"

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URL so endpoint joining stays predictable."""
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL: {v!r}")
        return v


class GenerationDefaults(BaseModel):
    """Defaults and clamp bounds for generation parameters."""

    model: str = "gemini-1.5-flash"
    temperature: float = 0.7
    top_p: float = 0.95
    max_output_tokens: PositiveInt = 4096
    candidate_count: PositiveInt = 1
    min_output_tokens: PositiveInt = 2048
    max_output_tokens_ceiling: PositiveInt = 16384

    @model_validator(mode="after")
    def check_token_bounds(self) -> "GenerationDefaults":
        """Ensure the clamp range is well-formed."""
        if self.min_output_tokens > self.max_output_tokens_ceiling:
            raise ValueError(
                "min_output_tokens must not exceed max_output_tokens_ceiling"
            )
        return self


class RetryConfig(BaseModel):
    """Retry and time-budget configuration."""

    max_attempts: PositiveInt = 3
    backoff_base: PositiveFloat = 0.8  # seconds
    request_timeout: PositiveFloat = 20.0  # seconds, per attempt
    overall_deadline: PositiveFloat = 28.0  # seconds, whole invocation
    max_retry_after: float = Field(default=5.0, ge=0.0)  # seconds

    def to_policy(self) -> "RetryPolicy":
        """Build the RetryPolicy value object used by the Dispatcher."""
        from genproxy.llm.retry import RetryPolicy

        return RetryPolicy(
            max_attempts=self.max_attempts,
            backoff_base=self.backoff_base,
            request_timeout=self.request_timeout,
            overall_deadline=self.overall_deadline,
            max_retry_after=self.max_retry_after,
        )


class ServerConfig(BaseModel):
    """HTTP adapter configuration."""

    host: str = "127.0.0.1"
    port: PositiveInt = 8000
    cors_origin: str = "*"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["json", "console"] = "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


# =============================================================================
# Main Settings
# =============================================================================


class Settings(BaseSettings):
    """Main settings class with layered configuration support.

    Values passed to the constructor (YAML file + runtime overrides) win
    over GENPROXY_ environment variables, which win over model defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="GENPROXY_",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    generation: GenerationDefaults = Field(default_factory=GenerationDefaults)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging_config: LoggingConfig = Field(
        default_factory=LoggingConfig, alias="logging"
    )

    @property
    def logging(self) -> LoggingConfig:
        """Alias for logging_config to match YAML key and common usage."""
        return self.logging_config

    @property
    def api_key(self) -> Optional[str]:
        """Return the upstream credential as plain text, if configured."""
        secret = self.upstream.api_key
        if secret is None:
            return None
        value = secret.get_secret_value().strip()
        return value or None

    def public_view(self) -> Dict[str, Any]:
        """Return settings as a dict with the credential masked."""
        data = self.model_dump(mode="json", by_alias=True)
        data["upstream"]["api_key"] = "***" if self.api_key else None
        return data


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Read one YAML config file into a dict; an empty file is ``{}``.

    Raises:
        ConfigurationError: The file is missing, is not YAML, or its top
            level is not a mapping.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(
            config_path=str(path),
            message=f"Configuration file not found: {path}",
        )
    except yaml.YAMLError as e:
        raise ConfigurationError(
            config_path=str(path),
            message=f"Invalid YAML in {path}: {e}",
        )

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(
            config_path=str(path),
            message=f"Top level of {path} must be a mapping",
        )
    return content


def load_system_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Read the gateway config file.

    Without ``path`` the file under ~/.genproxy is used when present and
    skipped otherwise. An explicit ``path`` must exist.

    Raises:
        ConfigurationError: If the file cannot be loaded.
    """
    if path is None:
        default = DEFAULT_CONFIG_DIR / "config.yaml"
        if not default.exists():
            return {}
        return load_yaml_file(default)

    return load_yaml_file(Path(path).expanduser())


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Combine config layers left to right.

    Nested sections merge key by key, so a layer that sets only
    ``retry.max_attempts`` keeps the rest of ``retry`` from lower layers.
    Any other value from a later layer replaces the earlier one.
    """
    result: Dict[str, Any] = {}

    for config in configs:
        for key, value in config.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = merge_configs(result[key], value)
            else:
                result[key] = value

    return result


def _legacy_api_key_layer() -> Dict[str, Any]:
    """Map GEMINI_API_KEY onto upstream.api_key when the prefixed var is unset."""
    if os.environ.get("GENPROXY_UPSTREAM__API_KEY"):
        return {}
    legacy = os.environ.get(LEGACY_API_KEY_ENV)
    if not legacy:
        return {}
    return {"upstream": {"api_key": legacy}}


def create_settings(
    system_config_path: Optional[Path] = None,
    runtime_overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """Build Settings from the .env file, config file and overrides.

    Args:
        system_config_path: Config file to read instead of the default.
        runtime_overrides: Values that win over every other layer.

    Raises:
        ConfigurationError: If a layer cannot be read or the merged values
            fail validation.
    """
    if system_config_path:
        config_base = Path(system_config_path).expanduser().parent
    else:
        config_base = DEFAULT_CONFIG_DIR

    # Secrets live in a .env next to the config file
    env_path = config_base / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    system_config = load_system_config(system_config_path)

    # Merge configs (legacy key < system < runtime); env vars fill the gaps
    merged = merge_configs(_legacy_api_key_layer(), system_config)
    if runtime_overrides:
        merged = merge_configs(merged, runtime_overrides)

    try:
        return Settings(**merged)
    except Exception as e:
        raise ConfigurationError(
            config_path=str(system_config_path or DEFAULT_CONFIG_DIR / "config.yaml"),
            message=f"Configuration validation failed: {e}",
        ) from e


# =============================================================================
# Process-wide Settings
# =============================================================================


class _SettingsHolder:
    """Holds the Settings shared by the CLI and the HTTP app."""

    _instance: Optional[Settings] = None
    _lock: threading.Lock = threading.Lock()

    @classmethod
    def get(cls, force_reload: bool = False, **kwargs: Any) -> Settings:
        """Return the shared Settings, building them on first use.

        ``kwargs`` go to create_settings() whenever a build happens.
        """
        with cls._lock:
            if cls._instance is None or force_reload:
                cls._instance = create_settings(**kwargs)
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the shared Settings so the next get() rebuilds them."""
        with cls._lock:
            cls._instance = None


def get_settings(
    force_reload: bool = False,
    system_config_path: Optional[Path] = None,
    runtime_overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """Return the process-wide Settings.

    The first call builds them; later calls reuse that value unless
    ``force_reload`` is set. Only entry points should call this; library
    code receives Settings explicitly.
    """
    if not force_reload and _SettingsHolder._instance is not None:
        if system_config_path is not None or runtime_overrides is not None:
            warnings.warn(
                "get_settings() arguments have no effect once settings are "
                "loaded; pass force_reload=True to rebuild them.",
                RuntimeWarning,
                stacklevel=2,
            )

    return _SettingsHolder.get(
        force_reload=force_reload,
        system_config_path=system_config_path,
        runtime_overrides=runtime_overrides,
    )


def reset_settings() -> None:
    """Forget the process-wide Settings; the next get_settings() rebuilds them."""
    _SettingsHolder.reset()
