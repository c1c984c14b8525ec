"""gen-proxy Exception Hierarchy.

All custom exceptions inherit from GenProxyError, enabling consistent
error handling across the codebase.

Exception Categories:
- Operator/caller faults (bad config, bad input) → Exceptions, raised at the
  point of detection and converted to an Outcome by the Gateway.
- Upstream failures (rate limits, timeouts, malformed bodies) → values
  (FailureClass inside an Outcome), never exceptions.

Usage:
    from genproxy.core.exceptions import ValidationError

    raise ValidationError(field="prompt", message="missing prompt")
"""

from typing import Any, Optional


class GenProxyError(Exception):
    """Base exception for all gen-proxy errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: Optional[str] = None) -> None:
        """Initialize GenProxyError.

        Args:
            message: Optional custom message. Defaults to a generic message.
        """
        self.message = message or "A gen-proxy error occurred."
        super().__init__(self.message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context dictionary for structured logging.

        Returns:
            dict: Key-value pairs of exception context.
        """
        return {}

    def __repr__(self) -> str:
        """Return debug representation."""
        return f"{self.__class__.__name__}({self.message!r})"


class ConfigurationError(GenProxyError):
    """Configuration file or value is invalid or missing.

    Raised when YAML configuration cannot be parsed, fails validation,
    or a required value (such as the upstream credential) is absent.
    This is an operator fault and is never retried.

    Attributes:
        config_path: Path to the configuration file (or "<env>").
        key: The configuration key that caused the error.
    """

    def __init__(
        self,
        config_path: str,
        key: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        """Initialize ConfigurationError.

        Args:
            config_path: Path to the config file.
            key: Optional key that caused the error.
            message: Optional custom message.
        """
        self.config_path = config_path
        self.key = key

        if message is None:
            key_info = f" key '{key}'" if key else ""
            message = f"Configuration error in '{config_path}'{key_info}."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for configuration error."""
        return {
            "config_path": self.config_path,
            "key": self.key,
        }

    def __repr__(self) -> str:
        """Return debug representation with attributes."""
        return (
            f"ConfigurationError(config_path={self.config_path!r}, "
            f"key={self.key!r})"
        )


class ValidationError(GenProxyError):
    """Caller's generation request is malformed.

    Raised by request validation when a required field is missing or a
    field has the wrong type. Out-of-range numbers are clamped instead.

    Attributes:
        field: Name of the offending input field, if known.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
    ) -> None:
        """Initialize ValidationError.

        Args:
            message: Error description returned to the caller.
            field: Optional name of the offending field.
        """
        self.field = field
        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for validation error."""
        return {"field": self.field}

    def __repr__(self) -> str:
        """Return debug representation."""
        return f"ValidationError(field={self.field!r}, message={self.message!r})"
