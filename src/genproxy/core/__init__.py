"""Core building blocks: configuration, exceptions and logging."""

from genproxy.core.exceptions import (
    ConfigurationError,
    GenProxyError,
    ValidationError,
)

__all__ = [
    "ConfigurationError",
    "GenProxyError",
    "ValidationError",
]
