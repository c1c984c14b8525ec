"""
gen-proxy - Resilient gateway for a generative-text HTTP API

Validates a simplified generation request, calls the upstream API under a
bounded time budget with retry, and normalizes the result.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
