"""
gen-proxy Test Configuration

Shared pytest fixtures and configuration for all test types.
"""

import os
from typing import Any, Callable, Dict, Generator, List

import pytest

from genproxy.core.config import Settings, reset_settings


# Configure pytest collection
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line(
        "markers", "integration: Integration tests (full pipeline, mocked upstream)"
    )


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path) -> Generator[None, None, None]:
    """Keep GENPROXY_/GEMINI_ variables, ~/.genproxy and the settings singleton out of tests."""
    monkeypatch.setattr(
        "genproxy.core.config.DEFAULT_CONFIG_DIR", tmp_path / ".genproxy"
    )
    saved = {
        key: os.environ.pop(key)
        for key in list(os.environ)
        if key.startswith("GENPROXY_") or key == "GEMINI_API_KEY"
    }
    reset_settings()
    yield
    reset_settings()
    for key in list(os.environ):
        if key.startswith("GENPROXY_") or key == "GEMINI_API_KEY":
            del os.environ[key]
    os.environ.update(saved)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Factory building Settings with a test credential and fast retries."""

    def _make(api_key: Any = "test-key", **sections: Dict[str, Any]) -> Settings:
        upstream = {"api_key": api_key, **sections.pop("upstream", {})}
        retry = {
            "backoff_base": 0.01,
            "request_timeout": 2.0,
            "overall_deadline": 10.0,
            **sections.pop("retry", {}),
        }
        return Settings(upstream=upstream, retry=retry, **sections)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    """Settings with credential and fast retry timings."""
    return make_settings()


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


def gemini_body(*parts: str, finish_reason: str = "STOP") -> Dict[str, Any]:
    """Upstream success document with one candidate made of ``parts``."""
    return {
        "candidates": [
            {
                "content": {
                    "role": "model",
                    "parts": [{"text": text} for text in parts],
                },
                "finishReason": finish_reason,
                "index": 0,
            }
        ],
        "usageMetadata": {"promptTokenCount": 3, "totalTokenCount": 10},
    }


def gemini_error(code: int, message: str, status: str) -> Dict[str, Any]:
    """Upstream error document."""
    return {"error": {"code": code, "message": message, "status": status}}


@pytest.fixture
def success_body() -> Callable[..., Dict[str, Any]]:
    return gemini_body


@pytest.fixture
def error_body() -> Callable[..., Dict[str, Any]]:
    return gemini_error

