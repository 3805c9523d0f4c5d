# tests/conftest.py
"""
Pytest configuration and fixtures.
Adds backend/app to sys.path so `import services...` works like inside the app.
"""

import json
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
app_root = project_root / "backend" / "app"
if str(app_root) not in sys.path:
    sys.path.insert(0, str(app_root))

from config import settings  # noqa: E402
from services.ai_config import MemoryConfigStore  # noqa: E402


class FakeAdapter:
    """Stands in for a provider adapter; records every call."""

    def __init__(self, provider, result="ok", error=None, delay=0.0):
        self.provider = provider
        self.result = result
        self.error = error
        self.delay = delay
        self.calls = []

    async def call(self, provider_settings, payload):
        import asyncio

        self.calls.append((provider_settings, payload))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


def config_blob(
    *,
    enabled=True,
    priority=("gemini", "bailian"),
    gemini=None,
    bailian=None,
):
    return {
        "enabled": enabled,
        "priority": list(priority),
        "gemini": {"enabled": True, "apiKey": "g-key", "model": "", **(gemini or {})},
        "bailian": {
            "enabled": True,
            "apiKey": "b-key",
            "model": "",
            "baseURL": "https://bailian.example/v1",
            **(bailian or {}),
        },
    }


@pytest.fixture
def make_store():
    def _make(blob=None):
        if blob is None:
            return MemoryConfigStore()
        return MemoryConfigStore({settings.AI_CONFIG_KEY: json.dumps(blob)})

    return _make


@pytest.fixture
def make_adapter():
    return FakeAdapter


@pytest.fixture
def make_blob():
    return config_blob
