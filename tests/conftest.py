"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, a recording
transport double, and automatic API test skipping. All fixtures here are
autouse unless noted.
"""

from __future__ import annotations

from collections.abc import Mapping
from contextlib import suppress
from dataclasses import dataclass, field
import json
import logging
import os
from typing import Any

import pytest

from castor.transport import RawResponse

# =============================================================================
# Test Doubles
# =============================================================================


@dataclass
class SentRequest:
    """One captured transport call."""

    endpoint: str
    payload: dict[str, Any]
    headers: dict[str, str]


@dataclass
class FakeTransport:
    """Transport test double that records every send.

    Returns ``responses`` in order (a JSON-able body, a RawResponse, or an
    exception to raise); when exhausted it repeats the last entry.
    """

    responses: list[Any] = field(default_factory=list)
    sent: list[SentRequest] = field(default_factory=list)

    @property
    def calls(self) -> int:
        return len(self.sent)

    @property
    def last_payload(self) -> dict[str, Any]:
        assert self.sent, "transport was never called"
        return self.sent[-1].payload

    async def send(
        self,
        endpoint: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> RawResponse:
        # Deep copy through JSON so later mutations cannot leak into assertions.
        self.sent.append(
            SentRequest(endpoint, json.loads(json.dumps(payload)), dict(headers))
        )
        if not self.responses:
            raise AssertionError("FakeTransport has no scripted response")
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, RawResponse):
            return item
        return RawResponse(status_code=200, body=json.dumps(item).encode())


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Ensure a clean provider environment for each test.

    Clears provider keys and CASTOR_* settings to prevent test pollution.
    Opt-out: @pytest.mark.allow_env_pollution or @pytest.mark.api
    """
    if request.node.get_closest_marker("allow_env_pollution") or (
        "api" in request.node.keywords
    ):
        return

    for key in list(os.environ.keys()):
        if key.startswith(("GEMINI_", "OPENAI_", "OPENROUTER_", "CASTOR_")):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Pytest Hooks
# =============================================================================

API_TESTS_REASON = "API tests require ENABLE_API_TESTS=1"


def _api_tests_enabled() -> bool:
    return bool(os.getenv("ENABLE_API_TESTS"))


def pytest_collection_modifyitems(items):
    """Automatically skip API tests when not explicitly enabled."""
    if _api_tests_enabled():
        return
    skip_api = pytest.mark.skip(reason=API_TESTS_REASON)
    for item in items:
        if "api" in item.keywords:
            item.add_marker(skip_api)


# =============================================================================
# Shared Fixtures
# =============================================================================

OPENAI_MODEL = "gpt-4o-mini"
GEMINI_MODEL = "gemini-2.5-flash"
OPENROUTER_MODEL = "openai/gpt-4o-mini"


@pytest.fixture
def transport() -> FakeTransport:
    """A fresh recording transport (not autouse)."""
    return FakeTransport()


@pytest.fixture
def gemini_api_key():
    """Return GEMINI_API_KEY or skip the test if unavailable."""
    key = os.getenv("GEMINI_API_KEY")
    if not key:
        pytest.skip("GEMINI_API_KEY not set")
    return key


@pytest.fixture
def openai_api_key():
    """Return OPENAI_API_KEY or skip the test if unavailable."""
    key = os.getenv("OPENAI_API_KEY")
    if not key:
        pytest.skip("OPENAI_API_KEY not set")
    return key
