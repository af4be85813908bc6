"""Shared fixtures for the Card Scanner Gateway test suite."""

import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

import cardscan_gateway.providers.gemini as gemini_mod
import cardscan_gateway.proxy.handler as handler_mod
from cardscan_gateway.config.settings import get_settings
from cardscan_gateway.providers.base import UpstreamResponse
from cardscan_gateway.logging.audit import AUDIT_LOGGER_NAME, QUIETED_LOGGERS


def _reset_loggers():
    audit = logging.getLogger(AUDIT_LOGGER_NAME)
    for handler in list(audit.handlers):
        handler.close()
    audit.handlers.clear()
    audit.setLevel(logging.NOTSET)
    audit.propagate = True
    for name in QUIETED_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo setup_logging() so every test sees the audit logger propagating to root."""
    _reset_loggers()
    yield
    _reset_loggers()


@pytest.fixture(autouse=True)
def reset_provider(monkeypatch):
    monkeypatch.setattr(gemini_mod, "_provider", None)
    yield
    monkeypatch.setattr(gemini_mod, "_provider", None)


@pytest.fixture
def generate_request() -> dict:
    """A card identification request as the scanner UI sends it."""
    return {
        "contents": [
            {
                "parts": [
                    {"text": "Identify this trading card. Reply as JSON."},
                    {"inline_data": {"mime_type": "image/jpeg", "data": "/9j/4AAQSkZJRg=="}},
                ]
            }
        ],
        "generationConfig": {"responseMimeType": "application/json"},
    }


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(GEMINI_API_KEYS="key1,key2", MAX_RETRIES="2")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()

    yield _override

    get_settings.cache_clear()


@pytest.fixture
def no_sleep(monkeypatch):
    """Replace the backoff sleep with a recording AsyncMock."""
    sleep = AsyncMock()
    monkeypatch.setattr(handler_mod, "asyncio", SimpleNamespace(sleep=sleep))
    return sleep


@pytest.fixture
def start_at(monkeypatch):
    """Force the random starting key index."""
    def _start_at(index: int):
        monkeypatch.setattr(
            "cardscan_gateway.proxy.handler.choose_start_index", lambda pool_size: index
        )

    return _start_at


def make_provider(*responses: UpstreamResponse) -> AsyncMock:
    """Mock provider answering successive generate_content calls in order."""
    provider = AsyncMock()
    provider.generate_content.side_effect = list(responses)
    return provider


def rate_limited() -> UpstreamResponse:
    return UpstreamResponse(
        status_code=429,
        text='{"error": {"code": 429, "status": "RESOURCE_EXHAUSTED"}}',
    )
