"""Shared pytest fixtures and configuration.

Fixture Categories:
1. Credentials & settings: credentials, multi_page_credentials, mock_settings
2. Webhook data: text_update, make_payload, sign
3. Adapter: bot, multi_page_bot, recording_handler
4. Infrastructure: mock_logfire, test_client
"""

import json
import os
from contextlib import contextmanager
from typing import Any, Callable
from unittest.mock import MagicMock, Mock

import pytest

# Allow logfire calls in tests without a configured project
os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")

from messenger_adapter.models.config_models import MessengerCredentials
from messenger_adapter.services.messaging_protocol import RecordingUpdateHandler
from messenger_adapter.services.messenger_bot import MessengerBot, reset_messenger_bot
from messenger_adapter.services.signature import compute_signature

APP_SECRET = "test-app-secret"
VERIFY_TOKEN = "test-verify-token"
PAGE_TOKEN = "test-page-token"
PAGE_ID = "PAGE_ID"
USER_ID = "USER_ID"
MULTI_PAGE_TOKENS = {
    "page-1": "token-page-1",
    "page-2": "token-page-2",
}


@pytest.fixture
def credentials():
    """Single-page credentials."""
    return MessengerCredentials(
        verify_token=VERIFY_TOKEN,
        app_secret=APP_SECRET,
        page_token=PAGE_TOKEN,
    )


@pytest.fixture
def multi_page_credentials():
    """Multi-page credentials."""
    return MessengerCredentials(
        verify_token=VERIFY_TOKEN,
        app_secret=APP_SECRET,
        pages=dict(MULTI_PAGE_TOKENS),
    )


@pytest.fixture
def bot(credentials):
    """Single-page adapter with no handlers."""
    return MessengerBot(credentials)


@pytest.fixture
def multi_page_bot(multi_page_credentials):
    """Multi-page adapter with a pre-seeded id."""
    return MessengerBot(multi_page_credentials, bot_id="multi_page_bot_id")


@pytest.fixture
def recording_handler():
    """Update handler that records every call."""
    return RecordingUpdateHandler()


@pytest.fixture
def text_update():
    """A plain text messaging record."""
    return {
        "sender": {"id": USER_ID},
        "recipient": {"id": PAGE_ID},
        "timestamp": 1468325836000,
        "message": {
            "mid": "mid.1457764197618:41d102a3e1ae206a38",
            "seq": 1,
            "text": "Party & Bullshit",
        },
    }


@pytest.fixture
def make_payload() -> Callable[..., dict[str, Any]]:
    """Build a webhook payload with one entry holding ``records``."""

    def _make_payload(*records: dict[str, Any], page_id: str = PAGE_ID) -> dict[str, Any]:
        return {
            "object": "page",
            "entry": [
                {
                    "id": page_id,
                    "time": 1468325836000,
                    "messaging": list(records),
                }
            ],
        }

    return _make_payload


@pytest.fixture
def sign() -> Callable[..., tuple[bytes, str]]:
    """Serialize a payload and sign it. Returns ``(body, signature_header)``."""

    def _sign(payload: dict[str, Any], secret: str = APP_SECRET) -> tuple[bytes, str]:
        body = json.dumps(payload).encode("utf-8")
        return body, compute_signature(body, secret)

    return _sign


@pytest.fixture
def mock_settings(monkeypatch):
    """Mock application settings and reset the global adapter around the test."""
    from messenger_adapter.config import Settings

    settings = Settings(
        facebook_verify_token=VERIFY_TOKEN,
        facebook_app_secret=APP_SECRET,
        facebook_page_access_token=PAGE_TOKEN,
        facebook_page_tokens=None,
        facebook_bot_id=None,
        env="local",
        logfire_token=None,
        sentry_dsn=None,
    )

    monkeypatch.setattr("messenger_adapter.config.get_settings", lambda: settings)
    # Patch where get_settings is used so request handlers see the mock
    monkeypatch.setattr("messenger_adapter.main.get_settings", lambda: settings)
    monkeypatch.setattr(
        "messenger_adapter.services.messenger_bot.get_settings", lambda: settings
    )
    reset_messenger_bot()
    yield settings
    reset_messenger_bot()


@pytest.fixture
def mock_logfire(monkeypatch):
    """
    Mock Logfire for tests that assert on logging or run the app lifespan.
    """

    @contextmanager
    def mock_span(*args, **kwargs):
        yield {}

    mock_logfire_module = MagicMock()
    mock_logfire_module.info = Mock()
    mock_logfire_module.warning = Mock()
    mock_logfire_module.error = Mock()
    mock_logfire_module.span = mock_span
    mock_logfire_module.configure = Mock()
    mock_logfire_module.instrument_fastapi = Mock()
    mock_logfire_module.instrument_pydantic = Mock()

    for module in (
        "messenger_adapter.logging_config",
        "messenger_adapter.main",
        "messenger_adapter.services.bot_identity",
        "messenger_adapter.services.graph_client",
        "messenger_adapter.services.messenger_bot",
        "messenger_adapter.services.signature",
        "messenger_adapter.services.update_normalizer",
    ):
        monkeypatch.setattr(f"{module}.logfire", mock_logfire_module)

    return mock_logfire_module


@pytest.fixture
def test_client(mock_settings, mock_logfire):
    """FastAPI TestClient for E2E tests (lifespan not run)."""
    from fastapi.testclient import TestClient

    from messenger_adapter.main import app

    return TestClient(app)
