"""End-to-end tests for webhook POST handling."""

import json
import threading
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from messenger_adapter.models.messenger import UpdateKind
from messenger_adapter.services.signature import compute_signature

DISPATCH_TIMEOUT_SECONDS = 5


class TestWebhookMessageFlow:
    """Test signature checks, payload validation and dispatch over HTTP."""

    def test_signed_message_is_accepted(self, test_client, text_update, make_payload, sign):
        body, signature = sign(make_payload(text_update))

        response = test_client.post(
            "/webhook",
            content=body,
            headers={"Content-Type": "application/json", "X-Hub-Signature": signature},
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_sha256_signature_is_accepted(self, test_client, text_update, make_payload):
        body = json.dumps(make_payload(text_update)).encode("utf-8")
        signature = compute_signature(body, "test-app-secret", "sha256")

        response = test_client.post(
            "/webhook",
            content=body,
            headers={"X-Hub-Signature-256": signature},
        )

        assert response.status_code == 200

    def test_missing_signature_is_rejected(self, test_client, text_update, make_payload, sign):
        body, _ = sign(make_payload(text_update))

        response = test_client.post("/webhook", content=body)

        assert response.status_code == 403
        assert response.json() == {"error": "Error, wrong signature"}

    def test_wrong_secret_is_rejected(self, test_client, text_update, make_payload, sign):
        body, signature = sign(make_payload(text_update), secret="someWrongAppSecret")

        response = test_client.post(
            "/webhook", content=body, headers={"X-Hub-Signature": signature}
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Error, wrong signature"}

    def test_malformed_json_is_rejected(self, test_client):
        body = b'{"object": "page", "entry": ['
        signature = compute_signature(body, "test-app-secret")

        response = test_client.post(
            "/webhook", content=body, headers={"X-Hub-Signature": signature}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Error, malformed payload"}

    def test_payload_without_object_is_rejected(self, test_client, sign):
        body, signature = sign({"entry": []})

        response = test_client.post(
            "/webhook", content=body, headers={"X-Hub-Signature": signature}
        )

        assert response.status_code == 400

    def test_non_page_object_is_ignored(self, test_client, sign):
        body, signature = sign({"object": "user", "entry": [{"id": "1", "changes": []}]})

        response = test_client.post(
            "/webhook", content=body, headers={"X-Hub-Signature": signature}
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}

    def test_updates_reach_the_handler(
        self, mock_settings, mock_logfire, text_update, make_payload, sign
    ):
        """A verified POST dispatches its update to the registered handler."""
        from messenger_adapter.main import app

        received = []
        delivered = threading.Event()

        async def handler(bot, update):
            received.append(update)
            delivered.set()

        with TestClient(app) as client:
            client.app.state.messenger_bot.on_update(handler)
            body, signature = sign(make_payload(text_update))

            response = client.post(
                "/webhook", content=body, headers={"X-Hub-Signature": signature}
            )

            assert response.status_code == 200
            assert delivered.wait(DISPATCH_TIMEOUT_SECONDS)

        update = received[0]
        assert update.kind is UpdateKind.TEXT
        assert update.sender_id == "USER_ID"
        assert update.data["message"]["text"] == "Party & Bullshit"
        assert update.raw == make_payload(text_update)["entry"][0]
        assert client.app.state.messenger_bot.id == "PAGE_ID"

    def test_route_delegates_to_the_adapter(self, test_client, monkeypatch, sign):
        """The route only maps adapter outcomes to HTTP responses."""
        from messenger_adapter.services.messenger_bot import MessengerBot

        handle = AsyncMock(return_value=[])
        monkeypatch.setattr(MessengerBot, "handle_webhook", handle)
        body, signature = sign({"object": "page", "entry": []})

        response = test_client.post(
            "/webhook", content=body, headers={"X-Hub-Signature": signature}
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        handle.assert_awaited_once_with(body, signature)

    def test_non_object_entry_is_rejected(self, test_client, sign):
        body, signature = sign({"object": "page", "entry": ["not an entry"]})

        response = test_client.post(
            "/webhook", content=body, headers={"X-Hub-Signature": signature}
        )

        assert response.status_code == 400
