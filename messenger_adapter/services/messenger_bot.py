"""Messenger adapter: webhook receiver and host-facing facade.

The webhook handlers in ``messenger_adapter.api.webhook`` deal with HTTP;
everything protocol-related happens here:
1. Handshake verification (``hub.verify_token`` / ``hub.challenge``)
2. Signature verification of the raw POST body
3. Normalization of ``entry[].messaging[]`` records
4. Fire-and-forget dispatch of each update to the registered handlers
"""

from __future__ import annotations

import asyncio
import hmac
import json
from typing import Any, Iterable

import logfire

from messenger_adapter.config import Settings, get_settings
from messenger_adapter.constants import DEFAULT_WEBHOOK_PATH
from messenger_adapter.exceptions import AuthenticationFailure, ConfigurationError
from messenger_adapter.models.config_models import MessengerCredentials
from messenger_adapter.models.messenger import (
    NormalizedUpdate,
    UpdateKind,
    WebhookPayload,
)
from messenger_adapter.models.user_models import FacebookUserInfo
from messenger_adapter.services.bot_identity import BotIdentity
from messenger_adapter.services.graph_client import GraphAPIClient
from messenger_adapter.services.messaging_protocol import UpdateHandler
from messenger_adapter.services.signature import verify_signature
from messenger_adapter.services.update_normalizer import iter_normalized_updates


def _check_credentials(credentials: MessengerCredentials) -> None:
    """Enforce exactly one of page_token / pages."""
    # A blank token (e.g. `FACEBOOK_PAGE_ACCESS_TOKEN=` in .env) counts as absent
    has_single = bool(credentials.page_token)
    has_multi = credentials.pages is not None

    if has_single and has_multi:
        raise ConfigurationError(
            "Messenger credentials must define either page_token or pages, not both"
        )
    if not has_single and not has_multi:
        raise ConfigurationError(
            "Messenger credentials must define either page_token or pages"
        )
    if has_multi and not credentials.pages:
        raise ConfigurationError("Messenger credentials define an empty pages mapping")
    if not credentials.verify_token or not credentials.app_secret:
        raise ConfigurationError(
            "Messenger credentials require a verify_token and an app_secret"
        )


class MessengerBot:
    """Facebook Messenger adapter.

    Example:
        >>> bot = MessengerBot(credentials)
        >>> @bot.on_update
        ... async def echo(bot, update):
        ...     if update.kind is UpdateKind.TEXT:
        ...         await bot.reply_to(update, update.event.message.text)
    """

    type = "messenger"
    requires_webhook = True
    retrieves_user_info = True

    receives = {
        "text": True,
        "attachment": {
            "audio": True,
            "file": True,
            "image": True,
            "video": True,
            "location": True,
            "fallback": True,
        },
        "echo": True,
        "read": True,
        "delivery": True,
        "postback": True,
        "quick_reply": True,
    }

    sends = {
        "text": True,
        "quick_reply": True,
        "location_quick_reply": True,
        "sender_action": {
            "typing_on": True,
            "typing_off": True,
            "mark_seen": True,
        },
        "attachment": {
            "audio": True,
            "file": True,
            "image": True,
            "video": True,
        },
    }

    def __init__(
        self,
        credentials: MessengerCredentials,
        *,
        bot_id: str | None = None,
        webhook_path: str = DEFAULT_WEBHOOK_PATH,
        learn_id_from_updates: bool = True,
        ignored_update_kinds: Iterable[UpdateKind] = (),
        update_handlers: Iterable[UpdateHandler] = (),
        graph_client: GraphAPIClient | None = None,
    ):
        """Initialize the adapter.

        Args:
            credentials: Verify token, app secret and page token(s)
            bot_id: Page id this adapter represents, if known up front
            webhook_path: Mount point of the webhook router
            learn_id_from_updates: Learn ``bot_id`` from the first update
                (single-page mode only)
            ignored_update_kinds: Update kinds not handed to handlers
            update_handlers: Initial update handlers
            graph_client: Graph API client (built from credentials if omitted)

        Raises:
            ConfigurationError: If credentials are inconsistent
        """
        _check_credentials(credentials)

        self._credentials = credentials
        self._identity = BotIdentity(bot_id)
        self._learn_id = learn_id_from_updates and not credentials.is_multi_page
        self._ignored_kinds = frozenset(ignored_update_kinds)
        self._handlers: list[UpdateHandler] = list(update_handlers)
        self._graph = graph_client or GraphAPIClient(credentials)
        self._pending_tasks: set[asyncio.Task] = set()
        self.webhook_path = webhook_path

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "MessengerBot":
        """Build an adapter from application settings."""
        credentials = settings.to_credentials()
        graph_client = GraphAPIClient(
            credentials,
            api_version=settings.graph_api_version,
            timeout_seconds=settings.facebook_api_timeout_seconds,
        )
        kwargs.setdefault("bot_id", settings.facebook_bot_id)
        kwargs.setdefault("webhook_path", settings.webhook_path)
        return cls(credentials, graph_client=graph_client, **kwargs)

    @property
    def id(self) -> str | None:
        """Page id of this bot, None until known."""
        return self._identity.id

    @property
    def credentials(self) -> MessengerCredentials:
        return self._credentials

    @property
    def graph(self) -> GraphAPIClient:
        """Graph API client for outbound calls (send, profile, user info)."""
        return self._graph

    @property
    def pending_tasks(self) -> set[asyncio.Task]:
        """Dispatch tasks that have not finished yet."""
        return set(self._pending_tasks)

    def on_update(self, handler: UpdateHandler) -> UpdateHandler:
        """Register an update handler. Usable as a decorator."""
        self._handlers.append(handler)
        return handler

    # =========================================================================
    # Webhook receiver
    # =========================================================================

    def verify_subscription(self, verify_token: str | None, challenge: str | None) -> str:
        """Answer Facebook's webhook handshake.

        Returns:
            The challenge to echo back (empty string if none was sent)

        Raises:
            AuthenticationFailure: If the verify token doesn't match
        """
        expected = self._credentials.verify_token.encode("utf-8")
        received = (verify_token or "").encode("utf-8")
        if not hmac.compare_digest(received, expected):
            logfire.warning("Webhook verification failed")
            raise AuthenticationFailure("wrong verify token")

        logfire.info("Webhook verified successfully")
        return challenge or ""

    def verify_request(self, body: bytes, signature: str | None) -> None:
        """Verify the signature of a raw webhook body.

        Raises:
            AuthenticationFailure: If the signature is missing or wrong
        """
        verify_signature(body, signature, self._credentials.app_secret)

    def parse_payload(self, body: bytes) -> WebhookPayload:
        """Decode a verified webhook body.

        Raises:
            ValueError: If the body isn't JSON or lacks ``object``/``entry``
                (pydantic's ValidationError is a ValueError)
        """
        return WebhookPayload.model_validate(json.loads(body))

    def dispatch(self, update: NormalizedUpdate) -> asyncio.Task | None:
        """Hand one update to the handlers as an independent task.

        Must be called from a running event loop. Returns the task, or None
        if the update kind is ignored.
        """
        if self._learn_id:
            self._identity.set_if_empty(update.page_id)

        if update.kind in self._ignored_kinds:
            return None

        task = asyncio.create_task(self._run_handlers(update))
        self._pending_tasks.add(task)
        task.add_done_callback(self._pending_tasks.discard)
        return task

    def dispatch_entries(self, entries: list[dict[str, Any]]) -> list[asyncio.Task]:
        """Normalize and dispatch every record of a callback batch, in order."""
        tasks = []
        for update in iter_normalized_updates(entries):
            task = self.dispatch(update)
            if task is not None:
                tasks.append(task)
        return tasks

    async def handle_webhook(
        self, body: bytes, signature: str | None
    ) -> list[asyncio.Task] | None:
        """Verify, parse and dispatch one webhook POST.

        Returns as soon as every record has been handed off; the returned
        tasks may still be running. Returns None when the payload is not for
        a page (e.g. ``object: "user"``) and was ignored.

        Raises:
            AuthenticationFailure: If the signature is missing or wrong
            ValueError: If the verified body is malformed
        """
        self.verify_request(body, signature)
        payload = self.parse_payload(body)

        if payload.object != "page":
            logfire.info("Ignoring non-page webhook", object=payload.object)
            return None

        return self.dispatch_entries(payload.entry)

    async def _run_handlers(self, update: NormalizedUpdate) -> None:
        """Run every handler for one update. Failures are logged, not raised."""
        if not self._handlers:
            logfire.info("No update handlers registered", kind=update.kind.value)
            return

        for handler in self._handlers:
            try:
                await handler(self, update)
            except Exception as e:
                logfire.error(
                    "Update handler failed",
                    handler=getattr(handler, "__name__", type(handler).__name__),
                    kind=update.kind.value,
                    sender_id=update.sender_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    # =========================================================================
    # Outbound
    # =========================================================================

    async def send_message(
        self, message: dict[str, Any], page_id: str | None = None
    ) -> dict[str, Any]:
        return await self._graph.send_message(message, page_id=page_id)

    async def send_text_message_to(
        self,
        text: str,
        recipient_id: str,
        *,
        page_id: str | None = None,
    ) -> dict[str, Any]:
        return await self._graph.send_text_message_to(text, recipient_id, page_id=page_id)

    async def reply_to(self, update: NormalizedUpdate, text: str) -> dict[str, Any]:
        """Send ``text`` back to the user of ``update``, from the page it reached."""
        if not update.sender_id:
            raise ValueError("update has no sender to reply to")
        return await self._graph.send_text_message_to(
            text, update.sender_id, page_id=update.page_id
        )

    async def get_user_info(
        self,
        user_id: str,
        page_id: str | None = None,
    ) -> FacebookUserInfo:
        return await self._graph.get_user_info(user_id, page_id=page_id)


# Global instance
_messenger_bot: MessengerBot | None = None


def get_messenger_bot() -> MessengerBot:
    """Get the global adapter instance, built from settings on first use."""
    global _messenger_bot
    if _messenger_bot is None:
        _messenger_bot = MessengerBot.from_settings(get_settings())
    return _messenger_bot


def reset_messenger_bot() -> None:
    """Reset the global adapter (primarily for testing)."""
    global _messenger_bot
    _messenger_bot = None
