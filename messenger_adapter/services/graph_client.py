"""Facebook Graph API client for outbound Messenger calls."""

import time
from typing import Any, Sequence

import httpx
import logfire

from messenger_adapter.constants import (
    FACEBOOK_API_TIMEOUT_SECONDS,
    FACEBOOK_GRAPH_API_BASE_URL,
    FACEBOOK_GRAPH_API_VERSION,
    MAX_QUICK_REPLIES,
    MAX_TEXT_MESSAGE_LENGTH_CHARS,
    PROFILE_FIELD_ACCOUNT_LINKING_URL,
    PROFILE_FIELD_GET_STARTED,
    PROFILE_FIELD_GREETING,
    PROFILE_FIELD_PERSISTENT_MENU,
    PROFILE_FIELD_TARGET_AUDIENCE,
    PROFILE_FIELD_WHITELISTED_DOMAINS,
    USER_INFO_FIELDS,
)
from messenger_adapter.exceptions import ConfigurationError, UpstreamError
from messenger_adapter.logging_config import mask_pii, redact_tokens
from messenger_adapter.models.config_models import MessengerCredentials
from messenger_adapter.models.user_models import FacebookUserInfo

ATTACHMENT_TYPES = frozenset({"audio", "file", "image", "video"})
SENDER_ACTIONS = frozenset({"typing_on", "typing_off", "mark_seen"})

MESSAGES_PATH = "me/messages"
MESSENGER_PROFILE_PATH = "me/messenger_profile"


def _response_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a Graph API response, tolerating empty or non-JSON bodies."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {"data": body}


class GraphAPIClient:
    """Stateless request builder/executor for the Graph API.

    Every call resolves a page access token first, so a call that can't be
    authorised fails with ConfigurationError before any request is sent.

    Example:
        >>> client = GraphAPIClient(credentials)
        >>> await client.send_text_message_to("Hello!", "user123")
        {'recipient_id': 'user123', 'message_id': 'mid.1'}
    """

    def __init__(
        self,
        credentials: MessengerCredentials,
        api_version: str = FACEBOOK_GRAPH_API_VERSION,
        timeout_seconds: float = FACEBOOK_API_TIMEOUT_SECONDS,
        base_url: str = FACEBOOK_GRAPH_API_BASE_URL,
    ):
        self._credentials = credentials
        self._base_url = f"{base_url.rstrip('/')}/{api_version}"
        self._timeout = timeout_seconds

    @property
    def base_url(self) -> str:
        return self._base_url

    def resolve_page_token(self, page_id: str | None = None) -> str:
        """Return the access token to use for ``page_id``.

        In single-page mode the configured token is always used. In
        multi-page mode ``page_id`` is required and must be configured.

        Raises:
            ConfigurationError: If no token can be resolved
        """
        if not self._credentials.is_multi_page:
            if not self._credentials.page_token:
                raise ConfigurationError("No page token configured")
            return self._credentials.page_token

        if not page_id:
            raise ConfigurationError(
                "A page id is required for page-scoped calls on a multi-page bot"
            )
        token = self._credentials.pages.get(page_id)
        if not token:
            raise ConfigurationError(f"No page token configured for page {mask_pii(page_id)}")
        return token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        page_id: str | None = None,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one Graph API request and return its JSON body.

        Raises:
            ConfigurationError: If no page token resolves (nothing is sent)
            UpstreamError: On a non-2xx status or an ``error`` object in the body
            httpx.RequestError: On transport failures
        """
        token = self.resolve_page_token(page_id)
        url = f"{self._base_url}/{path}"
        query = {"access_token": token, **(params or {})}

        start_time = time.time()
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(method, url, params=query, json=json)
        except httpx.RequestError as e:
            elapsed = time.time() - start_time
            logfire.error(
                "Graph API request error",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
                response_time_ms=elapsed * 1000,
            )
            raise

        elapsed = time.time() - start_time
        body = _response_body(response)
        error = body.get("error")

        if response.is_error or error:
            logfire.error(
                "Graph API call failed",
                method=method,
                path=path,
                status_code=response.status_code,
                params=redact_tokens(query),
                error=error,
                response_body=None if error else response.text[:500],
                response_time_ms=elapsed * 1000,
            )
            raise UpstreamError(response.status_code, error or response.text[:500])

        logfire.info(
            "Graph API call succeeded",
            method=method,
            path=path,
            status_code=response.status_code,
            response_time_ms=elapsed * 1000,
        )
        return body

    # =========================================================================
    # Send API
    # =========================================================================

    async def send_message(
        self,
        message: dict[str, Any],
        page_id: str | None = None,
    ) -> dict[str, Any]:
        """Send a raw Send API message.

        The page token is resolved from ``page_id`` or else from
        ``message["sender"]["id"]``. The ``sender`` key is never sent.

        Args:
            message: Send API body with at least a ``recipient``
            page_id: Page to send from (multi-page mode)

        Returns:
            The Graph API response (``recipient_id``, ``message_id``)
        """
        if not message.get("recipient"):
            raise ValueError("message must have a recipient")

        sender = message.get("sender") or {}
        page_id = page_id or sender.get("id")
        body = {key: value for key, value in message.items() if key != "sender"}

        logfire.info(
            "Sending Facebook message",
            recipient_id=body["recipient"].get("id"),
            has_text=bool((body.get("message") or {}).get("text")),
            sender_action=body.get("sender_action"),
        )
        return await self._request("POST", MESSAGES_PATH, page_id=page_id, json=body)

    async def send_text_message_to(
        self,
        text: str,
        recipient_id: str,
        *,
        page_id: str | None = None,
    ) -> dict[str, Any]:
        """Send a plain text message."""
        if not text:
            raise ValueError("text must not be empty")
        if len(text) > MAX_TEXT_MESSAGE_LENGTH_CHARS:
            raise ValueError(
                f"text exceeds {MAX_TEXT_MESSAGE_LENGTH_CHARS} characters ({len(text)})"
            )
        return await self.send_message(
            {
                "messaging_type": "RESPONSE",
                "recipient": {"id": recipient_id},
                "message": {"text": text},
            },
            page_id=page_id,
        )

    async def send_attachment_to(
        self,
        attachment_type: str,
        url: str,
        recipient_id: str,
        *,
        page_id: str | None = None,
    ) -> dict[str, Any]:
        """Send an audio, file, image or video attachment by URL."""
        if attachment_type not in ATTACHMENT_TYPES:
            raise ValueError(f"Unsupported attachment type: {attachment_type}")
        return await self.send_message(
            {
                "messaging_type": "RESPONSE",
                "recipient": {"id": recipient_id},
                "message": {
                    "attachment": {"type": attachment_type, "payload": {"url": url}}
                },
            },
            page_id=page_id,
        )

    async def send_quick_replies_to(
        self,
        text: str,
        quick_replies: Sequence[str | dict[str, Any]],
        recipient_id: str,
        *,
        page_id: str | None = None,
    ) -> dict[str, Any]:
        """Send text with quick replies.

        Plain strings become text quick replies whose payload is the title.
        Dicts are sent as-is, e.g. ``{"content_type": "location"}``.
        """
        if not quick_replies:
            raise ValueError("quick_replies must not be empty")
        if len(quick_replies) > MAX_QUICK_REPLIES:
            raise ValueError(f"At most {MAX_QUICK_REPLIES} quick replies are allowed")

        replies = [
            {"content_type": "text", "title": reply, "payload": reply}
            if isinstance(reply, str)
            else reply
            for reply in quick_replies
        ]
        return await self.send_message(
            {
                "messaging_type": "RESPONSE",
                "recipient": {"id": recipient_id},
                "message": {"text": text, "quick_replies": replies},
            },
            page_id=page_id,
        )

    async def send_location_quick_reply_to(
        self,
        text: str,
        recipient_id: str,
        *,
        page_id: str | None = None,
    ) -> dict[str, Any]:
        """Ask the user to share their location."""
        return await self.send_quick_replies_to(
            text, [{"content_type": "location"}], recipient_id, page_id=page_id
        )

    async def send_sender_action_to(
        self,
        action: str,
        recipient_id: str,
        *,
        page_id: str | None = None,
    ) -> dict[str, Any]:
        """Send ``typing_on``, ``typing_off`` or ``mark_seen``."""
        if action not in SENDER_ACTIONS:
            raise ValueError(f"Unsupported sender action: {action}")
        return await self.send_message(
            {"recipient": {"id": recipient_id}, "sender_action": action},
            page_id=page_id,
        )

    # =========================================================================
    # Messenger profile API
    # =========================================================================

    async def set_profile_fields(
        self, fields: dict[str, Any], page_id: str | None = None
    ) -> dict[str, Any]:
        """POST messenger profile fields, e.g. ``{"greeting": [...]}``."""
        return await self._request(
            "POST", MESSENGER_PROFILE_PATH, page_id=page_id, json=fields
        )

    async def get_profile_fields(
        self, fields: Sequence[str], page_id: str | None = None
    ) -> dict[str, Any]:
        """GET messenger profile fields. The result looks like ``{"data": [{...}]}``."""
        return await self._request(
            "GET",
            MESSENGER_PROFILE_PATH,
            page_id=page_id,
            params={"fields": ",".join(fields)},
        )

    async def delete_profile_fields(
        self, fields: Sequence[str], page_id: str | None = None
    ) -> dict[str, Any]:
        """DELETE messenger profile fields."""
        return await self._request(
            "DELETE",
            MESSENGER_PROFILE_PATH,
            page_id=page_id,
            json={"fields": list(fields)},
        )

    async def set_get_started_button(self, payload: str, page_id: str | None = None):
        return await self.set_profile_fields(
            {PROFILE_FIELD_GET_STARTED: {"payload": payload}}, page_id
        )

    async def get_get_started_button(self, page_id: str | None = None):
        return await self.get_profile_fields([PROFILE_FIELD_GET_STARTED], page_id)

    async def remove_get_started_button(self, page_id: str | None = None):
        return await self.delete_profile_fields([PROFILE_FIELD_GET_STARTED], page_id)

    async def set_persistent_menu(
        self, persistent_menu: list[dict[str, Any]], page_id: str | None = None
    ):
        # Facebook rejects a persistent menu unless a get-started button exists
        return await self.set_profile_fields(
            {PROFILE_FIELD_PERSISTENT_MENU: persistent_menu}, page_id
        )

    async def get_persistent_menu(self, page_id: str | None = None):
        return await self.get_profile_fields([PROFILE_FIELD_PERSISTENT_MENU], page_id)

    async def remove_persistent_menu(self, page_id: str | None = None):
        return await self.delete_profile_fields([PROFILE_FIELD_PERSISTENT_MENU], page_id)

    async def set_greeting_text(
        self, greeting: str | list[dict[str, str]], page_id: str | None = None
    ):
        """Set the greeting. A plain string becomes the ``default`` locale greeting."""
        if isinstance(greeting, str):
            greeting = [{"locale": "default", "text": greeting}]
        return await self.set_profile_fields({PROFILE_FIELD_GREETING: greeting}, page_id)

    async def get_greeting_text(self, page_id: str | None = None):
        return await self.get_profile_fields([PROFILE_FIELD_GREETING], page_id)

    async def remove_greeting_text(self, page_id: str | None = None):
        return await self.delete_profile_fields([PROFILE_FIELD_GREETING], page_id)

    async def set_whitelisted_domains(
        self, domains: Sequence[str], page_id: str | None = None
    ):
        return await self.set_profile_fields(
            {PROFILE_FIELD_WHITELISTED_DOMAINS: list(domains)}, page_id
        )

    async def get_whitelisted_domains(self, page_id: str | None = None):
        return await self.get_profile_fields([PROFILE_FIELD_WHITELISTED_DOMAINS], page_id)

    async def remove_whitelisted_domains(self, page_id: str | None = None):
        return await self.delete_profile_fields(
            [PROFILE_FIELD_WHITELISTED_DOMAINS], page_id
        )

    async def set_account_linking_url(self, url: str, page_id: str | None = None):
        return await self.set_profile_fields(
            {PROFILE_FIELD_ACCOUNT_LINKING_URL: url}, page_id
        )

    async def get_account_linking_url(self, page_id: str | None = None):
        return await self.get_profile_fields([PROFILE_FIELD_ACCOUNT_LINKING_URL], page_id)

    async def remove_account_linking_url(self, page_id: str | None = None):
        return await self.delete_profile_fields(
            [PROFILE_FIELD_ACCOUNT_LINKING_URL], page_id
        )

    async def set_target_audience(
        self, target_audience: dict[str, Any], page_id: str | None = None
    ):
        return await self.set_profile_fields(
            {PROFILE_FIELD_TARGET_AUDIENCE: target_audience}, page_id
        )

    async def get_target_audience(self, page_id: str | None = None):
        return await self.get_profile_fields([PROFILE_FIELD_TARGET_AUDIENCE], page_id)

    async def remove_target_audience(self, page_id: str | None = None):
        return await self.delete_profile_fields([PROFILE_FIELD_TARGET_AUDIENCE], page_id)

    # =========================================================================
    # User profile API
    # =========================================================================

    async def get_user_info(
        self,
        user_id: str,
        page_id: str | None = None,
    ) -> FacebookUserInfo:
        """
        Get a user's public profile from the Graph API.

        In multi-page mode ``page_id`` must name the page the user talked to,
        since page-scoped user ids are only valid with that page's token.
        """
        logfire.info(
            "Fetching user info from Facebook",
            user_id=user_id,
            fields=list(USER_INFO_FIELDS),
        )
        body = await self._request(
            "GET",
            user_id,
            page_id=page_id,
            params={"fields": ",".join(USER_INFO_FIELDS)},
        )
        user_info = FacebookUserInfo.model_validate({"id": user_id, **body})
        logfire.info(
            "User info fetched successfully",
            user_id=user_id,
            has_name=bool(user_info.first_name),
            locale=user_info.locale,
        )
        return user_info
