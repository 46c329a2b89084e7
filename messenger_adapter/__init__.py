"""Facebook Messenger adapter for chat-bot hosts."""

from messenger_adapter.exceptions import (
    AuthenticationFailure,
    ConfigurationError,
    MessengerAdapterError,
    UpstreamError,
)
from messenger_adapter.models.config_models import MessengerCredentials
from messenger_adapter.models.messenger import NormalizedUpdate, UpdateKind
from messenger_adapter.services.graph_client import GraphAPIClient
from messenger_adapter.services.messenger_bot import MessengerBot

__all__ = [
    "AuthenticationFailure",
    "ConfigurationError",
    "GraphAPIClient",
    "MessengerAdapterError",
    "MessengerBot",
    "MessengerCredentials",
    "NormalizedUpdate",
    "UpdateKind",
    "UpstreamError",
]
