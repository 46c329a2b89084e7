"""Exceptions raised by the Messenger adapter."""

from typing import Any


class MessengerAdapterError(Exception):
    """Base exception for Messenger adapter errors."""

    pass


class AuthenticationFailure(MessengerAdapterError):
    """Raised when an inbound webhook body fails signature verification."""

    pass


class ConfigurationError(MessengerAdapterError):
    """Raised when credentials are inconsistent or a page token can't be resolved."""

    pass


class UpstreamError(MessengerAdapterError):
    """Raised when the Graph API answers with an error.

    Attributes:
        status_code: HTTP status returned by Facebook
        error: The ``error`` object from the response body, if any
    """

    def __init__(self, status_code: int, error: Any = None):
        self.status_code = status_code
        self.error = error
        message = error.get("message") if isinstance(error, dict) else error
        super().__init__(f"Graph API error ({status_code}): {message or 'unknown error'}")
