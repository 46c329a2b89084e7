"""Centralized logging configuration with Pydantic Logfire integration."""

import logging
from typing import Any

import logfire
from fastapi import FastAPI

from messenger_adapter.config import Settings, get_settings

SENSITIVE_KEYS = (
    "token",
    "access_token",
    "verify_token",
    "app_secret",
    "page_token",
    "secret",
    "password",
    "authorization",
)


def setup_logfire(app: FastAPI, settings: Settings | None = None) -> None:
    """
    Initialize and configure Pydantic Logfire for observability.

    Sets up:
    - FastAPI instrumentation (request/response tracing)
    - Pydantic instrumentation (model validation logging)
    - Environment-aware stdlib logging format
    """
    settings = settings or get_settings()

    logfire_config: dict[str, Any] = {
        "environment": settings.env,
        # Without a token, keep spans local instead of failing on missing credentials
        "send_to_logfire": "if-token-present",
    }
    if settings.logfire_token:
        logfire_config["token"] = settings.logfire_token

    logfire.configure(**logfire_config)

    logfire.instrument_fastapi(app)
    logfire.instrument_pydantic()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.env == "local":
        # Local: Console formatting for development
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    else:
        # Production: Logfire handles structured formatting
        logging.basicConfig(level=log_level, format="%(message)s")


def mask_pii(value: str | None, mask_char: str = "*") -> str:
    """
    Mask potentially sensitive data in logs.

    Shows the first 2 and last 2 characters of values longer than 4.
    """
    if not value:
        return ""

    if len(value) <= 4:
        return mask_char * len(value)

    return f"{value[:2]}{mask_char * (len(value) - 4)}{value[-2:]}"


def redact_tokens(data: dict[str, Any]) -> dict[str, Any]:
    """
    Redact authentication tokens and secrets from log data.

    Args:
        data: Dictionary that may contain sensitive values (nested dicts included)

    Returns:
        A copy of ``data`` with sensitive values masked
    """
    redacted = data.copy()

    for key, value in redacted.items():
        if isinstance(value, dict):
            redacted[key] = redact_tokens(value)
        elif key.lower() in SENSITIVE_KEYS and isinstance(value, str):
            redacted[key] = mask_pii(value)

    return redacted
