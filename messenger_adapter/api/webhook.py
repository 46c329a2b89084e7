"""Facebook webhook endpoints.

The handlers here only deal with HTTP: reading the raw body and headers and
translating adapter outcomes into status codes. Verification, parsing and
dispatch live in ``MessengerBot``, which also logs their outcome.

Responses:
- GET, right verify token: 200 with the ``hub.challenge`` as plain text
- GET, wrong verify token: 401 ``{"error": ...}``
- POST, missing or wrong signature: 403 ``{"error": ...}`` (no entry is read)
- POST, verified but not JSON / wrong shape: 400 ``{"error": ...}``
- POST, verified but not a page callback: 200 ``{"status": "ignored"}``
- POST, verified: 200 ``{"status": "ok"}`` once every record is handed off
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from messenger_adapter.constants import (
    MALFORMED_PAYLOAD_ERROR,
    SIGNATURE_256_HEADER,
    SIGNATURE_HEADER,
    WRONG_SIGNATURE_ERROR,
    WRONG_VERIFY_TOKEN_ERROR,
)
from messenger_adapter.exceptions import AuthenticationFailure
from messenger_adapter.services.messenger_bot import get_messenger_bot

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def verify_webhook(request: Request):
    """Facebook webhook verification endpoint."""
    bot = get_messenger_bot()

    token = request.query_params.get("hub.verify_token")
    challenge = request.query_params.get("hub.challenge")

    try:
        answer = bot.verify_subscription(token, challenge)
    except AuthenticationFailure:
        return JSONResponse({"error": WRONG_VERIFY_TOKEN_ERROR}, status_code=401)

    return PlainTextResponse(answer)


@router.post("")
async def handle_webhook(request: Request):
    """Handle incoming Facebook Messenger webhook events."""
    bot = get_messenger_bot()

    body = await request.body()
    signature = request.headers.get(SIGNATURE_256_HEADER) or request.headers.get(
        SIGNATURE_HEADER
    )

    try:
        tasks = await bot.handle_webhook(body, signature)
    except AuthenticationFailure:
        return JSONResponse({"error": WRONG_SIGNATURE_ERROR}, status_code=403)
    except ValueError:
        logger.warning("Rejected malformed webhook payload (%d bytes)", len(body))
        return JSONResponse({"error": MALFORMED_PAYLOAD_ERROR}, status_code=400)

    if tasks is None:
        return {"status": "ignored"}

    logger.info("Dispatched %d updates", len(tasks))
    return {"status": "ok"}
