"""Webhook signature verification.

Facebook signs every callback body with the App secret and sends the digest in
``X-Hub-Signature`` (``sha1=<hex>``) and, on newer apps, also in
``X-Hub-Signature-256`` (``sha256=<hex>``).
See https://developers.facebook.com/docs/graph-api/webhooks/getting-started
"""

import hashlib
import hmac

import logfire

from messenger_adapter.exceptions import AuthenticationFailure

_DIGESTS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
}


def compute_signature(body: bytes, app_secret: str, algorithm: str = "sha1") -> str:
    """Return the signature header value Facebook would send for ``body``."""
    digest = hmac.new(app_secret.encode("utf-8"), body, _DIGESTS[algorithm]).hexdigest()
    return f"{algorithm}={digest}"


def verify_signature(body: bytes, signature: str | None, app_secret: str) -> None:
    """Check a signature header against the raw request body.

    Args:
        body: Raw request body bytes, exactly as received
        signature: Value of the signature header (``<algorithm>=<hex>``), or None
        app_secret: Facebook App secret

    Raises:
        AuthenticationFailure: If the header is missing, malformed, uses an
            unsupported algorithm, or doesn't match the body
    """
    if not signature:
        logfire.warning("Webhook signature missing")
        raise AuthenticationFailure("missing signature")

    algorithm, _, received = signature.partition("=")
    algorithm = algorithm.strip().lower()
    if algorithm not in _DIGESTS or not received:
        logfire.warning("Webhook signature malformed", algorithm=algorithm)
        raise AuthenticationFailure("malformed signature")

    expected = compute_signature(body, app_secret, algorithm).partition("=")[2]

    # Compare as bytes: compare_digest rejects non-ASCII str input
    if not hmac.compare_digest(
        received.strip().lower().encode("utf-8"), expected.encode("ascii")
    ):
        logfire.warning(
            "Webhook signature mismatch",
            algorithm=algorithm,
            body_length=len(body),
        )
        raise AuthenticationFailure("signature mismatch")
