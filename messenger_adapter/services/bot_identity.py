"""Single-assignment holder for the page id an adapter represents."""

from threading import Lock

import logfire


class BotIdentity:
    """Thread-safe set-once cell for the bot's page id.

    The first successful ``set_if_empty`` wins. Later attempts with the same
    value are no-ops; attempts with a different value are logged as an
    inconsistency (usually a multi-page deployment running in single-page
    mode) and ignored.
    """

    def __init__(self, bot_id: str | None = None):
        self._id = bot_id or None
        self._lock = Lock()

    @property
    def id(self) -> str | None:
        return self._id

    @property
    def is_set(self) -> bool:
        return self._id is not None

    def set_if_empty(self, bot_id: str | None) -> bool:
        """Assign ``bot_id`` unless an id is already held.

        Returns:
            True if this call assigned the id, False otherwise.
        """
        if not bot_id:
            return False

        with self._lock:
            if self._id is None:
                self._id = bot_id
                logfire.info("Bot id learned from inbound update", bot_id=bot_id)
                return True
            current = self._id

        if current != bot_id:
            logfire.warning(
                "Inbound update addressed to a different page than the bot id",
                bot_id=current,
                received_id=bot_id,
            )
        return False
