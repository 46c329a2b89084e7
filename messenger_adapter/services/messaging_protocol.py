"""Protocol connecting the adapter to its host framework.

The host plugs into the adapter through ``UpdateHandler``, called once per
normalized inbound update. Using a Protocol keeps the adapter free of any
host import while still allowing type checking and easy test doubles.
"""

from typing import TYPE_CHECKING, Protocol

from messenger_adapter.models.messenger import NormalizedUpdate

if TYPE_CHECKING:
    from messenger_adapter.services.messenger_bot import MessengerBot


class UpdateHandler(Protocol):
    """Host callback receiving one inbound update.

    Handlers run as independent background tasks. An exception raised here is
    logged by the adapter and affects neither other updates nor the webhook
    response.
    """

    async def __call__(self, bot: "MessengerBot", update: NormalizedUpdate) -> None: ...


class RecordingUpdateHandler:
    """UpdateHandler that records what it receives.

    Example:
        >>> handler = RecordingUpdateHandler()
        >>> bot.on_update(handler)
        >>> # ... after a webhook call
        >>> [u.kind for _, u in handler.calls]
        [<UpdateKind.TEXT: 'text'>]
    """

    def __init__(self, should_fail: bool = False):
        """Initialize the recorder.

        Args:
            should_fail: Raise RuntimeError after recording each update
        """
        self._should_fail = should_fail
        self.calls: list[tuple["MessengerBot", NormalizedUpdate]] = []

    async def __call__(self, bot: "MessengerBot", update: NormalizedUpdate) -> None:
        self.calls.append((bot, update))
        if self._should_fail:
            raise RuntimeError("handler failure requested")

    @property
    def updates(self) -> list[NormalizedUpdate]:
        return [update for _, update in self.calls]
