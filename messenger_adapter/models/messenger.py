"""Incoming Facebook Messenger webhook models.

Facebook sends every callback as ``{object, entry: [{id, time, messaging: [...]}]}``.
Each record in ``messaging`` is one of several loosely-shaped variants that
share ``sender``, ``recipient`` and ``timestamp``. They are modelled here as a
discriminated union whose tag is computed from the record's shape by
``classify_update``.
"""

import copy
from enum import Enum
from typing import Annotated, Any, ClassVar, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    PrivateAttr,
    Tag,
    TypeAdapter,
)


class UpdateKind(str, Enum):
    """Kind of a single Messenger webhook record."""

    TEXT = "text"
    ATTACHMENT = "attachment"
    QUICK_REPLY = "quick_reply"
    POSTBACK = "postback"
    ECHO = "echo"
    DELIVERY = "delivery"
    READ = "read"
    UNKNOWN = "unknown"


def classify_update(raw: Any) -> str:
    """Return the UpdateKind value for a raw messaging record.

    Echo wins over every other message shape because Facebook echoes all of
    them (text, attachments, quick replies) back to the page.
    """
    if isinstance(raw, MessengerModel):
        kind = getattr(raw, "kind", UpdateKind.UNKNOWN)
        return kind.value
    if not isinstance(raw, dict):
        return UpdateKind.UNKNOWN.value

    message = raw.get("message")
    if isinstance(message, dict):
        if message.get("is_echo"):
            return UpdateKind.ECHO.value
        if message.get("quick_reply"):
            return UpdateKind.QUICK_REPLY.value
        if message.get("attachments"):
            return UpdateKind.ATTACHMENT.value
        if "text" in message:
            return UpdateKind.TEXT.value
        return UpdateKind.UNKNOWN.value

    if "postback" in raw:
        return UpdateKind.POSTBACK.value
    if "delivery" in raw:
        return UpdateKind.DELIVERY.value
    if "read" in raw:
        return UpdateKind.READ.value
    return UpdateKind.UNKNOWN.value


class MessengerModel(BaseModel):
    """Base for wire models. Unknown fields are kept, never dropped."""

    model_config = ConfigDict(extra="allow", frozen=True, coerce_numbers_to_str=True)


class Participant(MessengerModel):
    id: str


class Attachment(MessengerModel):
    """Attachment on an inbound message (audio, file, image, video, location, fallback)."""

    type: str
    payload: Optional[dict[str, Any]] = None


class TextMessage(MessengerModel):
    mid: Optional[str] = None
    seq: Optional[int] = None
    text: str


class AttachmentMessage(MessengerModel):
    mid: Optional[str] = None
    seq: Optional[int] = None
    text: Optional[str] = None
    attachments: list[Attachment]


class QuickReply(MessengerModel):
    payload: str


class QuickReplyMessage(MessengerModel):
    mid: Optional[str] = None
    seq: Optional[int] = None
    text: Optional[str] = None
    quick_reply: QuickReply


class EchoMessage(MessengerModel):
    mid: Optional[str] = None
    seq: Optional[int] = None
    is_echo: bool = True
    app_id: Optional[str] = None
    metadata: Optional[str] = None
    text: Optional[str] = None
    attachments: Optional[list[Attachment]] = None


class Postback(MessengerModel):
    title: Optional[str] = None
    payload: Optional[str] = None


class Delivery(MessengerModel):
    mids: list[str] = Field(default_factory=list)
    watermark: int
    seq: Optional[int] = None


class Read(MessengerModel):
    watermark: int
    seq: Optional[int] = None


class BaseEvent(MessengerModel):
    """Fields shared by every messaging record."""

    kind: ClassVar[UpdateKind]

    sender: Participant
    recipient: Participant
    timestamp: Optional[int] = None


class TextMessageEvent(BaseEvent):
    kind: ClassVar[UpdateKind] = UpdateKind.TEXT
    message: TextMessage


class AttachmentEvent(BaseEvent):
    kind: ClassVar[UpdateKind] = UpdateKind.ATTACHMENT
    message: AttachmentMessage


class QuickReplyEvent(BaseEvent):
    kind: ClassVar[UpdateKind] = UpdateKind.QUICK_REPLY
    message: QuickReplyMessage


class EchoEvent(BaseEvent):
    kind: ClassVar[UpdateKind] = UpdateKind.ECHO
    message: EchoMessage


class PostbackEvent(BaseEvent):
    kind: ClassVar[UpdateKind] = UpdateKind.POSTBACK
    postback: Postback


class DeliveryEvent(BaseEvent):
    kind: ClassVar[UpdateKind] = UpdateKind.DELIVERY
    delivery: Delivery


class ReadEvent(BaseEvent):
    kind: ClassVar[UpdateKind] = UpdateKind.READ
    read: Read


class UnknownEvent(MessengerModel):
    """Record of a kind the adapter has no model for (optin, referral, ...)."""

    kind: ClassVar[UpdateKind] = UpdateKind.UNKNOWN

    sender: Optional[Participant] = None
    recipient: Optional[Participant] = None
    timestamp: Optional[int] = None


MessengerEvent = Annotated[
    Union[
        Annotated[TextMessageEvent, Tag(UpdateKind.TEXT.value)],
        Annotated[AttachmentEvent, Tag(UpdateKind.ATTACHMENT.value)],
        Annotated[QuickReplyEvent, Tag(UpdateKind.QUICK_REPLY.value)],
        Annotated[EchoEvent, Tag(UpdateKind.ECHO.value)],
        Annotated[PostbackEvent, Tag(UpdateKind.POSTBACK.value)],
        Annotated[DeliveryEvent, Tag(UpdateKind.DELIVERY.value)],
        Annotated[ReadEvent, Tag(UpdateKind.READ.value)],
        Annotated[UnknownEvent, Tag(UpdateKind.UNKNOWN.value)],
    ],
    Discriminator(classify_update),
]

_event_adapter: TypeAdapter[MessengerEvent] = TypeAdapter(MessengerEvent)


def parse_event(raw: dict[str, Any]) -> MessengerEvent:
    """Validate a raw messaging record into its typed variant.

    Raises:
        pydantic.ValidationError: If the record doesn't fit its variant
    """
    return _event_adapter.validate_python(raw)


class WebhookPayload(BaseModel):
    """Facebook webhook payload (top-level shape only)."""

    object: str
    entry: list[dict[str, Any]] = Field(default_factory=list)


class NormalizedUpdate(BaseModel):
    """One inbound record, ready to be handed to the host.

    ``data`` is a private deep copy of the raw record with every field kept.

    The entry the record came from is held as one snapshot shared by every
    update of that entry, so a batch is copied once rather than once per
    record. The snapshot is never handed out: ``raw`` returns a fresh deep
    copy on each access.
    """

    model_config = ConfigDict(frozen=True)

    kind: UpdateKind
    event: MessengerEvent
    data: dict[str, Any]

    _entry: dict[str, Any] = PrivateAttr(default_factory=dict)

    def __init__(self, *, raw: dict[str, Any], **fields: Any):
        """Build an update around ``raw``, an entry snapshot the caller won't mutate."""
        super().__init__(**fields)
        self._entry = raw

    @property
    def raw(self) -> dict[str, Any]:
        """The originating entry, as a copy the caller may mutate freely."""
        return copy.deepcopy(self._entry)

    @property
    def sender_id(self) -> str | None:
        return self.event.sender.id if self.event.sender else None

    @property
    def recipient_id(self) -> str | None:
        return self.event.recipient.id if self.event.recipient else None

    @property
    def page_id(self) -> str | None:
        """Page side of the record. Echoes are sent *by* the page."""
        if self.kind is UpdateKind.ECHO:
            return self.sender_id
        return self.recipient_id

    def to_dict(self) -> dict[str, Any]:
        """Raw record with the ``raw`` entry attached, as a fresh copy."""
        update = copy.deepcopy(self.data)
        update["raw"] = self.raw
        return update
