"""Chat transport protocol and the value types exchanged with it."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Union, runtime_checkable


class ControlStyle(Enum):
    """Visual style of an interactive control."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    SUCCESS = "success"
    DANGER = "danger"


@dataclass(frozen=True)
class MessageRef:
    """Reference to a message posted on the platform.

    Attributes:
        channel_id: Channel (or thread) holding the message
        message_id: Platform message id
    """

    channel_id: str
    message_id: str

    def to_dict(self) -> dict[str, str]:
        return {"channel_id": self.channel_id, "message_id": self.message_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> MessageRef | None:
        if not data:
            return None
        return cls(channel_id=str(data["channel_id"]), message_id=str(data["message_id"]))


@dataclass(frozen=True)
class Control:
    """A button attached to a message.

    Attributes:
        custom_id: Routing identifier handed back on click
        label: Text shown on the button
        style: Visual style
    """

    custom_id: str
    label: str
    style: ControlStyle = ControlStyle.SECONDARY


ControlRows = list[list[Control]]


@dataclass(frozen=True)
class ModalField:
    """A text input inside a modal form.

    Attributes:
        field_id: Key of the value in the submission
        label: Input label
        multiline: Whether a paragraph input is used
        required: Whether the platform enforces a value
        value: Pre-filled value
    """

    field_id: str
    label: str
    multiline: bool = False
    required: bool = True
    value: str | None = None


@dataclass(frozen=True)
class Attachment:
    """A file attached to an inbound message."""

    attachment_id: str
    filename: str
    url: str = ""
    content_type: str | None = None
    size: int = 0

    @property
    def is_text(self) -> bool:
        """Whether the attachment holds plain text."""
        if self.content_type:
            return self.content_type.startswith("text/")
        return self.filename.lower().endswith((".txt", ".md"))


@dataclass
class MessageEvent:
    """A plain chat message."""

    author_id: str
    channel_id: str
    message_id: str
    content: str = ""
    attachments: list[Attachment] = field(default_factory=list)
    author_is_bot: bool = False

    @property
    def ref(self) -> MessageRef:
        return MessageRef(self.channel_id, self.message_id)


@dataclass
class ControlEvent:
    """Activation of an interactive control.

    Attributes:
        user_id: User who clicked
        channel_id: Channel the control lives in
        custom_id: Routing identifier of the control
        message: Message carrying the control
        interaction_id: Platform interaction id, used to respond
    """

    user_id: str
    channel_id: str
    custom_id: str
    message: MessageRef | None = None
    interaction_id: str = ""


@dataclass
class ModalEvent:
    """Submission of a modal form.

    Attributes:
        user_id: User who submitted
        channel_id: Channel the modal was opened from
        custom_id: Routing identifier of the modal
        values: Submitted text keyed by field id
        interaction_id: Platform interaction id, used to respond
    """

    user_id: str
    channel_id: str
    custom_id: str
    values: dict[str, str] = field(default_factory=dict)
    interaction_id: str = ""


@dataclass
class CommandEvent:
    """Invocation of a slash command."""

    user_id: str
    channel_id: str
    name: str
    user_name: str = ""
    options: dict[str, Any] = field(default_factory=dict)
    interaction_id: str = ""


InteractionEvent = Union[ControlEvent, ModalEvent]
InboundEvent = Union[MessageEvent, ControlEvent, ModalEvent, CommandEvent]


@runtime_checkable
class ChatTransport(Protocol):
    """Network client of the chat platform.

    Implementations raise ``TransportError`` when a call fails.
    """

    async def send(
        self,
        channel_id: str,
        content: str,
        controls: ControlRows | None = None,
    ) -> MessageRef:
        """Post a message, optionally with rows of controls."""
        ...

    async def edit(
        self,
        ref: MessageRef,
        content: str | None = None,
        controls: ControlRows | None = None,
    ) -> None:
        """Rewrite a message. None leaves the part unchanged; [] removes all controls."""
        ...

    async def delete(self, ref: MessageRef) -> None:
        """Delete a message."""
        ...

    async def download(self, attachment: Attachment) -> bytes:
        """Fetch the content of an attachment."""
        ...

    async def open_modal(
        self,
        event: ControlEvent,
        custom_id: str,
        title: str,
        fields: list[ModalField],
    ) -> None:
        """Answer a control activation with a modal form."""
        ...

    async def reply(
        self,
        event: InboundEvent,
        content: str,
        controls: ControlRows | None = None,
    ) -> None:
        """Answer an interaction with a message only the acting user sees."""
        ...

    async def acknowledge(self, event: InboundEvent) -> None:
        """Acknowledge an interaction without visible answer.

        Does nothing when the interaction was already answered by a reply or
        a modal.
        """
        ...

    async def create_thread(self, parent_id: str, name: str, member_id: str) -> str:
        """Create a private thread under ``parent_id`` and add ``member_id`` to it."""
        ...

    async def delete_channel(self, channel_id: str) -> None:
        """Delete a channel or thread."""
        ...
