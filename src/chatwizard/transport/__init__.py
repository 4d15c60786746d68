"""Chat platform transport.

The wizard engine never talks to the network directly. It consumes a
``ChatTransport``: an object able to send, edit and delete messages carrying
rows of controls, open modal forms and manage private threads.

``InMemoryTransport`` keeps everything in process and is used for development
and tests.
"""

from .base import (
    Attachment,
    ChatTransport,
    CommandEvent,
    Control,
    ControlEvent,
    ControlRows,
    ControlStyle,
    InboundEvent,
    InteractionEvent,
    MessageEvent,
    MessageRef,
    ModalEvent,
    ModalField,
)
from .memory import InMemoryTransport, StoredMessage

__all__ = [
    "Attachment",
    "ChatTransport",
    "CommandEvent",
    "Control",
    "ControlEvent",
    "ControlRows",
    "ControlStyle",
    "InMemoryTransport",
    "InboundEvent",
    "InteractionEvent",
    "MessageEvent",
    "MessageRef",
    "ModalEvent",
    "ModalField",
    "StoredMessage",
]
