"""In-memory chat transport."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any

from chatwizard.exceptions import TransportError

from .base import (
    Attachment,
    ControlEvent,
    ControlRows,
    InboundEvent,
    MessageRef,
    ModalField,
)

logger = logging.getLogger(__name__)


@dataclass
class StoredMessage:
    """A message held by ``InMemoryTransport``."""

    ref: MessageRef
    content: str
    controls: ControlRows = field(default_factory=list)

    @property
    def custom_ids(self) -> list[str]:
        return [control.custom_id for row in self.controls for control in row]


@dataclass
class OpenedModal:
    event: ControlEvent
    custom_id: str
    title: str
    fields: list[ModalField]


class InMemoryTransport:
    """Chat transport that keeps every message in memory.

    Suitable for development and tests: it records sent, edited and deleted
    messages, modals, replies and threads so callers can assert on the
    conversation the wizard produced.

    Failures can be injected per operation name::

        transport = InMemoryTransport()
        transport.fail_on("delete")
        # every delete() now raises TransportError

    Example:
        ```python
        transport = InMemoryTransport()
        ref = await transport.send("thread-1", "Hello")
        assert transport.messages[ref].content == "Hello"
        ```
    """

    def __init__(self) -> None:
        self.messages: dict[MessageRef, StoredMessage] = {}
        self.deleted: list[MessageRef] = []
        self.modals: list[OpenedModal] = []
        self.replies: list[tuple[InboundEvent, str, ControlRows]] = []
        self.acknowledged: list[InboundEvent] = []
        self.threads: dict[str, dict[str, Any]] = {}
        self.deleted_channels: list[str] = []
        self.attachments: dict[str, bytes] = {}
        self.calls: list[str] = []
        self._responded: set[str] = set()
        self._failing: set[str] = set()
        self._ids = itertools.count(1)

    def fail_on(self, *operations: str) -> None:
        """Make the named operations raise ``TransportError``."""
        self._failing.update(operations)

    def recover(self, *operations: str) -> None:
        """Stop failing the named operations (all when none are given)."""
        if operations:
            self._failing.difference_update(operations)
        else:
            self._failing.clear()

    def _check(self, operation: str, **context: Any) -> None:
        self.calls.append(operation)
        if operation in self._failing:
            raise TransportError(f"Injected {operation} failure", context=context)

    def channel_messages(self, channel_id: str) -> list[StoredMessage]:
        """Live messages of a channel in posting order."""
        return [m for m in self.messages.values() if m.ref.channel_id == channel_id]

    def last_message(self, channel_id: str) -> StoredMessage | None:
        messages = self.channel_messages(channel_id)
        return messages[-1] if messages else None

    def find_control(self, label: str, channel_id: str | None = None):
        """Return (message, control) for the first control with ``label``."""
        for message in reversed(list(self.messages.values())):
            if channel_id is not None and message.ref.channel_id != channel_id:
                continue
            for row in message.controls:
                for control in row:
                    if control.label == label:
                        return message, control
        return None

    async def send(
        self,
        channel_id: str,
        content: str,
        controls: ControlRows | None = None,
    ) -> MessageRef:
        self._check("send", channel_id=channel_id)
        ref = MessageRef(channel_id=str(channel_id), message_id=f"m{next(self._ids)}")
        self.messages[ref] = StoredMessage(ref, content, [list(row) for row in controls or []])
        logger.debug("Sent message %s in %s", ref.message_id, channel_id)
        return ref

    async def edit(
        self,
        ref: MessageRef,
        content: str | None = None,
        controls: ControlRows | None = None,
    ) -> None:
        self._check("edit", channel_id=ref.channel_id, message_id=ref.message_id)
        message = self.messages.get(ref)
        if message is None:
            raise TransportError(
                "Unknown message", context={"channel_id": ref.channel_id, "message_id": ref.message_id}
            )
        if content is not None:
            message.content = content
        if controls is not None:
            message.controls = [list(row) for row in controls]

    async def delete(self, ref: MessageRef) -> None:
        self._check("delete", channel_id=ref.channel_id, message_id=ref.message_id)
        if self.messages.pop(ref, None) is None:
            raise TransportError(
                "Unknown message", context={"channel_id": ref.channel_id, "message_id": ref.message_id}
            )
        self.deleted.append(ref)

    async def download(self, attachment: Attachment) -> bytes:
        self._check("download", attachment_id=attachment.attachment_id)
        try:
            return self.attachments[attachment.attachment_id]
        except KeyError as e:
            raise TransportError(
                "Unknown attachment", context={"attachment_id": attachment.attachment_id}
            ) from e

    async def open_modal(
        self,
        event: ControlEvent,
        custom_id: str,
        title: str,
        fields: list[ModalField],
    ) -> None:
        self._check("open_modal", custom_id=custom_id)
        self._mark_responded(event)
        self.modals.append(OpenedModal(event, custom_id, title, list(fields)))

    async def reply(
        self,
        event: InboundEvent,
        content: str,
        controls: ControlRows | None = None,
    ) -> None:
        self._check("reply")
        self._mark_responded(event)
        self.replies.append((event, content, [list(row) for row in controls or []]))

    async def acknowledge(self, event: InboundEvent) -> None:
        self._check("acknowledge")
        interaction_id = getattr(event, "interaction_id", "")
        if interaction_id and interaction_id in self._responded:
            return
        self._mark_responded(event)
        self.acknowledged.append(event)

    def _mark_responded(self, event: InboundEvent) -> None:
        interaction_id = getattr(event, "interaction_id", "")
        if interaction_id:
            self._responded.add(interaction_id)

    async def create_thread(self, parent_id: str, name: str, member_id: str) -> str:
        self._check("create_thread", parent_id=parent_id)
        thread_id = f"thread-{next(self._ids)}"
        self.threads[thread_id] = {"parent_id": parent_id, "name": name, "members": [member_id]}
        return thread_id

    async def delete_channel(self, channel_id: str) -> None:
        self._check("delete_channel", channel_id=channel_id)
        self.threads.pop(channel_id, None)
        for ref in [ref for ref in self.messages if ref.channel_id == channel_id]:
            del self.messages[ref]
        self.deleted_channels.append(channel_id)
