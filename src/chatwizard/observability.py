"""Structured logging of inbound wizard events."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from chatwizard.transport.base import (
    CommandEvent,
    ControlEvent,
    InboundEvent,
    MessageEvent,
    ModalEvent,
)

logger = logging.getLogger(__name__)


class EventLogger:
    """Logs every inbound event handled by a wizard module.

    One record per event, with the outcome of its dispatch, for monitoring
    and debugging. Message text is left out unless ``include_content`` is
    set, since it is user data.

    Attributes:
        log_level: Logging level used for event records
        include_content: Whether message text and modal values are logged
        json_format: Whether records are emitted as JSON

    Example:
        ```python
        event_logger = EventLogger(log_level="DEBUG", json_format=True)
        event_logger.log_event("advertising", event, outcome="dispatched")
        ```
    """

    def __init__(
        self,
        log_level: str = "INFO",
        include_content: bool = False,
        json_format: bool = False,
    ):
        self.log_level = log_level
        self.include_content = include_content
        self.json_format = json_format
        self._level = getattr(logging, log_level.upper(), logging.INFO)
        self._logger = logging.getLogger(f"{__name__}.WizardEvents")

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> EventLogger:
        return cls(
            log_level=config.get("level", "INFO"),
            include_content=config.get("include_content", False),
            json_format=config.get("json_format", False),
        )

    def describe(self, event: InboundEvent) -> dict[str, Any]:
        """Build the log payload of an event."""
        data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "channel_id": event.channel_id,
        }
        if isinstance(event, MessageEvent):
            data.update(
                event="message",
                user_id=event.author_id,
                message_id=event.message_id,
                message_length=len(event.content),
                attachments=len(event.attachments),
            )
            if self.include_content:
                data["content"] = event.content
        elif isinstance(event, ControlEvent):
            data.update(event="control", user_id=event.user_id, custom_id=event.custom_id)
        elif isinstance(event, ModalEvent):
            data.update(
                event="modal",
                user_id=event.user_id,
                custom_id=event.custom_id,
                fields=sorted(event.values),
            )
            if self.include_content:
                data["values"] = dict(event.values)
        elif isinstance(event, CommandEvent):
            data.update(event="command", user_id=event.user_id, command=event.name)
        return data

    def log_event(self, module: str, event: InboundEvent, outcome: str) -> None:
        """Emit one record for ``event``.

        Args:
            module: Namespace of the module that handled the event
            event: The inbound event
            outcome: Short result label ("dispatched", "ignored", "started"...)
        """
        if not self._logger.isEnabledFor(self._level):
            return
        data = self.describe(event)
        data["module"] = module
        data["outcome"] = outcome
        if self.json_format:
            self._logger.log(self._level, json.dumps(data))
        else:
            self._logger.log(
                self._level,
                "%s %s from user %s in %s: %s",
                module,
                data.get("event"),
                data.get("user_id"),
                event.channel_id,
                outcome,
            )
