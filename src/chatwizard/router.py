"""Entry point of the advertisement wizard module."""

from __future__ import annotations

import logging
from typing import Any

from chatwizard.config import WizardConfig
from chatwizard.exceptions import TransportError
from chatwizard.identifiers import make_routing_id, parse_routing_id
from chatwizard.module import ChatModule
from chatwizard.observability import EventLogger
from chatwizard.session import ABANDON_ACTION, SUBMIT_ACTION, WizardSessionManager
from chatwizard.transport.base import (
    ChatTransport,
    CommandEvent,
    Control,
    ControlRows,
    ControlStyle,
    InteractionEvent,
    MessageEvent,
)

logger = logging.getLogger(__name__)

CREATE_ACTION = "create"
EDIT_SUBMISSION_ACTION = "edit-submission"
DELETE_SUBMISSION_ACTION = "delete-submission"


class WizardRouter(ChatModule):
    """Routes platform events to the session manager.

    * The start command opens a fresh session, or lists the user's published
      advertisements with edit / delete buttons first.
    * Messages posted in a session's thread go to that session's form.
    * Button clicks and modal submissions of this module's namespace run the
      module actions (create, edit, delete, submit, abandon) or go to the
      form. Identifiers of other namespaces are ignored.

    Example:
        ```python
        manager = WizardSessionManager(transport, store, config)
        await manager.load()
        registry.register(WizardRouter(manager, config))
        ```
    """

    def __init__(
        self,
        manager: WizardSessionManager,
        config: WizardConfig,
        event_logger: EventLogger | None = None,
    ):
        self.manager = manager
        self.config = config
        self.event_logger = event_logger or EventLogger.from_config(config.logging)
        self.name = config.namespace
        self.description = config.description

    @property
    def commands(self) -> list[str]:
        return [self.config.command_name]

    @property
    def transport(self) -> ChatTransport:
        return self.manager.transport

    def _routing_id(self, action: str, payload: str | None = None) -> str:
        return make_routing_id(self.config.namespace, action, payload)

    def _limit_reached(self, user_id: str) -> bool:
        return len(self.manager.submissions_for(user_id)) >= self.config.max_submissions_per_user

    async def on_command(self, event: CommandEvent) -> bool:
        if event.name != self.config.command_name:
            return False
        submissions = self.manager.submissions_for(event.user_id)
        if submissions:
            await self._list_submissions(event)
            self.event_logger.log_event(self.name, event, "listed")
            return True
        await self._start(event, event.user_name)
        self.event_logger.log_event(self.name, event, "started")
        return True

    async def on_message(self, event: MessageEvent) -> bool:
        if event.author_is_bot:
            return False
        session = self.manager.session_for(event.author_id)
        if session is None or session.channel_id != event.channel_id:
            return False
        handled = await self.manager.dispatch(event.author_id, event.channel_id, event)
        self.event_logger.log_event(self.name, event, "dispatched" if handled else "ignored")
        return handled

    async def on_interaction(self, event: InteractionEvent) -> bool:
        routing = parse_routing_id(event.custom_id, self.config.namespace)
        if routing is None:
            return False

        if routing.action == CREATE_ACTION:
            if self._limit_reached(event.user_id):
                await self.transport.reply(event, self._limit_message())
            else:
                await self._start(event)
            outcome = "started"
        elif routing.action == EDIT_SUBMISSION_ACTION:
            session = await self.manager.edit(event.user_id, routing.payload or "")
            if session is None:
                await self.transport.reply(event, "Cette annonce n'existe plus.")
            else:
                await self.transport.reply(event, f"Modifie ton annonce ici : <#{session.channel_id}>")
            outcome = "editing"
        elif routing.action == DELETE_SUBMISSION_ACTION:
            deleted = await self.manager.delete_submission(event.user_id, routing.payload or "")
            await self.transport.reply(
                event, "Annonce supprimée." if deleted else "Cette annonce n'existe plus."
            )
            outcome = "deleted" if deleted else "ignored"
        elif routing.action == SUBMIT_ACTION:
            document = await self._finalize(event)
            outcome = "published" if document is not None else "ignored"
        elif routing.action == ABANDON_ACTION:
            abandoned = await self.manager.abandon(event.user_id)
            outcome = "abandoned" if abandoned else "ignored"
        else:
            handled = await self.manager.dispatch(event.user_id, event.channel_id, event)
            outcome = "dispatched" if handled else "ignored"

        await self._acknowledge(event)
        self.event_logger.log_event(self.name, event, outcome)
        return True

    async def _start(self, event: CommandEvent | InteractionEvent, user_name: str = "") -> None:
        had_session = self.manager.session_for(event.user_id) is not None
        session = await self.manager.start_or_resume(event.user_id, user_name, fresh=True)
        message = f"Bien reçu, la suite se passe ici : <#{session.channel_id}>"
        if had_session:
            message += "\n> Ton annonce précédente en cours de création a été supprimée."
        await self.transport.reply(event, message)

    async def _finalize(self, event: InteractionEvent) -> dict[str, Any] | None:
        session = self.manager.session_for(event.user_id)
        if session is None or session.channel_id != event.channel_id:
            return None
        document = await self.manager.finalize(event.user_id)
        if document is not None:
            await self.transport.reply(event, "Ton annonce a été publiée !")
        return document

    async def _list_submissions(self, event: CommandEvent) -> None:
        submissions = self.manager.submissions_for(event.user_id)
        controls: ControlRows = []
        content = "# :warning: Tu as déjà des annonces publiées"
        if self._limit_reached(event.user_id):
            content += "\n" + self._limit_message()
        else:
            controls = [[Control(self._routing_id(CREATE_ACTION), "Créer une annonce", ControlStyle.PRIMARY)]]
        await self.transport.reply(event, content, controls)

        for location, stored in submissions.items():
            await self.transport.reply(
                event,
                f"### {stored.title}",
                [
                    [
                        Control(self._routing_id(EDIT_SUBMISSION_ACTION, location), "Modifier", ControlStyle.SECONDARY),
                        Control(self._routing_id(DELETE_SUBMISSION_ACTION, location), "Supprimer", ControlStyle.DANGER),
                    ]
                ],
            )

    def _limit_message(self) -> str:
        return (
            f"> Tu ne peux pas avoir plus de {self.config.max_submissions_per_user} annonces. "
            "Supprimes-en une pour en créer une nouvelle."
        )

    async def _acknowledge(self, event: InteractionEvent) -> None:
        try:
            await self.transport.acknowledge(event)
        except TransportError as e:
            logger.warning("Failed to acknowledge interaction %s: %s", event.custom_id, e)
