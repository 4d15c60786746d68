"""Shared fixtures for chatwizard tests."""

from __future__ import annotations

import itertools

import pytest

from chatwizard.config import WizardConfig
from chatwizard.identifiers import IdentifierAllocator
from chatwizard.session import WizardSessionManager
from chatwizard.steps import StepContext
from chatwizard.storage import InMemoryDocumentStore
from chatwizard.transport import (
    Attachment,
    ControlEvent,
    InMemoryTransport,
    MessageEvent,
    ModalEvent,
)

USER_ID = "42"


class UserDriver:
    """Plays the part of a user filling a form in their editing thread.

    Messages are really posted on the in-memory transport first, so the
    engine can delete them once they are taken as answers.

    Example:
        ```python
        user = UserDriver(manager, transport)
        await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        await user.say("Développeur Python")
        await user.click("🤯 CDI (rémunéré)")
        ```
    """

    def __init__(self, manager: WizardSessionManager, transport: InMemoryTransport, user_id: str = USER_ID):
        self.manager = manager
        self.transport = transport
        self.user_id = user_id
        self._interactions = itertools.count(1)

    @property
    def channel_id(self) -> str:
        session = self.manager.session_for(self.user_id)
        assert session is not None, "user has no session"
        return session.channel_id

    async def say(self, text: str, attachments: list[Attachment] | None = None) -> bool:
        ref = await self.transport.send(self.channel_id, text)
        event = MessageEvent(
            author_id=self.user_id,
            channel_id=self.channel_id,
            message_id=ref.message_id,
            content=text,
            attachments=attachments or [],
        )
        return await self.manager.dispatch(self.user_id, self.channel_id, event)

    def control_event(self, label: str) -> ControlEvent:
        found = self.transport.find_control(label, self.channel_id)
        assert found is not None, f"no control labelled {label!r}"
        message, control = found
        return ControlEvent(
            user_id=self.user_id,
            channel_id=self.channel_id,
            custom_id=control.custom_id,
            message=message.ref,
            interaction_id=f"interaction-{next(self._interactions)}",
        )

    async def click(self, label: str) -> bool:
        event = self.control_event(label)
        return await self.manager.dispatch(self.user_id, self.channel_id, event)

    async def submit_modal(self, values: dict[str, str]) -> bool:
        modal = self.transport.modals[-1]
        event = ModalEvent(
            user_id=self.user_id,
            channel_id=self.channel_id,
            custom_id=modal.custom_id,
            values=values,
            interaction_id=f"interaction-{next(self._interactions)}",
        )
        return await self.manager.dispatch(self.user_id, self.channel_id, event)

    async def fill_worker_form(self) -> None:
        """Answer every question of a job seeker advertisement."""
        await self.say("Développeur Python")
        await self.say("Je cherche un poste de développeur backend.")
        await self.click("🤯 CDI (rémunéré)")
        await self.say("45k€ brut annuel")
        await self.click("🔧 Je cherche du travail")
        await self.click("🌍 Distanciel")
        await self.say("Python, asyncio, PostgreSQL")
        await self.click("Discord")
        await self.say("https://example.org/portfolio")


@pytest.fixture
def transport():
    return InMemoryTransport()


@pytest.fixture
def allocator():
    return IdentifierAllocator()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def config():
    return WizardConfig(
        edition_channel="edition",
        publish_channel="forum",
        storage={"backend": "memory"},
    )


@pytest.fixture
def manager(transport, store, config, allocator):
    return WizardSessionManager(transport, store, config, allocator)


@pytest.fixture
def user(manager, transport):
    return UserDriver(manager, transport)


@pytest.fixture
def ctx(transport, allocator):
    return StepContext(transport, allocator, "advertising", "thread-0")


@pytest.fixture
def make_message(transport):
    """Post a user message in a channel and return the matching event."""

    async def _make(content: str, channel_id: str = "thread-0", author_id: str = USER_ID, attachments=None):
        ref = await transport.send(channel_id, content)
        return MessageEvent(
            author_id=author_id,
            channel_id=channel_id,
            message_id=ref.message_id,
            content=content,
            attachments=attachments or [],
        )

    return _make
