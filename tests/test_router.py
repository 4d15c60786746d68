"""Tests for the wizard router and the module registry."""

import logging

import pytest

from chatwizard.config import WizardConfig
from chatwizard.exceptions import NotFoundError, OperationError
from chatwizard.module import ChatModule, ModuleRegistry
from chatwizard.router import WizardRouter
from chatwizard.session import WizardSessionManager
from chatwizard.transport import CommandEvent, ControlEvent, MessageEvent

from tests.conftest import USER_ID


@pytest.fixture
def router(manager, config):
    return WizardRouter(manager, config)


def command(name="annonce"):
    return CommandEvent(USER_ID, "general", name, user_name="Alice", interaction_id="cmd-1")


def click(custom_id, channel_id="general", interaction_id="click-1"):
    return ControlEvent(USER_ID, channel_id, custom_id, interaction_id=interaction_id)


async def publish(router, manager, user):
    await router.on_command(command())
    await user.fill_worker_form()
    await router.on_interaction(click("advertising::submit", user.channel_id))


class TestCommand:
    """Tests for the start command."""

    @pytest.mark.asyncio
    async def test_command_starts_session(self, router, manager, transport):
        assert await router.on_command(command()) is True

        session = manager.session_for(USER_ID)
        assert session is not None
        [(event, content, controls)] = transport.replies
        assert content == f"Bien reçu, la suite se passe ici : <#{session.channel_id}>"
        assert controls == []

    @pytest.mark.asyncio
    async def test_other_command_is_ignored(self, router, manager):
        assert await router.on_command(command("help")) is False
        assert manager.session_for(USER_ID) is None

    @pytest.mark.asyncio
    async def test_second_command_replaces_session(self, router, manager, transport):
        await router.on_command(command())
        first = manager.session_for(USER_ID)

        await router.on_command(command())

        assert manager.session_for(USER_ID) is not first
        assert "a été supprimée" in transport.replies[-1][1]

    @pytest.mark.asyncio
    async def test_lists_published_submissions(self, router, manager, transport, user):
        await publish(router, manager, user)
        [location] = manager.submissions_for(USER_ID)
        transport.replies.clear()

        await router.on_command(command())

        assert manager.session_for(USER_ID) is None
        header, entry = transport.replies
        assert header[2][0][0].custom_id == "advertising::create"
        assert entry[1] == "### Développeur Python"
        assert [c.custom_id for c in entry[2][0]] == [
            f"advertising::edit-submission::{location}",
            f"advertising::delete-submission::{location}",
        ]

    @pytest.mark.asyncio
    async def test_limit_hides_create_control(self, transport, store, user):
        config = WizardConfig(
            edition_channel="edition",
            publish_channel="forum",
            max_submissions_per_user=1,
            storage={"backend": "memory"},
        )
        manager = WizardSessionManager(transport, store, config, user.manager.allocator)
        user.manager = manager
        router = WizardRouter(manager, config)
        await publish(router, manager, user)
        transport.replies.clear()

        await router.on_command(command())

        header = transport.replies[0]
        assert header[2] == []
        assert "Tu ne peux pas avoir plus de 1 annonces" in header[1]

        await router.on_interaction(click("advertising::create", interaction_id="click-2"))
        assert manager.session_for(USER_ID) is None


class TestMessages:
    """Tests for routing chat messages."""

    @pytest.mark.asyncio
    async def test_message_in_session_thread(self, router, manager, transport):
        await router.on_command(command())
        session = manager.session_for(USER_ID)
        ref = await transport.send(session.channel_id, "Titre")

        handled = await router.on_message(MessageEvent(USER_ID, session.channel_id, ref.message_id, "Titre"))

        assert handled is True
        assert session.tree.title.value == "Titre"

    @pytest.mark.asyncio
    async def test_message_elsewhere_is_ignored(self, router, manager):
        await router.on_command(command())

        assert await router.on_message(MessageEvent(USER_ID, "general", "m99", "Titre")) is False
        assert manager.session_for(USER_ID).tree.title.value is None

    @pytest.mark.asyncio
    async def test_bot_messages_are_ignored(self, router, manager):
        await router.on_command(command())
        channel_id = manager.session_for(USER_ID).channel_id
        event = MessageEvent(USER_ID, channel_id, "m99", "Titre", author_is_bot=True)

        assert await router.on_message(event) is False


class TestInteractions:
    """Tests for routing control clicks."""

    @pytest.mark.asyncio
    async def test_other_namespace_is_rejected(self, router, transport):
        assert await router.on_interaction(click("welcome::accept")) is False
        assert await router.on_interaction(click("garbage")) is False
        assert transport.acknowledged == []

    @pytest.mark.asyncio
    async def test_step_click_is_dispatched_and_acknowledged(self, router, manager, user, transport):
        await router.on_command(command())
        await user.say("Titre")
        await user.say("Description")
        event = user.control_event("🪂 Stage")

        assert await router.on_interaction(event) is True

        assert manager.session_for(USER_ID).tree.kind.value == "internship"
        assert transport.acknowledged == [event]

    @pytest.mark.asyncio
    async def test_modal_opening_is_not_acknowledged_twice(self, router, user, transport):
        await router.on_command(command())
        await user.say("Titre")
        event = user.control_event("Répondre")

        await router.on_interaction(event)

        assert transport.modals[-1].event is event
        assert transport.acknowledged == []

    @pytest.mark.asyncio
    async def test_submit_publishes(self, router, manager, transport, user):
        await publish(router, manager, user)

        assert manager.session_for(USER_ID) is None
        assert len(transport.channel_messages("forum")) == 1
        assert transport.replies[-1][1] == "Ton annonce a été publiée !"

    @pytest.mark.asyncio
    async def test_submit_from_other_channel_is_ignored(self, router, manager, user, transport):
        await router.on_command(command())
        await user.fill_worker_form()

        await router.on_interaction(click("advertising::submit", "general"))

        assert manager.session_for(USER_ID) is not None
        assert transport.channel_messages("forum") == []

    @pytest.mark.asyncio
    async def test_abandon(self, router, manager, user):
        await router.on_command(command())

        await router.on_interaction(click("advertising::abandon", user.channel_id))

        assert manager.session_for(USER_ID) is None

    @pytest.mark.asyncio
    async def test_edit_and_delete_submission(self, router, manager, transport, user):
        await publish(router, manager, user)
        [location] = manager.submissions_for(USER_ID)

        await router.on_interaction(click(f"advertising::edit-submission::{location}", interaction_id="c2"))
        session = manager.session_for(USER_ID)
        assert session.edited_post.message_id == location
        assert transport.replies[-1][1] == f"Modifie ton annonce ici : <#{session.channel_id}>"

        await router.on_interaction(click(f"advertising::delete-submission::{location}", interaction_id="c3"))
        assert manager.submissions_for(USER_ID) == {}
        assert transport.replies[-1][1] == "Annonce supprimée."

    @pytest.mark.asyncio
    async def test_failed_acknowledge_is_tolerated(self, router, manager, user, transport):
        await router.on_command(command())
        await user.say("Titre")
        await user.say("Description")
        transport.fail_on("acknowledge")

        assert await router.on_interaction(user.control_event("🪂 Stage")) is True

    @pytest.mark.asyncio
    async def test_events_are_logged(self, router, caplog):
        with caplog.at_level(logging.INFO, logger="chatwizard.observability.WizardEvents"):
            await router.on_command(command())

        assert "advertising command from user 42" in caplog.text
        assert "started" in caplog.text


class EchoModule(ChatModule):
    name = "echo"

    def __init__(self):
        self.seen = []

    @property
    def commands(self):
        return ["echo"]

    async def on_command(self, event):
        self.seen.append(event)
        return True

    async def on_message(self, event):
        self.seen.append(event)
        return True


class BrokenModule(ChatModule):
    name = "broken"

    async def on_message(self, event):
        raise RuntimeError("boom")


class TestModuleRegistry:
    """Tests for module registration and fan-out."""

    def test_register_and_get(self):
        registry = ModuleRegistry()
        module = EchoModule()
        registry.register(module)

        assert registry.get("echo") is module
        assert "echo" in registry
        assert registry.list_names() == ["echo"]

        with pytest.raises(OperationError):
            registry.register(EchoModule())

        with pytest.raises(NotFoundError):
            registry.get("missing")

        assert registry.unregister("echo") is module
        assert "echo" not in registry

    @pytest.mark.asyncio
    async def test_commands_go_to_declaring_modules(self):
        registry = ModuleRegistry()
        echo = EchoModule()
        registry.register(echo)

        assert await registry.dispatch(CommandEvent(USER_ID, "general", "echo")) is True
        assert await registry.dispatch(CommandEvent(USER_ID, "general", "other")) is False
        assert len(echo.seen) == 1

    @pytest.mark.asyncio
    async def test_disabled_module_sees_nothing(self):
        registry = ModuleRegistry()
        echo = EchoModule()
        registry.register(echo)
        registry.disable("echo")

        assert await registry.dispatch(MessageEvent(USER_ID, "general", "m1", "hi")) is False
        assert not registry.is_enabled("echo")

        registry.enable("echo")
        assert await registry.dispatch(MessageEvent(USER_ID, "general", "m1", "hi")) is True

    @pytest.mark.asyncio
    async def test_failing_module_does_not_break_others(self, caplog):
        registry = ModuleRegistry()
        echo = EchoModule()
        registry.register(BrokenModule())
        registry.register(echo)

        with caplog.at_level(logging.ERROR, logger="chatwizard.module"):
            handled = await registry.dispatch(MessageEvent(USER_ID, "general", "m1", "hi"))

        assert handled is True
        assert len(echo.seen) == 1
        assert "Module broken failed in on_message" in caplog.text

    @pytest.mark.asyncio
    async def test_router_registers_under_namespace(self, router):
        registry = ModuleRegistry()
        registry.register(router)

        assert registry.get("advertising") is router
        assert await registry.dispatch(command()) is True
