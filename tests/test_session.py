"""Tests for the wizard session manager."""

import pytest

from chatwizard.exceptions import PersistenceError, TransportError
from chatwizard.identifiers import IdentifierAllocator
from chatwizard.session import WizardSessionManager
from chatwizard.storage import InMemoryDocumentStore
from chatwizard.transport import MessageEvent

from tests.conftest import USER_ID, UserDriver


class FailingStore(InMemoryDocumentStore):
    """Store whose writes fail once ``failing`` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False

    async def save(self, key, document):
        if self.failing:
            raise PersistenceError("Disk full", context={"key": key})
        await super().save(key, document)


class TestStartOrResume:
    """Tests for opening sessions."""

    @pytest.mark.asyncio
    async def test_start_opens_thread_and_asks_title(self, manager, transport, store):
        session = await manager.start_or_resume(USER_ID, "Alice", fresh=True)

        assert transport.threads[session.channel_id] == {
            "parent_id": "edition",
            "name": "Annonce de Alice",
            "members": [USER_ID],
        }
        messages = transport.channel_messages(session.channel_id)
        assert messages[0].content == "# Bienvenue dans le formulaire de création d'annonce Alice !"
        assert "Donne un titre à ton annonce" in messages[1].content
        assert len(messages) == 2
        assert store.save_count == 1

    @pytest.mark.asyncio
    async def test_resume_returns_existing_session(self, manager, transport):
        first = await manager.start_or_resume(USER_ID, "Alice", fresh=True)

        assert await manager.start_or_resume(USER_ID, "Alice") is first
        assert len(transport.threads) == 1

    @pytest.mark.asyncio
    async def test_fresh_start_replaces_existing_session(self, manager, transport, allocator, user):
        first = await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        await user.say("Titre")

        second = await manager.start_or_resume(USER_ID, "Alice", fresh=True)

        assert second.channel_id != first.channel_id
        assert first.channel_id in transport.deleted_channels
        assert manager.session_for(USER_ID) is second
        assert second.tree.title.value is None
        assert len(allocator) == 0

    @pytest.mark.asyncio
    async def test_failed_welcome_leaves_no_session(self, manager, transport, store):
        transport.fail_on("send")

        with pytest.raises(TransportError):
            await manager.start_or_resume(USER_ID, "Alice", fresh=True)

        assert manager.session_for(USER_ID) is None
        assert transport.threads == {}
        assert len(transport.deleted_channels) == 1
        assert (await store.load("advertising"))["sessions"] == {}


class TestDispatch:
    """Tests for applying events to sessions."""

    @pytest.mark.asyncio
    async def test_answer_advances_and_persists(self, manager, transport, store, user):
        session = await manager.start_or_resume(USER_ID, "Alice", fresh=True)

        assert await user.say("Développeur Python") is True

        assert session.tree.title.value == "Développeur Python"
        assert session.tree.description.is_asked
        saved = await store.load("advertising")
        assert saved["sessions"][USER_ID]["tree"]["title"]["value"] == "Développeur Python"
        assert saved["allocator"]["in_use"] == manager.allocator.in_use

    @pytest.mark.asyncio
    async def test_event_without_session_is_noop(self, manager, store):
        event = MessageEvent(USER_ID, "thread-1", "m1", "Hello")

        assert await manager.dispatch(USER_ID, "thread-1", event) is False
        assert store.save_count == 0

    @pytest.mark.asyncio
    async def test_event_in_other_channel_is_ignored(self, manager, transport, store):
        await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        ref = await transport.send("general", "Hello")
        event = MessageEvent(USER_ID, "general", ref.message_id, "Hello")

        assert await manager.dispatch(USER_ID, "general", event) is False
        assert store.save_count == 1

    @pytest.mark.asyncio
    async def test_unconsumed_event_is_not_persisted(self, manager, store, user):
        await manager.start_or_resume(USER_ID, "Alice", fresh=True)

        assert await user.say("   ") is False
        assert store.save_count == 1

    @pytest.mark.asyncio
    async def test_modal_answer(self, manager, transport, user):
        session = await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        await user.say("Titre")

        assert await user.click("Répondre") is True
        assert transport.modals[-1].title.startswith("Décris ton annonce")
        assert await user.submit_modal({"description": "Texte long"}) is True

        assert session.tree.description.value == "Texte long"
        assert session.tree.kind.menu is not None

    @pytest.mark.asyncio
    async def test_complete_form_shows_preview(self, manager, transport, user):
        session = await manager.start_or_resume(USER_ID, "Alice", fresh=True)

        await user.fill_worker_form()

        assert session.preview is not None
        preview = transport.messages[session.preview]
        assert preview.content.startswith("## Aperçu de ton annonce\n# Développeur Python")
        assert preview.custom_ids == ["advertising::submit", "advertising::abandon"]

    @pytest.mark.asyncio
    async def test_editing_a_field_removes_preview(self, manager, transport, user):
        session = await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        await user.fill_worker_form()
        preview = session.preview

        await user.click("Modifier")

        assert session.preview is None
        assert preview not in transport.messages
        assert session.tree.other_urls.is_asked

    @pytest.mark.asyncio
    async def test_clicking_current_choice_keeps_preview(self, manager, transport, store, user):
        session = await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        await user.fill_worker_form()
        preview = session.preview
        saves = store.save_count

        assert await user.click("Discord") is False

        assert session.preview == preview
        assert preview in transport.messages
        assert store.save_count == saves

    @pytest.mark.asyncio
    async def test_persistence_failure_propagates(self, transport, config):
        store = FailingStore()
        manager = WizardSessionManager(transport, store, config)
        session = await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        store.failing = True

        with pytest.raises(PersistenceError):
            await UserDriver(manager, transport).say("Titre")

        # the in-memory mutation is kept
        assert session.tree.title.value == "Titre"


class TestFinalize:
    """Tests for publishing."""

    @pytest.mark.asyncio
    async def test_finalize_publishes_and_stores(self, manager, transport, allocator, user):
        session = await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        await user.fill_worker_form()

        document = await manager.finalize(USER_ID)

        assert document["title"] == "Développeur Python"
        assert manager.session_for(USER_ID) is None
        assert session.channel_id in transport.deleted_channels
        assert len(allocator) == 0
        [post] = transport.channel_messages("forum")
        assert post.content.startswith("# Développeur Python")
        stored = manager.submissions_for(USER_ID)[post.ref.message_id]
        assert stored.post == post.ref
        assert stored.tree.owned_tokens() == []
        assert stored.tree.title.question is None

    @pytest.mark.asyncio
    async def test_incomplete_form_is_reported(self, manager, transport, user):
        session = await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        await user.say("Titre")

        assert await manager.finalize(USER_ID) is None

        assert manager.session_for(USER_ID) is session
        report = transport.last_message(session.channel_id).content
        assert report.startswith(":no_entry: Impossible de formater l'annonce :no_entry:\n> ")
        assert transport.channel_messages("forum") == []

    @pytest.mark.asyncio
    async def test_publish_failure_keeps_session(self, manager, transport, user):
        await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        await user.fill_worker_form()
        transport.fail_on("send")

        with pytest.raises(TransportError):
            await manager.finalize(USER_ID)

        assert manager.session_for(USER_ID) is not None
        assert manager.submissions_for(USER_ID) == {}

    @pytest.mark.asyncio
    async def test_finalize_without_session(self, manager):
        assert await manager.finalize(USER_ID) is None


class TestStoredSubmissions:
    """Tests for editing and deleting published advertisements."""

    async def publish(self, manager, user):
        await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        await user.fill_worker_form()
        await manager.finalize(USER_ID)
        [location] = manager.submissions_for(USER_ID)
        return location

    @pytest.mark.asyncio
    async def test_edit_rewrites_post_in_place(self, manager, transport, allocator, user):
        location = await self.publish(manager, user)
        post = manager.submissions_for(USER_ID)[location].post

        session = await manager.edit(USER_ID, location, "Alice")

        assert session.edited_post == post
        assert session.tree.title.question is not None
        assert session.preview is not None
        assert sorted(allocator.in_use) == sorted(session.tree.owned_tokens())

        await user.click("Modifier")
        await user.say("https://example.org/nouveau")
        await manager.finalize(USER_ID)

        assert transport.channel_messages("forum") == [transport.messages[post]]
        assert "https://example.org/nouveau" in transport.messages[post].content
        assert list(manager.submissions_for(USER_ID)) == [location]
        assert len(allocator) == 0

    @pytest.mark.asyncio
    async def test_edit_does_not_touch_stored_tree(self, manager, user):
        location = await self.publish(manager, user)
        stored = manager.submissions_for(USER_ID)[location]

        await manager.edit(USER_ID, location, "Alice")
        await user.click("Modifier")

        assert stored.tree.other_urls.value == "https://example.org/portfolio"

    @pytest.mark.asyncio
    async def test_edit_unknown_submission(self, manager):
        assert await manager.edit(USER_ID, "missing") is None

    @pytest.mark.asyncio
    async def test_delete_submission(self, manager, transport, store, user):
        location = await self.publish(manager, user)
        post = manager.submissions_for(USER_ID)[location].post

        assert await manager.delete_submission(USER_ID, location) is True
        assert await manager.delete_submission(USER_ID, location) is False

        assert post not in transport.messages
        assert manager.submissions_for(USER_ID) == {}
        assert (await store.load("advertising"))["submissions"] == {}


class TestAbandon:
    """Tests for abandoning a session."""

    @pytest.mark.asyncio
    async def test_abandon_removes_everything(self, manager, transport, allocator, user):
        session = await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        await user.say("Titre")
        await user.say("Description")
        await user.click("🪂 Stage")

        assert await manager.abandon(USER_ID) is True

        assert manager.session_for(USER_ID) is None
        assert session.channel_id in transport.deleted_channels
        assert len(allocator) == 0
        assert await manager.abandon(USER_ID) is False

    @pytest.mark.asyncio
    async def test_abandon_tolerates_cleanup_failures(self, manager, transport, allocator, user):
        await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        await user.say("Titre")
        transport.fail_on("delete", "delete_channel")

        assert await manager.abandon(USER_ID) is True
        assert manager.session_for(USER_ID) is None
        assert len(allocator) == 0


class TestLoad:
    """Tests for restoring state after a restart."""

    @pytest.mark.asyncio
    async def test_sessions_survive_restart(self, manager, transport, store, config, user):
        session = await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        await user.say("Titre")
        await user.say("Description")
        tokens = manager.allocator.in_use

        restarted = WizardSessionManager(transport, store, config, IdentifierAllocator())
        await restarted.load()

        restored = restarted.session_for(USER_ID)
        assert restored.channel_id == session.channel_id
        assert restored.tree.title.value == "Titre"
        assert restarted.allocator.in_use == tokens
        assert restarted.allocator.allocate() not in tokens

        # the restored session keeps accepting events
        assert await UserDriver(restarted, transport).click("🤯 CDI (rémunéré)") is True
        assert restored.tree.kind.value == "open_ended"

    @pytest.mark.asyncio
    async def test_submissions_survive_restart(self, manager, transport, store, config, user):
        await manager.start_or_resume(USER_ID, "Alice", fresh=True)
        await user.fill_worker_form()
        document = await manager.finalize(USER_ID)

        restarted = WizardSessionManager(transport, store, config)
        await restarted.load()

        [stored] = restarted.submissions_for(USER_ID).values()
        assert stored.document == document
        assert stored.tree.to_document() == document

    @pytest.mark.asyncio
    async def test_load_empty_store(self, manager):
        await manager.load()

        assert manager.sessions == {}
        assert manager.submissions == {}
