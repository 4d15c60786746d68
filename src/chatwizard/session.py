"""Wizard sessions and stored submissions of one module."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from chatwizard.config import WizardConfig
from chatwizard.exceptions import (
    CompositionError,
    ConfigurationError,
    PersistenceError,
    SerializationError,
    TransportError,
)
from chatwizard.identifiers import IdentifierAllocator
from chatwizard.steps import (
    AdvertisementSteps,
    StepContext,
    SubStep,
    dispatch_event,
    render_advertisement,
    truncate_text,
)
from chatwizard.steps.options import MESSAGE_LIMIT
from chatwizard.storage.base import DocumentStore
from chatwizard.transport.base import ChatTransport, Control, ControlStyle, InboundEvent, MessageRef

logger = logging.getLogger(__name__)

DOCUMENT_VERSION = 1

SUBMIT_ACTION = "submit"
ABANDON_ACTION = "abandon"


@dataclass
class WizardSession:
    """An advertisement being edited in a private thread.

    Attributes:
        user_id: Author of the advertisement
        channel_id: Private editing thread
        tree: Form state
        edited_post: Published post rewritten on finalize (None for a new one)
        preview: Preview message shown once the form is complete
    """

    user_id: str
    channel_id: str
    tree: SubStep
    edited_post: MessageRef | None = None
    preview: MessageRef | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "edited_post": self.edited_post.to_dict() if self.edited_post else None,
            "preview": self.preview.to_dict() if self.preview else None,
            "tree": self.tree.to_dict(),
        }

    @classmethod
    def from_dict(
        cls, user_id: str, data: dict[str, Any], tree_factory: Callable[[], SubStep]
    ) -> WizardSession:
        tree = tree_factory()
        tree.load_state(data.get("tree"))
        return cls(
            user_id=user_id,
            channel_id=str(data["channel_id"]),
            tree=tree,
            edited_post=MessageRef.from_dict(data.get("edited_post")),
            preview=MessageRef.from_dict(data.get("preview")),
        )


@dataclass
class StoredSubmission:
    """A published advertisement, kept so its author can edit or delete it.

    Attributes:
        post: Published message
        tree: Form state, without message references or tokens
        document: Composed document as published
    """

    post: MessageRef
    tree: SubStep
    document: dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> str:
        return str(self.document.get("title", self.post.message_id))

    def to_dict(self) -> dict[str, Any]:
        return {"post": self.post.to_dict(), "tree": self.tree.to_dict(), "document": self.document}

    @classmethod
    def from_dict(cls, data: dict[str, Any], tree_factory: Callable[[], SubStep]) -> StoredSubmission:
        post = MessageRef.from_dict(data.get("post"))
        if post is None:
            raise SerializationError("Stored submission without post", context={"data": data})
        tree = tree_factory()
        tree.load_state(data.get("tree"))
        return cls(post=post, tree=tree, document=dict(data.get("document") or {}))


class WizardSessionManager:
    """Owns the sessions, submissions and routing tokens of one module.

    Every public operation holds a single module-wide lock from the first
    tree access to the end of the persistence write, so events are processed
    one at a time in arrival order. The whole state is saved under the
    module namespace after each change.

    Attributes:
        transport: Chat platform client
        store: Document store holding the module state
        config: Module configuration
        allocator: Routing token allocator

    Example:
        ```python
        manager = WizardSessionManager(transport, store, config)
        await manager.load()
        session = await manager.start_or_resume("42", "Alice", fresh=True)
        await manager.dispatch("42", session.channel_id, message_event)
        ```
    """

    def __init__(
        self,
        transport: ChatTransport,
        store: DocumentStore,
        config: WizardConfig,
        allocator: IdentifierAllocator | None = None,
        tree_factory: Callable[[], SubStep] = AdvertisementSteps,
        renderer: Callable[[dict[str, Any], str], str] = render_advertisement,
    ):
        self.transport = transport
        self.store = store
        self.config = config
        self.allocator = allocator if allocator is not None else IdentifierAllocator()
        self.tree_factory = tree_factory
        self.renderer = renderer
        self.sessions: dict[str, WizardSession] = {}
        self.submissions: dict[str, dict[str, StoredSubmission]] = {}
        self._lock = asyncio.Lock()

    @property
    def namespace(self) -> str:
        return self.config.namespace

    def context(self, channel_id: str) -> StepContext:
        return StepContext(self.transport, self.allocator, self.namespace, channel_id)

    def session_for(self, user_id: str) -> WizardSession | None:
        return self.sessions.get(str(user_id))

    def submissions_for(self, user_id: str) -> dict[str, StoredSubmission]:
        """Stored submissions of a user, keyed by published message id."""
        return dict(self.submissions.get(str(user_id), {}))

    # Persistence

    def to_document(self) -> dict[str, Any]:
        return {
            "version": DOCUMENT_VERSION,
            "sessions": {user: session.to_dict() for user, session in self.sessions.items()},
            "submissions": {
                user: {location: stored.to_dict() for location, stored in stored_map.items()}
                for user, stored_map in self.submissions.items()
            },
            "allocator": self.allocator.to_dict(),
        }

    async def load(self) -> None:
        """Restore the module state from the store.

        Raises:
            PersistenceError: If the store cannot be read
            SerializationError: If the stored state is malformed
        """
        async with self._lock:
            document = await self.store.load(self.namespace) or {}
            self.sessions = {
                str(user): WizardSession.from_dict(str(user), data, self.tree_factory)
                for user, data in (document.get("sessions") or {}).items()
            }
            self.submissions = {
                str(user): {
                    str(location): StoredSubmission.from_dict(data, self.tree_factory)
                    for location, data in stored_map.items()
                }
                for user, stored_map in (document.get("submissions") or {}).items()
            }
            self.allocator.reserve(IdentifierAllocator.from_dict(document.get("allocator")).in_use)
            for session in self.sessions.values():
                self.allocator.reserve(session.tree.owned_tokens())
            logger.info(
                "Loaded %d sessions and %d submissions for %s",
                len(self.sessions),
                sum(len(stored_map) for stored_map in self.submissions.values()),
                self.namespace,
            )

    async def _persist(self) -> None:
        try:
            await self.store.save(self.namespace, self.to_document())
        except PersistenceError as e:
            logger.error("Failed to save state of %s: %s", self.namespace, e)
            raise

    # Session lifecycle

    async def start_or_resume(
        self, user_id: str, user_name: str = "", fresh: bool = False
    ) -> WizardSession:
        """Return the user's session, creating one when needed.

        Args:
            user_id: Author
            user_name: Display name used in the thread title and welcome message
            fresh: Abandon any existing session and start an empty one

        Returns:
            The session
        """
        user_id = str(user_id)
        async with self._lock:
            existing = self.sessions.get(user_id)
            if existing is not None and not fresh:
                return existing
            if existing is not None:
                logger.info("Replacing session of user %s", user_id)
                await self._discard(existing)
            try:
                session = await self._open(user_id, user_name, self.tree_factory())
                await self._advance(session)
            finally:
                await self._persist()
            return session

    async def edit(self, user_id: str, location: str, user_name: str = "") -> WizardSession | None:
        """Open a stored submission for editing.

        The stored form is copied into a new session whose finalization
        rewrites the published post in place.

        Returns:
            The session, or None when the user has no submission at ``location``
        """
        user_id = str(user_id)
        async with self._lock:
            stored = self.submissions.get(user_id, {}).get(str(location))
            if stored is None:
                logger.debug("No submission %s for user %s", location, user_id)
                return None
            existing = self.sessions.get(user_id)
            if existing is not None:
                await self._discard(existing)
            tree = self.tree_factory()
            tree.load_state(copy.deepcopy(stored.tree.to_dict()))
            try:
                session = await self._open(user_id, user_name, tree, edited_post=stored.post)
                await tree.present(self.context(session.channel_id))
                await self._advance(session)
            finally:
                await self._persist()
            return session

    async def abandon(self, user_id: str) -> bool:
        """Drop the user's session, its UI and its thread.

        Returns:
            True when a session existed
        """
        user_id = str(user_id)
        async with self._lock:
            session = self.sessions.get(user_id)
            if session is None:
                return False
            await self._discard(session)
            await self._persist()
            logger.info("User %s abandoned their session", user_id)
            return True

    async def finalize(self, user_id: str) -> dict[str, Any] | None:
        """Publish the user's advertisement.

        A form that cannot be composed is reported in the editing thread and
        the session stays open.

        Returns:
            The published document, or None when nothing was published

        Raises:
            TransportError: If the post cannot be published
        """
        user_id = str(user_id)
        async with self._lock:
            session = self.sessions.get(user_id)
            if session is None:
                return None
            try:
                document = session.tree.to_document()
            except CompositionError as e:
                await self._report_composition_error(session, e)
                return None

            content = self.renderer(document, user_id)
            try:
                if session.edited_post is not None:
                    await self.transport.edit(session.edited_post, content=content)
                    post = session.edited_post
                else:
                    if not self.config.publish_channel:
                        raise ConfigurationError("publish_channel is not configured")
                    post = await self.transport.send(self.config.publish_channel, content)
            except TransportError as e:
                logger.error("Failed to publish advertisement of user %s: %s", user_id, e)
                raise

            ctx = self.context(session.channel_id)
            await ctx.discard_message(session.preview, "preview")
            for token in session.tree.owned_tokens():
                self.allocator.free(token)
            session.tree.clean_for_storage()
            self.submissions.setdefault(user_id, {})[post.message_id] = StoredSubmission(
                post=post, tree=session.tree, document=document
            )
            del self.sessions[user_id]
            await self._delete_thread(session.channel_id)
            await self._persist()
            logger.info("Published advertisement %s of user %s", post.message_id, user_id)
            return document

    async def delete_submission(self, user_id: str, location: str) -> bool:
        """Delete a published advertisement and forget it.

        Returns:
            True when the submission existed
        """
        user_id = str(user_id)
        async with self._lock:
            stored_map = self.submissions.get(user_id, {})
            stored = stored_map.pop(str(location), None)
            if stored is None:
                return False
            if not stored_map:
                self.submissions.pop(user_id, None)
            await self.context(stored.post.channel_id).discard_message(stored.post, "post")
            await self._persist()
            logger.info("Deleted advertisement %s of user %s", location, user_id)
            return True

    async def dispatch(self, user_id: str, channel_id: str, event: InboundEvent) -> bool:
        """Apply an event to the user's form.

        Returns:
            True when the event changed the form
        """
        user_id = str(user_id)
        async with self._lock:
            session = self.sessions.get(user_id)
            if session is None or session.channel_id != str(channel_id):
                return False
            ctx = self.context(session.channel_id)
            if not await dispatch_event(session.tree, ctx, event):
                return False
            try:
                await self._advance(session)
            finally:
                await self._persist()
            return True

    # Internals, called with the lock held

    async def _open(
        self,
        user_id: str,
        user_name: str,
        tree: SubStep,
        edited_post: MessageRef | None = None,
    ) -> WizardSession:
        if not self.config.edition_channel:
            raise ConfigurationError("edition_channel is not configured")
        name = user_name or user_id
        channel_id = await self.transport.create_thread(
            self.config.edition_channel, f"Annonce de {name}", user_id
        )
        try:
            await self.transport.send(
                channel_id, f"# Bienvenue dans le formulaire de création d'annonce {name} !"
            )
        except TransportError:
            await self._delete_thread(channel_id)
            raise
        session = WizardSession(user_id, channel_id, tree, edited_post=edited_post)
        self.sessions[user_id] = session
        logger.info("Opened session of user %s in %s", user_id, channel_id)
        return session

    async def _discard(self, session: WizardSession) -> None:
        ctx = self.context(session.channel_id)
        await session.tree.delete(ctx)
        await ctx.discard_message(session.preview, "preview")
        self.sessions.pop(session.user_id, None)
        await self._delete_thread(session.channel_id)

    async def _delete_thread(self, channel_id: str) -> None:
        try:
            await self.transport.delete_channel(channel_id)
        except TransportError as e:
            logger.warning("Failed to delete editing thread %s: %s", channel_id, e)

    async def _advance(self, session: WizardSession) -> bool:
        ctx = self.context(session.channel_id)
        done = await session.tree.advance(ctx)
        await ctx.discard_message(session.preview, "preview")
        session.preview = None
        if done:
            await self._show_preview(session)
        return done

    async def _show_preview(self, session: WizardSession) -> None:
        try:
            document = session.tree.to_document()
        except CompositionError as e:
            await self._report_composition_error(session, e)
            return
        ctx = self.context(session.channel_id)
        controls = [
            [
                Control(ctx.routing_id(SUBMIT_ACTION), "Publier", ControlStyle.SUCCESS),
                Control(ctx.routing_id(ABANDON_ACTION), "Abandonner", ControlStyle.DANGER),
            ]
        ]
        content = truncate_text(
            "## Aperçu de ton annonce\n" + self.renderer(document, session.user_id), MESSAGE_LIMIT
        )
        session.preview = await self.transport.send(session.channel_id, content, controls)

    async def _report_composition_error(self, session: WizardSession, error: CompositionError) -> None:
        logger.warning("Cannot compose advertisement of user %s: %s", session.user_id, error)
        await self.transport.send(
            session.channel_id,
            f":no_entry: Impossible de formater l'annonce :no_entry:\n> {error}",
        )
