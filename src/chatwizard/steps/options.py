"""Field slots of the step tree.

Two kinds of slots hold values:

* ``TextOption``: a free-text answer typed as a chat message (or entered in a
  modal form when ``modal=True``).
* ``ChoiceOption``: one value of a closed set of ``Variant`` s, picked with a
  button. A variant may build a nested sub-document holding the fields that
  only make sense for it.

Both slots post exactly one message while active (the question or the menu)
and lease routing tokens for the controls attached to it. Clearing a slot
deletes that message and frees its tokens.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from chatwizard.exceptions import CompositionError, SerializationError, TransportError
from chatwizard.transport.base import (
    Control,
    ControlEvent,
    ControlRows,
    ControlStyle,
    MessageEvent,
    MessageRef,
    ModalEvent,
    ModalField,
)

from .base import SubStep

if TYPE_CHECKING:
    from chatwizard.transport.base import InboundEvent

    from .base import StepContext

logger = logging.getLogger(__name__)

CONTROLS_PER_ROW = 3
MESSAGE_LIMIT = 2000
MODAL_TITLE_LIMIT = 45

EDIT_ACTION = "edit"
ANSWER_ACTION = "answer"
CHOICE_ACTION = "choice"

EDIT_LABEL = "Modifier"
ANSWER_LABEL = "Répondre"


def truncate_text(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, ending with an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return text[: max(limit - 1, 0)] + "…"


def quote(text: str) -> str:
    return "\n".join(f"> {line}" for line in text.splitlines() or [""])


def batch_controls(controls: list[Control], per_row: int = CONTROLS_PER_ROW) -> ControlRows:
    """Lay ``controls`` out in rows of ``per_row``."""
    return [controls[i : i + per_row] for i in range(0, len(controls), per_row)]


class Option(ABC):
    """A slot of a ``SubStep``.

    Attributes:
        key: Name of the slot in persisted state and documents
        prompt: Question shown to the user
    """

    def __init__(self, key: str, prompt: str):
        self.key = key
        self.prompt = prompt

    @property
    @abstractmethod
    def is_answered(self) -> bool:
        """Whether the slot holds a value."""

    @property
    def detail(self) -> SubStep | None:
        """Sub-document attached to the slot, if any."""
        return None

    @abstractmethod
    async def try_init(self, ctx: StepContext) -> bool:
        """Post the question if the slot was never asked.

        Returns:
            True when a question was posted
        """

    @abstractmethod
    async def receive(self, ctx: StepContext, event: InboundEvent) -> bool:
        """Apply ``event`` to the slot if it is meant for it."""

    @abstractmethod
    async def delete(self, ctx: StepContext) -> None:
        """Reset the slot, removing its message and freeing its tokens."""

    @abstractmethod
    async def present(self, ctx: StepContext) -> None:
        """Post the answered message of a slot restored without UI."""

    @abstractmethod
    def clean_for_storage(self) -> None:
        """Drop message references and tokens, keeping the value."""

    @abstractmethod
    def owned_tokens(self) -> list[int]:
        """Routing tokens leased by the slot and its sub-document."""

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        pass

    @abstractmethod
    def load_state(self, data: dict[str, Any] | None) -> None:
        pass


class TextOption(Option):
    """Free-text slot.

    States:

    * Unset: no value, no question posted.
    * Asked: question posted, waiting for the answer.
    * Answered: value stored, the question rewritten to show it with a single
      edit control.

    The answer is the next message the user posts in the editing channel. A
    message with no text but with text attachments (``.txt``, ``.md``...)
    takes the attachments' content instead. With ``modal=True`` the question
    also carries an answer button that opens a modal text input, which suits
    long answers.

    Example:
        ```python
        title = TextOption("title", "Donne un titre à ton annonce")
        await title.try_init(ctx)  # posts the question
        await title.receive(ctx, message_event)  # stores the answer
        assert title.value == message_event.content
        ```
    """

    def __init__(self, key: str, prompt: str, modal: bool = False, multiline: bool = False):
        super().__init__(key, prompt)
        self.modal = modal
        self.multiline = multiline
        self.value: str | None = None
        self.question: MessageRef | None = None
        self.edit_token: int | None = None
        self.answer_token: int | None = None

    @property
    def is_answered(self) -> bool:
        return self.value is not None

    @property
    def is_asked(self) -> bool:
        return self.value is None and self.question is not None

    def require(self) -> str:
        """The answer, for document composition.

        Raises:
            CompositionError: If the slot is not answered
        """
        if self.value is None:
            raise CompositionError(
                f"Missing value for '{self.key}'", context={"key": self.key, "prompt": self.prompt}
            )
        return self.value

    def _question_content(self) -> str:
        hint = "Clique sur le bouton ou écris ta réponse" if self.modal else "Écris ta réponse"
        return f"## ▶  {self.prompt}\n> *{hint} sous ce message*"

    def _answered_content(self) -> str:
        header = f"### {self.prompt}\n"
        return header + quote(truncate_text(self.value or "", MESSAGE_LIMIT - len(header) - 100))

    def _edit_controls(self, ctx: StepContext, token: int) -> ControlRows:
        return [[Control(ctx.routing_id(EDIT_ACTION, token), EDIT_LABEL, ControlStyle.SECONDARY)]]

    async def try_init(self, ctx: StepContext) -> bool:
        if self.value is not None or self.question is not None:
            return False
        controls = None
        token = None
        if self.modal:
            token = ctx.allocator.allocate()
            controls = [[Control(ctx.routing_id(ANSWER_ACTION, token), ANSWER_LABEL, ControlStyle.PRIMARY)]]
        try:
            self.question = await ctx.transport.send(ctx.channel_id, self._question_content(), controls)
        except TransportError:
            ctx.allocator.free(token)
            raise
        self.answer_token = token
        logger.debug("Asked %s in %s", self.key, ctx.channel_id)
        return True

    async def receive(self, ctx: StepContext, event: InboundEvent) -> bool:
        if isinstance(event, MessageEvent):
            return await self.try_set(ctx, event)
        if isinstance(event, ModalEvent):
            return await self.try_set_modal(ctx, event)
        if isinstance(event, ControlEvent):
            return await self.try_edit(ctx, event) or await self.try_open(ctx, event)
        return False

    async def try_set(self, ctx: StepContext, event: MessageEvent) -> bool:
        """Take a chat message posted in the editing channel as the answer."""
        if not self.is_asked or event.channel_id != ctx.channel_id:
            return False
        text = event.content.strip()
        if not text and event.attachments:
            text = await self._read_attachments(ctx, event)
        if not text:
            return False
        await self._answer(ctx, text)
        await ctx.discard_message(event.ref, "answer")
        return True

    async def try_set_modal(self, ctx: StepContext, event: ModalEvent) -> bool:
        """Take the value of a submitted modal as the answer."""
        routing = ctx.parse(event.custom_id)
        if (
            routing is None
            or routing.action != ANSWER_ACTION
            or self.answer_token is None
            or routing.token != self.answer_token
            or not self.is_asked
        ):
            return False
        text = (event.values.get(self.key) or "").strip()
        if not text:
            return False
        await self._answer(ctx, text)
        return True

    async def try_edit(self, ctx: StepContext, event: ControlEvent) -> bool:
        """Reset the slot when its edit control is clicked."""
        routing = ctx.parse(event.custom_id)
        if routing is None or routing.action != EDIT_ACTION:
            return False
        if self.edit_token is None or routing.token != self.edit_token:
            return False
        await self.delete(ctx)
        logger.debug("Reset %s in %s", self.key, ctx.channel_id)
        return True

    async def try_open(self, ctx: StepContext, event: ControlEvent) -> bool:
        """Open the modal input when the answer control is clicked."""
        routing = ctx.parse(event.custom_id)
        if routing is None or routing.action != ANSWER_ACTION:
            return False
        if self.answer_token is None or routing.token != self.answer_token or not self.is_asked:
            return False
        label = truncate_text(self.prompt, MODAL_TITLE_LIMIT)
        await ctx.transport.open_modal(
            event,
            ctx.routing_id(ANSWER_ACTION, self.answer_token),
            label,
            [ModalField(self.key, label, multiline=self.multiline)],
        )
        return True

    async def _read_attachments(self, ctx: StepContext, event: MessageEvent) -> str:
        parts = []
        for attachment in event.attachments:
            if not attachment.is_text:
                continue
            data = await ctx.transport.download(attachment)
            parts.append(data.decode("utf-8", errors="replace").strip())
        return "\n".join(part for part in parts if part)

    async def _answer(self, ctx: StepContext, text: str) -> None:
        token = ctx.allocator.allocate()
        previous = self.value
        self.value = text
        try:
            await ctx.transport.edit(
                self.question, content=self._answered_content(), controls=self._edit_controls(ctx, token)
            )
        except TransportError:
            self.value = previous
            ctx.allocator.free(token)
            raise
        ctx.allocator.free(self.answer_token)
        self.answer_token = None
        self.edit_token = token

    async def delete(self, ctx: StepContext) -> None:
        await ctx.discard_message(self.question, f"question '{self.key}'")
        ctx.allocator.free(self.edit_token)
        ctx.allocator.free(self.answer_token)
        self.value = None
        self.question = None
        self.edit_token = None
        self.answer_token = None

    async def present(self, ctx: StepContext) -> None:
        if self.value is None or self.question is not None:
            return
        token = ctx.allocator.allocate()
        try:
            self.question = await ctx.transport.send(
                ctx.channel_id, self._answered_content(), self._edit_controls(ctx, token)
            )
        except TransportError:
            ctx.allocator.free(token)
            raise
        self.edit_token = token

    def clean_for_storage(self) -> None:
        self.question = None
        self.edit_token = None
        self.answer_token = None

    def owned_tokens(self) -> list[int]:
        return [token for token in (self.edit_token, self.answer_token) if token is not None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "question": self.question.to_dict() if self.question else None,
            "edit_token": self.edit_token,
            "answer_token": self.answer_token,
        }

    def load_state(self, data: dict[str, Any] | None) -> None:
        data = data or {}
        self.value = data.get("value")
        self.question = MessageRef.from_dict(data.get("question"))
        self.edit_token = data.get("edit_token")
        self.answer_token = data.get("answer_token")


@dataclass(frozen=True)
class Variant:
    """One value of a ``ChoiceOption``.

    Attributes:
        key: Stored value
        label: Button label
        factory: Builds the sub-document holding the variant's own fields
    """

    key: str
    label: str
    factory: Callable[[], SubStep] | None = None


class ChoiceOption(Option):
    """Closed-choice slot with one button per variant.

    The menu stays in place once answered: the chosen button is highlighted
    and the other buttons keep working, so the user can switch at any time.
    Switching discards the sub-document of the previous variant together with
    its messages. The tokens of the menu buttons are kept until the whole slot
    is deleted.

    Example:
        ```python
        contact = ChoiceOption(
            "contact",
            "Comment peut-on te contacter ?",
            [
                Variant("discord", "Discord"),
                Variant("other", "Autre", ContactDetails),
            ],
        )
        ```
    """

    def __init__(self, key: str, prompt: str, variants: list[Variant]):
        super().__init__(key, prompt)
        if not variants:
            raise ValueError(f"Choice '{key}' needs at least one variant")
        self.variants = list(variants)
        self.value: str | None = None
        self.menu: MessageRef | None = None
        self.tokens: dict[int, str] = {}
        self._detail: SubStep | None = None

    @property
    def is_answered(self) -> bool:
        return self.value is not None

    @property
    def detail(self) -> SubStep | None:
        return self._detail

    def variant(self, key: str) -> Variant:
        for variant in self.variants:
            if variant.key == key:
                return variant
        raise KeyError(key)

    def require(self) -> str:
        """The chosen variant key, for document composition.

        Raises:
            CompositionError: If nothing is chosen
        """
        if self.value is None:
            raise CompositionError(
                f"Missing choice for '{self.key}'", context={"key": self.key, "prompt": self.prompt}
            )
        return self.value

    def _menu_content(self) -> str:
        return f"## ▶  {self.prompt}"

    def _controls(self, ctx: StepContext, selected: str | None = None) -> ControlRows:
        selected = selected if selected is not None else self.value
        controls = [
            Control(
                ctx.routing_id(CHOICE_ACTION, token),
                self.variant(key).label,
                ControlStyle.SUCCESS if key == selected else ControlStyle.SECONDARY,
            )
            for token, key in self.tokens.items()
        ]
        return batch_controls(controls)

    def _lease_tokens(self, ctx: StepContext) -> None:
        self.tokens = {ctx.allocator.allocate(): variant.key for variant in self.variants}

    def _release_tokens(self, ctx: StepContext) -> None:
        for token in self.tokens:
            ctx.allocator.free(token)
        self.tokens = {}

    async def _post_menu(self, ctx: StepContext) -> None:
        self._lease_tokens(ctx)
        try:
            self.menu = await ctx.transport.send(ctx.channel_id, self._menu_content(), self._controls(ctx))
        except TransportError:
            self._release_tokens(ctx)
            raise

    async def try_init(self, ctx: StepContext) -> bool:
        if self.value is not None or self.menu is not None:
            return False
        await self._post_menu(ctx)
        logger.debug("Asked %s in %s", self.key, ctx.channel_id)
        return True

    async def receive(self, ctx: StepContext, event: InboundEvent) -> bool:
        if isinstance(event, ControlEvent):
            return await self.try_set(ctx, event)
        return False

    async def try_set(self, ctx: StepContext, event: ControlEvent) -> bool:
        """Select the variant whose button was clicked.

        Returns:
            True when the choice changed; clicking the current choice is a no-op
        """
        routing = ctx.parse(event.custom_id)
        if routing is None or routing.action != CHOICE_ACTION or routing.token not in self.tokens:
            return False
        key = self.tokens[routing.token]
        if key == self.value:
            return False
        await ctx.transport.edit(self.menu, controls=self._controls(ctx, selected=key))
        if self._detail is not None:
            await self._detail.delete(ctx)
        self.value = key
        factory = self.variant(key).factory
        self._detail = factory() if factory is not None else None
        logger.debug("Chose %s=%s in %s", self.key, key, ctx.channel_id)
        return True

    async def delete(self, ctx: StepContext) -> None:
        if self._detail is not None:
            await self._detail.delete(ctx)
        await ctx.discard_message(self.menu, f"menu '{self.key}'")
        self._release_tokens(ctx)
        self.value = None
        self.menu = None
        self._detail = None

    async def present(self, ctx: StepContext) -> None:
        if self.value is None:
            return
        if self.menu is None:
            await self._post_menu(ctx)
        if self._detail is not None:
            await self._detail.present(ctx)

    def clean_for_storage(self) -> None:
        self.menu = None
        self.tokens = {}
        if self._detail is not None:
            self._detail.clean_for_storage()

    def owned_tokens(self) -> list[int]:
        tokens = list(self.tokens)
        if self._detail is not None:
            tokens.extend(self._detail.owned_tokens())
        return tokens

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "menu": self.menu.to_dict() if self.menu else None,
            "tokens": {str(token): key for token, key in self.tokens.items()},
            "detail": self._detail.to_dict() if self._detail is not None else None,
        }

    def load_state(self, data: dict[str, Any] | None) -> None:
        data = data or {}
        value = data.get("value")
        keys = {variant.key for variant in self.variants}
        if value is not None and value not in keys:
            raise SerializationError(
                f"Unknown variant '{value}' for '{self.key}'",
                context={"key": self.key, "value": value, "variants": sorted(keys)},
            )
        self.value = value
        self.menu = MessageRef.from_dict(data.get("menu"))
        self.tokens = {}
        for token, key in (data.get("tokens") or {}).items():
            if key not in keys:
                raise SerializationError(
                    f"Unknown variant '{key}' for '{self.key}'",
                    context={"key": self.key, "value": key},
                )
            self.tokens[int(token)] = key
        self._detail = None
        if value is not None:
            factory = self.variant(value).factory
            if factory is not None:
                self._detail = factory()
                self._detail.load_state(data.get("detail"))

    def to_document(self) -> dict[str, Any]:
        """The chosen variant key with the fields of its sub-document.

        Raises:
            CompositionError: If nothing is chosen or the sub-document is incomplete
        """
        document: dict[str, Any] = {"kind": self.require()}
        if self._detail is not None:
            document.update(self._detail.to_document())
        return document


class FieldGroup(SubStep):
    """Sub-document made of text slots only, asked in the given order."""

    def __init__(self, *fields: TextOption):
        self.fields = list(fields)

    def options(self) -> list[Option]:
        return list(self.fields)

    def to_document(self) -> dict[str, Any]:
        return {field.key: field.require() for field in self.fields}
