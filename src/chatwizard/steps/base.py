"""Step tree protocol and event traversal.

A wizard form is a tree of ``SubStep`` nodes. Each node owns a fixed,
ordered list of slots (``TextOption`` / ``ChoiceOption``). A choice slot may
carry a nested sub-document, another ``SubStep`` built for the chosen variant,
which is how category-specific fields hang off the tree.

Two operations drive the form:

* ``advance`` walks the slots in declaration order and asks the first
  unanswered one (at most one new question per call), descending into the
  sub-document of answered choices. It returns True once the whole subtree is
  complete.
* ``dispatch_event`` offers an inbound event to every node of the tree, depth
  first, and stops at the first node that consumes it.
"""

from __future__ import annotations

import logging
from abc import ABC
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from chatwizard.exceptions import TransportError
from chatwizard.identifiers import IdentifierAllocator, RoutingId, make_routing_id, parse_routing_id

if TYPE_CHECKING:
    from chatwizard.transport.base import ChatTransport, InboundEvent, MessageRef

    from .options import Option

logger = logging.getLogger(__name__)


@dataclass
class StepContext:
    """What a step needs to talk to the platform.

    Attributes:
        transport: Chat platform client
        allocator: Routing token allocator of the module
        namespace: Module namespace embedded in routing identifiers
        channel_id: Location being edited (the session's thread)
    """

    transport: ChatTransport
    allocator: IdentifierAllocator
    namespace: str
    channel_id: str

    def routing_id(self, action: str, token: int | None = None) -> str:
        return make_routing_id(self.namespace, action, token)

    def parse(self, custom_id: str | None) -> RoutingId | None:
        return parse_routing_id(custom_id, self.namespace)

    async def discard_message(self, ref: MessageRef | None, what: str = "message") -> None:
        """Delete ``ref``, logging instead of raising when it fails."""
        if ref is None:
            return
        try:
            await self.transport.delete(ref)
        except TransportError as e:
            logger.warning(
                "Failed to delete %s %s in %s: %s", what, ref.message_id, ref.channel_id, e
            )


class SubStep(ABC):
    """A node of the step tree.

    Subclasses declare their slots by returning them from ``options()`` in
    the order they must be asked. The default implementations of every
    operation then work slot by slot; override ``advance`` only when the
    asking order depends on values.
    """

    def options(self) -> list[Option]:
        """Own slots, in asking order."""
        return []

    async def advance(self, ctx: StepContext) -> bool:
        """Ask the next unanswered question of this subtree.

        Returns:
            True when every slot of the subtree is answered
        """
        for option in self.options():
            if not option.is_answered:
                await option.try_init(ctx)
                return False
            detail = option.detail
            if detail is not None and not await detail.advance(ctx):
                return False
        return True

    async def receive_event(self, ctx: StepContext, event: InboundEvent) -> bool:
        """Offer ``event`` to this node's own slots.

        Returns:
            True as soon as one slot consumed the event
        """
        for option in self.options():
            if await option.receive(ctx, event):
                return True
        return False

    def get_dependencies(self) -> list[SubStep]:
        """Sub-documents currently attached to this node's choices."""
        return [option.detail for option in self.options() if option.detail is not None]

    async def delete(self, ctx: StepContext) -> None:
        """Remove every message and release every token of the subtree."""
        for option in self.options():
            await option.delete(ctx)

    async def present(self, ctx: StepContext) -> None:
        """Post the UI of answered slots that have none (reopened documents)."""
        for option in self.options():
            await option.present(ctx)

    def clean_for_storage(self) -> None:
        """Forget message references before the tree is stored as a document."""
        for option in self.options():
            option.clean_for_storage()

    def owned_tokens(self) -> list[int]:
        """Routing tokens held by the subtree."""
        tokens: list[int] = []
        for option in self.options():
            tokens.extend(option.owned_tokens())
        return tokens

    def to_dict(self) -> dict[str, Any]:
        return {option.key: option.to_dict() for option in self.options()}

    def load_state(self, data: dict[str, Any] | None) -> None:
        """Restore slot state saved by ``to_dict``."""
        data = data or {}
        for option in self.options():
            option.load_state(data.get(option.key))

    def to_document(self) -> dict[str, Any]:
        """Plain document built from the answered slots.

        Raises:
            CompositionError: If a required slot is empty
        """
        return {}


async def dispatch_event(root: SubStep, ctx: StepContext, event: InboundEvent) -> bool:
    """Offer ``event`` to the nodes of the tree until one consumes it.

    Nodes are visited depth first from ``root``. A node's sub-documents are
    only visited once the node itself declined the event, so a single click
    or message never mutates two slots.

    Returns:
        True when a node consumed the event
    """
    pending: list[SubStep] = [root]
    while pending:
        step = pending.pop()
        if await step.receive_event(ctx, event):
            logger.debug("Event consumed by %s", type(step).__name__)
            return True
        pending.extend(step.get_dependencies())
    return False
