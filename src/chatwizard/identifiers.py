"""Routing identifiers for interactive controls.

Every button carries an opaque identifier string that the chat platform hands
back when the button is clicked, possibly long after the process that created
it has restarted. The string has the form::

    <namespace>::<action>[::<payload>]

where ``namespace`` is the name of the module that owns the control, ``action``
names what the click means (``choice``, ``edit``, ``submit``...) and the
optional ``payload`` is either a routing token leased from an
``IdentifierAllocator`` or a module-level argument such as a submission id.

Example:
    ```python
    allocator = IdentifierAllocator()
    token = allocator.allocate()
    custom_id = make_routing_id("advertising", "edit", token)
    # 'advertising::edit::0'

    routing = parse_routing_id(custom_id, "advertising")
    assert routing.token == token
    assert parse_routing_id(custom_id, "welcome") is None
    ```
"""

from __future__ import annotations

import heapq
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

ROUTING_SEPARATOR = "::"


@dataclass(frozen=True)
class RoutingId:
    """Decoded routing identifier.

    Attributes:
        namespace: Module namespace the control belongs to
        action: Action name
        payload: Optional trailing payload (token or module argument)
    """

    namespace: str
    action: str
    payload: str | None = None

    @property
    def token(self) -> int | None:
        """The payload as a routing token, or None when it is not numeric."""
        if self.payload is None or not self.payload.isdigit():
            return None
        return int(self.payload)

    def __str__(self) -> str:
        return make_routing_id(self.namespace, self.action, self.payload)


def make_routing_id(namespace: str, action: str, payload: Any = None) -> str:
    """Encode a routing identifier string.

    Args:
        namespace: Module namespace
        action: Action name
        payload: Optional payload, usually a routing token

    Returns:
        The identifier string to attach to a control
    """
    if payload is None or payload == "":
        return f"{namespace}{ROUTING_SEPARATOR}{action}"
    return f"{namespace}{ROUTING_SEPARATOR}{action}{ROUTING_SEPARATOR}{payload}"


def parse_routing_id(custom_id: str | None, namespace: str) -> RoutingId | None:
    """Decode a routing identifier belonging to ``namespace``.

    Args:
        custom_id: Identifier string received from the platform
        namespace: Namespace of the module currently dispatching

    Returns:
        The decoded identifier, or None when the string is malformed or
        belongs to another namespace
    """
    if not custom_id:
        return None
    parts = custom_id.split(ROUTING_SEPARATOR, 2)
    if len(parts) < 2 or parts[0] != namespace or not parts[1]:
        return None
    payload = parts[2] if len(parts) == 3 and parts[2] != "" else None
    return RoutingId(namespace=parts[0], action=parts[1], payload=payload)


class IdentifierAllocator:
    """Free-list allocator of routing tokens.

    ``allocate()`` always returns the smallest integer not currently in use,
    so tokens stay short in identifier strings. Freed tokens go back on a
    min-heap and are reused before the high-water mark grows.

    The in-use set is persisted alongside the sessions (``to_dict`` /
    ``from_dict``) so a restarted process never leases a token that is still
    embedded in a control on the platform.

    The allocator is not synchronized: callers hold the session map lock
    whenever they allocate or free.
    """

    def __init__(self, in_use: Iterable[int] = ()):
        self._in_use: set[int] = set()
        self._free: list[int] = []
        self._next = 0
        self.reserve(in_use)

    @property
    def in_use(self) -> list[int]:
        """Sorted list of leased tokens."""
        return sorted(self._in_use)

    def __len__(self) -> int:
        return len(self._in_use)

    def is_allocated(self, token: int) -> bool:
        """Whether ``token`` is currently leased."""
        return token in self._in_use

    def allocate(self) -> int:
        """Lease the smallest unused token.

        Returns:
            A token not currently in use
        """
        while self._free:
            token = heapq.heappop(self._free)
            if token not in self._in_use:
                self._in_use.add(token)
                return token
        token = self._next
        self._next += 1
        self._in_use.add(token)
        return token

    def free(self, token: int | None) -> None:
        """Release ``token``.

        Freeing None, an unknown token or an already free token does nothing.
        """
        if token is None or token not in self._in_use:
            return
        self._in_use.discard(token)
        heapq.heappush(self._free, token)

    def reserve(self, tokens: Iterable[int]) -> None:
        """Mark ``tokens`` as leased.

        Used when state is reloaded: tokens referenced by persisted step trees
        must not be handed out again.
        """
        added = False
        for token in tokens:
            if token < 0 or token in self._in_use:
                continue
            self._in_use.add(token)
            added = True
        if not added:
            return
        top = max(self._in_use) + 1
        if top > self._next:
            for gap in range(self._next, top):
                if gap not in self._in_use:
                    heapq.heappush(self._free, gap)
            self._next = top

    def to_dict(self) -> dict[str, Any]:
        return {"in_use": self.in_use}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> IdentifierAllocator:
        allocator = cls((data or {}).get("in_use", []))
        logger.debug("Restored allocator with %d leased tokens", len(allocator))
        return allocator
