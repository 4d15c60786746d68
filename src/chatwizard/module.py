"""Chat modules and their registry.

A bot is made of independent modules. Each module sees every inbound event
and decides whether it is for itself; a module failing on an event is logged
and never prevents the other modules from handling it.

Example:
    ```python
    registry = ModuleRegistry()
    registry.register(WizardRouter(manager, config))

    await registry.dispatch_command(command_event)
    await registry.dispatch_interaction(control_event)
    ```
"""

from __future__ import annotations

import logging

from chatwizard.exceptions import NotFoundError, OperationError
from chatwizard.transport.base import (
    CommandEvent,
    ControlEvent,
    InboundEvent,
    InteractionEvent,
    MessageEvent,
    ModalEvent,
)

logger = logging.getLogger(__name__)


class ChatModule:
    """Base class of bot modules.

    Handlers return True when they handled the event. The defaults ignore
    everything.
    """

    name: str = "module"
    description: str = ""

    @property
    def commands(self) -> list[str]:
        """Names of the commands the module answers."""
        return []

    async def on_command(self, event: CommandEvent) -> bool:
        return False

    async def on_message(self, event: MessageEvent) -> bool:
        return False

    async def on_interaction(self, event: InteractionEvent) -> bool:
        return False


class ModuleRegistry:
    """Registered modules, keyed by name, with an enabled flag each."""

    def __init__(self) -> None:
        self._modules: dict[str, ChatModule] = {}
        self._disabled: set[str] = set()

    def register(self, module: ChatModule, allow_overwrite: bool = False) -> None:
        """Register a module under its name.

        Raises:
            OperationError: If the name is taken and allow_overwrite is False
        """
        if not allow_overwrite and module.name in self._modules:
            raise OperationError(
                f"Module '{module.name}' already registered", context={"module": module.name}
            )
        self._modules[module.name] = module
        logger.info("Registered module %s", module.name)

    def unregister(self, name: str) -> ChatModule:
        """Remove a module.

        Raises:
            NotFoundError: If no module has this name
        """
        module = self.get(name)
        del self._modules[name]
        self._disabled.discard(name)
        return module

    def get(self, name: str) -> ChatModule:
        """Get a module by name.

        Raises:
            NotFoundError: If no module has this name
        """
        if name not in self._modules:
            raise NotFoundError(
                f"Module '{name}' not found",
                context={"module": name, "available": sorted(self._modules)},
            )
        return self._modules[name]

    def __contains__(self, name: str) -> bool:
        return name in self._modules

    def list_names(self) -> list[str]:
        return list(self._modules)

    def enable(self, name: str) -> None:
        self.get(name)
        self._disabled.discard(name)

    def disable(self, name: str) -> None:
        self.get(name)
        self._disabled.add(name)

    def is_enabled(self, name: str) -> bool:
        return name in self._modules and name not in self._disabled

    def enabled_modules(self) -> list[ChatModule]:
        return [module for name, module in self._modules.items() if name not in self._disabled]

    async def dispatch_command(self, event: CommandEvent) -> bool:
        """Hand a command to the enabled modules that declare it."""
        handled = False
        for module in self.enabled_modules():
            if event.name in module.commands:
                handled = await self._call(module, "on_command", event) or handled
        return handled

    async def dispatch_message(self, event: MessageEvent) -> bool:
        handled = False
        for module in self.enabled_modules():
            handled = await self._call(module, "on_message", event) or handled
        return handled

    async def dispatch_interaction(self, event: InteractionEvent) -> bool:
        handled = False
        for module in self.enabled_modules():
            handled = await self._call(module, "on_interaction", event) or handled
        return handled

    async def dispatch(self, event: InboundEvent) -> bool:
        """Route any inbound event to the matching fan-out."""
        if isinstance(event, CommandEvent):
            return await self.dispatch_command(event)
        if isinstance(event, MessageEvent):
            return await self.dispatch_message(event)
        if isinstance(event, (ControlEvent, ModalEvent)):
            return await self.dispatch_interaction(event)
        return False

    async def _call(self, module: ChatModule, handler: str, event: InboundEvent) -> bool:
        try:
            return bool(await getattr(module, handler)(event))
        except Exception:
            logger.exception("Module %s failed in %s", module.name, handler)
            return False
