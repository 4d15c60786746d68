"""Conversational form wizard for chat bots.

A user starts the wizard with a command; the bot opens a private thread and
asks one question at a time, with buttons for closed choices and "edit"
buttons on every answer. Once the form is complete it is previewed, then
published, and stays editable by its author.

- **Steps**: step tree, text and choice slots, the advertisement form
- **Sessions**: per-user editing sessions, stored submissions, persistence
- **Router**: the chat module turning platform events into session operations
- **Transport / Storage**: protocols with in-memory and file implementations

Example:
    ```python
    from chatwizard import (
        ModuleRegistry,
        WizardRouter,
        WizardSessionManager,
        create_document_store,
        load_config,
    )

    config = load_config("advertising.yaml")
    manager = WizardSessionManager(transport, create_document_store(config.storage), config)
    await manager.load()

    registry = ModuleRegistry()
    registry.register(WizardRouter(manager, config))
    await registry.dispatch(event)
    ```
"""

from chatwizard.config import WizardConfig, load_config
from chatwizard.exceptions import (
    CompositionError,
    ConfigurationError,
    NotFoundError,
    OperationError,
    PersistenceError,
    SerializationError,
    TransportError,
    WizardError,
)
from chatwizard.identifiers import IdentifierAllocator, RoutingId, make_routing_id, parse_routing_id
from chatwizard.module import ChatModule, ModuleRegistry
from chatwizard.observability import EventLogger
from chatwizard.router import WizardRouter
from chatwizard.session import StoredSubmission, WizardSession, WizardSessionManager
from chatwizard.steps import AdvertisementSteps, ChoiceOption, StepContext, SubStep, TextOption, Variant
from chatwizard.storage import DocumentStore, FileDocumentStore, InMemoryDocumentStore, create_document_store
from chatwizard.transport import ChatTransport, InMemoryTransport

__version__ = "0.1.0"

__all__ = [
    "AdvertisementSteps",
    "ChatModule",
    "ChatTransport",
    "ChoiceOption",
    "CompositionError",
    "ConfigurationError",
    "DocumentStore",
    "EventLogger",
    "FileDocumentStore",
    "IdentifierAllocator",
    "InMemoryDocumentStore",
    "InMemoryTransport",
    "ModuleRegistry",
    "NotFoundError",
    "OperationError",
    "PersistenceError",
    "RoutingId",
    "SerializationError",
    "StepContext",
    "StoredSubmission",
    "SubStep",
    "TextOption",
    "TransportError",
    "Variant",
    "WizardConfig",
    "WizardError",
    "WizardRouter",
    "WizardSession",
    "WizardSessionManager",
    "create_document_store",
    "load_config",
    "make_routing_id",
    "parse_routing_id",
]
