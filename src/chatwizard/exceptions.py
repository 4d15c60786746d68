"""Exception hierarchy for chatwizard.

Every error carries an optional context dictionary so that log records and
user-facing reports can include the ids involved (user, channel, message,
storage key) without string parsing.

Example:
    ```python
    from chatwizard.exceptions import PersistenceError, WizardError

    raise PersistenceError(
        "Failed to save module document",
        context={"key": "advertising", "path": "saved/config"}
    )

    try:
        await manager.finalize(user_id)
    except WizardError as e:
        logger.error("Wizard error: %s (%s)", e, e.context)
    ```
"""

from typing import Any, Dict


class WizardError(Exception):
    """Base exception for all chatwizard errors.

    Attributes:
        context: Dictionary containing contextual information about the error
        details: Alias for context

    Args:
        message: Human-readable error message
        context: Optional dictionary with error context (user ids, message ids...)
        details: Alternative to context (both are supported)
    """

    def __init__(
        self,
        message: str,
        context: Dict[str, Any] | None = None,
        details: Dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.context = details or context or {}
        self.details = self.context


class TransportError(WizardError):
    """Raised when a chat platform call fails.

    Sending, editing or deleting a message, downloading an attachment,
    opening a modal or managing a thread can all fail for reasons outside
    the engine (network, permissions, deleted channel).

    Example:
        ```python
        raise TransportError(
            "Failed to send message",
            context={"channel_id": "123", "operation": "send"}
        )
        ```
    """

    pass


class PersistenceError(WizardError):
    """Raised when the module document cannot be loaded or saved.

    A failed save happens after the in-memory mutation was applied; the
    engine does not roll the tree back.
    """

    pass


class CompositionError(WizardError):
    """Raised when a completed step tree cannot be turned into a document.

    Typically a required slot is unexpectedly empty. The message is shown to
    the user in the editing channel and the session stays open.
    """

    pass


class SerializationError(WizardError):
    """Raised when persisted step state cannot be decoded."""

    pass


class ConfigurationError(WizardError):
    """Raised when the wizard configuration is invalid or missing."""

    pass


class NotFoundError(WizardError):
    """Raised when a named item (module, session, submission) does not exist."""

    pass


class OperationError(WizardError):
    """Raised when an operation conflicts with the current state.

    Registering a module under a name already taken, for instance.
    """

    pass


__all__ = [
    "WizardError",
    "TransportError",
    "PersistenceError",
    "CompositionError",
    "SerializationError",
    "ConfigurationError",
    "NotFoundError",
    "OperationError",
]
