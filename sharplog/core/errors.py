"""Exception types shared across the logging pipeline."""

from __future__ import annotations


class SharpLogError(Exception):
    """Base class for all SharpLog errors."""


class AIServiceError(SharpLogError):
    """The text-generation service failed or timed out. The user may retry."""

    def __init__(self, message: str, *, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class ConversationStateError(SharpLogError):
    """An operation was attempted in a status that does not allow it."""


class ConversationBusyError(ConversationStateError):
    """A turn, summary or save is already in flight for this conversation."""


class PersistenceError(SharpLogError):
    """Saving a work entry failed; the draft stays in review."""


class EncryptionError(PersistenceError):
    """The raw conversation could not be encrypted."""
