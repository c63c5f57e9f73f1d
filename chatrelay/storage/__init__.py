"""Storage interfaces for the message log and blob store.

Durable storage is an external collaborator; the in-memory classes here
implement the same interfaces for local runs and tests.
"""

from chatrelay.storage.base import (
    BlobStore,
    ConversationNotFoundError,
    MessageLog,
    MessageNotFoundError,
    MessagesCallback,
    StorageError,
    Unsubscribe,
)
from chatrelay.storage.memory import InMemoryBlobStore, InMemoryMessageLog

__all__ = [
    "BlobStore",
    "ConversationNotFoundError",
    "InMemoryBlobStore",
    "InMemoryMessageLog",
    "MessageLog",
    "MessageNotFoundError",
    "MessagesCallback",
    "StorageError",
    "Unsubscribe",
]
