"""Interfaces of the durable collaborators the synchronizer talks to.

The message log is the ordering authority: it assigns identifiers and
timestamps on append and notifies subscribers with the full ordered list
after every change. A caller may request a timestamp on append to place a
message between existing ones. The blob store turns uploaded bytes into a
retrievable URL.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from chatrelay.models.domain import Attachment, Conversation, Message, Role

MessagesCallback = Callable[[list[Message]], None]
Unsubscribe = Callable[[], None]


class StorageError(Exception):
    """Base class for log and blob store failures."""

    pass


class ConversationNotFoundError(StorageError):
    """Raised when a conversation does not exist in the log."""

    pass


class MessageNotFoundError(StorageError):
    """Raised when a message does not exist in its conversation."""

    pass


class MessageLog(Protocol):
    """Append-only, per-conversation ordered message store."""

    async def create_conversation(self, title: str) -> Conversation: ...

    async def get_conversation(self, conversation_id: str) -> Conversation | None: ...

    async def list_conversations(self) -> list[Conversation]: ...

    async def update_conversation(
        self,
        conversation_id: str,
        *,
        title: str | None = None,
        pinned: bool | None = None,
    ) -> Conversation: ...

    async def delete_conversation(self, conversation_id: str) -> None: ...

    async def append(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        attachments: list[Attachment] | None = None,
        created_at: datetime | None = None,
    ) -> Message: ...

    async def list_messages(
        self, conversation_id: str, limit: int | None = None
    ) -> list[Message]: ...

    async def update(
        self, conversation_id: str, message_id: str, *, content: str
    ) -> Message: ...

    async def delete(self, conversation_id: str, message_id: str) -> None: ...

    def subscribe(
        self, conversation_id: str, callback: MessagesCallback
    ) -> Unsubscribe: ...


class BlobStore(Protocol):
    """Content storage returning a retrievable URL per object."""

    async def put(
        self, conversation_id: str, data: bytes, filename: str, mime_type: str
    ) -> str: ...
