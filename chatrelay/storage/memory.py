"""In-memory message log and blob store.

Reference implementations of the storage interfaces, used for local runs
and tests. Notifications are delivered synchronously: a subscriber receives
the current list on registration and again after every change to its
conversation.
"""

import bisect
import logging
import time
import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from chatrelay.models.domain import Attachment, Conversation, Message, Role, utc_now
from chatrelay.storage.base import (
    ConversationNotFoundError,
    MessageNotFoundError,
    MessagesCallback,
    StorageError,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex[:20]


class InMemoryMessageLog:
    """Dict-backed message log with push notifications."""

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, list[Message]] = {}
        self._subscribers: dict[str, list[MessagesCallback]] = defaultdict(list)

    def _require(self, conversation_id: str) -> list[Message]:
        try:
            return self._messages[conversation_id]
        except KeyError:
            raise ConversationNotFoundError(
                f"Conversation not found: {conversation_id}"
            ) from None

    def _find(self, conversation_id: str, message_id: str) -> int:
        for index, message in enumerate(self._require(conversation_id)):
            if message.id == message_id:
                return index
        raise MessageNotFoundError(f"Message not found: {message_id}")

    def _snapshot(self, conversation_id: str) -> list[Message]:
        return [m.model_copy() for m in self._messages.get(conversation_id, [])]

    def _notify(self, conversation_id: str) -> None:
        """Push a fresh snapshot to every subscriber of the conversation."""
        for callback in list(self._subscribers.get(conversation_id, [])):
            callback(self._snapshot(conversation_id))

    async def create_conversation(self, title: str) -> Conversation:
        """Create an empty conversation.

        Args:
            title: Display title.

        Returns:
            The new conversation with its assigned identifier.
        """
        conversation = Conversation(id=_new_id(), title=title)
        self._conversations[conversation.id] = conversation
        self._messages[conversation.id] = []
        logger.debug(f"Created conversation {conversation.id}")
        return conversation.model_copy()

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Return the conversation, or None if it does not exist."""
        conversation = self._conversations.get(conversation_id)
        return conversation.model_copy() if conversation else None

    async def list_conversations(self) -> list[Conversation]:
        """Return conversations pinned first, then newest first."""
        ordered = sorted(
            self._conversations.values(),
            key=lambda c: (c.pinned, c.created_at),
            reverse=True,
        )
        return [c.model_copy() for c in ordered]

    async def update_conversation(
        self,
        conversation_id: str,
        *,
        title: str | None = None,
        pinned: bool | None = None,
    ) -> Conversation:
        """Apply the given title and pin changes; None leaves a field as is.

        Raises:
            ConversationNotFoundError: No such conversation.
        """
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(f"Conversation not found: {conversation_id}")
        if title is not None:
            conversation.title = title
        if pinned is not None:
            conversation.pinned = pinned
        return conversation.model_copy()

    async def delete_conversation(self, conversation_id: str) -> None:
        """Drop a conversation with its messages; subscribers get ``[]`` last."""
        self._require(conversation_id)
        del self._conversations[conversation_id]
        del self._messages[conversation_id]
        for callback in self._subscribers.pop(conversation_id, []):
            callback([])

    async def append(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        attachments: list[Attachment] | None = None,
        created_at: datetime | None = None,
    ) -> Message:
        """Store a message and notify subscribers.

        Args:
            conversation_id: Target conversation.
            role: Speaker.
            content: Message text.
            attachments: Uploaded files referenced by the message.
            created_at: Ordering timestamp; now when omitted. An explicit
                value places the message among existing ones.

        Returns:
            The stored message with its assigned identifier.

        Raises:
            ConversationNotFoundError: No such conversation.
        """
        messages = self._require(conversation_id)
        if created_at is None:
            created_at = utc_now()
            # Timestamps are the ordering key, keep them strictly increasing
            if messages and created_at <= messages[-1].created_at:
                created_at = messages[-1].created_at + timedelta(microseconds=1)
        message = Message(
            id=_new_id(),
            role=role,
            content=content,
            created_at=created_at,
            attachments=list(attachments or []),
        )
        position = bisect.bisect_right([m.created_at for m in messages], created_at)
        messages.insert(position, message)
        self._notify(conversation_id)
        return message.model_copy()

    async def list_messages(
        self, conversation_id: str, limit: int | None = None
    ) -> list[Message]:
        """Return messages oldest first, optionally only the last ``limit``."""
        self._require(conversation_id)
        snapshot = self._snapshot(conversation_id)
        if limit is not None:
            return snapshot[-limit:] if limit > 0 else []
        return snapshot

    async def update(
        self, conversation_id: str, message_id: str, *, content: str
    ) -> Message:
        """Replace a message's content and stamp ``updated_at``.

        Raises:
            MessageNotFoundError: No such message.
        """
        index = self._find(conversation_id, message_id)
        messages = self._messages[conversation_id]
        messages[index] = messages[index].model_copy(
            update={"content": content, "updated_at": utc_now()}
        )
        self._notify(conversation_id)
        return messages[index].model_copy()

    async def delete(self, conversation_id: str, message_id: str) -> None:
        """Remove one message and notify subscribers."""
        index = self._find(conversation_id, message_id)
        del self._messages[conversation_id][index]
        self._notify(conversation_id)

    def subscribe(self, conversation_id: str, callback: MessagesCallback) -> Unsubscribe:
        """Register a callback; it receives the current list immediately.

        Args:
            conversation_id: Conversation to observe.
            callback: Called with the full ordered list on every change.

        Returns:
            Function that removes the callback.
        """
        self._subscribers[conversation_id].append(callback)
        callback(self._snapshot(conversation_id))

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(conversation_id, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe


class InMemoryBlobStore:
    """Blob store keeping uploads in a dict keyed by ``memory://`` URL."""

    URL_SCHEME = "memory://"

    def __init__(self) -> None:
        self._blobs: dict[str, tuple[bytes, str]] = {}

    async def put(
        self, conversation_id: str, data: bytes, filename: str, mime_type: str
    ) -> str:
        """Store bytes under a ``memory://`` URL.

        Args:
            conversation_id: Owning conversation, part of the path.
            data: File contents.
            filename: Original name, kept as the path suffix.
            mime_type: Declared media type.

        Returns:
            URL that ``get`` resolves.

        Raises:
            StorageError: Empty filename.
        """
        if not filename:
            raise StorageError("Filename is required")
        path = f"chats/{conversation_id}/files/{time.time_ns()}_{filename}"
        url = f"{self.URL_SCHEME}{path}"
        self._blobs[url] = (bytes(data), mime_type)
        return url

    def get(self, url: str) -> bytes:
        """Return stored bytes for a URL returned by ``put``."""
        try:
            return self._blobs[url][0]
        except KeyError:
            raise StorageError(f"No blob at {url}") from None

    def __len__(self) -> int:
        return len(self._blobs)
