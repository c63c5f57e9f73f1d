"""Conversation records shared by the synchronizer and the storage layer."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(UTC)


class Role(str, Enum):
    """Speaker of a message."""

    USER = "user"
    ASSISTANT = "assistant"


class Attachment(BaseModel):
    """Reference to a file uploaded to the blob store.

    Attributes:
        url: Retrievable URL returned by the blob store.
        name: Original filename.
        mime_type: Declared media type.
        size: Size in bytes.
    """

    model_config = {"frozen": True}

    url: str
    name: str
    mime_type: str
    size: int = Field(ge=0)


class FilePayload(BaseModel):
    """A file handed to the synchronizer by its caller.

    Bytes and media type are taken as-is; validation happens upstream.
    """

    name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class Message(BaseModel):
    """A single turn in a conversation.

    Attributes:
        id: Identifier assigned by the log, or a ``temp-`` identifier for
            the in-flight placeholder.
        role: ``user`` or ``assistant``.
        content: Message text.
        created_at: Creation time; the log orders messages by it.
        updated_at: Set when the content is edited.
        attachments: Files uploaded with the message.
        pending: True only on the local streaming placeholder.
    """

    id: str
    role: Role
    content: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime | None = None
    attachments: list[Attachment] = Field(default_factory=list)
    pending: bool = False


class Conversation(BaseModel):
    """A titled thread of messages owned by one user."""

    id: str
    title: str
    created_at: datetime = Field(default_factory=utc_now)
    pinned: bool = False
