"""Pydantic models for relay payloads and conversation records.

Provides type safety, validation, and automatic OpenAPI documentation.

Models:
    - ChatRequest: Incoming relay request payload
    - StreamChunk: One text fragment of the event stream
    - ErrorResponse: Structured error returned before streaming starts
    - Conversation, Message, Attachment: Durable conversation records
    - FilePayload: Caller-supplied file bytes for a send
"""

from chatrelay.models.domain import (
    Attachment,
    Conversation,
    FilePayload,
    Message,
    Role,
    utc_now,
)
from chatrelay.models.schemas import (
    DONE_SENTINEL,
    ChatRequest,
    ErrorResponse,
    InlineFile,
    StreamChunk,
    encode_event,
)

__all__ = [
    "DONE_SENTINEL",
    "Attachment",
    "ChatRequest",
    "Conversation",
    "ErrorResponse",
    "FilePayload",
    "InlineFile",
    "Message",
    "Role",
    "StreamChunk",
    "encode_event",
    "utc_now",
]
