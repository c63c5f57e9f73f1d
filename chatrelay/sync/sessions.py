"""In-flight stream sessions, at most one per conversation.

A session holds the placeholder identifier and the text accumulated so far
for the assistant reply being streamed. Sessions are inserted when a turn
starts streaming and removed when it ends, whatever the outcome.
"""

import random
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from chatrelay.models.domain import Message, Role, utc_now

TEMP_PREFIX = "temp-"


def new_temp_id() -> str:
    """Build a placeholder identifier: ``temp-<epoch ms>-<0..9999>``."""
    return f"{TEMP_PREFIX}{time.time_ns() // 1_000_000}-{random.randint(0, 9999)}"


def is_temp_id(identifier: str | None) -> bool:
    """Whether an identifier is a placeholder rather than a durable one."""
    return bool(identifier) and identifier.startswith(TEMP_PREFIX)


class StreamSession:
    """Accumulator for one streaming assistant reply."""

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        self.temp_id = new_temp_id()
        self.partial = ""
        self.started_at: datetime = utc_now()
        self.retired = False

    def append(self, fragment: str) -> str:
        """Add a fragment to the accumulated reply.

        Args:
            fragment: Next text fragment, in delivery order.

        Returns:
            The reply text accumulated so far.
        """
        self.partial += fragment
        return self.partial

    def retire(self) -> None:
        """Stop rendering the placeholder; the durable reply is being committed."""
        self.retired = True

    def placeholder(self) -> Message:
        """Render the in-flight reply as a pending assistant message."""
        return Message(
            id=self.temp_id,
            role=Role.ASSISTANT,
            content=self.partial,
            created_at=utc_now(),
            pending=True,
        )


class SessionTable:
    """Conversation id -> active StreamSession."""

    def __init__(self) -> None:
        self._sessions: dict[str, StreamSession] = {}

    def start(self, conversation_id: str) -> StreamSession:
        """Register a fresh session, replacing any stale one outright."""
        session = StreamSession(conversation_id)
        self._sessions[conversation_id] = session
        return session

    def end(self, conversation_id: str, session: StreamSession | None = None) -> None:
        """Remove the session for a conversation.

        When ``session`` is given, only that exact session is removed so a
        finished turn never discards its replacement.
        """
        current = self._sessions.get(conversation_id)
        if current is None:
            return
        if session is None or current is session:
            del self._sessions[conversation_id]

    def get(self, conversation_id: str) -> StreamSession | None:
        """Return the active session, or None when nothing is streaming."""
        return self._sessions.get(conversation_id)

    def is_active(self, conversation_id: str) -> bool:
        return conversation_id in self._sessions

    @contextmanager
    def open(self, conversation_id: str) -> Iterator[StreamSession]:
        """Scope a session to a block; it is removed however the block exits.

        Args:
            conversation_id: Conversation the reply streams into.

        Yields:
            The freshly started session.
        """
        session = self.start(conversation_id)
        try:
            yield session
        finally:
            self.end(conversation_id, session)

    def __len__(self) -> int:
        return len(self._sessions)
