"""Conversation synchronizer: the client side of a chat turn.

Drives one user turn end to end (create the conversation if needed, upload
files, commit the user message, stream the reply through the relay, commit
the assistant message) and merges the durable message log with the reply
still being streamed, so observers see one ordered list.

Ordering rules within a turn:

1. Uploads finish before the user message is committed.
2. The user message is committed before the stream opens.
3. The assistant message is committed only after the relay reports a clean
   finish with non-empty text. Interrupted or empty streams commit nothing.
4. The stream session for the conversation is removed on every exit path.

One operation at a time per conversation: send, edit and delete are refused
with ``ConversationBusyError`` from the moment another one passes its guard
(uploads included) until it has cleaned up.
"""

import logging
from collections import defaultdict
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime

from pydantic import BaseModel

from chatrelay.models.domain import Attachment, Conversation, FilePayload, Message, Role
from chatrelay.storage.base import (
    BlobStore,
    ConversationNotFoundError,
    MessageLog,
    MessageNotFoundError,
    MessagesCallback,
    Unsubscribe,
)
from chatrelay.sync.config import SyncConfig, get_sync_config
from chatrelay.sync.profiles import BehaviorProfile
from chatrelay.sync.prompt import (
    ATTACHMENT_ONLY_TEXT,
    build_relay_payload,
    derive_title,
    format_context,
)
from chatrelay.sync.relay_client import RelayClient
from chatrelay.sync.sessions import SessionTable, StreamSession, is_temp_id

logger = logging.getLogger(__name__)


class ConversationBusyError(Exception):
    """Raised when another operation or a streaming reply holds the conversation."""

    pass


class UploadError(Exception):
    """Raised when a file upload fails; the turn is abandoned."""

    pass


class InvalidEditError(ValueError):
    """Raised when an edit targets a non-user message or is empty."""

    pass


class TurnResult(BaseModel):
    """Outcome of a completed turn.

    Attributes:
        conversation_id: Durable conversation the turn was written to.
        user_message: The committed (or edited) user message.
        assistant_message: The committed reply; None when the model
            produced no text.
        created_conversation: True when this turn created the conversation.
    """

    conversation_id: str
    user_message: Message
    assistant_message: Message | None = None
    created_conversation: bool = False


def merge_view(durable: Sequence[Message], session: StreamSession | None) -> list[Message]:
    """Durable messages plus the streaming placeholder, if it still applies.

    The placeholder is appended last and only while the session is live and
    no durable message carries its identifier. Durable order is untouched.
    """
    merged = list(durable)
    if session is None or session.retired:
        return merged
    if any(message.id == session.temp_id for message in durable):
        return merged
    merged.append(session.placeholder())
    return merged


class ConversationView:
    """One observer's merged view of one conversation."""

    def __init__(
        self,
        conversation_id: str,
        callback: MessagesCallback,
        sessions: SessionTable,
    ) -> None:
        self.conversation_id = conversation_id
        self._callback = callback
        self._sessions = sessions
        self._durable: list[Message] = []
        self._closed = False

    def on_durable(self, messages: list[Message]) -> None:
        """Take a new durable list from the log and republish.

        Args:
            messages: Full ordered message list pushed by the log.
        """
        if self._closed:
            return
        self._durable = messages
        self.publish()

    def publish(self) -> None:
        """Send the merged view to the observer unless the view is closed."""
        if self._closed:
            return
        session = self._sessions.get(self.conversation_id)
        self._callback(merge_view(self._durable, session))

    def close(self) -> None:
        """Stop all further callbacks, including ones already scheduled."""
        self._closed = True


class ConversationSynchronizer:
    """Keeps clients, the relay and the message log in step.

    Args:
        log: Durable message log.
        blobs: Blob store for attachments.
        relay: Client for the relay stream; built from config if omitted.
        config: Synchronizer settings; loaded from environment if omitted.
    """

    def __init__(
        self,
        log: MessageLog,
        blobs: BlobStore,
        relay: RelayClient | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        self._log = log
        self._blobs = blobs
        self._config = config or get_sync_config()
        self._relay = relay or RelayClient(
            self._config.relay_url, timeout=self._config.request_timeout
        )
        self._sessions = SessionTable()
        self._claimed: set[str] = set()
        self._views: dict[str, list[ConversationView]] = defaultdict(list)

    # -- observation -------------------------------------------------------

    def is_streaming(self, conversation_id: str | None) -> bool:
        """Whether a reply is currently streaming into the conversation."""
        return bool(conversation_id) and self._sessions.is_active(conversation_id)

    def watch(self, conversation_id: str, callback: MessagesCallback) -> Unsubscribe:
        """Subscribe to the merged message list of a conversation.

        The callback fires with the full ordered list on every durable change
        and on every streamed fragment.

        Returns:
            A function that stops all further notifications.
        """
        view = ConversationView(conversation_id, callback, self._sessions)
        self._views[conversation_id].append(view)
        unsubscribe_log = self._log.subscribe(conversation_id, view.on_durable)

        def unsubscribe() -> None:
            view.close()
            unsubscribe_log()
            views = self._views.get(conversation_id, [])
            if view in views:
                views.remove(view)
            if not views:
                self._views.pop(conversation_id, None)

        return unsubscribe

    def _publish(self, conversation_id: str) -> None:
        for view in list(self._views.get(conversation_id, [])):
            view.publish()

    # -- guards ------------------------------------------------------------

    async def _require_conversation(self, conversation_id: str | None) -> str:
        if not conversation_id or is_temp_id(conversation_id):
            raise ConversationNotFoundError("Conversation is not saved yet")
        if await self._log.get_conversation(conversation_id) is None:
            raise ConversationNotFoundError(f"Conversation not found: {conversation_id}")
        return conversation_id

    def _require_idle(self, conversation_id: str) -> None:
        if conversation_id in self._claimed or self._sessions.is_active(conversation_id):
            raise ConversationBusyError(
                f"Conversation {conversation_id} has a turn in progress"
            )

    @contextmanager
    def _claim(self, conversation_id: str) -> Iterator[None]:
        """Hold a conversation for one operation, from guard to cleanup.

        The claim is taken synchronously right after the idle check, so no
        other operation can pass the guard while this one is suspended on an
        upload or a log write.

        Raises:
            ConversationBusyError: Another operation holds the conversation
                or a reply is streaming.
        """
        self._require_idle(conversation_id)
        self._claimed.add(conversation_id)
        try:
            yield
        finally:
            self._claimed.discard(conversation_id)

    # -- send path ---------------------------------------------------------

    async def send(
        self,
        conversation_id: str | None,
        text: str,
        profile: str | BehaviorProfile | None = None,
        files: Sequence[FilePayload] = (),
        on_conversation_ready: Callable[[str], None] | None = None,
    ) -> TurnResult:
        """Run one user turn.

        Args:
            conversation_id: Target conversation; None or a ``temp-`` id
                starts a new one.
            text: The user's message.
            profile: Behavior profile selector.
            files: Files to upload and send inline.
            on_conversation_ready: Called with the conversation id once the
                user message is durable, e.g. to update routing.

        Returns:
            TurnResult with the committed messages.

        Raises:
            ValueError: Both text and files are empty.
            ConversationBusyError: Another turn is in progress here.
            UploadError: A file could not be uploaded; nothing was committed.
            RelayError: The relay refused the request.
            StreamInterruptedError: The reply stream broke off.
        """
        text = text.strip()
        if not text and not files:
            raise ValueError("Message text or at least one file is required")
        text = text or ATTACHMENT_ONLY_TEXT
        selected = BehaviorProfile.resolve(profile)

        created = False
        if not conversation_id or is_temp_id(conversation_id):
            conversation = await self._log.create_conversation(
                derive_title(text, self._config.title_length)
            )
            conversation_id = conversation.id
            created = True
            logger.info(f"Created conversation {conversation_id}")
        else:
            await self._require_conversation(conversation_id)

        with self._claim(conversation_id):
            try:
                attachments = await self._upload(conversation_id, files)
                user_message = await self._log.append(
                    conversation_id, Role.USER, text, attachments or None
                )
            except BaseException:
                if created:
                    await self._log.delete_conversation(conversation_id)
                    logger.info(f"Discarded empty conversation {conversation_id}")
                raise

            if on_conversation_ready is not None:
                on_conversation_ready(conversation_id)

            reply = await self._generate(conversation_id, text, selected, files)
        return TurnResult(
            conversation_id=conversation_id,
            user_message=user_message,
            assistant_message=reply,
            created_conversation=created,
        )

    async def _upload(
        self, conversation_id: str, files: Sequence[FilePayload]
    ) -> list[Attachment]:
        attachments: list[Attachment] = []
        for file in files:
            try:
                url = await self._blobs.put(
                    conversation_id, file.data, file.name, file.mime_type
                )
            except Exception as e:
                logger.error(f"Upload failed for {file.name}: {e}")
                raise UploadError(f"Failed to upload {file.name}: {e}") from e
            attachments.append(
                Attachment(url=url, name=file.name, mime_type=file.mime_type, size=file.size)
            )
        if attachments:
            logger.info(f"Uploaded {len(attachments)} files to {conversation_id}")
        return attachments

    async def _generate(
        self,
        conversation_id: str,
        text: str,
        profile: BehaviorProfile,
        files: Sequence[FilePayload] = (),
        reply_at: datetime | None = None,
    ) -> Message | None:
        """Stream a reply and commit it if the stream finished cleanly."""
        try:
            with self._sessions.open(conversation_id) as session:
                self._publish(conversation_id)

                recent = await self._log.list_messages(
                    conversation_id, limit=self._config.context_limit
                )
                payload = build_relay_payload(
                    text,
                    profile,
                    files,
                    format_context(recent),
                    top_p=self._config.top_p,
                    top_k=self._config.top_k,
                )

                try:
                    async for fragment in self._relay.stream(payload):
                        session.append(fragment)
                        self._publish(conversation_id)
                except Exception as e:
                    logger.error(
                        f"Stream failed in {conversation_id} after "
                        f"{len(session.partial)} chars: {e}"
                    )
                    raise

                if not session.partial.strip():
                    logger.info(f"Empty reply in {conversation_id}, nothing committed")
                    return None

                session.retire()
                reply = await self._log.append(
                    conversation_id,
                    Role.ASSISTANT,
                    session.partial,
                    created_at=reply_at,
                )
                logger.info(f"Committed assistant message {reply.id} to {conversation_id}")
                return reply
        finally:
            self._publish(conversation_id)

    # -- edit and delete ---------------------------------------------------

    async def _locate(
        self, conversation_id: str, message_id: str
    ) -> tuple[Message, Message | None, Message | None]:
        """Return the message, its successor, and the message after that."""
        messages = await self._log.list_messages(conversation_id)
        for index, message in enumerate(messages):
            if message.id == message_id:
                following = messages[index + 1 : index + 3]
                successor = following[0] if following else None
                after = following[1] if len(following) > 1 else None
                return message, successor, after
        raise MessageNotFoundError(f"Message not found: {message_id}")

    async def edit_message(
        self,
        conversation_id: str,
        message_id: str,
        new_text: str,
        profile: str | BehaviorProfile | None = None,
    ) -> TurnResult:
        """Replace a user message's text and regenerate its reply.

        The reply that followed the message, if any, is deleted first. The
        edited message keeps its identifier and creation time, and the new
        reply takes the old reply's place in the ordering.

        Raises:
            InvalidEditError: Empty text or the target is not a user message.
            ConversationBusyError: Another operation holds this conversation.
            MessageNotFoundError: No such message.
        """
        new_text = new_text.strip()
        if not new_text:
            raise InvalidEditError("Message cannot be empty")
        await self._require_conversation(conversation_id)

        with self._claim(conversation_id):
            target, successor, after = await self._locate(conversation_id, message_id)
            if target.role != Role.USER:
                raise InvalidEditError("Only user messages can be edited")

            reply_at: datetime | None = None
            if successor is not None and successor.role == Role.ASSISTANT:
                await self._log.delete(conversation_id, successor.id)
                reply_at = successor.created_at
                logger.info(f"Deleted reply {successor.id} for regeneration")
                successor = after
            if reply_at is None and successor is not None:
                reply_at = target.created_at + (successor.created_at - target.created_at) / 2

            edited = await self._log.update(conversation_id, message_id, content=new_text)
            logger.info(f"Edited message {message_id} in {conversation_id}")

            reply = await self._generate(
                conversation_id, new_text, BehaviorProfile.resolve(profile), reply_at=reply_at
            )
        return TurnResult(
            conversation_id=conversation_id,
            user_message=edited,
            assistant_message=reply,
        )

    async def delete_message(self, conversation_id: str, message_id: str) -> list[str]:
        """Delete a message; a user message takes its reply with it.

        Returns:
            Identifiers of the deleted messages, in deletion order.

        Raises:
            ConversationBusyError: Another operation holds this conversation.
            MessageNotFoundError: No such message.
        """
        await self._require_conversation(conversation_id)

        with self._claim(conversation_id):
            target, successor, _ = await self._locate(conversation_id, message_id)
            await self._log.delete(conversation_id, message_id)
            deleted = [message_id]

            if (
                target.role == Role.USER
                and successor is not None
                and successor.role == Role.ASSISTANT
            ):
                await self._log.delete(conversation_id, successor.id)
                deleted.append(successor.id)

        logger.info(f"Deleted {len(deleted)} messages from {conversation_id}")
        return deleted

    # -- conversations -----------------------------------------------------

    async def list_conversations(self) -> list[Conversation]:
        return await self._log.list_conversations()

    async def rename_conversation(self, conversation_id: str, title: str) -> Conversation:
        title = title.strip()
        if not title:
            raise ValueError("Chat title cannot be empty")
        await self._require_conversation(conversation_id)
        return await self._log.update_conversation(conversation_id, title=title)

    async def set_pinned(self, conversation_id: str, pinned: bool) -> Conversation:
        await self._require_conversation(conversation_id)
        return await self._log.update_conversation(conversation_id, pinned=pinned)

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._require_conversation(conversation_id)
        with self._claim(conversation_id):
            await self._log.delete_conversation(conversation_id)
        logger.info(f"Deleted conversation {conversation_id}")


class ConversationWatcher:
    """Follows whichever conversation is currently active for one observer.

    Switching always tears down the previous subscription before creating
    the next, so no update from the old conversation reaches the callback.
    """

    def __init__(
        self, synchronizer: ConversationSynchronizer, callback: MessagesCallback
    ) -> None:
        self._synchronizer = synchronizer
        self._callback = callback
        self._unsubscribe: Unsubscribe | None = None
        self.conversation_id: str | None = None

    def switch(self, conversation_id: str | None) -> None:
        self.close()
        self.conversation_id = conversation_id
        if conversation_id:
            self._unsubscribe = self._synchronizer.watch(conversation_id, self._callback)
        else:
            self._callback([])

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.conversation_id = None
