"""End-to-end turns: synchronizer -> relay app -> scripted gateway -> log.

The synchronizer talks to the real FastAPI relay over an in-process ASGI
transport; only the provider is scripted.
"""

import base64

import pytest
import pytest_check as check
from httpx import ASGITransport

from chatrelay.models.domain import FilePayload, Message, Role
from chatrelay.storage.memory import InMemoryBlobStore, InMemoryMessageLog
from chatrelay.sync.config import SyncConfig
from chatrelay.sync.relay_client import RelayClient, RelayError, StreamInterruptedError
from chatrelay.sync.synchronizer import ConversationSynchronizer
from tests.fakes import ScriptedGateway


@pytest.fixture
def synchronizer(
    message_log: InMemoryMessageLog,
    blob_store: InMemoryBlobStore,
    relay_transport: ASGITransport,
    sync_config: SyncConfig,
) -> ConversationSynchronizer:
    relay = RelayClient(sync_config.relay_url, transport=relay_transport)
    return ConversationSynchronizer(message_log, blob_store, relay, sync_config)


class TestSendThroughRelay:
    async def test_new_conversation_gets_user_and_assistant(
        self,
        synchronizer: ConversationSynchronizer,
        message_log: InMemoryMessageLog,
        gateway: ScriptedGateway,
    ) -> None:
        """A first message creates the conversation and exactly two messages."""
        gateway.fragments = ["2+2 ", "is ", "4."]

        result = await synchronizer.send(None, "What is 2+2?")

        messages = await message_log.list_messages(result.conversation_id)
        assert [m.role for m in messages] == [Role.USER, Role.ASSISTANT]
        check.equal(messages[0].content, "What is 2+2?")
        check.equal(messages[1].content, "2+2 is 4.")
        check.is_true(result.created_conversation)

    async def test_committed_reply_matches_streamed_fragments(
        self,
        synchronizer: ConversationSynchronizer,
        gateway: ScriptedGateway,
    ) -> None:
        """The stored reply is the in-order concatenation of the fragments."""
        result = await synchronizer.send(None, "Greet me")

        assert result.assistant_message is not None
        assert result.assistant_message.content == "Hello, world!"

    async def test_image_is_uploaded_and_sent_inline(
        self,
        synchronizer: ConversationSynchronizer,
        message_log: InMemoryMessageLog,
        blob_store: InMemoryBlobStore,
        gateway: ScriptedGateway,
    ) -> None:
        """Attachment URL is stored on the message and bytes reach the gateway."""
        image = FilePayload(name="cat.png", mime_type="image/png", data=b"\x89PNG-cat")

        result = await synchronizer.send(None, "What animal is this?", files=[image])

        user = result.user_message
        assert len(user.attachments) == 1
        attachment = user.attachments[0]
        check.equal(blob_store.get(attachment.url), b"\x89PNG-cat")
        check.equal(attachment.name, "cat.png")
        check.equal(attachment.size, len(b"\x89PNG-cat"))

        request = gateway.requests[0]
        check.equal(request.files[0].mime_type, "image/png")
        check.equal(base64.b64decode(request.files[0].data), b"\x89PNG-cat")
        check.is_in("[Attached file: cat.png]", request.prompt)

    async def test_profile_instructions_reach_gateway(
        self,
        synchronizer: ConversationSynchronizer,
        gateway: ScriptedGateway,
    ) -> None:
        await synchronizer.send(None, "Tell me about Lahore", profile="🕋 History Scholar")

        instructions = gateway.requests[0].instructions
        check.is_in("historian", instructions)
        check.is_true(instructions.endswith("Analyze attachments if any before responding."))

    async def test_partial_reply_is_not_committed(
        self,
        synchronizer: ConversationSynchronizer,
        message_log: InMemoryMessageLog,
        gateway: ScriptedGateway,
    ) -> None:
        """A stream that breaks after one fragment leaves only the user message."""
        gateway.fragments = ["Partial", "rest"]
        gateway.fail_after = 1
        ready: list[str] = []

        with pytest.raises(StreamInterruptedError):
            await synchronizer.send(None, "Explain gravity", on_conversation_ready=ready.append)

        messages = await message_log.list_messages(ready[0])
        assert [m.content for m in messages] == ["Explain gravity"]
        assert not synchronizer.is_streaming(ready[0])

    async def test_provider_rejection_surfaces_relay_error(
        self,
        synchronizer: ConversationSynchronizer,
        message_log: InMemoryMessageLog,
        gateway: ScriptedGateway,
    ) -> None:
        gateway.fail_before = True
        ready: list[str] = []

        with pytest.raises(RelayError) as exc_info:
            await synchronizer.send(None, "Hello", on_conversation_ready=ready.append)

        check.equal(exc_info.value.status_code, 500)
        check.equal(exc_info.value.details, "quota exceeded")
        messages = await message_log.list_messages(ready[0])
        check.equal([m.role for m in messages], [Role.USER])

    async def test_three_turns_alternate(
        self,
        synchronizer: ConversationSynchronizer,
        message_log: InMemoryMessageLog,
        gateway: ScriptedGateway,
    ) -> None:
        first = await synchronizer.send(None, "one")
        await synchronizer.send(first.conversation_id, "two")
        await synchronizer.send(first.conversation_id, "three")

        messages = await message_log.list_messages(first.conversation_id)
        assert [m.role for m in messages] == [Role.USER, Role.ASSISTANT] * 3
        assert [m.content for m in messages[::2]] == ["one", "two", "three"]
        timestamps = [m.created_at for m in messages]
        assert timestamps == sorted(timestamps)

    async def test_observer_never_sees_placeholder_after_commit(
        self,
        synchronizer: ConversationSynchronizer,
        gateway: ScriptedGateway,
    ) -> None:
        first = await synchronizer.send(None, "hi")
        snapshots: list[list[Message]] = []
        stop = synchronizer.watch(first.conversation_id, snapshots.append)

        await synchronizer.send(first.conversation_id, "again")
        stop()

        committed_at = next(
            i for i, snap in enumerate(snapshots)
            if len(snap) == 4 and not snap[-1].pending
        )
        for snap in snapshots[committed_at:]:
            assert not any(m.pending for m in snap)
        assert any(any(m.pending for m in snap) for snap in snapshots[:committed_at])
