"""Client-side conversation synchronizer.

Keeps a local, observable view of a conversation in step with the durable
message log while a reply streams in from the relay.

Responsibilities:
    - Send path: create conversation, upload files, commit user message,
      stream the reply, commit the assistant message
    - Merged view of durable messages plus the streaming placeholder
    - Edit-and-regenerate and cascading delete
    - Behavior profile selection and prompt composition
"""

from chatrelay.sync.config import SyncConfig, get_sync_config
from chatrelay.sync.profiles import BehaviorProfile
from chatrelay.sync.relay_client import RelayClient, RelayError, StreamInterruptedError
from chatrelay.sync.sessions import SessionTable, StreamSession
from chatrelay.sync.synchronizer import (
    ConversationBusyError,
    ConversationSynchronizer,
    ConversationWatcher,
    InvalidEditError,
    TurnResult,
    UploadError,
    merge_view,
)

__all__ = [
    "BehaviorProfile",
    "ConversationBusyError",
    "ConversationSynchronizer",
    "ConversationWatcher",
    "InvalidEditError",
    "RelayClient",
    "RelayError",
    "SessionTable",
    "StreamInterruptedError",
    "StreamSession",
    "SyncConfig",
    "TurnResult",
    "UploadError",
    "get_sync_config",
    "merge_view",
]
