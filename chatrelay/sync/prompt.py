"""Prompt composition for one user turn.

The relay receives a single text prompt: the user's text, one note per
attached file, and a block of recent messages for continuity.
"""

import base64
from collections.abc import Sequence
from typing import Any

from chatrelay.models.domain import FilePayload, Message, Role
from chatrelay.sync.profiles import BehaviorProfile

ATTACHMENT_ONLY_TEXT = "📎 [Attached files]"
ATTACHMENT_HINT = "Analyze attachments if any before responding."


def derive_title(text: str, length: int = 30) -> str:
    """Title a new conversation after the start of its first message."""
    if len(text) > length:
        return text[:length] + "..."
    return text


def format_context(messages: Sequence[Message]) -> str:
    """Render messages oldest first as ``User: ...`` / ``Assistant: ...`` lines."""
    lines = []
    for message in messages:
        speaker = "User" if message.role == Role.USER else "Assistant"
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines)


def compose_prompt(text: str, file_names: Sequence[str], context: str) -> str:
    """Lay out the prompt text sent to the model.

    Args:
        text: The user's message.
        file_names: Names of attached files, one note each.
        context: Pre-rendered recent messages.

    Returns:
        Text, file notes, then the ``Context:`` block.
    """
    notes = "".join(f"\n\n[Attached file: {name}]" for name in file_names)
    return f"{text}{notes}\n\nContext:\n{context}"


def compose_instructions(profile: BehaviorProfile) -> str:
    """Profile instruction followed by the attachment hint."""
    return f"{profile.instructions} {ATTACHMENT_HINT}"


def build_relay_payload(
    text: str,
    profile: BehaviorProfile,
    files: Sequence[FilePayload],
    context: str,
    top_p: float | None = None,
    top_k: int | None = None,
) -> dict[str, Any]:
    """Build the JSON body for the relay endpoint.

    Args:
        text: The user's message text.
        profile: Persona whose instructions condition the reply.
        files: Files sent inline as base64, in order.
        context: Pre-rendered context block.
        top_p: Optional nucleus sampling override.
        top_k: Optional top-k override.

    Returns:
        Request body matching the relay's ``ChatRequest`` schema.
    """
    payload: dict[str, Any] = {
        "message": compose_prompt(text, [f.name for f in files], context),
        "instructions": compose_instructions(profile),
    }
    if files:
        payload["files"] = [
            {"mimeType": f.mime_type, "data": base64.b64encode(f.data).decode("ascii")}
            for f in files
        ]
    if top_p is not None:
        payload["top_p"] = top_p
    if top_k is not None:
        payload["top_k"] = top_k
    return payload
