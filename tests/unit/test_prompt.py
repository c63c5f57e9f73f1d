"""Unit tests for prompt composition and behavior profiles."""

import base64
from datetime import UTC, datetime, timedelta

import pytest
import pytest_check as check

from chatrelay.models.domain import FilePayload, Message, Role
from chatrelay.models.schemas import ChatRequest
from chatrelay.sync.profiles import BehaviorProfile
from chatrelay.sync.prompt import (
    build_relay_payload,
    compose_instructions,
    compose_prompt,
    derive_title,
    format_context,
)


def make_message(role: Role, content: str, offset: int = 0) -> Message:
    return Message(
        id=f"m{offset}",
        role=role,
        content=content,
        created_at=datetime(2026, 1, 1, tzinfo=UTC) + timedelta(seconds=offset),
    )


class TestDeriveTitle:
    def test_short_text_is_kept(self) -> None:
        assert derive_title("Hello there") == "Hello there"

    def test_exact_length_is_not_truncated(self) -> None:
        assert derive_title("x" * 30) == "x" * 30

    def test_long_text_is_truncated_with_ellipsis(self) -> None:
        assert derive_title("abcdefghij", length=4) == "abcd..."


class TestComposePrompt:
    def test_context_lines(self) -> None:
        context = format_context(
            [make_message(Role.USER, "hi", 0), make_message(Role.ASSISTANT, "hello", 1)]
        )

        assert context == "User: hi\nAssistant: hello"

    def test_prompt_with_files_and_context(self) -> None:
        prompt = compose_prompt("Compare these", ["a.png", "b.pdf"], "User: Compare these")

        assert prompt == (
            "Compare these"
            "\n\n[Attached file: a.png]"
            "\n\n[Attached file: b.pdf]"
            "\n\nContext:\nUser: Compare these"
        )

    def test_prompt_without_files(self) -> None:
        assert compose_prompt("hi", [], "") == "hi\n\nContext:\n"

    def test_instructions_carry_attachment_hint(self) -> None:
        instructions = compose_instructions(BehaviorProfile.LIFE_COACH)

        check.is_true(instructions.startswith("You are Rehnuma AI, a practical life coach"))
        check.is_true(instructions.endswith(" Analyze attachments if any before responding."))


class TestBuildRelayPayload:
    def test_minimal_payload(self) -> None:
        payload = build_relay_payload("hi", BehaviorProfile.DEFAULT, [], "User: hi")

        assert set(payload) == {"message", "instructions"}

    def test_files_and_sampling(self) -> None:
        files = [FilePayload(name="a.png", mime_type="image/png", data=b"\x00\x01")]

        payload = build_relay_payload(
            "hi", BehaviorProfile.DEFAULT, files, "", top_p=0.5, top_k=7
        )

        check.equal(payload["files"], [{"mimeType": "image/png", "data": "AAE="}])
        check.equal(payload["top_p"], 0.5)
        check.equal(payload["top_k"], 7)

    def test_payload_matches_relay_schema(self) -> None:
        """The synchronizer's body validates as the relay's request model."""
        files = [FilePayload(name="a.txt", mime_type="text/plain", data=b"notes")]

        request = ChatRequest.model_validate(
            build_relay_payload("hi", BehaviorProfile.STUDY_GUIDE, files, "User: hi")
        )

        check.equal(request.files[0].mime_type, "text/plain")
        check.equal(base64.b64decode(request.files[0].data), b"notes")
        check.is_true(request.message.startswith("hi"))


class TestBehaviorProfile:
    @pytest.mark.parametrize(
        ("selector", "expected"),
        [
            ("📘 Study Guide", BehaviorProfile.STUDY_GUIDE),
            ("🌙 Ethics Mentor", BehaviorProfile.ETHICS_MENTOR),
            ("💼 Career Rehnuma", BehaviorProfile.CAREER_GUIDE),
            ("history_scholar", BehaviorProfile.HISTORY_SCHOLAR),
            (BehaviorProfile.LIFE_COACH, BehaviorProfile.LIFE_COACH),
            (None, BehaviorProfile.DEFAULT),
            ("", BehaviorProfile.DEFAULT),
            ("Pirate Captain", BehaviorProfile.DEFAULT),
        ],
    )
    def test_resolve(self, selector: str | BehaviorProfile | None, expected: BehaviorProfile) -> None:
        assert BehaviorProfile.resolve(selector) is expected

    def test_every_profile_has_instructions(self) -> None:
        for profile in BehaviorProfile:
            assert profile.instructions.startswith("You are Rehnuma AI")

    def test_default_instructions(self) -> None:
        assert BehaviorProfile.DEFAULT.instructions == (
            "You are Rehnuma AI, a polite, accurate educational assistant."
        )
