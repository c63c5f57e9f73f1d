"""Synchronizer configuration with environment variable loading."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class SyncConfig(BaseModel):
    """Configuration for the conversation synchronizer.

    Attributes:
        relay_url: Full URL of the relay's chat endpoint.
        request_timeout: Read timeout for the relay stream, in seconds.
        context_limit: Number of prior messages sent as context.
        title_length: Characters of the first message used as a title.
        top_p: Nucleus sampling override; relay default when None.
        top_k: Top-k override; relay default when None.
    """

    relay_url: str = Field(
        default_factory=lambda: os.getenv("RELAY_URL", "http://localhost:8000/api/chat"),
        description="Relay chat endpoint",
    )
    request_timeout: float = Field(
        default_factory=lambda: float(os.getenv("RELAY_TIMEOUT", "120")),
        gt=0.0,
        description="Read timeout for the relay stream",
    )
    context_limit: int = Field(default=6, ge=0, description="Prior messages sent as context")
    title_length: int = Field(default=30, ge=1, description="Title length before truncation")
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    top_k: int | None = Field(default=None, ge=1)


def get_sync_config() -> SyncConfig:
    """Create synchronizer configuration from environment."""
    return SyncConfig()
