"""Gateway configuration with environment variable loading.

Pydantic-based configuration for the generative-AI provider client.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()

DEFAULT_INSTRUCTIONS = (
    "You are Rehnuma AI, a friendly, helpful assistant. Your role is to help the "
    "user learn, guide ethically, and provide accurate educational content. "
    "Always respond politely and respectfully. If the user asks general knowledge "
    "or study questions, answer clearly and concisely. Avoid giving harmful "
    "advice or false information."
)


class GatewayConfig(BaseModel):
    """Configuration for the LLM gateway client.

    Attributes:
        api_key: Provider credential.
        model_name: Model identifier to use.
        default_instructions: System instruction used when a request has none.
        top_p: Default nucleus sampling probability mass.
        top_k: Default top-k cutoff.
        idle_timeout: Seconds to wait for the next fragment before giving up.
    """

    # Environment-derived defaults go through the same validation as arguments
    model_config = {"validate_default": True}

    api_key: str = Field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY", os.getenv("GOOGLE_API_KEY", "")),
        description="API key for the generative-AI provider",
    )
    model_name: str = Field(
        default_factory=lambda: os.getenv("LLM_MODEL", "gemini-2.5-flash"),
        description="Model to use",
    )
    default_instructions: str = Field(
        default=DEFAULT_INSTRUCTIONS,
        description="Fallback system instruction",
    )
    top_p: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Nucleus sampling probability mass",
    )
    top_k: int = Field(
        default=50,
        ge=1,
        description="Number of highest-probability tokens considered",
    )
    idle_timeout: float = Field(
        default_factory=lambda: os.getenv("STREAM_IDLE_TIMEOUT", "60"),
        gt=0.0,
        description="Maximum seconds between two fragments",
    )

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate that API key is provided and non-empty."""
        if not v or not v.strip():
            raise ValueError("GEMINI_API_KEY is required. Set it in .env")
        return v.strip()


def get_gateway_config() -> GatewayConfig:
    """Create gateway configuration from environment.

    Returns:
        Configured GatewayConfig instance.

    Raises:
        ValidationError: If no API key is set or a setting is invalid.
    """
    return GatewayConfig()
