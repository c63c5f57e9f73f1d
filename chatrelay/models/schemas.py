"""Wire schemas for the streaming relay."""

from pydantic import BaseModel, Field, field_validator

DONE_SENTINEL = "[DONE]"


class InlineFile(BaseModel):
    """A base64-encoded file forwarded to the model as inline data.

    Attributes:
        mime_type: Media type of the payload (``mimeType`` on the wire).
        data: Base64 string without a data-URL prefix.
    """

    model_config = {"populate_by_name": True}

    mime_type: str = Field("", alias="mimeType")
    data: str = ""


class ChatRequest(BaseModel):
    """Request payload for the relay endpoint.

    ``message`` is optional at the schema level so that the route can answer
    a missing or blank message with a plain 400 instead of a 422.

    Attributes:
        message: Final prompt text.
        instructions: System instruction; the gateway default applies if omitted.
        top_p: Nucleus sampling mass.
        top_k: Top-k sampling cutoff.
        files: Inline files placed before the text part.
    """

    message: str | None = None
    instructions: str | None = None
    top_p: float | None = Field(None, ge=0.0, le=1.0)
    top_k: int | None = Field(None, ge=1)
    files: list[InlineFile] | None = None

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str | None) -> str | None:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class StreamChunk(BaseModel):
    """One event of the relay stream: a single text fragment."""

    text: str


class ErrorResponse(BaseModel):
    """Body of a 500 response returned before any stream is opened."""

    error: str
    details: str


def encode_event(data: str) -> str:
    """Frame a payload as one server-sent event block."""
    return f"data: {data}\n\n"
