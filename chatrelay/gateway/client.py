"""Gemini gateway client exposing a model call as a fragment stream.

The gateway issues exactly one ``generate_content_stream`` call per request
and hands back a lazy, finite, non-restartable async iterator of text
fragments in emission order.

Failure contract: the first fragment is pulled before ``open_stream``
returns, so a request the provider rejects (bad credential, quota, malformed
input) raises ``GatewayError`` before the caller sees any output. Failures
after that point surface from the iterator itself.
"""

import asyncio
import base64
import binascii
import logging
from collections.abc import AsyncGenerator

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel, Field

from chatrelay.gateway.config import GatewayConfig, get_gateway_config
from chatrelay.models.schemas import InlineFile

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Raised when the provider rejects a request or fails mid-stream."""

    pass


class GatewayTimeoutError(GatewayError):
    """Raised when the provider stalls longer than the idle timeout."""

    pass


class GenerationRequest(BaseModel):
    """A single model call.

    Attributes:
        prompt: Final prompt text, context included.
        instructions: System instruction; config default when None.
        top_p: Nucleus sampling mass; config default when None.
        top_k: Top-k cutoff; config default when None.
        files: Inline files, sent before the text part.
    """

    prompt: str
    instructions: str | None = None
    top_p: float | None = None
    top_k: int | None = None
    files: list[InlineFile] = Field(default_factory=list)


class GatewayService:
    """Wraps the Gemini SDK behind a fragment-stream interface."""

    def __init__(
        self,
        config: GatewayConfig | None = None,
        client: genai.Client | None = None,
    ) -> None:
        """Initialize the gateway service.

        Args:
            config: Optional gateway configuration.
                    Loads from environment if not provided.
            client: Optional preconfigured SDK client.
        """
        self._config = config or get_gateway_config()
        self._client = client or genai.Client(api_key=self._config.api_key)

    @property
    def config(self) -> GatewayConfig:
        return self._config

    def build_contents(self, request: GenerationRequest) -> list[types.Content]:
        """Build the user turn with inline file parts ahead of the text.

        Files missing a media type or data are skipped.

        Raises:
            GatewayError: If a file payload is not valid base64.
        """
        parts: list[types.Part] = []
        for file in request.files:
            if not file.mime_type or not file.data:
                continue
            try:
                raw = base64.b64decode(file.data, validate=True)
            except (binascii.Error, ValueError) as e:
                raise GatewayError(f"Invalid base64 payload for {file.mime_type}") from e
            parts.append(types.Part.from_bytes(data=raw, mime_type=file.mime_type))

        parts.append(types.Part.from_text(text=request.prompt))
        return [types.Content(role="user", parts=parts)]

    def build_generation_config(
        self, request: GenerationRequest
    ) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=request.instructions or self._config.default_instructions,
            top_p=request.top_p if request.top_p is not None else self._config.top_p,
            top_k=request.top_k if request.top_k is not None else self._config.top_k,
        )

    async def _fragments(self, request: GenerationRequest) -> AsyncGenerator[str]:
        """Yield non-empty text fragments from a single provider call."""
        timeout = self._config.idle_timeout
        response = None
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content_stream(
                    model=self._config.model_name,
                    contents=self.build_contents(request),
                    config=self.build_generation_config(request),
                ),
                timeout,
            )
            iterator = aiter(response)
            while True:
                try:
                    chunk = await asyncio.wait_for(anext(iterator), timeout)
                except StopAsyncIteration:
                    break
                text = chunk.text
                if text:
                    yield text
        except TimeoutError as e:
            raise GatewayTimeoutError(f"No output from provider within {timeout:.0f}s") from e
        except genai_errors.APIError as e:
            raise GatewayError(str(e)) from e
        finally:
            # Provider stream is closed on every exit path
            if response is not None and hasattr(response, "aclose"):
                await response.aclose()

    async def open_stream(self, request: GenerationRequest) -> AsyncGenerator[str]:
        """Start a model call and return its fragment stream.

        Args:
            request: The model call to make.

        Returns:
            Async generator of text fragments; concatenated in order they
            reconstitute the full response.

        Raises:
            GatewayError: If the provider rejects the request before any
                fragment is produced.
        """
        source = self._fragments(request)
        try:
            first = await anext(source)
        except StopAsyncIteration:
            logger.info("Provider returned no output")
            return _exhausted()
        except BaseException:
            await source.aclose()
            raise
        return _resume(first, source)


async def _exhausted() -> AsyncGenerator[str]:
    return
    yield


async def _resume(first: str, source: AsyncGenerator[str]) -> AsyncGenerator[str]:
    try:
        yield first
        async for fragment in source:
            yield fragment
    finally:
        await source.aclose()


# Module-level singleton instance
_gateway_service: GatewayService | None = None


def get_gateway_service() -> GatewayService:
    """Get or create the global gateway service.

    Returns:
        The GatewayService instance.

    Raises:
        ValidationError: If no provider credential is configured.
    """
    global _gateway_service
    if _gateway_service is None:
        _gateway_service = GatewayService()
    return _gateway_service
