"""Streaming relay endpoint.

Turns one gateway call into a server-sent event stream. Each fragment is
sent as its own ``data: {"text": ...}`` block as soon as it arrives, and a
clean finish is marked by a literal ``data: [DONE]`` block. A provider
failure after streaming has begun errors the response instead of sending
the sentinel, so consumers can tell truncation from completion.
"""

import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from pydantic import ValidationError

from chatrelay.gateway.client import GenerationRequest, get_gateway_service
from chatrelay.models.schemas import (
    DONE_SENTINEL,
    ChatRequest,
    ErrorResponse,
    StreamChunk,
    encode_event,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
}


def _error_response(error: str, details: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error=error, details=details).model_dump(),
    )


def _is_missing_key(error: ValidationError) -> bool:
    return any(err["loc"][:1] == ("api_key",) for err in error.errors())


async def _event_stream(fragments: AsyncGenerator[str]) -> AsyncGenerator[str]:
    """Forward fragments one event each, then the sentinel.

    The upstream generator is closed on every exit path, including a client
    disconnect that closes this generator early.
    """
    count = 0
    try:
        async for fragment in fragments:
            count += 1
            yield encode_event(StreamChunk(text=fragment).model_dump_json())
    except Exception as e:
        logger.error(f"Provider failed after {count} fragments: {e}")
        raise
    finally:
        await fragments.aclose()

    logger.info(f"Stream complete: {count} fragments")
    yield encode_event(DONE_SENTINEL)


@router.post("/chat", response_model=None)
async def relay_chat(
    request: ChatRequest | None = None,
) -> StreamingResponse | JSONResponse | PlainTextResponse:
    """Relay a chat request to the model as a server-sent event stream.

    Args:
        request: Prompt, optional instructions, sampling and inline files.
            A request without a body is treated as one without a message.

    Returns:
        StreamingResponse of ``data:`` events ending with ``[DONE]``.

    Raises:
        400: Message missing or blank (plain text body).
        500: Credential missing, configuration invalid, or provider rejected
            the request (JSON body).
    """
    if request is None or not request.message:
        return PlainTextResponse(
            "Message is required", status_code=status.HTTP_400_BAD_REQUEST
        )

    try:
        gateway = get_gateway_service()
    except ValidationError as e:
        if _is_missing_key(e):
            logger.error("Request failed: no API key configured")
            return _error_response(
                "API key not configured",
                "GEMINI_API_KEY environment variable is missing",
            )
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
        logger.error(f"Request failed: invalid gateway configuration ({fields})")
        return _error_response("Invalid gateway configuration", f"Invalid settings: {fields}")

    files = request.files or []
    logger.info(
        f"Relaying message ({len(request.message)} chars, {len(files)} files, "
        f"custom instructions: {request.instructions is not None})"
    )

    try:
        fragments = await gateway.open_stream(
            GenerationRequest(
                prompt=request.message,
                instructions=request.instructions,
                top_p=request.top_p,
                top_k=request.top_k,
                files=files,
            )
        )
    except Exception as e:
        logger.error(f"Provider rejected request: {e}")
        return _error_response("Failed to generate response", str(e) or type(e).__name__)

    return StreamingResponse(
        _event_stream(fragments),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
