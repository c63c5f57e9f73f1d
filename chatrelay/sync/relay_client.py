"""Client for the relay's server-sent event stream."""

import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

import httpx

from chatrelay.models.schemas import DONE_SENTINEL

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Raised when the relay answers with a non-200 status."""

    def __init__(self, status_code: int, error: str, details: str = "") -> None:
        self.status_code = status_code
        self.error = error
        self.details = details
        super().__init__(f"HTTP {status_code}: {error}")


class StreamInterruptedError(Exception):
    """Raised when a relay stream ends without its completion marker."""

    pass


def _relay_error(response: httpx.Response) -> RelayError:
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return RelayError(response.status_code, response.text)
    if isinstance(body, dict):
        return RelayError(
            response.status_code,
            str(body.get("error", body.get("detail", ""))),
            str(body.get("details", "")),
        )
    return RelayError(response.status_code, response.text)


def _event_text(data: str) -> str:
    """Extract the text carried by one ``data:`` payload.

    A payload that is not JSON is kept verbatim so a corrupted event never
    shortens the reply without trace.

    Args:
        data: Everything after the ``data: `` prefix.

    Returns:
        The event text; empty for JSON events without text.
    """
    try:
        event = json.loads(data)
    except json.JSONDecodeError:
        logger.warning("Stream event is not JSON, keeping raw payload")
        return data
    if isinstance(event, dict):
        return str(event.get("text") or event.get("content") or "")
    return data


class RelayClient:
    """Consumes ``data:`` events from the relay chat endpoint.

    Args:
        url: Relay chat endpoint.
        timeout: Read timeout for the stream, in seconds.
        transport: Optional httpx transport, e.g. an ASGI app in tests.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._transport = transport

    async def stream(self, payload: dict[str, Any]) -> AsyncGenerator[str]:
        """Post a chat request and yield text fragments in delivery order.

        Args:
            payload: JSON body for the relay.

        Yields:
            Non-empty text fragments.

        Raises:
            RelayError: The relay refused the request.
            StreamInterruptedError: The connection failed or the stream
                ended without ``[DONE]``.
        """
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout, connect=10.0),
            transport=self._transport,
        ) as client:
            try:
                async with client.stream(
                    "POST",
                    self._url,
                    json=payload,
                    headers={"Accept": "text/event-stream"},
                ) as response:
                    if response.status_code != 200:
                        await response.aread()
                        raise _relay_error(response)

                    completed = False
                    async for line in response.aiter_lines():
                        if not line.startswith("data: "):
                            continue
                        data = line.removeprefix("data: ")
                        if data.strip() == DONE_SENTINEL:
                            completed = True
                            break
                        text = _event_text(data)
                        if text:
                            yield text

                    if not completed:
                        raise StreamInterruptedError(
                            "Relay stream ended without completion marker"
                        )
            except httpx.RequestError as e:
                raise StreamInterruptedError(f"Connection failed: {e}") from e
