"""Response relays - upstream result to caller response.

Each relay receives an upstream response opened in streaming mode and
owns it from then on: it must close it on every path.

STREAMING LIMITATION:
Once the stream relay has sent its first byte the caller already holds a
200 status. A later upstream failure can only end the stream; no error
event is written in-band, so a truncated stream looks like a clean end.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Callable

import httpx
from fastapi import Response
from fastapi.responses import StreamingResponse

from gateway.core.errors import GatewayError, RelayError, UpstreamError
from gateway.core.providers.registry import ResponseMode, ServiceDescriptor

logger = logging.getLogger(__name__)

AUDIO_MEDIA_TYPE = "audio/mpeg"
EVENT_STREAM_MEDIA_TYPE = "text/event-stream"
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}

Relay = Callable[[httpx.Response, ServiceDescriptor], Awaitable[Response]]


async def read_and_close(upstream: httpx.Response) -> bytes:
    """Read the whole upstream body and release the connection."""
    try:
        return await upstream.aread()
    finally:
        await upstream.aclose()


async def _raise_for_upstream_status(upstream: httpx.Response, descriptor: ServiceDescriptor) -> bytes:
    content = await read_and_close(upstream)
    if not upstream.is_success:
        raise UpstreamError(descriptor.display_name, upstream.status_code, content)
    return content


# =============================================================================
# Stream relay
# =============================================================================


async def _forward_chunks(
    upstream: httpx.Response,
    descriptor: ServiceDescriptor,
) -> AsyncIterator[bytes]:
    """Yield upstream chunks as they arrive, in order and unmerged."""
    chunks = 0
    try:
        async for chunk in upstream.aiter_bytes():
            chunks += 1
            yield chunk
        logger.debug("Stream from %s completed after %d chunks", descriptor.display_name, chunks)
    except httpx.HTTPError as exc:
        error = RelayError(descriptor.display_name, str(exc) or type(exc).__name__)
        logger.error("%s (after %d chunks)", error.message, chunks)
    except asyncio.CancelledError:
        logger.info("Caller left stream from %s after %d chunks", descriptor.display_name, chunks)
        raise
    finally:
        # Shielded so a cancelled caller still releases the upstream connection
        await asyncio.shield(upstream.aclose())


async def relay_stream(upstream: httpx.Response, descriptor: ServiceDescriptor) -> Response:
    """Relay an event stream chunk by chunk.

    A non-2xx answer arrives before any byte is sent to the caller, so it
    is still reported as a normal error response.
    """
    if not upstream.is_success:
        await _raise_for_upstream_status(upstream, descriptor)

    return StreamingResponse(
        _forward_chunks(upstream, descriptor),
        status_code=200,
        media_type=EVENT_STREAM_MEDIA_TYPE,
        headers=STREAM_HEADERS,
    )


# =============================================================================
# Buffered relays
# =============================================================================


async def relay_json(upstream: httpx.Response, descriptor: ServiceDescriptor) -> Response:
    """Relay a complete JSON document with the upstream status."""
    content = await _raise_for_upstream_status(upstream, descriptor)
    try:
        json.loads(content)
    except ValueError as exc:
        raise GatewayError(
            f"{descriptor.display_name} returned a non-JSON body", "invalid_upstream_body"
        ) from exc

    return Response(
        content=content,
        status_code=upstream.status_code,
        media_type="application/json",
    )


async def relay_binary(upstream: httpx.Response, descriptor: ServiceDescriptor) -> Response:
    """Relay a complete audio payload byte for byte."""
    content = await _raise_for_upstream_status(upstream, descriptor)
    logger.info("Audio received from %s (%d bytes)", descriptor.display_name, len(content))
    return Response(content=content, status_code=200, media_type=AUDIO_MEDIA_TYPE)


RELAYS: dict[ResponseMode, Relay] = {
    ResponseMode.STREAM_TEXT: relay_stream,
    ResponseMode.JSON: relay_json,
    ResponseMode.BINARY_AUDIO: relay_binary,
}


def get_relay(mode: ResponseMode) -> Relay:
    """Get the relay strategy for a response mode."""
    return RELAYS[mode]


__all__ = [
    "AUDIO_MEDIA_TYPE",
    "EVENT_STREAM_MEDIA_TYPE",
    "STREAM_HEADERS",
    "read_and_close",
    "relay_stream",
    "relay_json",
    "relay_binary",
    "RELAYS",
    "get_relay",
]
