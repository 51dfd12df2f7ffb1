"""Dispatch pipeline: transform, call, relay.

Flow for one request:
    Dispatcher resolves the service -> transformer builds the upstream
    request -> httpx sends it -> the relay for the service's response
    mode writes the result, or the error normalizer answers instead.
"""

from .transformers import (
    ResolvedConfig,
    OutboundRequest,
    RequestTransformer,
    ChatCompletionTransformer,
    TextToSpeechTransformer,
)

from .relay import (
    relay_stream,
    relay_json,
    relay_binary,
    get_relay,
)

from .dispatcher import (
    DispatchOutcome,
    DispatchResult,
    Dispatcher,
)


__all__ = [
    # Transformers
    "ResolvedConfig",
    "OutboundRequest",
    "RequestTransformer",
    "ChatCompletionTransformer",
    "TextToSpeechTransformer",

    # Relays
    "relay_stream",
    "relay_json",
    "relay_binary",
    "get_relay",

    # Dispatcher
    "DispatchOutcome",
    "DispatchResult",
    "Dispatcher",
]
