from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Public API for the provider layer: configuration, request/response types,
error taxonomy, cancellation and the HTTP provider client.
"""

from .cache import CacheStats, ResponseCache
from .cancellation import CancellationToken, await_cancellable, sleep_cancellable
from .config import DEFAULT_BASE_URL, DEFAULT_MODEL, ProviderConfig
from .errors import (
    AdmissionDeniedError,
    ProcessingError,
    ProviderCancelledError,
    ProviderConfigurationError,
    ProviderError,
    ProviderHTTPError,
    ProviderInvalidResponseError,
    ProviderRetryableError,
    ProviderTimeoutError,
    ProviderTransportError,
    SessionError,
    SessionNotFoundError,
    is_retryable,
    user_message,
)
from .middleware import (
    MiddlewareStack,
    ProviderChatMiddleware,
    ProviderChatNext,
    ProviderStreamMiddleware,
    ProviderStreamNext,
)
from .observability import (
    CallStats,
    ProviderLifecycleEvent,
    ProviderLifecycleEventType,
    ProviderObserver,
    logging_observer,
)
from .types import (
    ChatOptions,
    ChatRequest,
    ProviderHealth,
    ProviderMessage,
    ProviderResponse,
    StreamingChunk,
    Usage,
)


def __getattr__(name: str):
    # The client depends on the sessions package, which depends on these types.
    if name == "ProviderClient":
        from .client import ProviderClient

        return ProviderClient
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "CacheStats",
    "ResponseCache",
    "ProviderClient",
    "ProviderConfig",
    "DEFAULT_BASE_URL",
    "DEFAULT_MODEL",
    "ChatOptions",
    "ChatRequest",
    "ProviderMessage",
    "ProviderResponse",
    "ProviderHealth",
    "StreamingChunk",
    "Usage",
    "CancellationToken",
    "await_cancellable",
    "sleep_cancellable",
    "MiddlewareStack",
    "ProviderChatMiddleware",
    "ProviderChatNext",
    "ProviderStreamMiddleware",
    "ProviderStreamNext",
    "ProviderLifecycleEvent",
    "ProviderLifecycleEventType",
    "ProviderObserver",
    "CallStats",
    "logging_observer",
    "ProviderError",
    "ProviderConfigurationError",
    "ProviderRetryableError",
    "ProviderTimeoutError",
    "ProviderTransportError",
    "ProviderHTTPError",
    "ProviderInvalidResponseError",
    "ProviderCancelledError",
    "SessionError",
    "SessionNotFoundError",
    "AdmissionDeniedError",
    "ProcessingError",
    "is_retryable",
    "user_message",
]
