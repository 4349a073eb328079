"""
tutorpipe: resilient provider calls and streaming content processing for an
AI tutor.

Subpackages:
- `llms`: provider client, configuration, error taxonomy, wire codec
- `sessions`: in-memory conversation sessions
- `admission`: attempt limiter and provider admission gate
- `content`: markdown structure extraction and quality validation
- `streaming`: incremental chunk processing state machine
"""

from .admission import AdmissionGate, AdmissionLimiter, AdmissionPolicy
from .content import process_markdown, validate_content
from .llms import (
    CancellationToken,
    ChatOptions,
    ProviderConfig,
    ProviderError,
    ProviderMessage,
    StreamingChunk,
    user_message,
)
from .llms.client import ProviderClient
from .sessions import Session, SessionStore
from .streaming import StreamingCallbacks, StreamingOptions, StreamingProcessor, process_stream

__all__ = [
    "ProviderClient",
    "ProviderConfig",
    "ProviderMessage",
    "ProviderError",
    "ChatOptions",
    "CancellationToken",
    "StreamingChunk",
    "user_message",
    "Session",
    "SessionStore",
    "AdmissionLimiter",
    "AdmissionPolicy",
    "AdmissionGate",
    "process_markdown",
    "validate_content",
    "StreamingProcessor",
    "StreamingOptions",
    "StreamingCallbacks",
    "process_stream",
]
