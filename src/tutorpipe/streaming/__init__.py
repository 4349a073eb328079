"""
Streaming content processing exports.
"""

from .processor import FALLBACK_NOTICE, StreamingProcessor, process_stream
from .types import (
    ProcessingState,
    ProcessorPhase,
    StreamingCallbacks,
    StreamingMetrics,
    StreamingOptions,
)

__all__ = [
    "StreamingProcessor",
    "process_stream",
    "FALLBACK_NOTICE",
    "ProcessingState",
    "ProcessorPhase",
    "StreamingCallbacks",
    "StreamingMetrics",
    "StreamingOptions",
]
