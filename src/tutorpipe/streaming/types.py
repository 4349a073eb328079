from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

State, options and callback types for the streaming processor.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Literal

from ..content.types import ProcessedContent, ValidationResult
from ..llms.types import StreamingChunk

ProcessorPhase = Literal["idle", "accumulating", "validating", "finalizing"]


@dataclass(slots=True)
class ProcessingState:
    """
    Mutable per-stream state owned by one `StreamingProcessor`.

    `accumulated_content` only ever grows until `reset()`.
    """

    accumulated_content: str = ""
    chunk_count: int = 0
    processed_content: ProcessedContent | None = None
    validation_result: ValidationResult | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    phase: ProcessorPhase = "idle"
    is_processing: bool = False

    def snapshot(self) -> "ProcessingState":
        return replace(self, errors=list(self.errors), warnings=list(self.warnings))


@dataclass(frozen=True, slots=True)
class StreamingOptions:
    process_incrementally: bool = True
    validation_threshold: int = 100
    enable_debouncing: bool = True
    processing_interval_s: float = 0.05
    retry_on_error: bool = True
    max_retries: int = 2
    fallback_to_raw: bool = True

    def __post_init__(self) -> None:
        if self.validation_threshold < 0:
            raise ValueError("validation_threshold must be >= 0")
        if self.processing_interval_s < 0:
            raise ValueError("processing_interval_s must be >= 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")


CallbackResult = None | Awaitable[None]


@dataclass(frozen=True, slots=True)
class StreamingCallbacks:
    """
    Optional consumer hooks. Each may be sync or async; a missing hook is a no-op.

    Exceptions raised by a hook are logged and never reach the producer.
    """

    on_chunk: Callable[[StreamingChunk, ProcessingState], CallbackResult] | None = None
    on_processed: Callable[[ProcessedContent, ProcessingState], CallbackResult] | None = None
    on_validated: Callable[[ValidationResult, ProcessingState], CallbackResult] | None = None
    on_error: Callable[[Exception, ProcessingState], CallbackResult] | None = None
    on_complete: Callable[[ProcessingState], CallbackResult] | None = None
    on_state_change: Callable[[ProcessorPhase, ProcessingState], CallbackResult] | None = None


@dataclass(frozen=True, slots=True)
class StreamingMetrics:
    total_chunks: int
    content_length: int
    processing_time_ms: float
    processing_passes: int
    failed_passes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_chunks": self.total_chunks,
            "content_length": self.content_length,
            "processing_time_ms": self.processing_time_ms,
            "processing_passes": self.processing_passes,
            "failed_passes": self.failed_passes,
        }
