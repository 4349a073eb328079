from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Incremental accumulation, formatting and validation of streamed responses.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, AsyncIterable, Awaitable, Iterable, cast

from ..content.markdown import process_markdown, raw_fallback
from ..content.types import ContentFormatter, ContentValidator, ProcessedContent
from ..content.validator import validate_content
from ..llms.errors import ProcessingError, ProviderError
from ..llms.types import StreamingChunk
from .types import (
    ProcessingState,
    ProcessorPhase,
    StreamingCallbacks,
    StreamingMetrics,
    StreamingOptions,
)

logger = logging.getLogger(__name__)

FALLBACK_NOTICE = "Processing failed; showing raw content"
LATE_CHUNK_WARNING = "Chunk received after stream completion; call reset() before reuse"


class StreamingProcessor:
    """
    Drive one logical stream through `idle -> accumulating -> validating* ->
    finalizing -> idle`.

    Chunks are applied in arrival order and never reordered. Content passes
    (format + validate) are throttled by `validation_threshold` and coalesced
    by `processing_interval_s`; a terminal chunk always forces one final pass
    and exactly one `on_complete`.

    Not safe for concurrent `process_chunk` calls; drive it from one consumer
    loop and use one instance per stream.
    """

    def __init__(
        self,
        options: StreamingOptions | None = None,
        callbacks: StreamingCallbacks | None = None,
        *,
        formatter: ContentFormatter = process_markdown,
        validator: ContentValidator = validate_content,
    ) -> None:
        self.options = options or StreamingOptions()
        self.callbacks = callbacks or StreamingCallbacks()
        self._formatter = formatter
        self._validator = validator
        self._pass_lock = asyncio.Lock()
        self._disposed = False
        self._generation = 0
        self._init_stream()

    def _init_stream(self) -> None:
        self._state = ProcessingState()
        self._generation += 1
        self._completed = False
        self._pending: asyncio.Task[None] | None = None
        self._last_pass_at: float | None = None
        self._last_processed_length = 0
        self._processing_time_ms = 0.0
        self._passes = 0
        self._failed_passes = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_chunk(self, chunk: StreamingChunk) -> None:
        if self._disposed:
            logger.warning("Chunk dropped: processor is disposed")
            return
        if self._completed:
            self._state.warnings.append(LATE_CHUNK_WARNING)
            logger.warning(LATE_CHUNK_WARNING)
            return

        state = self._state
        if state.phase == "idle":
            await self._set_phase("accumulating")

        state.accumulated_content += chunk.content
        state.chunk_count += 1
        await self._fire("on_chunk", chunk, state.snapshot())

        if chunk.error is not None:
            state.errors.append(f"Stream error: {chunk.error}")
            await self._fire("on_error", ProviderError(chunk.error), state.snapshot())

        if chunk.is_complete:
            await self._finalize()
            return

        if self._should_process():
            await self._schedule_pass()

    async def consume(
        self, chunks: AsyncIterable[StreamingChunk] | Iterable[StreamingChunk]
    ) -> ProcessingState:
        """
        Feed a whole chunk sequence and return the final state.

        A sequence that ends without a terminal chunk is finalized anyway.
        """
        if hasattr(chunks, "__aiter__"):
            async for chunk in cast(AsyncIterable[StreamingChunk], chunks):
                await self.process_chunk(chunk)
                if self._completed:
                    break
        else:
            for chunk in chunks:
                await self.process_chunk(chunk)
                if self._completed:
                    break

        await self.finalize()
        return self.get_state()

    async def finalize(self) -> None:
        """Force completion of the current stream. No-op once completed."""
        if self._completed or self._disposed:
            return
        await self._finalize()

    def reset(self) -> None:
        """Discard all state and return to `idle` for a new stream."""
        self._cancel_pending()
        self._init_stream()

    def dispose(self) -> None:
        self._cancel_pending()
        self._disposed = True

    def get_state(self) -> ProcessingState:
        return self._state.snapshot()

    def get_final_result(self) -> ProcessedContent | None:
        return self._state.processed_content

    def get_metrics(self) -> StreamingMetrics:
        return StreamingMetrics(
            total_chunks=self._state.chunk_count,
            content_length=len(self._state.accumulated_content),
            processing_time_ms=self._processing_time_ms,
            processing_passes=self._passes,
            failed_passes=self._failed_passes,
        )

    @property
    def is_complete(self) -> bool:
        return self._completed

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _should_process(self) -> bool:
        if self.options.process_incrementally:
            return True
        grown = len(self._state.accumulated_content) - self._last_processed_length
        return grown >= self.options.validation_threshold

    async def _schedule_pass(self) -> None:
        if not self.options.enable_debouncing:
            await self._run_pass()
            return

        interval = self.options.processing_interval_s
        now = time.monotonic()
        if self._last_pass_at is None or now - self._last_pass_at >= interval:
            await self._run_pass()
            return

        if self._pending is None or self._pending.done():
            delay = interval - (now - self._last_pass_at)
            self._pending = asyncio.create_task(self._deferred_pass(delay))

    async def _deferred_pass(self, delay_s: float) -> None:
        await asyncio.sleep(delay_s)
        await self._run_pass()

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _finalize(self) -> None:
        pending = self._pending
        self._pending = None
        if pending is not None and not pending.done():
            pending.cancel()
            await asyncio.gather(pending, return_exceptions=True)

        generation = self._generation
        await self._run_pass(final=True)
        if generation != self._generation:
            return

        self._completed = True
        await self._set_phase("finalizing")
        await self._fire("on_complete", self._state.snapshot())
        await self._set_phase("idle")

    # ------------------------------------------------------------------
    # Content pass
    # ------------------------------------------------------------------

    async def _run_pass(self, *, final: bool = False) -> None:
        async with self._pass_lock:
            state = self._state
            generation = self._generation
            content = state.accumulated_content
            unchanged = len(content) == self._last_processed_length
            if not final and unchanged and state.processed_content is not None:
                return

            self._last_pass_at = time.monotonic()
            self._passes += 1
            state.is_processing = True
            await self._set_phase("validating")
            started_at = time.perf_counter()
            try:
                await self._process_content(state, content, final=final)
            finally:
                if generation == self._generation:
                    self._processing_time_ms += (time.perf_counter() - started_at) * 1000.0
                    self._last_processed_length = len(content)
                    state.is_processing = False
                    if state.phase == "validating":
                        await self._set_phase("accumulating")

    async def _process_content(
        self, state: ProcessingState, content: str, *, final: bool
    ) -> None:
        options = self.options
        attempts = 1 + (options.max_retries if options.retry_on_error else 0)
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                processed = self._formatter(content)
                validation = self._validator(content, processed)
            except Exception as e:
                last_error = e
                state.errors.append(
                    f"Processing pass failed (attempt {attempt}/{attempts}): {e}"
                )
                logger.warning(
                    "Processing pass failed (attempt %d/%d): %s",
                    attempt,
                    attempts,
                    type(e).__name__,
                )
                continue

            state.processed_content = processed
            state.validation_result = validation
            await self._fire("on_processed", processed, state.snapshot())
            await self._fire("on_validated", validation, state.snapshot())
            return

        self._failed_passes += 1
        error = ProcessingError(f"Processing failed after {attempts} attempt(s)")
        error.__cause__ = last_error
        await self._fire("on_error", error, state.snapshot())

        if options.fallback_to_raw:
            self._apply_fallback(state, content)
            await self._fire("on_processed", state.processed_content, state.snapshot())
        elif final and state.processed_content is None:
            self._apply_fallback(state, content)

    def _apply_fallback(self, state: ProcessingState, content: str) -> None:
        state.processed_content = raw_fallback(content, FALLBACK_NOTICE)
        state.warnings.append(FALLBACK_NOTICE)
        logger.info("Using raw fallback for %d characters", len(content))

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    async def _set_phase(self, phase: ProcessorPhase) -> None:
        if self._state.phase == phase:
            return
        self._state.phase = phase
        await self._fire("on_state_change", phase, self._state.snapshot())

    async def _fire(self, name: str, *args: Any) -> None:
        """Invoke one consumer hook, containing any failure."""
        callback = getattr(self.callbacks, name)
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await cast(Awaitable[Any], result)
        except Exception:
            logger.warning("Streaming callback %s raised", name, exc_info=True)


async def process_stream(
    chunks: AsyncIterable[StreamingChunk] | Iterable[StreamingChunk],
    options: StreamingOptions | None = None,
    callbacks: StreamingCallbacks | None = None,
    *,
    formatter: ContentFormatter = process_markdown,
    validator: ContentValidator = validate_content,
) -> ProcessingState:
    """Run a complete chunk sequence through a fresh processor."""
    processor = StreamingProcessor(
        options,
        callbacks,
        formatter=formatter,
        validator=validator,
    )
    try:
        return await processor.consume(chunks)
    finally:
        processor.dispose()
