from __future__ import annotations

import asyncio
import random

from tutorpipe.content.markdown import process_markdown
from tutorpipe.llms.errors import ProcessingError, ProviderError
from tutorpipe.llms.types import StreamingChunk
from tutorpipe.streaming.processor import (
    FALLBACK_NOTICE,
    LATE_CHUNK_WARNING,
    StreamingProcessor,
    process_stream,
)
from tutorpipe.streaming.types import StreamingCallbacks, StreamingOptions


def run_async(coro):
    return asyncio.run(coro)


EAGER = StreamingOptions(enable_debouncing=False)


def chunk(content: str, *, done: bool = False, error: str | None = None) -> StreamingChunk:
    return StreamingChunk(content=content, is_complete=done, error=error)


class Recorder:
    """Collects every callback invocation by name."""

    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def names(self, name: str) -> list[object]:
        return [payload for event, payload in self.events if event == name]

    def callbacks(self) -> StreamingCallbacks:
        return StreamingCallbacks(
            on_chunk=lambda c, s: self.events.append(("chunk", c.content)),
            on_processed=lambda p, s: self.events.append(("processed", p)),
            on_validated=lambda v, s: self.events.append(("validated", v)),
            on_error=lambda e, s: self.events.append(("error", e)),
            on_complete=lambda s: self.events.append(("complete", s)),
            on_state_change=lambda phase, s: self.events.append(("phase", phase)),
        )


def always_fails(text: str):
    raise RuntimeError("formatter down")


def test_accumulates_in_order_and_completes_once():
    recorder = Recorder()
    processor = StreamingProcessor(EAGER, recorder.callbacks())

    async def _run():
        await processor.process_chunk(chunk("Hello "))
        await processor.process_chunk(chunk("world!", done=True))

    run_async(_run())

    state = processor.get_state()
    assert state.accumulated_content == "Hello world!"
    assert state.chunk_count == 2
    assert state.phase == "idle"
    assert processor.is_complete is True
    assert recorder.names("chunk") == ["Hello ", "world!"]
    assert len(recorder.names("complete")) == 1
    assert recorder.names("complete")[0].accumulated_content == "Hello world!"
    assert processor.get_final_result().content == "Hello world!"
    assert state.validation_result is not None


def test_phase_transitions():
    recorder = Recorder()
    processor = StreamingProcessor(EAGER, recorder.callbacks())

    async def _run():
        await processor.process_chunk(chunk("Hello "))
        await processor.process_chunk(chunk("world!", done=True))

    run_async(_run())

    assert recorder.names("phase") == [
        "accumulating",
        "validating",
        "accumulating",
        "validating",
        "accumulating",
        "finalizing",
        "idle",
    ]


def test_failed_passes_fall_back_to_raw_text():
    recorder = Recorder()
    processor = StreamingProcessor(EAGER, recorder.callbacks(), formatter=always_fails)

    async def _run():
        await processor.process_chunk(chunk("# Raw "))
        await processor.process_chunk(chunk("**text", done=True))

    run_async(_run())

    result = processor.get_final_result()
    state = processor.get_state()
    assert result is not None
    assert result.content == "# Raw **text"
    assert result.is_fallback is True
    assert FALLBACK_NOTICE in state.warnings
    assert len(state.errors) == 6
    errors = recorder.names("error")
    assert len(errors) == 2
    assert all(isinstance(e, ProcessingError) for e in errors)
    assert len(recorder.names("complete")) == 1

    metrics = processor.get_metrics()
    assert metrics.processing_passes == 2
    assert metrics.failed_passes == 2


def test_retry_recovers_from_a_transient_formatter_failure():
    calls = {"n": 0}

    def flaky(text: str):
        calls["n"] += 1
        if calls["n"] == 1:
            raise ValueError("transient")
        return process_markdown(text)

    processor = StreamingProcessor(EAGER, formatter=flaky)

    run_async(processor.process_chunk(chunk("Some content here.", done=True)))

    result = processor.get_final_result()
    assert result is not None and result.is_fallback is False
    assert len(processor.get_state().errors) == 1
    assert processor.get_metrics().failed_passes == 0


def test_without_fallback_errors_surface_but_final_result_stays_renderable():
    recorder = Recorder()
    processor = StreamingProcessor(
        StreamingOptions(enable_debouncing=False, retry_on_error=False, fallback_to_raw=False),
        recorder.callbacks(),
        formatter=always_fails,
    )

    async def _run():
        await processor.process_chunk(chunk("partial "))
        await processor.process_chunk(chunk("answer", done=True))

    run_async(_run())

    errors = recorder.names("error")
    assert len(errors) == 2
    assert all(isinstance(e, ProcessingError) for e in errors)
    assert isinstance(errors[0].__cause__, RuntimeError)
    assert processor.get_final_result().content == "partial answer"


def test_concatenation_holds_under_random_failures():
    rng = random.Random(7)

    def unreliable(text: str):
        if rng.random() < 0.5:
            raise RuntimeError("flaky")
        return process_markdown(text)

    pieces = [f"part{i} " for i in range(30)]
    chunks = [chunk(p) for p in pieces] + [chunk("", done=True)]

    state = run_async(process_stream(chunks, EAGER, formatter=unreliable))

    assert state.accumulated_content == "".join(pieces)
    assert state.chunk_count == 31
    assert state.processed_content is not None


def test_error_chunk_is_recorded_and_still_completes():
    recorder = Recorder()
    processor = StreamingProcessor(EAGER, recorder.callbacks())

    run_async(processor.process_chunk(chunk("half", done=True, error="Stream ended before completion")))

    state = processor.get_state()
    assert state.errors == ["Stream error: Stream ended before completion"]
    assert isinstance(recorder.names("error")[0], ProviderError)
    assert len(recorder.names("complete")) == 1
    assert state.accumulated_content == "half"


def test_late_chunk_is_dropped_with_warning():
    processor = StreamingProcessor(EAGER)

    async def _run():
        await processor.process_chunk(chunk("done", done=True))
        await processor.process_chunk(chunk(" extra"))

    run_async(_run())

    state = processor.get_state()
    assert state.accumulated_content == "done"
    assert LATE_CHUNK_WARNING in state.warnings


def test_reset_allows_a_new_stream():
    recorder = Recorder()
    processor = StreamingProcessor(EAGER, recorder.callbacks())

    async def _run():
        await processor.process_chunk(chunk("first", done=True))
        processor.reset()
        assert processor.get_state().accumulated_content == ""
        assert processor.get_state().phase == "idle"
        assert processor.is_complete is False
        await processor.process_chunk(chunk("second", done=True))

    run_async(_run())

    assert processor.get_state().accumulated_content == "second"
    assert len(recorder.names("complete")) == 2


def test_threshold_mode_waits_for_enough_new_content():
    processor = StreamingProcessor(
        StreamingOptions(
            process_incrementally=False,
            validation_threshold=10,
            enable_debouncing=False,
        )
    )

    async def _run():
        await processor.process_chunk(chunk("abc"))
        assert processor.get_metrics().processing_passes == 0
        await processor.process_chunk(chunk("defghijk"))
        assert processor.get_metrics().processing_passes == 1
        await processor.process_chunk(chunk("l"))
        assert processor.get_metrics().processing_passes == 1
        await processor.process_chunk(chunk("", done=True))

    run_async(_run())

    assert processor.get_metrics().processing_passes == 2


def test_debounced_passes_are_coalesced_and_flushed_on_completion():
    processor = StreamingProcessor(StreamingOptions(processing_interval_s=10.0))

    async def _run():
        await processor.process_chunk(chunk("one "))
        await processor.process_chunk(chunk("two "))
        await processor.process_chunk(chunk("three "))
        await processor.process_chunk(chunk("", done=True))

    run_async(_run())

    assert processor.get_metrics().processing_passes == 2
    assert processor.get_final_result().content == "one two three"


def test_callback_failures_are_contained():
    completed = []

    def broken_on_chunk(c, state):
        raise RuntimeError("ui bug")

    async def on_complete(state):
        completed.append(state.accumulated_content)

    processor = StreamingProcessor(
        EAGER,
        StreamingCallbacks(on_chunk=broken_on_chunk, on_complete=on_complete),
    )

    run_async(processor.process_chunk(chunk("fine", done=True)))

    assert completed == ["fine"]


def test_consume_async_stream_finalizes_without_terminal_chunk():
    async def source():
        yield chunk("no ")
        yield chunk("terminal")

    processor = StreamingProcessor(EAGER)

    state = run_async(processor.consume(source()))

    assert state.accumulated_content == "no terminal"
    assert processor.is_complete is True
    assert state.processed_content is not None


def test_disposed_processor_ignores_chunks():
    processor = StreamingProcessor(EAGER)
    processor.dispose()

    run_async(processor.process_chunk(chunk("ignored", done=True)))

    assert processor.get_state().accumulated_content == ""
    assert processor.is_complete is False


def test_metrics_snapshot():
    processor = StreamingProcessor(EAGER)

    async def _run():
        await processor.process_chunk(chunk("abc"))
        await processor.process_chunk(chunk("de", done=True))

    run_async(_run())

    metrics = processor.get_metrics().to_dict()
    assert metrics["total_chunks"] == 2
    assert metrics["content_length"] == 5
    assert metrics["processing_passes"] == 2
    assert metrics["failed_passes"] == 0
    assert metrics["processing_time_ms"] >= 0
