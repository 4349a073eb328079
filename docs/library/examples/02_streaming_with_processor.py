"""
Example 02: Stream a tutor answer through the streaming processor.

Run:
    TUTORPIPE_PROVIDER_API_KEY=sk-... python docs/library/examples/02_streaming_with_processor.py
"""

from __future__ import annotations

import asyncio

from tutorpipe import (
    ProviderClient,
    ProviderMessage,
    StreamingCallbacks,
    StreamingOptions,
    StreamingProcessor,
)


def on_chunk(chunk, state) -> None:
    print(chunk.content, end="", flush=True)


def on_validated(result, state) -> None:
    print(f"\n[quality {result.quality_score}/100 after {state.chunk_count} chunks]")


def on_complete(state) -> None:
    final = state.processed_content
    print("\n--- final ---")
    print(final.content if final is not None else state.accumulated_content)
    if state.validation_result is not None:
        for tip in state.validation_result.recommendations:
            print("tip:", tip)


async def main() -> None:
    processor = StreamingProcessor(
        StreamingOptions(process_incrementally=False, validation_threshold=200),
        StreamingCallbacks(
            on_chunk=on_chunk,
            on_validated=on_validated,
            on_complete=on_complete,
        ),
    )

    async with ProviderClient() as client:
        chunks = client.stream(
            [ProviderMessage(role="user", content="Explain photosynthesis with an example.")]
        )
        await processor.consume(chunks)

    print(processor.get_metrics().to_dict())


if __name__ == "__main__":
    asyncio.run(main())
