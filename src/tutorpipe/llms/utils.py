from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Utility functions for provider interactions, including backoff strategies.
"""
import asyncio
import random


def clamp_str(s: str, max_chars: int) -> str:
    if len(s) <= max_chars:
        return s
    return s[:max_chars] + "…"


def backoff_delay(
    attempt: int,
    base_s: float,
    jitter_s: float = 0.0,
    max_s: float | None = None,
) -> float:
    """
    Exponential backoff with optional jitter and ceiling.
    attempt=1 => 2*base, attempt=2 => 4*base, etc.
    """
    exp = base_s * (2 ** attempt)
    if max_s is not None:
        exp = min(exp, max_s)
    jitter = random.uniform(0.0, jitter_s) if jitter_s > 0 else 0.0
    return exp + jitter


def redact_identifier(identifier: str, keep: int = 8) -> str:
    """Shorten an identifier for log output."""
    if len(identifier) <= keep:
        return identifier
    return identifier[:keep] + "..."


def run_sync(coro):
    """
    Run an async coroutine from sync context.
    If already inside a running event loop, raise a clear error.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    coro.close()
    raise RuntimeError(
        "Cannot use *_sync methods inside a running event loop. Use async methods instead."
    )
