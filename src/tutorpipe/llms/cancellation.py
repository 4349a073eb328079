from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Cooperative cancellation primitives shared by the provider client.
"""

import asyncio
import inspect
from typing import Awaitable, TypeVar

from .errors import ProviderCancelledError, ProviderTimeoutError

ReturnT = TypeVar("ReturnT")


class CancellationToken:
    """
    Caller-owned cancellation signal.

    One token may be shared by several calls; once cancelled it stays cancelled.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise ProviderCancelledError(self._reason or "Request cancelled")


async def await_cancellable(
    aw: Awaitable[ReturnT],
    *,
    token: CancellationToken | None,
    timeout_s: float | None,
) -> ReturnT:
    """
    Await `aw` under an optional timeout and cancellation token.

    Raises `ProviderTimeoutError` when the timeout elapses first and
    `ProviderCancelledError` when the token fires first. The inner work is
    cancelled in both cases.
    """
    if token is not None and token.cancelled:
        if inspect.iscoroutine(aw):
            aw.close()
        token.raise_if_cancelled()

    work = asyncio.ensure_future(aw)
    waiters: set[asyncio.Future] = {work}
    cancel_waiter: asyncio.Task[None] | None = None
    if token is not None:
        cancel_waiter = asyncio.create_task(token.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(
            waiters,
            timeout=timeout_s,
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        work.cancel()
        await asyncio.gather(work, return_exceptions=True)
        raise
    finally:
        if cancel_waiter is not None and not cancel_waiter.done():
            cancel_waiter.cancel()

    if work in done:
        return work.result()

    work.cancel()
    await asyncio.gather(work, return_exceptions=True)
    if cancel_waiter is not None and cancel_waiter in done:
        raise ProviderCancelledError(
            (token.reason if token is not None else None) or "Request cancelled"
        )
    raise ProviderTimeoutError(f"Request timed out after {timeout_s}s")


async def sleep_cancellable(delay_s: float, token: CancellationToken | None) -> None:
    """Sleep for `delay_s`, aborting early with `ProviderCancelledError`."""
    if token is None:
        await asyncio.sleep(delay_s)
        return
    token.raise_if_cancelled()
    try:
        await asyncio.wait_for(token.wait(), timeout=delay_s)
    except asyncio.TimeoutError:
        return
    raise ProviderCancelledError(token.reason or "Request cancelled")
