from __future__ import annotations

"""
Provider lifecycle events and the stock observers that consume them.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Literal, Protocol

from .types import Usage

logger = logging.getLogger(__name__)

ProviderLifecycleEventType = Literal[
    "request_start",
    "retry",
    "request_success",
    "request_error",
    "cancel",
    "stream_start",
    "stream_end",
]


@dataclass(frozen=True, slots=True)
class ProviderLifecycleEvent:
    """
    One lifecycle event emitted by `ProviderClient`.

    `error_message` carries the exception text only, never a provider body.
    """

    event_type: ProviderLifecycleEventType
    request_id: str
    model: str | None = None
    attempt: int | None = None
    latency_ms: float | None = None
    usage: Usage | None = None
    error_class: str | None = None
    error_message: str | None = None


class ProviderObserver(Protocol):
    def __call__(self, event: ProviderLifecycleEvent) -> None | Awaitable[None]:
        ...


def logging_observer(event: ProviderLifecycleEvent) -> None:
    """Mirror lifecycle events onto this module's logger at DEBUG."""
    logger.debug(
        "provider %s request=%s attempt=%s latency_ms=%s error=%s",
        event.event_type,
        event.request_id,
        event.attempt,
        None if event.latency_ms is None else round(event.latency_ms, 1),
        event.error_class,
    )


class CallStats:
    """
    Running counters fed by lifecycle events.

    Register an instance as an observer; read `as_dict()` for a snapshot.
    """

    def __init__(self) -> None:
        self.requests = 0
        self.retries = 0
        self.successes = 0
        self.failures = 0
        self.cancellations = 0
        self.streams = 0
        self.total_tokens = 0
        self._latency_ms_total = 0.0

    def __call__(self, event: ProviderLifecycleEvent) -> None:
        kind = event.event_type
        if kind == "request_start":
            self.requests += 1
        elif kind == "retry":
            self.retries += 1
        elif kind == "request_success":
            self.successes += 1
            self._latency_ms_total += event.latency_ms or 0.0
        elif kind == "request_error":
            self.failures += 1
        elif kind == "cancel":
            self.cancellations += 1
        elif kind == "stream_start":
            self.streams += 1

        if event.usage is not None and event.usage.total_tokens:
            self.total_tokens += event.usage.total_tokens

    @property
    def mean_latency_ms(self) -> float:
        if not self.successes:
            return 0.0
        return self._latency_ms_total / self.successes

    def as_dict(self) -> dict[str, float]:
        return {
            "requests": self.requests,
            "retries": self.retries,
            "successes": self.successes,
            "failures": self.failures,
            "cancellations": self.cancellations,
            "streams": self.streams,
            "total_tokens": self.total_tokens,
            "mean_latency_ms": self.mean_latency_ms,
        }
