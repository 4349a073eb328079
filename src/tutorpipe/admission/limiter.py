from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Fixed-window admission limiter with exponential backoff.
"""

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from ..llms.utils import redact_identifier
from .policy import DEFAULT_POLICY, AdmissionPolicy

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RateLimitRecord:
    count: int
    window_reset_at: float
    last_attempt_at: float
    backoff_until: float | None = None


@dataclass(frozen=True, slots=True)
class AdmissionDecision:
    allowed: bool
    wait_time_s: int | None = None
    attempts_remaining: int | None = None


@dataclass(frozen=True, slots=True)
class FailureOutcome:
    """Result of `record_failure`; locking the account is the caller's call."""

    should_lock_account: bool
    wait_time_s: int | None = None


@dataclass(frozen=True, slots=True)
class AdmissionStatus:
    attempts: int
    is_blocked: bool
    next_reset_at: float | None = None
    backoff_until: float | None = None


class AdmissionLimiter:
    """
    Per `(identifier, action)` attempt counter.

    Checks never raise; a missing record means "fresh, allowed". All record
    mutation, including the periodic sweep, happens under one lock so the
    limiter can be shared between threads as well as tasks.
    """

    def __init__(
        self,
        policy: AdmissionPolicy = DEFAULT_POLICY,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.policy = policy
        self._clock = clock
        self._records: dict[tuple[str, str], RateLimitRecord] = {}
        self._lock = threading.Lock()
        self._sweeper: asyncio.Task[None] | None = None

    def check_limit(self, identifier: str, action: str = "default") -> AdmissionDecision:
        key = (identifier, action)
        policy = self.policy
        with self._lock:
            now = self._clock()
            record = self._records.get(key)

            if record is not None and record.backoff_until is not None and now < record.backoff_until:
                return AdmissionDecision(
                    allowed=False,
                    wait_time_s=_wait_seconds(record.backoff_until - now),
                    attempts_remaining=0,
                )

            if record is None or now > record.window_reset_at:
                self._records[key] = RateLimitRecord(
                    count=1,
                    window_reset_at=now + policy.window_s,
                    last_attempt_at=now,
                )
                return AdmissionDecision(
                    allowed=True,
                    attempts_remaining=policy.max_attempts - 1,
                )

            if record.count >= policy.max_attempts:
                backoff_s = policy.backoff_for(record.count - policy.max_attempts + 1)
                record.backoff_until = now + backoff_s
                record.count += 1
                record.last_attempt_at = now
                wait_time_s = _wait_seconds(backoff_s)
                logger.warning(
                    "Admission denied for %s/%s after %d attempts; backing off %ds",
                    redact_identifier(identifier),
                    action,
                    record.count,
                    wait_time_s,
                )
                return AdmissionDecision(
                    allowed=False,
                    wait_time_s=wait_time_s,
                    attempts_remaining=0,
                )

            record.count += 1
            record.last_attempt_at = now
            return AdmissionDecision(
                allowed=True,
                attempts_remaining=policy.max_attempts - record.count,
            )

    def record_success(self, identifier: str, action: str = "default") -> None:
        with self._lock:
            self._records.pop((identifier, action), None)

    def record_failure(self, identifier: str, action: str = "default") -> FailureOutcome:
        """
        Count a failed attempt and report whether the account should be locked.

        The lock signal fires once the attempt count reaches
        `policy.lock_threshold` inside the current window.
        """
        decision = self.check_limit(identifier, action)
        with self._lock:
            record = self._records.get((identifier, action))
            should_lock = record is not None and record.count >= self.policy.lock_threshold
        if should_lock:
            logger.warning(
                "Lock threshold reached for %s/%s", redact_identifier(identifier), action
            )
        return FailureOutcome(
            should_lock_account=should_lock,
            wait_time_s=decision.wait_time_s,
        )

    def get_status(self, identifier: str, action: str = "default") -> AdmissionStatus:
        with self._lock:
            record = self._records.get((identifier, action))
            if record is None:
                return AdmissionStatus(attempts=0, is_blocked=False)
            now = self._clock()
            in_backoff = record.backoff_until is not None and now < record.backoff_until
            exhausted = record.count >= self.policy.max_attempts and now <= record.window_reset_at
            return AdmissionStatus(
                attempts=record.count,
                is_blocked=in_backoff or exhausted,
                next_reset_at=record.window_reset_at,
                backoff_until=record.backoff_until,
            )

    def reset(self, identifier: str, action: str | None = None) -> None:
        """Forget one action for `identifier`, or every action when omitted."""
        with self._lock:
            if action is not None:
                self._records.pop((identifier, action), None)
                return
            for key in [key for key in self._records if key[0] == identifier]:
                del self._records[key]

    def sweep(self) -> int:
        """Delete records whose window and backoff have both elapsed."""
        with self._lock:
            now = self._clock()
            expired = [
                key
                for key, record in self._records.items()
                if now > record.window_reset_at
                and (record.backoff_until is None or now > record.backoff_until)
            ]
            for key in expired:
                del self._records[key]
        if expired:
            logger.debug("Swept %d expired admission records", len(expired))
        return len(expired)

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self.running:
            return
        self._sweeper = asyncio.create_task(self._sweep_forever())

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        task = self._sweeper
        self._sweeper = None
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.policy.sweep_interval_s)
            self.sweep()

    async def __aenter__(self) -> "AdmissionLimiter":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def _wait_seconds(delay_s: float) -> int:
    return max(1, math.ceil(delay_s))
