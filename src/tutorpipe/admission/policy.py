from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Admission policies: window size, attempt cap and backoff curve.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AdmissionPolicy:
    """
    Constants for one admission limiter.

    Once `max_attempts` is exhausted inside a window, each further attempt is
    denied and pushes `backoff_until` out by
    `min(max_backoff_s, backoff_base_s * backoff_multiplier ** overflow)`.
    """

    max_attempts: int = 5
    window_s: float = 15 * 60.0
    backoff_base_s: float = 1.0
    backoff_multiplier: float = 2.0
    max_backoff_s: float = 5 * 60.0
    sweep_interval_s: float = 60.0
    lock_threshold_multiplier: int = 3

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.window_s <= 0:
            raise ValueError("window_s must be greater than 0")
        if self.backoff_base_s < 0 or self.max_backoff_s < 0:
            raise ValueError("backoff settings must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        if self.sweep_interval_s <= 0:
            raise ValueError("sweep_interval_s must be greater than 0")
        if self.lock_threshold_multiplier < 1:
            raise ValueError("lock_threshold_multiplier must be at least 1")

    @property
    def lock_threshold(self) -> int:
        return self.max_attempts * self.lock_threshold_multiplier

    def backoff_for(self, overflow: int) -> float:
        """Backoff in seconds for the `overflow`-th attempt past the cap."""
        return min(
            self.backoff_base_s * (self.backoff_multiplier ** overflow),
            self.max_backoff_s,
        )


DEFAULT_POLICY = AdmissionPolicy()

# Per-account authentication throttle.
AUTH_POLICY = AdmissionPolicy(max_backoff_s=30 * 60.0)

# Coarse per-source request throttle: short window, fast backoff, low ceiling.
SOURCE_POLICY = AdmissionPolicy(
    max_attempts=10,
    window_s=60.0,
    backoff_multiplier=3.0,
    max_backoff_s=60.0,
)

API_POLICY = AdmissionPolicy(
    max_attempts=60,
    window_s=60.0,
    backoff_multiplier=1.5,
    max_backoff_s=5 * 60.0,
)
