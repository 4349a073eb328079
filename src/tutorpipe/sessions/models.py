from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the conversation session model.
"""

import time
import uuid
from dataclasses import dataclass

from ..llms.types import ProviderMessage


@dataclass(frozen=True, slots=True)
class Session:
    """
    Immutable snapshot of one conversation.

    `messages` is replayed verbatim to the provider on every call, so it is
    append-only apart from the rollback of an unanswered user turn.
    """

    id: str
    topic: str
    messages: tuple[ProviderMessage, ...] = ()
    created_at: float = 0.0
    last_active_at: float = 0.0


def now_s() -> float:
    return time.time()


def new_id(prefix: str = "session") -> str:
    return f"{prefix}_{uuid.uuid4().hex}"
