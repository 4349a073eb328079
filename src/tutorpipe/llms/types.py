from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines common provider-agnostic types used in provider interactions.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

if TYPE_CHECKING:
    from .cancellation import CancellationToken

Role = Literal["system", "user", "assistant"]
HealthStatus: TypeAlias = Literal["healthy", "unhealthy"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class ProviderMessage:
    role: Role
    content: str

    def to_payload(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True, slots=True)
class Usage:
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None


@dataclass(frozen=True, slots=True)
class ChatOptions:
    """
    Per-call overrides. Unset fields fall back to `ProviderConfig` defaults.
    """

    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    timeout_s: float | None = None


@dataclass(frozen=True, slots=True)
class ProviderResponse:
    id: str
    content: str
    model: str
    usage: Usage | None = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True, slots=True)
class StreamingChunk:
    """
    One incremental unit of streamed content.

    A chunk with `is_complete=True` is terminal for its stream. Terminal chunks
    produced by abnormal truncation carry `error`; `usage` is only ever set on
    the terminal chunk.
    """

    content: str
    is_complete: bool = False
    timestamp: float = 0.0
    sequence_index: int = 0
    error: str | None = None
    usage: Usage | None = None


@dataclass(frozen=True, slots=True)
class ProviderHealth:
    status: HealthStatus
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ChatRequest:
    """
    Canonical request type passed through middleware to the transport.
    """

    messages: list[ProviderMessage]
    options: ChatOptions = field(default_factory=ChatOptions)
    request_id: str | None = None
    cancel_token: "CancellationToken | None" = None
    metadata: dict[str, Any] = field(default_factory=dict)
