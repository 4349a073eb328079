from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Chat-completions wire format: request payloads, response validation and
server-sent-event record parsing.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import ProviderInvalidResponseError
from .types import ChatOptions, ProviderMessage, Usage

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
_DATA_PREFIX = "data:"


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class UsagePayload(_WireModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    def to_usage(self) -> Usage:
        return Usage(
            input_tokens=self.prompt_tokens,
            output_tokens=self.completion_tokens,
            total_tokens=self.total_tokens,
        )


class MessagePayload(_WireModel):
    role: str | None = None
    content: str | None = None


class ChoicePayload(_WireModel):
    index: int = 0
    message: MessagePayload | None = None
    delta: MessagePayload | None = None
    finish_reason: str | None = None


class ChatCompletionPayload(_WireModel):
    id: str | None = None
    model: str | None = None
    choices: list[ChoicePayload] = []
    usage: UsagePayload | None = None


@dataclass(frozen=True, slots=True)
class StreamRecord:
    """One decoded `data:` record from a streaming response."""

    kind: Literal["delta", "done", "skip"]
    content: str = ""
    usage: Usage | None = None


def build_chat_payload(
    messages: list[ProviderMessage],
    options: ChatOptions,
    *,
    default_model: str,
    default_temperature: float,
    default_max_tokens: int,
    stream: bool,
) -> dict[str, Any]:
    """Build the JSON body for `POST /chat/completions`."""
    return {
        "model": options.model or default_model,
        "messages": [message.to_payload() for message in messages],
        "temperature": (
            options.temperature if options.temperature is not None else default_temperature
        ),
        "max_tokens": (
            options.max_tokens if options.max_tokens is not None else default_max_tokens
        ),
        "stream": stream,
    }


def parse_completion(body: Any) -> ChatCompletionPayload:
    """
    Validate a non-streaming completion body.

    The first choice must carry a string `message.content`; anything else is
    treated as an invalid response rather than an empty answer.
    """
    try:
        payload = ChatCompletionPayload.model_validate(body)
    except ValidationError as e:
        raise ProviderInvalidResponseError(
            f"Completion payload did not match schema: {e.error_count()} error(s)"
        ) from e

    if not payload.choices:
        raise ProviderInvalidResponseError("Completion payload has no choices")

    message = payload.choices[0].message
    if message is None or message.content is None:
        raise ProviderInvalidResponseError("Completion payload has no message content")

    return payload


def parse_stream_line(line: str) -> StreamRecord:
    """
    Decode one line of a server-sent-event body.

    Blank lines, comments, non-data fields and malformed JSON records are
    skipped; the literal `[DONE]` record terminates the stream.
    """
    stripped = line.strip()
    if not stripped or not stripped.startswith(_DATA_PREFIX):
        return StreamRecord(kind="skip")

    data = stripped[len(_DATA_PREFIX) :].strip()
    if data == DONE_SENTINEL:
        return StreamRecord(kind="done")

    try:
        raw = json.loads(data)
        payload = ChatCompletionPayload.model_validate(raw)
    except (json.JSONDecodeError, ValidationError):
        logger.debug("Skipping malformed stream record")
        return StreamRecord(kind="skip")

    usage = payload.usage.to_usage() if payload.usage is not None else None
    content = ""
    if payload.choices:
        delta = payload.choices[0].delta
        if delta is not None and delta.content:
            content = delta.content

    if not content and usage is None:
        return StreamRecord(kind="skip")
    return StreamRecord(kind="delta", content=content, usage=usage)
