from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Provider middleware that runs every call through an admission limiter.
"""

import logging
from typing import AsyncIterator

from ..llms.errors import AdmissionDeniedError
from ..llms.middleware import ProviderChatNext, ProviderStreamNext
from ..llms.types import ChatRequest, ProviderResponse, StreamingChunk
from .limiter import AdmissionLimiter

logger = logging.getLogger(__name__)


class AdmissionGate:
    """
    Gate provider calls behind `AdmissionLimiter.check_limit`.

    The caller identity is read from `req.metadata["identifier"]`, falling back
    to `default_identifier`. A denied call raises `AdmissionDeniedError`
    before any network traffic; a successful call clears the identity's record.

    Register `gate.chat` and `gate.stream` on a `MiddlewareStack`.
    """

    def __init__(
        self,
        limiter: AdmissionLimiter,
        *,
        action: str = "provider_request",
        default_identifier: str = "anonymous",
    ) -> None:
        self.limiter = limiter
        self.action = action
        self.default_identifier = default_identifier

    def _identifier(self, req: ChatRequest) -> str:
        identifier = req.metadata.get("identifier")
        if isinstance(identifier, str) and identifier.strip():
            return identifier
        return self.default_identifier

    def _admit(self, identifier: str) -> None:
        decision = self.limiter.check_limit(identifier, self.action)
        if not decision.allowed:
            raise AdmissionDeniedError(decision.wait_time_s or 1, action=self.action)

    async def chat(self, call_next: ProviderChatNext, req: ChatRequest) -> ProviderResponse:
        identifier = self._identifier(req)
        self._admit(identifier)
        response = await call_next(req)
        self.limiter.record_success(identifier, self.action)
        return response

    async def stream(
        self, call_next: ProviderStreamNext, req: ChatRequest
    ) -> AsyncIterator[StreamingChunk]:
        identifier = self._identifier(req)
        self._admit(identifier)
        async for chunk in call_next(req):
            if chunk.is_complete and chunk.error is None:
                self.limiter.record_success(identifier, self.action)
            yield chunk
