from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Middleware protocols for provider calls and the stack that composes them.
"""

from typing import AsyncIterator, Awaitable, Callable, Protocol

from .types import ChatRequest, ProviderResponse, StreamingChunk


ProviderChatNext = Callable[[ChatRequest], Awaitable[ProviderResponse]]
ProviderStreamNext = Callable[[ChatRequest], AsyncIterator[StreamingChunk]]


class ProviderChatMiddleware(Protocol):
    async def __call__(
        self, call_next: ProviderChatNext, req: ChatRequest
    ) -> ProviderResponse: ...


class ProviderStreamMiddleware(Protocol):
    """
    Stream middleware returns an async iterator, usually by being an async
    generator itself. Work done before its first `yield` runs lazily, on the
    consumer's first iteration.
    """

    def __call__(
        self, call_next: ProviderStreamNext, req: ChatRequest
    ) -> AsyncIterator[StreamingChunk]: ...


class MiddlewareStack:
    """
    Ordered chat and stream middleware.

    The first registered middleware is the outermost: it sees the request
    first and the response last.
    """

    def __init__(
        self,
        chat: list[ProviderChatMiddleware] | None = None,
        stream: list[ProviderStreamMiddleware] | None = None,
    ) -> None:
        self.chat = list(chat or [])
        self.stream = list(stream or [])

    def wrap_chat(self, handler: ProviderChatNext) -> ProviderChatNext:
        call_next = handler
        for middleware in reversed(self.chat):
            previous = call_next

            async def _wrapped(
                req: ChatRequest,
                *,
                _mw=middleware,
                _next=previous,
            ) -> ProviderResponse:
                return await _mw(_next, req)

            call_next = _wrapped
        return call_next

    def wrap_stream(self, handler: ProviderStreamNext) -> ProviderStreamNext:
        call_next = handler
        for middleware in reversed(self.stream):
            previous = call_next

            def _wrapped(
                req: ChatRequest,
                *,
                _mw=middleware,
                _next=previous,
            ) -> AsyncIterator[StreamingChunk]:
                return _mw(_next, req)

            call_next = _wrapped
        return call_next

    def __len__(self) -> int:
        return len(self.chat) + len(self.stream)
