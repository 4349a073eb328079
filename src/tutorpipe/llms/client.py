from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

HTTP client for chat-completions providers with retry, timeout,
cancellation and session bookkeeping.
"""

import inspect
import logging
import time
import uuid
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Sequence, TypeVar, cast

import httpx

from ..sessions.store import SessionStore
from .cancellation import CancellationToken, await_cancellable, sleep_cancellable
from .config import ProviderConfig
from .errors import (
    ProviderCancelledError,
    ProviderConfigurationError,
    ProviderError,
    ProviderHTTPError,
    ProviderInvalidResponseError,
    ProviderTimeoutError,
    ProviderTransportError,
    is_retryable,
)
from .middleware import MiddlewareStack
from .observability import ProviderLifecycleEvent, ProviderObserver
from .types import (
    ChatOptions,
    ChatRequest,
    ProviderHealth,
    ProviderMessage,
    ProviderResponse,
    StreamingChunk,
    Usage,
)
from .utils import backoff_delay, clamp_str, run_sync
from .wire import build_chat_payload, parse_completion, parse_stream_line

logger = logging.getLogger(__name__)

ReturnT = TypeVar("ReturnT")

_COMPLETIONS_PATH = "/chat/completions"
_ACTIVE_WINDOW_S = 24 * 60 * 60
_MAX_ERROR_BODY_CHARS = 2000


async def _next_line(lines: AsyncIterator[str]) -> str | None:
    try:
        return await lines.__anext__()
    except StopAsyncIteration:
        return None


class ProviderClient:
    """
    Client for one chat-completions provider endpoint.

    Public surface:
      - send/send_sync/complete for single-shot completions
      - stream for incremental chunks
      - send_to_session/stream_session for session-bound conversations
      - health_check/get_metrics for diagnostics

    A client built without an API key is disabled rather than invalid: it
    reports itself unhealthy, `send` raises `ProviderConfigurationError` and
    `stream` yields one terminal error chunk.
    """

    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        session_store: SessionStore | None = None,
        middlewares: MiddlewareStack | None = None,
        observers: list[ProviderObserver] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or ProviderConfig.from_env()
        self.sessions = session_store if session_store is not None else SessionStore()
        self.middlewares = middlewares if middlewares is not None else MiddlewareStack()
        self._observers = list(observers or [])
        self._transport = transport
        self._clock = clock
        self._http: httpx.AsyncClient | None = None

        if not self.is_enabled:
            logger.warning("Provider API key not configured; client is disabled")

    @property
    def is_enabled(self) -> bool:
        return self.config.has_api_key

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=httpx.Timeout(self.config.timeout_s),
                headers={
                    "Authorization": f"Bearer {self.config.api_key}",
                    "Content-Type": "application/json",
                },
                transport=self._transport,
            )
        return self._http

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> "ProviderClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Single-shot completions
    # ------------------------------------------------------------------

    async def send(
        self,
        messages: Sequence[ProviderMessage],
        options: ChatOptions | None = None,
        *,
        cancel_token: CancellationToken | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> ProviderResponse:
        """
        Execute a non-streaming chat completion.

        Retries transient failures with exponential backoff. Raises the last
        classified `ProviderError` once attempts are exhausted.
        """
        req = self._build_request(messages, options, cancel_token, metadata)
        if not self.is_enabled:
            raise ProviderConfigurationError("Provider API key is not configured")

        async def _base_handler(current_req: ChatRequest) -> ProviderResponse:
            return await self._call_with_retries(
                lambda: self._send_core(current_req),
                req=current_req,
            )

        return await self.middlewares.wrap_chat(_base_handler)(req)

    async def complete(
        self,
        prompt: str,
        options: ChatOptions | None = None,
        *,
        system_prompt: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ProviderResponse:
        """Send one user prompt, optionally preceded by a system prompt."""
        messages: list[ProviderMessage] = []
        if system_prompt:
            messages.append(ProviderMessage(role="system", content=system_prompt))
        messages.append(ProviderMessage(role="user", content=prompt))
        return await self.send(messages, options, cancel_token=cancel_token)

    def send_sync(
        self,
        messages: Sequence[ProviderMessage],
        options: ChatOptions | None = None,
    ) -> ProviderResponse:
        """
        Synchronous wrapper around `send`.

        The pooled HTTP client is bound to the temporary event loop, so it is
        released before the loop closes.
        """

        async def _send_and_release() -> ProviderResponse:
            try:
                return await self.send(messages, options)
            finally:
                await self.close()

        return run_sync(_send_and_release())

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def stream(
        self,
        messages: Sequence[ProviderMessage],
        options: ChatOptions | None = None,
        *,
        cancel_token: CancellationToken | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> AsyncIterator[StreamingChunk]:
        """
        Execute a streaming chat completion.

        Yields content chunks in order and ends with exactly one terminal chunk
        (`is_complete=True`), unless the stream is cancelled through
        `cancel_token`, in which case iteration simply stops. Truncated or
        broken streams end with a terminal chunk carrying `error`.
        """
        req = self._build_request(messages, options, cancel_token, metadata)
        return self.middlewares.wrap_stream(self._stream_with_safety)(req)

    async def _stream_with_safety(
        self, req: ChatRequest
    ) -> AsyncIterator[StreamingChunk]:
        request_id = req.request_id or self._new_request_id()
        model = self._model_for(req)

        if not self.is_enabled:
            yield self._chunk(
                "",
                0,
                is_complete=True,
                error="Provider API key is not configured",
            )
            return

        try:
            response = await self._call_with_retries(
                lambda: self._open_stream(req),
                req=req,
            )
        except ProviderCancelledError:
            return

        await self._emit_lifecycle_event(
            event_type="stream_start",
            request_id=request_id,
            model=model,
        )

        sequence = 0
        usage: Usage | None = None
        failure: str | None = None
        finished = False
        lines = response.aiter_lines()
        try:
            while True:
                try:
                    line = await await_cancellable(
                        _next_line(lines),
                        token=req.cancel_token,
                        timeout_s=None,
                    )
                except ProviderCancelledError:
                    logger.debug("Stream %s cancelled by caller", request_id)
                    await self._emit_lifecycle_event(
                        event_type="cancel",
                        request_id=request_id,
                        model=model,
                    )
                    return
                except httpx.HTTPError as e:
                    logger.warning(
                        "Stream %s interrupted: %s", request_id, type(e).__name__
                    )
                    failure = "Stream interrupted by a transport error"
                    break

                if line is None:
                    logger.warning("Stream %s ended without a terminator", request_id)
                    failure = "Stream ended before completion"
                    break

                record = parse_stream_line(line)
                if record.usage is not None:
                    usage = record.usage
                if record.kind == "done":
                    finished = True
                    break
                if record.kind == "delta" and record.content:
                    yield self._chunk(record.content, sequence)
                    sequence += 1

            yield self._chunk(
                "",
                sequence,
                is_complete=True,
                error=None if finished else failure,
                usage=usage,
            )
        finally:
            await response.aclose()
            await self._emit_lifecycle_event(
                event_type="stream_end",
                request_id=request_id,
                model=model,
                usage=usage,
            )

    # ------------------------------------------------------------------
    # Session-bound calls
    # ------------------------------------------------------------------

    async def send_to_session(
        self,
        session_id: str,
        text: str,
        options: ChatOptions | None = None,
        *,
        cancel_token: CancellationToken | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> ProviderResponse:
        """
        Send `text` as the next user turn of a session.

        On success the session grows by exactly two messages (user + assistant).
        On any failure, including cancellation, the user turn is rolled back so
        the history only holds turns the provider acknowledged.
        """
        self.sessions.require(session_id)
        async with self.sessions.lock_for(session_id):
            user_turn = ProviderMessage(role="user", content=text)
            session = self.sessions.append(session_id, user_turn)
            acknowledged = False
            try:
                response = await self.send(
                    session.messages,
                    options,
                    cancel_token=cancel_token,
                    metadata=metadata,
                )
                self.sessions.append(
                    session_id,
                    ProviderMessage(role="assistant", content=response.content),
                )
                acknowledged = True
                return response
            finally:
                if not acknowledged:
                    self.sessions.remove_last(session_id, user_turn)
                    logger.debug("Rolled back unanswered turn in session %s", session_id)

    async def stream_session(
        self,
        session_id: str,
        text: str,
        options: ChatOptions | None = None,
        *,
        cancel_token: CancellationToken | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> AsyncIterator[StreamingChunk]:
        """
        Streaming variant of `send_to_session`.

        The assembled reply is appended only when the stream terminates
        normally; errors, truncation, cancellation and abandoned iteration all
        roll back the user turn.
        """
        self.sessions.require(session_id)
        async with self.sessions.lock_for(session_id):
            user_turn = ProviderMessage(role="user", content=text)
            session = self.sessions.append(session_id, user_turn)
            parts: list[str] = []
            acknowledged = False
            chunks = self.stream(
                session.messages,
                options,
                cancel_token=cancel_token,
                metadata=metadata,
            )
            try:
                async for chunk in chunks:
                    if chunk.is_complete:
                        if chunk.error is None:
                            self.sessions.append(
                                session_id,
                                ProviderMessage(role="assistant", content="".join(parts)),
                            )
                            acknowledged = True
                    else:
                        parts.append(chunk.content)
                    yield chunk
            finally:
                if not acknowledged:
                    self.sessions.remove_last(session_id, user_turn)
                    logger.debug("Rolled back unanswered turn in session %s", session_id)
                aclose = getattr(chunks, "aclose", None)
                if aclose is not None:
                    await aclose()

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def health_check(self) -> ProviderHealth:
        details: dict[str, Any] = {
            "has_api_key": self.config.has_api_key,
            "base_url": self.config.base_url,
            "timeout_s": self.config.timeout_s,
            "max_retries": self.config.max_retries,
            **self.get_metrics(),
        }
        return ProviderHealth(
            status="healthy" if self.is_enabled else "unhealthy",
            details=details,
        )

    def get_metrics(self) -> dict[str, int]:
        sessions = self.sessions.list()
        active_after = self._clock() - _ACTIVE_WINDOW_S
        return {
            "total_sessions": len(sessions),
            "active_sessions": sum(
                1 for session in sessions if session.last_active_at > active_after
            ),
            "total_messages": sum(len(session.messages) for session in sessions),
        }

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send_core(self, req: ChatRequest) -> ProviderResponse:
        model = self._model_for(req)
        try:
            response = await self._get_http_client().post(
                _COMPLETIONS_PATH,
                json=self._payload_for(req, stream=False),
                timeout=httpx.Timeout(self._timeout_for(req)),
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"Provider request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderTransportError(
                f"Provider transport failure: {type(e).__name__}"
            ) from e

        if not response.is_success:
            raise ProviderHTTPError(
                response.status_code, clamp_str(response.text, _MAX_ERROR_BODY_CHARS)
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderInvalidResponseError("Provider returned non-JSON body") from e

        payload = parse_completion(body)
        message = payload.choices[0].message
        return ProviderResponse(
            id=payload.id or req.request_id or self._new_request_id(),
            content=cast(str, message.content if message is not None else ""),
            model=payload.model or model,
            usage=payload.usage.to_usage() if payload.usage is not None else None,
        )

    async def _open_stream(self, req: ChatRequest) -> httpx.Response:
        client = self._get_http_client()
        request = client.build_request(
            "POST",
            _COMPLETIONS_PATH,
            json=self._payload_for(req, stream=True),
            headers={"Accept": "text/event-stream"},
            timeout=httpx.Timeout(self._timeout_for(req)),
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"Provider stream timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderTransportError(
                f"Provider transport failure: {type(e).__name__}"
            ) from e

        if not response.is_success:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            except httpx.HTTPError:
                body = ""
            finally:
                await response.aclose()
            raise ProviderHTTPError(
                response.status_code, clamp_str(body, _MAX_ERROR_BODY_CHARS)
            )
        return response

    async def _call_with_retries(
        self,
        fn: Callable[[], Awaitable[ReturnT]],
        *,
        req: ChatRequest,
    ) -> ReturnT:
        """
        Execute one provider call with retry-on-transient-error semantics.

        Every attempt gets a fresh timeout budget; the cancellation token is
        honoured both during attempts and during backoff sleeps.
        """
        request_id = req.request_id or self._new_request_id()
        model = self._model_for(req)
        timeout_s = self._timeout_for(req)
        attempts = self.config.max_retries

        await self._emit_lifecycle_event(
            event_type="request_start",
            request_id=request_id,
            model=model,
            attempt=1,
        )

        try:
            for attempt in range(1, attempts + 1):
                started_at = time.monotonic()
                try:
                    result = await await_cancellable(
                        fn(),
                        token=req.cancel_token,
                        timeout_s=timeout_s,
                    )
                except ProviderCancelledError:
                    raise
                except ProviderError as e:
                    latency_ms = (time.monotonic() - started_at) * 1000.0
                    if is_retryable(e) and attempt < attempts:
                        delay = backoff_delay(
                            attempt,
                            self.config.backoff_base_s,
                            self.config.backoff_jitter_s,
                            self.config.backoff_max_s,
                        )
                        logger.warning(
                            "Provider request %s failed (%s), attempt %d/%d; retrying in %.2fs",
                            request_id,
                            type(e).__name__,
                            attempt,
                            attempts,
                            delay,
                        )
                        await self._emit_lifecycle_event(
                            event_type="retry",
                            request_id=request_id,
                            model=model,
                            attempt=attempt,
                            latency_ms=latency_ms,
                            error=e,
                        )
                        await sleep_cancellable(delay, req.cancel_token)
                        continue

                    logger.error(
                        "Provider request %s failed after %d attempt(s): %s",
                        request_id,
                        attempt,
                        type(e).__name__,
                    )
                    await self._emit_lifecycle_event(
                        event_type="request_error",
                        request_id=request_id,
                        model=model,
                        attempt=attempt,
                        latency_ms=latency_ms,
                        error=e,
                    )
                    raise

                latency_ms = (time.monotonic() - started_at) * 1000.0
                await self._emit_lifecycle_event(
                    event_type="request_success",
                    request_id=request_id,
                    model=model,
                    attempt=attempt,
                    latency_ms=latency_ms,
                    usage=result.usage if isinstance(result, ProviderResponse) else None,
                )
                return result
        except ProviderCancelledError:
            logger.info("Provider request %s cancelled", request_id)
            await self._emit_lifecycle_event(
                event_type="cancel",
                request_id=request_id,
                model=model,
            )
            raise

        raise ProviderError(f"Provider call failed after {attempts} attempt(s)")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_request(
        self,
        messages: Sequence[ProviderMessage],
        options: ChatOptions | None,
        cancel_token: CancellationToken | None,
        metadata: Mapping[str, Any] | None,
    ) -> ChatRequest:
        if not messages:
            raise ProviderError("messages must contain at least one message")
        options = options or ChatOptions()
        if options.timeout_s is not None and options.timeout_s <= 0:
            raise ProviderError("ChatOptions.timeout_s must be greater than 0")
        if options.max_tokens is not None and options.max_tokens <= 0:
            raise ProviderError("ChatOptions.max_tokens must be greater than 0")
        return ChatRequest(
            messages=list(messages),
            options=options,
            request_id=self._new_request_id(),
            cancel_token=cancel_token,
            metadata=dict(metadata or {}),
        )

    def _payload_for(self, req: ChatRequest, *, stream: bool) -> dict[str, Any]:
        return build_chat_payload(
            req.messages,
            req.options,
            default_model=self.config.default_model,
            default_temperature=self.config.temperature,
            default_max_tokens=self.config.max_tokens,
            stream=stream,
        )

    def _timeout_for(self, req: ChatRequest) -> float:
        if req.options.timeout_s is not None:
            return req.options.timeout_s
        return self.config.timeout_s

    def _model_for(self, req: ChatRequest) -> str:
        return req.options.model or self.config.default_model

    def _chunk(
        self,
        content: str,
        sequence_index: int,
        *,
        is_complete: bool = False,
        error: str | None = None,
        usage: Usage | None = None,
    ) -> StreamingChunk:
        return StreamingChunk(
            content=content,
            is_complete=is_complete,
            timestamp=self._clock(),
            sequence_index=sequence_index,
            error=error,
            usage=usage,
        )

    def _new_request_id(self) -> str:
        return uuid.uuid4().hex

    async def _emit_lifecycle_event(
        self,
        *,
        event_type: str,
        request_id: str,
        model: str | None,
        attempt: int | None = None,
        latency_ms: float | None = None,
        usage: Usage | None = None,
        error: Exception | None = None,
    ) -> None:
        """Emit one lifecycle event to observers, swallowing observer failures."""
        if not self._observers:
            return

        event = ProviderLifecycleEvent(
            event_type=cast(Any, event_type),
            request_id=request_id,
            model=model,
            attempt=attempt,
            latency_ms=latency_ms,
            usage=usage,
            error_class=type(error).__name__ if error is not None else None,
            error_message=str(error) if error is not None else None,
        )

        for observer in self._observers:
            try:
                result = observer(event)
                if inspect.isawaitable(result):
                    await cast(Awaitable[Any], result)
            except Exception:
                logger.debug("Provider observer raised; ignoring", exc_info=True)
                continue
