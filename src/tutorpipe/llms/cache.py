from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Optional in-memory cache for single-shot completions, usable as chat
middleware in front of the provider.
"""

import hashlib
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

from .middleware import ProviderChatNext
from .types import ChatRequest, ProviderResponse

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    entries: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "entries": self.entries,
            "hit_rate": self.hit_rate,
        }


class ResponseCache:
    """
    Per-process TTL cache of provider responses keyed by request content.

    Entries expire after `ttl_s`; once `max_entries` is reached the least
    recently used entry is evicted. Streams are never cached, and failures
    are never stored.
    """

    def __init__(
        self,
        *,
        max_entries: int = 1000,
        ttl_s: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if ttl_s <= 0:
            raise ValueError("ttl_s must be greater than 0")
        self.max_entries = max_entries
        self.ttl_s = ttl_s
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, ProviderResponse]] = OrderedDict()
        self._stats = CacheStats()

    @staticmethod
    def key_for(req: ChatRequest) -> str:
        h = hashlib.sha256()
        opts = req.options
        h.update(
            f"{opts.model or 'default'}|{opts.temperature}|{opts.max_tokens}".encode(
                "utf-8"
            )
        )
        for message in req.messages:
            h.update(b"\x1e")
            h.update(message.role.encode("utf-8"))
            h.update(b"\x1f")
            h.update(message.content.encode("utf-8"))
        return h.hexdigest()

    def get(self, req: ChatRequest) -> ProviderResponse | None:
        key = self.key_for(req)
        item = self._entries.get(key)
        if item is not None:
            expires_at, response = item
            if self._clock() < expires_at:
                self._entries.move_to_end(key)
                self._stats.hits += 1
                return response
            del self._entries[key]
        self._stats.misses += 1
        return None

    def set(self, req: ChatRequest, response: ProviderResponse) -> None:
        key = self.key_for(req)
        self._entries[key] = (self._clock() + self.ttl_s, response)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            self._stats.evictions += 1

    def invalidate(self, req: ChatRequest) -> bool:
        return self._entries.pop(self.key_for(req), None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def prune(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._stats.hits,
            misses=self._stats.misses,
            evictions=self._stats.evictions,
            entries=len(self._entries),
        )

    def __len__(self) -> int:
        return len(self._entries)

    async def chat(self, call_next: ProviderChatNext, req: ChatRequest) -> ProviderResponse:
        cached = self.get(req)
        if cached is not None:
            logger.debug("Serving request %s from cache", req.request_id)
            return cached
        response = await call_next(req)
        self.set(req, response)
        return response
