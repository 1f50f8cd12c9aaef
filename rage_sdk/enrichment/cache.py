from __future__ import annotations

import time
from collections import OrderedDict
from typing import Any, Callable, Optional

from ..observability.models import CacheEvent


class ContextCache:
    """TTL cache of final enrichment contexts, oldest entry evicted first."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
        on_event: Optional[Callable[[CacheEvent], None]] = None,
    ) -> None:
        self.ttl = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._on_event = on_event
        self._store: "OrderedDict[str, tuple[float, Any]]" = OrderedDict()

    @property
    def enabled(self) -> bool:
        return self.ttl > 0 and self.max_entries > 0

    @staticmethod
    def make_key(query: str, k: int, language: str = "english") -> str:
        return f"{language}:{k}:{' '.join(query.lower().split())}"

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        item = self._store.get(key)
        if item is None:
            self._emit(CacheEvent.MISS)
            return None
        ts, value = item
        if self._clock() - ts > self.ttl:
            # expired
            self._store.pop(key, None)
            self._emit(CacheEvent.EVICT)
            self._emit(CacheEvent.MISS)
            return None
        self._emit(CacheEvent.HIT)
        return value

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        self._store.pop(key, None)
        while len(self._store) >= self.max_entries:
            self._store.popitem(last=False)
            self._emit(CacheEvent.EVICT)
        self._store[key] = (self._clock(), value)
        self._emit(CacheEvent.SET)

    def cleanup_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (ts, _) in self._store.items() if now - ts > self.ttl]
        for k in expired:
            self._store.pop(k, None)
            self._emit(CacheEvent.EVICT)
        return len(expired)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def _emit(self, event: CacheEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)
