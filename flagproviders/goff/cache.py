"""LRU cache of flag resolutions, keyed by flag and evaluation context."""

from __future__ import annotations

import json
import threading
import time
from collections import OrderedDict
from dataclasses import replace
from typing import Any, Mapping

from flagproviders.resolution import FlagType, ResolutionDetail

DEFAULT_CACHE_SIZE = 10000
DEFAULT_CACHE_TTL = 60.0


class CacheTypeError(TypeError):
    """The cached resolution is not of the requested flag type."""


class FlagCache:
    """A size-bounded LRU cache with per-entry expiry.

    ``size`` of 0 means the default size and a negative size disables storage.
    ``ttl`` is in seconds; 0 means the default and a negative ttl keeps entries forever.
    """

    def __init__(self, size: int = 0, ttl: float = 0.0, disabled: bool = False) -> None:
        if size == 0:
            size = DEFAULT_CACHE_SIZE
        if ttl == 0:
            ttl = DEFAULT_CACHE_TTL
        self._size = size
        self._ttl = ttl
        self._disabled = disabled
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, tuple[ResolutionDetail, float | None]] | None = (
            OrderedDict() if size > 0 and not disabled else None
        )

    def get(self, flag: str, context: Mapping[str, Any], flag_type: FlagType) -> ResolutionDetail | None:
        """Return a copy of the cached resolution, or None when absent, expired or disabled."""
        if self._disabled or self._entries is None:
            return None
        key = self._key(flag, context)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            detail, expires_at = entry
            if expires_at is not None and time.monotonic() >= expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
        if detail.flag_type is not flag_type:
            raise CacheTypeError(f"unexpected type in cache (expecting {flag_type.value})")
        return replace(detail, flag_metadata=dict(detail.flag_metadata))

    def set(self, flag: str, context: Mapping[str, Any], detail: ResolutionDetail) -> None:
        """Store a resolution, evicting the least recently used entry when full."""
        if self._disabled or self._entries is None:
            return
        key = self._key(flag, context)
        expires_at = time.monotonic() + self._ttl if self._ttl >= 0 else None
        with self._lock:
            self._entries[key] = (detail, expires_at)
            self._entries.move_to_end(key)
            while len(self._entries) > self._size:
                self._entries.popitem(last=False)

    def purge(self) -> None:
        """Drop every entry."""
        if self._entries is not None:
            with self._lock:
                self._entries.clear()

    @staticmethod
    def _key(flag: str, context: Mapping[str, Any]) -> str:
        return f"{flag}-{json.dumps(dict(context), sort_keys=True, default=repr)}"