"""
Homeserver URL caches for the resolver.

The resolver consults its cache before any network lookup and writes
through on every successful resolve or publish. The cache is an
interface so callers can pick the staleness they accept:

- TTLCache: entries expire after the TTL of the records they came from
- MemoryCache: entries never expire
- NoCache: nothing is kept, every resolve hits the network
"""

import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, Optional, Tuple


class HomeserverCache(ABC):
    """Mapping of public key (z-base-32) to homeserver URL."""

    @abstractmethod
    def get(self, public_key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, public_key: str, url: str, ttl: Optional[int] = None) -> None:
        """Store a URL. ``ttl`` is the max-age in seconds, None for no limit."""
        ...

    @abstractmethod
    def invalidate(self, public_key: str) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemoryCache(HomeserverCache):
    """Unbounded cache whose entries never expire."""

    def __init__(self):
        self._entries: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, public_key: str) -> Optional[str]:
        return self._entries.get(public_key)

    def set(self, public_key: str, url: str, ttl: Optional[int] = None) -> None:
        self._entries[public_key] = url

    def invalidate(self, public_key: str) -> None:
        self._entries.pop(public_key, None)

    def clear(self) -> None:
        self._entries.clear()


class TTLCache(HomeserverCache):
    """
    LRU cache honouring record TTLs.

    Args:
        max_entries: Evict the least recently used entry beyond this size
        default_ttl: Max-age used when ``set`` is called without a TTL
    """

    def __init__(self, max_entries: int = 1024, default_ttl: Optional[int] = None):
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self._entries: "OrderedDict[str, Tuple[str, Optional[float]]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, public_key: str) -> Optional[str]:
        entry = self._entries.get(public_key)
        if entry is None:
            return None
        url, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._entries[public_key]
            return None
        self._entries.move_to_end(public_key)
        return url

    def set(self, public_key: str, url: str, ttl: Optional[int] = None) -> None:
        if ttl is None:
            ttl = self.default_ttl
        expires_at = time.monotonic() + ttl if ttl is not None else None
        self._entries[public_key] = (url, expires_at)
        self._entries.move_to_end(public_key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def invalidate(self, public_key: str) -> None:
        self._entries.pop(public_key, None)

    def clear(self) -> None:
        self._entries.clear()


class NoCache(HomeserverCache):
    """Cache that stores nothing."""

    def get(self, public_key: str) -> Optional[str]:
        return None

    def set(self, public_key: str, url: str, ttl: Optional[int] = None) -> None:
        pass

    def invalidate(self, public_key: str) -> None:
        pass

    def clear(self) -> None:
        pass
