"""
Signed records and their storage.

Provides:
- Signed DNS record sets published under a public key
- The record store interface and an in-process store
- Homeserver URL caches

Resolution on top of these lives in ``pubky.dht.resolver``.
"""

from .records import ResourceRecord, SignedRecord, txt_attributes
from .store import MemoryRecordStore, RecordStore
from .cache import HomeserverCache, MemoryCache, NoCache, TTLCache

__all__ = [
    # Records
    "ResourceRecord",
    "SignedRecord",
    "txt_attributes",
    # Stores
    "RecordStore",
    "MemoryRecordStore",
    # Caches
    "HomeserverCache",
    "MemoryCache",
    "NoCache",
    "TTLCache",
]
