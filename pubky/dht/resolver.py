"""
Homeserver resolution through signed records.

Resolving a user's homeserver always takes two lookups:

1. the user's record, whose ``_pubky`` TXT holds ``home=<homeserver key>``
2. the homeserver's record, whose ``@`` entry holds its address, either a
   CNAME (``https://<name>``) or, for local development, a TXT attribute
   starting with ``localhost`` (``http://localhost<value>``)

Resolved URLs are kept in a HomeserverCache. A configured relay is always
preferred over the record store for both lookups and publishes.
"""

import logging
from typing import Dict, List, Optional, Tuple, Union
from urllib.parse import urlsplit

from ..auth.identity import KeyPair, public_key_from_z32, z32_encode
from ..errors import (
    DHTError,
    EntryNotFound,
    EntryNotPublished,
    FailedToParseDnsRecordAsUrl,
    FailedToResolveHomeserverUrl,
    NoRecordsFound,
    NoRecordStore,
)
from ..network.relay import RelayClient
from .cache import HomeserverCache, TTLCache
from .records import ResourceRecord, SignedRecord
from .store import RecordStore

logger = logging.getLogger(__name__)

PUBKY_NAME = "_pubky"
APEX_NAME = "@"
HOME_ATTRIBUTE = "home"
LOCALHOST_ATTRIBUTE = "localhost"

PUBKY_TTL = 7200
APEX_TTL = 30

PublicKey = Union[str, bytes]


def _key_bytes(public_key: PublicKey) -> bytes:
    if isinstance(public_key, str):
        return public_key_from_z32(public_key)
    return bytes(public_key)


def _key_z32(public_key: PublicKey) -> str:
    if isinstance(public_key, str):
        return public_key
    return z32_encode(public_key)


def _check_url(url: str) -> str:
    try:
        parts = urlsplit(url)
        # .port raises ValueError for non-numeric or out of range ports
        valid = parts.scheme in ("http", "https") and bool(parts.hostname) and parts.port != 0
    except ValueError as e:
        raise FailedToParseDnsRecordAsUrl(f"Invalid homeserver URL {url!r}: {e}") from e
    if not valid:
        raise FailedToParseDnsRecordAsUrl(f"Invalid homeserver URL {url!r}")
    return url


def url_to_record(url: str, ttl: int = APEX_TTL) -> ResourceRecord:
    """
    Encode a homeserver URL as the ``@`` record.

    https URLs without a port or path become a CNAME; localhost URLs
    become a ``localhost=<:port/path>`` TXT attribute.
    """
    url = _check_url(url.rstrip("/"))
    parts = urlsplit(url)

    if parts.scheme == "http" and parts.hostname == LOCALHOST_ATTRIBUTE:
        rest = url[len(f"{parts.scheme}://{LOCALHOST_ATTRIBUTE}"):]
        attribute = f"{LOCALHOST_ATTRIBUTE}={rest}" if rest else LOCALHOST_ATTRIBUTE
        return ResourceRecord.txt(APEX_NAME, ttl, attribute)

    if parts.scheme == "https" and parts.port is None and not parts.path and not parts.query:
        return ResourceRecord.cname(APEX_NAME, ttl, parts.hostname)

    raise FailedToParseDnsRecordAsUrl(
        f"Cannot publish {url!r}: expected https://<host> or a localhost URL"
    )


def record_to_url(record: ResourceRecord) -> Optional[str]:
    """Decode an ``@`` record into a homeserver URL, None if it carries none."""
    if record.rtype == "CNAME":
        if not record.value:
            return None
        return _check_url(f"https://{record.value}")

    for key, value in record.attributes():
        if key.startswith(LOCALHOST_ATTRIBUTE):
            return _check_url(f"http://{key}{value or ''}")
    return None


class Resolver:
    """
    Resolves public keys to homeserver URLs and publishes the mapping.

    Args:
        store: Record store (DHT) used when no relay is configured
        relay: URL of a pkarr relay, takes precedence over the store
        cache: Homeserver cache (default: TTLCache)
        timeout: Relay request timeout in seconds
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        relay: Optional[str] = None,
        cache: Optional[HomeserverCache] = None,
        timeout: float = 30.0,
    ):
        self.store = store
        self.relay = relay
        self.cache = cache if cache is not None else TTLCache()
        self.timeout = timeout
        self._relays: Dict[str, RelayClient] = {}

    async def close(self) -> None:
        for relay in self._relays.values():
            await relay.close()
        self._relays.clear()

    def _record_store(self, relay: Optional[str] = None) -> RecordStore:
        relay = relay or self.relay
        if relay:
            if relay not in self._relays:
                self._relays[relay] = RelayClient(relay, timeout=self.timeout)
            return self._relays[relay]
        if self.store is not None:
            return self.store
        raise NoRecordStore()

    async def resolve_homeserver(self, public_key: PublicKey, relay: Optional[str] = None) -> str:
        """
        Resolve a user's public key to its homeserver URL.

        Raises:
            EntryNotFound: Nothing is published under a key on the chain
            NoRecordsFound: A record lacks a usable home / @ entry
            FailedToParseDnsRecordAsUrl: The @ entry is not a valid URL
            FailedToResolveHomeserverUrl: The record store could not be queried
        """
        user_id = _key_z32(public_key)
        cached = self.cache.get(user_id)
        if cached is not None:
            logger.debug(f"Homeserver cache hit for {user_id}")
            return cached

        record = await self.lookup(public_key, relay)

        home_key, home_ttl = self._home_key(record)
        url, url_ttl = await self._resolve_homeserver_url(home_key, relay)

        self.cache.set(user_id, url, ttl=min(home_ttl, url_ttl))
        logger.info(f"Resolved homeserver for {user_id}: {url}")
        return url

    def _home_key(self, record: SignedRecord) -> Tuple[bytes, int]:
        for rr in record.resource_records(PUBKY_NAME):
            for key, value in rr.attributes():
                if not key.startswith(HOME_ATTRIBUTE):
                    continue
                if not value:
                    raise NoRecordsFound(f"Empty {key} attribute in {PUBKY_NAME} for {record.z32}")
                try:
                    return public_key_from_z32(value), rr.ttl
                except ValueError as e:
                    raise NoRecordsFound(f"Invalid homeserver key {value!r}: {e}") from e
        raise NoRecordsFound(f"No {PUBKY_NAME} home record for {record.z32}")

    async def _resolve_homeserver_url(
        self, public_key: PublicKey, relay: Optional[str] = None
    ) -> Tuple[str, int]:
        record = await self.lookup(public_key, relay)
        for rr in record.resource_records(APEX_NAME):
            url = record_to_url(rr)
            if url is not None:
                return url, rr.ttl
        raise NoRecordsFound(f"No {APEX_NAME} homeserver record for {record.z32}")

    async def lookup(self, public_key: PublicKey, relay: Optional[str] = None) -> SignedRecord:
        """
        Fetch the most recent signed record for a public key.

        Raises:
            EntryNotFound: Nothing is published under the key
        """
        try:
            key = _key_bytes(public_key)
        except ValueError as e:
            raise FailedToResolveHomeserverUrl(f"Invalid public key {public_key!r}: {e}") from e

        store = self._record_store(relay)
        try:
            record = await store.lookup(key)
        except DHTError:
            raise
        except Exception as e:
            raise FailedToResolveHomeserverUrl(str(e)) from e

        if record is None:
            raise EntryNotFound(z32_encode(key))
        return record

    async def publish(self, keypair: KeyPair, homeserver_url: str, relay: Optional[str] = None) -> SignedRecord:
        """
        Publish ``keypair``'s identity -> homeserver mapping.

        Raises:
            FailedToParseDnsRecordAsUrl: The URL cannot be encoded as a record
            EntryNotPublished: The relay or store refused the record
        """
        user_id = keypair.to_z32()
        records: List[ResourceRecord] = [
            ResourceRecord.txt(PUBKY_NAME, PUBKY_TTL, f"{HOME_ATTRIBUTE}={user_id}"),
            url_to_record(homeserver_url, APEX_TTL),
        ]
        record = SignedRecord.from_records(keypair, records)

        store = self._record_store(relay)
        try:
            await store.publish(record)
        except EntryNotPublished:
            raise
        except Exception as e:
            logger.error(f"Failed to publish record for {user_id}: {e}")
            raise EntryNotPublished(str(e)) from e

        self.cache.set(user_id, homeserver_url.rstrip("/"), ttl=APEX_TTL)
        logger.info(f"Published homeserver {homeserver_url} for {user_id}")
        return record

    def invalidate(self, public_key: PublicKey) -> None:
        """Drop the cached homeserver for a public key."""
        self.cache.invalidate(_key_z32(public_key))
