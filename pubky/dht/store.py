"""
Record store interface.

The distributed hash table (and any relay in front of it) is reached
only through ``lookup`` and ``publish``. MemoryRecordStore keeps records
in process and stands in for a DHT testnet in local setups and tests.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..auth.identity import z32_encode
from ..errors import EntryNotPublished, InvalidSignedRecord
from .records import SignedRecord

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Storage for signed records keyed by public key."""

    @abstractmethod
    async def lookup(self, public_key: bytes) -> Optional[SignedRecord]:
        """
        Get the most recent record for a public key.

        Returns:
            The signed record, or None if nothing is published
        """
        ...

    @abstractmethod
    async def publish(self, record: SignedRecord) -> None:
        """
        Store a signed record.

        Raises:
            EntryNotPublished: The store refused the record
        """
        ...


class MemoryRecordStore(RecordStore):
    """In-process record store keeping the most recent record per key."""

    def __init__(self):
        self._records: Dict[bytes, SignedRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    async def lookup(self, public_key: bytes) -> Optional[SignedRecord]:
        return self._records.get(bytes(public_key))

    async def publish(self, record: SignedRecord) -> None:
        try:
            record.verify()
        except InvalidSignedRecord as e:
            raise EntryNotPublished(str(e)) from e

        existing = self._records.get(record.public_key)
        if existing is not None and record.timestamp < existing.timestamp:
            raise EntryNotPublished(
                f"Stale record for {z32_encode(record.public_key)}: "
                f"{record.timestamp} < {existing.timestamp}"
            )

        self._records[record.public_key] = record
        logger.debug(f"Stored record for {record.z32} at {record.timestamp}")

    def clear(self) -> None:
        self._records.clear()
