"""
Signed DNS records published under a public key.

A signed record is a small DNS packet (answers only) signed with the
owner's Ed25519 key, laid out the way pkarr relays and the mainline DHT
expect it:

    public_key (32) | signature (64) | timestamp (u64 BE, microseconds) | packet

The signature covers the bencoded ``3:seqi<timestamp>e1:v<len>:<packet>``.
Record names are relative to the owner's z-base-32 public key, so ``@``
is the key itself and ``_pubky`` is ``_pubky.<key>``.
"""

import struct
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

import dns.exception
import dns.flags
import dns.message
import dns.name
import dns.rdataclass
import dns.rdatatype
import dns.rrset
from dns.rdtypes.ANY.CNAME import CNAME
from dns.rdtypes.ANY.TXT import TXT

from ..auth.identity import (
    PUBLIC_KEY_LENGTH,
    SIGNATURE_LENGTH,
    KeyPair,
    verify_signature,
    z32_encode,
)
from ..errors import InvalidSignedRecord

MAX_PACKET_SIZE = 1000
HEADER_LENGTH = PUBLIC_KEY_LENGTH + SIGNATURE_LENGTH + 8


@dataclass(frozen=True)
class ResourceRecord:
    """One DNS record, named relative to the owner's public key."""
    name: str  # "@", "_pubky", ...
    rtype: str  # "TXT", "CNAME", ...
    ttl: int
    value: Union[str, Tuple[str, ...]]  # TXT: character strings, CNAME: target

    @classmethod
    def txt(cls, name: str, ttl: int, *strings: str) -> "ResourceRecord":
        return cls(name=name, rtype="TXT", ttl=ttl, value=tuple(strings))

    @classmethod
    def cname(cls, name: str, ttl: int, target: str) -> "ResourceRecord":
        return cls(name=name, rtype="CNAME", ttl=ttl, value=target.rstrip("."))

    def attributes(self) -> List[Tuple[str, Optional[str]]]:
        """TXT attributes of this record (empty for other types)."""
        if self.rtype != "TXT":
            return []
        return txt_attributes(self.value)


def txt_attributes(strings: Iterable[str]) -> List[Tuple[str, Optional[str]]]:
    """
    Parse TXT character strings as attributes.

    ``key=value`` gives (key, value), ``key=`` gives (key, ""), ``key``
    gives (key, None). The first occurrence of a key wins.
    """
    attributes = []
    seen = set()
    for string in strings:
        key, sep, value = string.partition("=")
        if not key or key in seen:
            continue
        seen.add(key)
        attributes.append((key, value if sep else None))
    return attributes


def _origin(public_key: bytes) -> dns.name.Name:
    return dns.name.from_text(z32_encode(public_key))


def _absolute_name(name: str, origin: dns.name.Name) -> dns.name.Name:
    if name in ("@", ""):
        return origin
    return dns.name.from_text(name, origin=origin)


def _to_rdata(record: ResourceRecord):
    if record.rtype == "TXT":
        return TXT(dns.rdataclass.IN, dns.rdatatype.TXT, [s.encode() for s in record.value])
    if record.rtype == "CNAME":
        return CNAME(dns.rdataclass.IN, dns.rdatatype.CNAME, dns.name.from_text(record.value))
    raise ValueError(f"Unsupported record type: {record.rtype}")


def encode_packet(public_key: bytes, records: Iterable[ResourceRecord]) -> bytes:
    """Encode records as a DNS reply packet rooted at the public key."""
    origin = _origin(public_key)
    message = dns.message.Message(id=0)
    message.flags |= dns.flags.QR
    for record in records:
        rrset = dns.rrset.from_rdata(_absolute_name(record.name, origin), record.ttl, _to_rdata(record))
        message.answer.append(rrset)
    return message.to_wire()


def decode_packet(public_key: bytes, packet: bytes) -> List[ResourceRecord]:
    """Decode a DNS packet into records named relative to the public key."""
    try:
        message = dns.message.from_wire(packet)
    except dns.exception.DNSException as e:
        raise InvalidSignedRecord(f"Malformed DNS packet: {e}") from e

    origin = _origin(public_key)
    records = []
    for rrset in message.answer:
        if not rrset.name.is_subdomain(origin):
            continue
        name = rrset.name.relativize(origin).to_text()
        rtype = dns.rdatatype.to_text(rrset.rdtype)
        for rdata in rrset:
            if rrset.rdtype == dns.rdatatype.TXT:
                value = tuple(s.decode("utf-8", errors="replace") for s in rdata.strings)
            elif rrset.rdtype == dns.rdatatype.CNAME:
                value = rdata.target.to_text(omit_final_dot=True)
            else:
                value = rdata.to_text()
            records.append(ResourceRecord(name=name, rtype=rtype, ttl=rrset.ttl, value=value))
    return records


def _signable(timestamp: int, packet: bytes) -> bytes:
    return b"3:seqi%de1:v%d:" % (timestamp, len(packet)) + packet


@dataclass(frozen=True)
class SignedRecord:
    """A signed set of DNS records published under a public key."""
    public_key: bytes
    signature: bytes
    timestamp: int  # microseconds since epoch
    packet: bytes

    def __post_init__(self):
        if len(self.public_key) != PUBLIC_KEY_LENGTH:
            raise InvalidSignedRecord(f"Invalid public key length: {len(self.public_key)}")
        if len(self.signature) != SIGNATURE_LENGTH:
            raise InvalidSignedRecord(f"Invalid signature length: {len(self.signature)}")
        if len(self.packet) > MAX_PACKET_SIZE:
            raise InvalidSignedRecord(
                f"DNS packet is {len(self.packet)} bytes, max is {MAX_PACKET_SIZE}"
            )

    @classmethod
    def from_records(
        cls,
        keypair: KeyPair,
        records: Iterable[ResourceRecord],
        timestamp: Optional[int] = None,
    ) -> "SignedRecord":
        """Encode and sign a record set with the owner's key pair."""
        public_key = keypair.public_bytes()
        packet = encode_packet(public_key, records)
        if len(packet) > MAX_PACKET_SIZE:
            raise InvalidSignedRecord(
                f"DNS packet is {len(packet)} bytes, max is {MAX_PACKET_SIZE}"
            )
        if timestamp is None:
            timestamp = time.time_ns() // 1000
        signature = keypair.sign(_signable(timestamp, packet))
        return cls(public_key=public_key, signature=signature, timestamp=timestamp, packet=packet)

    @classmethod
    def from_relay_payload(cls, public_key: bytes, payload: bytes) -> "SignedRecord":
        """Decode and verify a relay body (signature | timestamp | packet)."""
        if len(payload) < SIGNATURE_LENGTH + 8:
            raise InvalidSignedRecord(f"Relay payload too short: {len(payload)} bytes")
        signature = payload[:SIGNATURE_LENGTH]
        (timestamp,) = struct.unpack(">Q", payload[SIGNATURE_LENGTH:SIGNATURE_LENGTH + 8])
        record = cls(
            public_key=bytes(public_key),
            signature=bytes(signature),
            timestamp=timestamp,
            packet=bytes(payload[SIGNATURE_LENGTH + 8:]),
        )
        record.verify()
        return record

    @classmethod
    def from_bytes(cls, data: bytes) -> "SignedRecord":
        """Decode and verify the full form (public key | relay payload)."""
        if len(data) < HEADER_LENGTH:
            raise InvalidSignedRecord(f"Signed record too short: {len(data)} bytes")
        return cls.from_relay_payload(data[:PUBLIC_KEY_LENGTH], data[PUBLIC_KEY_LENGTH:])

    def to_relay_payload(self) -> bytes:
        return self.signature + struct.pack(">Q", self.timestamp) + self.packet

    def to_bytes(self) -> bytes:
        return self.public_key + self.to_relay_payload()

    def verify(self) -> None:
        """Raise InvalidSignedRecord unless the signature verifies."""
        if not verify_signature(self.public_key, _signable(self.timestamp, self.packet), self.signature):
            raise InvalidSignedRecord(f"Invalid signature for {self.z32}")

    @property
    def z32(self) -> str:
        return z32_encode(self.public_key)

    def records(self) -> List[ResourceRecord]:
        return decode_packet(self.public_key, self.packet)

    def resource_records(self, name: str) -> List[ResourceRecord]:
        """Records with the given relative name ("@" for the key itself)."""
        return [r for r in self.records() if r.name == name]
