"""
Tests for signed DNS records.
"""

import pytest

from pubky.auth.identity import KeyPair, z32_encode
from pubky.dht.records import (
    MAX_PACKET_SIZE,
    ResourceRecord,
    SignedRecord,
    decode_packet,
    encode_packet,
    txt_attributes,
)
from pubky.errors import InvalidSignedRecord


@pytest.fixture
def keypair(seed):
    return KeyPair.from_seed(seed)


class TestTxtAttributes:
    """Tests for TXT attribute parsing."""

    def test_forms(self):
        """Test key=value, key= and bare keys."""
        assert txt_attributes(["home=abc", "empty=", "flag"]) == [
            ("home", "abc"),
            ("empty", ""),
            ("flag", None),
        ]

    def test_value_keeps_equals(self):
        """Test only the first '=' splits."""
        assert txt_attributes(["k=a=b"]) == [("k", "a=b")]

    def test_first_occurrence_wins(self):
        """Test duplicate keys keep the first value."""
        assert txt_attributes(["home=one", "home=two"]) == [("home", "one")]


class TestPacket:
    """Tests for DNS packet encoding."""

    def test_names_relative_to_key(self, keypair):
        """Test record names come back relative to the public key."""
        public_key = keypair.public_bytes()
        packet = encode_packet(public_key, [
            ResourceRecord.txt("_pubky", 7200, "home=abc"),
            ResourceRecord.cname("@", 30, "example.com"),
        ])

        records = decode_packet(public_key, packet)

        assert ResourceRecord.txt("_pubky", 7200, "home=abc") in records
        assert ResourceRecord.cname("@", 30, "example.com") in records

    def test_foreign_names_ignored(self, keypair):
        """Test records outside the key's zone are dropped."""
        packet = encode_packet(keypair.public_bytes(), [ResourceRecord.txt("@", 30, "a")])
        assert decode_packet(KeyPair.random().public_bytes(), packet) == []

    def test_malformed_packet(self, keypair):
        """Test garbage is reported as an invalid record."""
        with pytest.raises(InvalidSignedRecord):
            decode_packet(keypair.public_bytes(), b"\x01\x02\x03")


class TestSignedRecord:
    """Tests for signing and decoding records."""

    def test_from_records(self, keypair):
        """Test a signed record verifies and exposes its records."""
        record = SignedRecord.from_records(keypair, [ResourceRecord.txt("_pubky", 7200, "home=x")])

        record.verify()
        assert record.z32 == keypair.to_z32()
        assert record.resource_records("_pubky")[0].attributes() == [("home", "x")]
        assert record.resource_records("@") == []

    def test_relay_payload(self, keypair):
        """Test the relay body is signature, timestamp, packet."""
        record = SignedRecord.from_records(keypair, [ResourceRecord.txt("@", 30, "a")], timestamp=42)
        payload = record.to_relay_payload()

        assert payload[:64] == record.signature
        assert payload[64:72] == (42).to_bytes(8, "big")
        assert payload[72:] == record.packet
        assert SignedRecord.from_relay_payload(record.public_key, payload) == record

    def test_full_form(self, keypair):
        """Test the full form is the public key followed by the relay body."""
        record = SignedRecord.from_records(keypair, [ResourceRecord.txt("@", 30, "a")])
        data = record.to_bytes()

        assert data[:32] == keypair.public_bytes()
        assert SignedRecord.from_bytes(data) == record

    def test_tampered_packet(self, keypair):
        """Test modified packets fail verification."""
        record = SignedRecord.from_records(keypair, [ResourceRecord.txt("@", 30, "a")], timestamp=42)
        payload = bytearray(record.to_relay_payload())
        payload[-1] ^= 0xFF

        with pytest.raises(InvalidSignedRecord):
            SignedRecord.from_relay_payload(record.public_key, bytes(payload))

    def test_tampered_timestamp(self, keypair):
        """Test the timestamp is covered by the signature."""
        record = SignedRecord.from_records(keypair, [ResourceRecord.txt("@", 30, "a")], timestamp=42)
        forged = SignedRecord(record.public_key, record.signature, 43, record.packet)

        with pytest.raises(InvalidSignedRecord):
            forged.verify()

    def test_wrong_key(self, keypair):
        """Test a record cannot be replayed under another key."""
        record = SignedRecord.from_records(keypair, [ResourceRecord.txt("@", 30, "a")])
        with pytest.raises(InvalidSignedRecord):
            SignedRecord.from_relay_payload(KeyPair.random().public_bytes(), record.to_relay_payload())

    def test_short_payload(self, keypair):
        with pytest.raises(InvalidSignedRecord):
            SignedRecord.from_relay_payload(keypair.public_bytes(), bytes(10))

    def test_packet_too_large(self, keypair):
        """Test packets over the size limit are refused."""
        records = [ResourceRecord.txt(f"_big{i}", 30, "a" * 200) for i in range(6)]
        with pytest.raises(InvalidSignedRecord):
            SignedRecord.from_records(keypair, records)

    def test_packet_size_limit_on_decode(self, keypair):
        with pytest.raises(InvalidSignedRecord):
            SignedRecord(keypair.public_bytes(), bytes(64), 0, bytes(MAX_PACKET_SIZE + 1))

    def test_z32_names_use_key(self, keypair):
        """Test the packet is rooted at the z-base-32 key."""
        record = SignedRecord.from_records(keypair, [ResourceRecord.txt("@", 30, "a")])
        assert z32_encode(keypair.public_bytes()).encode() in record.packet
