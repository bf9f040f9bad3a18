"""
Homeserver authentication challenges.

A challenge is a short-lived random nonce issued by a homeserver. The
client proves ownership of its key by signing a value derived from the
nonce with a BLAKE3 key derivation bound to this protocol, so a
signature can never be replayed in another context.

Wire format (40 bytes): 32-byte nonce followed by the expiry as an
8-byte big-endian unix timestamp (seconds).
"""

import secrets
import struct
import time
from dataclasses import dataclass, field
from typing import Optional

from blake3 import blake3

from ..errors import ChallengeExpired, InvalidChallenge, InvalidChallengeSignature
from .identity import KeyPair, verify_signature

CONTEXT = "pubky:homeserver:challenge"

VALUE_LENGTH = 32
SERIALIZED_LENGTH = VALUE_LENGTH + 8


def now() -> int:
    """Current unix time in seconds."""
    return int(time.time())


def derive_signable(value: bytes) -> bytes:
    """Derive the 32 bytes that get signed for a challenge value."""
    return blake3(value, derive_key_context=CONTEXT).digest()


@dataclass
class Challenge:
    """A homeserver challenge. ``signable`` is always derived from ``value``."""
    value: bytes
    expires_at: int
    signable: bytes = field(init=False, repr=False)

    def __post_init__(self):
        if len(self.value) != VALUE_LENGTH:
            raise InvalidChallenge(
                f"Challenge value must be {VALUE_LENGTH} bytes, got {len(self.value)}"
            )
        self.signable = derive_signable(self.value)

    @classmethod
    def create(cls, expires_at: int, value: Optional[bytes] = None) -> "Challenge":
        """Create a challenge, generating a random value when none is given."""
        if value is None:
            value = secrets.token_bytes(VALUE_LENGTH)
        return cls(value=value, expires_at=expires_at)

    def serialize(self) -> bytes:
        return self.value + struct.pack(">Q", self.expires_at)

    @classmethod
    def deserialize(cls, data: bytes) -> "Challenge":
        if len(data) != SERIALIZED_LENGTH:
            raise InvalidChallenge(
                f"Challenge must be {SERIALIZED_LENGTH} bytes, got {len(data)}"
            )
        (expires_at,) = struct.unpack(">Q", data[VALUE_LENGTH:])
        return cls(value=bytes(data[:VALUE_LENGTH]), expires_at=expires_at)

    def expired(self) -> bool:
        return self.expires_at <= now()

    def sign(self, keypair: KeyPair) -> bytes:
        """Sign the challenge with a key pair."""
        return keypair.sign(self.signable)

    def verify(self, signature: bytes, public_key: bytes) -> None:
        """
        Verify a signature over this challenge.

        Args:
            signature: Raw 64-byte Ed25519 signature
            public_key: Raw 32-byte public key of the signer

        Raises:
            ChallengeExpired: The challenge is past its expiry
            InvalidChallengeSignature: The signature does not verify
        """
        if self.expired():
            raise ChallengeExpired()
        if not verify_signature(public_key, self.signable, signature):
            raise InvalidChallengeSignature()
