"""
User identity using Ed25519 cryptography.

Each user is identified by an Ed25519 public key. Encoded with z-base-32,
the public key is the user id used in homeserver paths, record names and
the resolver cache.
"""

import secrets
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

SEED_LENGTH = 32
PUBLIC_KEY_LENGTH = 32
SIGNATURE_LENGTH = 64

Z32_ALPHABET = "ybndrfg8ejkmcpqxot1uwisza345h769"
_Z32_INDEX = {c: i for i, c in enumerate(Z32_ALPHABET)}


def z32_encode(data: bytes) -> str:
    """Encode bytes as z-base-32 (MSB first, no padding)."""
    if not data:
        return ""
    nbits = len(data) * 8
    nchars = (nbits + 4) // 5
    value = int.from_bytes(data, "big") << (nchars * 5 - nbits)
    return "".join(
        Z32_ALPHABET[(value >> ((nchars - 1 - i) * 5)) & 0x1F]
        for i in range(nchars)
    )


def z32_decode(encoded: str) -> bytes:
    """Decode a z-base-32 string. Raises ValueError on unknown characters."""
    value = 0
    for char in encoded:
        try:
            value = (value << 5) | _Z32_INDEX[char]
        except KeyError:
            raise ValueError(f"Invalid z-base-32 character: {char!r}") from None
    nbytes = len(encoded) * 5 // 8
    value >>= len(encoded) * 5 - nbytes * 8
    return value.to_bytes(nbytes, "big")


def public_key_from_z32(user_id: str) -> bytes:
    """Decode a z-base-32 user id into raw public key bytes."""
    public_key = z32_decode(user_id)
    if len(public_key) != PUBLIC_KEY_LENGTH:
        raise ValueError(f"Invalid public key length: {len(public_key)}")
    return public_key


def generate_seed() -> bytes:
    """Generate a random 32-byte seed."""
    return secrets.token_bytes(SEED_LENGTH)


class KeyPair:
    """
    Ed25519 key pair for signing.

    The secret key lives in a mutable buffer so it can be scrubbed after
    its last use. Use the key pair as a context manager to zeroize it on
    every exit path:

        with KeyPair.from_seed(seed) as keypair:
            signature = keypair.sign(message)
    """

    def __init__(self, secret: bytes):
        if len(secret) != SEED_LENGTH:
            raise ValueError(f"Secret key must be {SEED_LENGTH} bytes, got {len(secret)}")
        self._secret = bytearray(secret)
        self._zeroized = False
        private_key = Ed25519PrivateKey.from_private_bytes(bytes(self._secret))
        self._public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    @classmethod
    def from_seed(cls, seed: bytes) -> "KeyPair":
        """Derive a key pair deterministically from a 32-byte seed."""
        return cls(seed)

    @classmethod
    def random(cls) -> "KeyPair":
        """Generate a new random key pair."""
        return cls(generate_seed())

    def __enter__(self) -> "KeyPair":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.zeroize()

    def __repr__(self) -> str:
        return f"KeyPair(public_key={self.to_z32()!r})"

    @property
    def is_zeroized(self) -> bool:
        return self._zeroized

    @property
    def secret_buffer(self) -> bytearray:
        """The live secret key buffer (all zeros once zeroized)."""
        return self._secret

    def public_bytes(self) -> bytes:
        """Export public key as raw bytes (32 bytes)."""
        return self._public_bytes

    def to_z32(self) -> str:
        """Get the user id (z-base-32 encoded public key)."""
        return z32_encode(self._public_bytes)

    def sign(self, message: bytes) -> bytes:
        """Sign a message. Raises ValueError once the key has been zeroized."""
        if self.is_zeroized:
            raise ValueError("Key pair has been zeroized")
        private_key = Ed25519PrivateKey.from_private_bytes(bytes(self._secret))
        return private_key.sign(message)

    def zeroize(self) -> None:
        """Overwrite the secret key with zero bytes."""
        for i in range(len(self._secret)):
            self._secret[i] = 0
        self._zeroized = True


def verify_signature(
    public_key_bytes: bytes,
    message: bytes,
    signature: bytes
) -> bool:
    """Verify an Ed25519 signature."""
    try:
        public_key = Ed25519PublicKey.from_public_bytes(public_key_bytes)
        public_key.verify(signature, message)
        return True
    except InvalidSignature:
        return False
    except ValueError:
        return False


def get_user_id(seed: Optional[bytes] = None) -> str:
    """Get the user id for a seed (random when no seed is given)."""
    keypair = KeyPair.from_seed(seed) if seed is not None else KeyPair.random()
    with keypair:
        return keypair.to_z32()
