"""
Identity and authentication for pubky.

Provides:
- User identity (Ed25519 key pairs, z-base-32 user ids)
- Homeserver challenges

The challenge-response flow itself lives in ``pubky.auth.session``.
"""

from .identity import (
    KeyPair,
    generate_seed,
    get_user_id,
    public_key_from_z32,
    verify_signature,
    z32_decode,
    z32_encode,
)
from .challenge import Challenge

__all__ = [
    # Identity
    "KeyPair",
    "generate_seed",
    "get_user_id",
    "public_key_from_z32",
    "verify_signature",
    "z32_decode",
    "z32_encode",
    # Challenge
    "Challenge",
]
