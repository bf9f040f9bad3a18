"""
Tests for key pairs and z-base-32 user ids.
"""

import pytest

from pubky.auth.identity import (
    KeyPair,
    get_user_id,
    public_key_from_z32,
    verify_signature,
    z32_decode,
    z32_encode,
)


class TestZBase32:
    """Tests for the z-base-32 codec."""

    def test_known_values(self):
        """Test encoding against hand-computed values."""
        assert z32_encode(b"") == ""
        assert z32_encode(b"\x00") == "yy"
        assert z32_encode(b"\xff") == "9h"
        assert z32_encode(bytes(32)) == "y" * 52

    def test_decode(self):
        """Test decoding drops the padding bits."""
        assert z32_decode("9h") == b"\xff"
        assert z32_decode("y" * 52) == bytes(32)

    def test_invalid_character(self):
        """Test characters outside the alphabet are rejected."""
        with pytest.raises(ValueError):
            z32_decode("l0v3")

    def test_public_key_length(self):
        """Test user ids must decode to 32 bytes."""
        with pytest.raises(ValueError):
            public_key_from_z32("yy")


class TestKeyPair:
    """Tests for Ed25519 key pairs."""

    def test_deterministic_from_seed(self, seed):
        """Test the same seed always gives the same user id."""
        assert KeyPair.from_seed(seed).to_z32() == KeyPair.from_seed(seed).to_z32()
        assert get_user_id(seed) == KeyPair.from_seed(seed).to_z32()

    def test_random(self):
        """Test random key pairs differ."""
        assert KeyPair.random().to_z32() != KeyPair.random().to_z32()

    def test_user_id_round_trip(self, seed):
        """Test the user id decodes back to the public key."""
        keypair = KeyPair.from_seed(seed)
        user_id = keypair.to_z32()
        assert len(user_id) == 52
        assert public_key_from_z32(user_id) == keypair.public_bytes()

    def test_invalid_seed_length(self):
        """Test seeds must be 32 bytes."""
        with pytest.raises(ValueError):
            KeyPair.from_seed(b"short")

    def test_sign_verify(self, seed):
        """Test signatures verify only for the signed message."""
        keypair = KeyPair.from_seed(seed)
        signature = keypair.sign(b"hello")

        assert len(signature) == 64
        assert verify_signature(keypair.public_bytes(), b"hello", signature)
        assert not verify_signature(keypair.public_bytes(), b"hello!", signature)
        assert not verify_signature(KeyPair.random().public_bytes(), b"hello", signature)

    def test_zeroize_on_exit(self, seed):
        """Test the context manager scrubs the secret."""
        with KeyPair.from_seed(seed) as keypair:
            assert not keypair.is_zeroized
            user_id = keypair.to_z32()

        assert keypair.is_zeroized
        assert all(b == 0 for b in keypair.secret_buffer)
        # The public key stays usable
        assert keypair.to_z32() == user_id

    def test_zeroize_on_error(self, seed):
        """Test the secret is scrubbed when the block raises."""
        with pytest.raises(RuntimeError):
            with KeyPair.from_seed(seed) as keypair:
                raise RuntimeError("boom")

        assert all(b == 0 for b in keypair.secret_buffer)

    def test_sign_after_zeroize(self, seed):
        """Test a zeroized key refuses to sign."""
        keypair = KeyPair.from_seed(seed)
        keypair.zeroize()
        with pytest.raises(ValueError):
            keypair.sign(b"hello")

    def test_seed_not_aliased(self):
        """Test zeroizing does not touch the caller's seed."""
        seed = bytearray(range(32))
        KeyPair.from_seed(seed).zeroize()
        assert seed == bytearray(range(32))
