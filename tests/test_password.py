"""
Tests for password hashing and legacy digest verification.
"""

import pytest

from auth.password import hash_password, is_legacy_digest, legacy_sha256, needs_rehash, verify_password


class TestBcrypt:
    def test_hash_and_verify(self):
        digest = hash_password("s3cret-pass", rounds=4)
        assert digest.startswith("$2")
        assert verify_password("s3cret-pass", digest)
        assert not verify_password("wrong-pass", digest)

    def test_salted(self):
        assert hash_password("same", rounds=4) != hash_password("same", rounds=4)

    def test_bcrypt_digest_needs_no_rehash(self):
        assert not needs_rehash(hash_password("x", rounds=4))


class TestLegacyDigest:
    def test_known_vector(self):
        assert legacy_sha256("password123") == (
            "ef92b778bafe771e89245b89ecbc08a44a4e166c06659911881f383d4473e94f"
        )

    def test_legacy_digest_verifies(self):
        digest = legacy_sha256("password123")
        assert is_legacy_digest(digest)
        assert verify_password("password123", digest)
        assert not verify_password("password124", digest)
        assert needs_rehash(digest)

    def test_uppercase_hex_is_not_legacy(self):
        assert not is_legacy_digest(legacy_sha256("x").upper())


class TestMalformedDigest:
    @pytest.mark.parametrize("digest", ["", "not-a-hash", "$2b$12$short", "deadbeef"])
    def test_returns_false(self, digest):
        assert verify_password("anything", digest) is False
