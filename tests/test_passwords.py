"""Unit tests for auth/passwords.py -- bcrypt hashing and verification.

Covers:
- hash() produces a salted bcrypt digest that verify() accepts
- wrong passwords are rejected
- bytes past 72 are ignored (bcrypt limit, truncated explicitly)
- verify() raises on a digest that is not bcrypt
- burn() does the work without needing a real digest
"""

import pytest

from auth.passwords import PasswordHasher


@pytest.fixture(scope="module")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


class TestHashAndVerify:
    def test_round_trip(self, hasher):
        digest = hasher.hash("correct horse battery staple")
        assert hasher.verify("correct horse battery staple", digest)

    def test_wrong_password_rejected(self, hasher):
        digest = hasher.hash("s3cret")
        assert not hasher.verify("s3cret ", digest)
        assert not hasher.verify("S3cret", digest)

    def test_digest_is_salted_bcrypt(self, hasher):
        first = hasher.hash("same-password")
        second = hasher.hash("same-password")
        assert first != second
        assert first.startswith("$2")
        assert "same-password" not in first

    def test_cost_factor_is_encoded_in_digest(self):
        digest = PasswordHasher(rounds=5).hash("pw")
        assert digest.split("$")[2] == "05"

    def test_unicode_password(self, hasher):
        digest = hasher.hash("pässwörd-密码")
        assert hasher.verify("pässwörd-密码", digest)


class TestEdgeCases:
    def test_bytes_past_72_are_ignored(self, hasher):
        """bcrypt only reads 72 bytes; two passwords sharing that prefix verify alike."""
        prefix = "a" * 72
        digest = hasher.hash(prefix + "tail-one")
        assert hasher.verify(prefix + "tail-two", digest)

    def test_malformed_digest_raises(self, hasher):
        with pytest.raises(ValueError):
            hasher.verify("pw", "not-a-bcrypt-digest")

    def test_burn_returns_none(self, hasher):
        assert hasher.burn("anything") is None
