"""
auth/passwords.py -- Credential Hasher (bcrypt, direct usage, no passlib wrapper).

bcrypt is salted (every hash() call draws a fresh salt, so two hashes of the
same password differ) and adaptive (the cost factor sets the per-guess work).
Cost 10 keeps a login around tens of milliseconds while making offline
guessing expensive.

bcrypt only looks at the first 72 bytes of a password and bcrypt>=5 raises
instead of truncating. We truncate explicitly, identically on hash and
verify, so long passphrases keep working.

Failure modes:
  verify() returns False for a wrong password.
  verify() raises ValueError for a malformed digest -- that is corrupt data
  in the store, not a bad guess, and must surface as a server error.

Layer rule: no imports from api/, accounts/, or waitlist/.
"""

from __future__ import annotations

import bcrypt

_MAX_PASSWORD_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_MAX_PASSWORD_BYTES]


class PasswordHasher:
    """Hash and verify passwords with a fixed bcrypt cost factor.

    Usage:
        hasher = PasswordHasher(rounds=10)
        digest = hasher.hash("s3cret")
        hasher.verify("s3cret", digest)   # True
    """

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds
        # Timing equalization dummy. Computed once so burn() costs the same as
        # a real verify() and unknown emails are not distinguishable by latency.
        self._dummy_hash = self.hash("exploree_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt digest of the plaintext password."""
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext matches the digest.

        Raises ValueError when the digest is not a bcrypt hash.
        """
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))

    def burn(self, plain: str) -> None:
        """Spend one verification's worth of work against the dummy digest."""
        self.verify(plain, self._dummy_hash)
