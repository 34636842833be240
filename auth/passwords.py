"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection feeds bcrypt 4.x a >72-byte password, which bcrypt now rejects.

The cost factor is handed to PasswordHasher at construction. Nothing in here
reads configuration on its own.
"""

from __future__ import annotations

import bcrypt

# bcrypt's input limit, in bytes. bcrypt 5 raises ValueError past it; older
# releases truncate silently. Callers check UTF-8 length before hashing.
MAX_PASSWORD_BYTES = 72

# Timing equalization input. The dummy hash is built per hasher because
# checkpw takes its cost from the hash, which must match the real rounds.
_DUMMY_PASSWORD = b"identity_timing_dummy"


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


class PasswordHasher:
    """One-way salted hashing with an adaptive work factor.

    Usage:
        hasher = PasswordHasher(rounds=12)
        stored = hasher.hash("p@ss1")
        hasher.verify("p@ss1", stored)  # True
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Built up front so the first unknown-email login costs one checkpw,
        # same as a wrong-password rejection.
        self._dummy_hash = bcrypt.hashpw(_DUMMY_PASSWORD, bcrypt.gensalt(rounds=rounds))

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of plain using a fresh salt at self.rounds.

        plain must be at most MAX_PASSWORD_BYTES once UTF-8 encoded; the
        workflow rejects longer passwords before they get here. bcrypt raises
        ValueError otherwise.
        """
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed. A malformed hash or an
        over-long password never matches."""
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    def dummy_verify(self, plain: str) -> None:
        """Run one bcrypt check at the configured cost and discard the result.

        Called when the email is unknown so the response takes as long as a
        wrong-password rejection. Never raises.
        """
        try:
            bcrypt.checkpw(plain.encode("utf-8"), self._dummy_hash)
        except ValueError:
            pass
