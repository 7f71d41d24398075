"""Salted, deliberately slow password hashing backed by bcrypt."""

from __future__ import annotations

import base64
import hashlib

import bcrypt

from ..errors import CorruptHash

DEFAULT_ROUNDS = 12


def _prepare(plaintext: str) -> bytes:
    # bcrypt only reads 72 bytes of input; digest first so long passphrases stay distinct.
    digest = hashlib.sha256(plaintext.encode("utf-8")).digest()
    return base64.b64encode(digest)


class PasswordHasher:
    """One-way password hashing with a per-call random salt.

    Parameters
    ----------
    rounds:
        bcrypt work factor (log2 of the key expansion iterations). Each extra
        round doubles the cost of both hashing and verification.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self._rounds = rounds

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, plaintext: str) -> str:
        """Return the bcrypt hash for ``plaintext`` using a fresh salt."""
        hashed = bcrypt.hashpw(_prepare(plaintext), bcrypt.gensalt(rounds=self._rounds))
        return hashed.decode("ascii")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Check ``plaintext`` against a stored hash.

        Returns ``False`` on mismatch. Raises :class:`CorruptHash` when the
        stored value is not a bcrypt hash.
        """
        try:
            encoded = hashed.encode("ascii")
        except (AttributeError, UnicodeEncodeError) as exc:
            raise CorruptHash("stored password hash is not ascii") from exc
        try:
            return bcrypt.checkpw(_prepare(plaintext), encoded)
        except ValueError as exc:
            raise CorruptHash("stored password hash is malformed") from exc
