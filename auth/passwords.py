"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.

The cost factor is passed in by the caller (Settings.bcrypt_rounds, 15 in
production). bcrypt embeds the salt and cost in the hash, so verification
needs no configuration and keeps working after the cost is raised.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import bcrypt

DEFAULT_ROUNDS = 15
_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_MAX_BYTES]


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt only uses the first 72 bytes of input and bcrypt 5.x raises on
    anything longer, so the encoded password is cut to 72 bytes here and in
    verify_password().
    """
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A malformed hash yields False.
    """
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False
