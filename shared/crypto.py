"""
Cryptographic helpers: password hashing, code hashing and comparison.

Uses argon2 for passwords (via argon2-cffi) and SHA-256 for one-time codes.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_password_hasher = PasswordHasher()


def hash_password(plain_password: str) -> str:
    """Hash *plain_password* with argon2id.

    Returns:
        Argon2 hash string (includes algorithm parameters and salt).
    """
    return _password_hasher.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify *plain_password* against an argon2 *password_hash*.

    Returns:
        ``True`` if the password matches, ``False`` for a wrong password or
        a malformed hash.
    """
    try:
        return _password_hasher.verify(password_hash, plain_password)
    except (VerificationError, InvalidHashError):
        return False


# Verified against when no account exists; an unknown email costs one argon2
# verify like a known one.
_DUMMY_PASSWORD_HASH = _password_hasher.hash(secrets.token_urlsafe(32))


def verify_password_or_dummy(plain_password: str, password_hash: Optional[str]) -> bool:
    """Like verify_password, but a missing hash still pays for a verify and fails."""
    if password_hash is None:
        verify_password(plain_password, _DUMMY_PASSWORD_HASH)
        return False
    return verify_password(plain_password, password_hash)


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    One-time codes are hashed before they are stored so the plaintext is
    never persisted.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def constant_time_equals(left: str, right: str) -> bool:
    """Compare two strings without leaking the position of the first difference."""
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))
