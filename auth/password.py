"""
Password hashing and verification.

Uses bcrypt for password hashing with automatic
salting and configurable work factor.

Accounts imported from the previous system still carry unsalted SHA-256
hex digests.  Those verify here (constant-time) and report
``needs_rehash`` so the login path can upgrade them to bcrypt.
"""

from __future__ import annotations

import hashlib
import hmac
import re
from typing import Optional

import bcrypt

from config.settings import config

_LEGACY_DIGEST = re.compile(r"^[0-9a-f]{64}$")

# bcrypt rejects longer inputs
BCRYPT_MAX_BYTES = 72


def legacy_sha256(password: str) -> str:
    """Unsalted SHA-256 hex digest used by the previous system."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def is_legacy_digest(password_hash: str) -> bool:
    return bool(password_hash) and _LEGACY_DIGEST.match(password_hash) is not None


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password with bcrypt (auto-salted)."""
    salt = bcrypt.gensalt(rounds=rounds or config.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time comparison against a bcrypt or legacy digest."""
    if not password_hash:
        return False
    if is_legacy_digest(password_hash):
        return hmac.compare_digest(legacy_sha256(password), password_hash)
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode())
    except (ValueError, TypeError):
        return False


def fits_bcrypt(password: str) -> bool:
    return len(password.encode("utf-8")) <= BCRYPT_MAX_BYTES


def needs_rehash(password_hash: str) -> bool:
    return is_legacy_digest(password_hash)
