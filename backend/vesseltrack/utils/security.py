"""Password hashing and opaque token generation.

Passwords are stored as ``<salt>$<digest>`` with both parts urlsafe-base64
encoded; the digest is PBKDF2-HMAC-SHA256.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets

_PBKDF2_ITERATIONS = 130_000


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, _PBKDF2_ITERATIONS)
    return f"{base64.urlsafe_b64encode(salt).decode()}${base64.urlsafe_b64encode(digest).decode()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        salt_b64, digest_b64 = stored.split("$", 1)
        salt = base64.urlsafe_b64decode(salt_b64.encode())
        expected = base64.urlsafe_b64decode(digest_b64.encode())
    except (ValueError, binascii.Error):
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, _PBKDF2_ITERATIONS)
    return hmac.compare_digest(candidate, expected)


def new_token() -> str:
    return secrets.token_urlsafe(32)


def email_local_part(email: str | None) -> str | None:
    if not email:
        return None
    return email.split("@", 1)[0] or None
