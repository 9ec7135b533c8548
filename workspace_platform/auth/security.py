"""Password hashing (passlib).

Only passwords live here; session tokens are in `session.py`.
"""

from __future__ import annotations

from typing import Optional, Tuple

from passlib.context import CryptContext
from passlib.exc import UnknownHashError


# Raising the rounds (or swapping the scheme) later is picked up on each
# user's next login via `check_password`.
password_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return password_context.hash(password)


def check_password(password: str, password_hash: str) -> Tuple[bool, Optional[str]]:
    """Return (matches, replacement_hash).

    `replacement_hash` is set when the stored hash is outdated and should be
    written back. A corrupt or unrecognised stored hash counts as a mismatch.
    """
    if not password or not password_hash:
        return False, None
    try:
        return password_context.verify_and_update(password, password_hash)
    except (UnknownHashError, ValueError, TypeError):
        return False, None
