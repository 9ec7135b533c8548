from __future__ import annotations

import hashlib
import hmac


def _key_bytes(secret: bytes | str) -> bytes:
    key = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret or b"")
    if not key:
        raise ValueError("session_secret_blank")
    return key


def sign(message: bytes, secret: bytes | str) -> bytes:
    """HMAC-SHA256 over `message`."""
    return hmac.new(_key_bytes(secret), bytes(message), hashlib.sha256).digest()


def verify(message: bytes, signature: bytes, secret: bytes | str) -> bool:
    """Constant-time check of `signature`. Never raises on token input."""
    expected = sign(message, secret)
    try:
        return hmac.compare_digest(expected, bytes(signature))
    except (TypeError, ValueError):
        return False
