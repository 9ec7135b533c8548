"""Stateless session tokens.

Tokens are compact HS256 JWTs: `b64(header).b64(payload).b64(hmac)`. Both
issuing and verifying are pure functions of their inputs (plus the clock), so
they can run on every request at the edge without touching the DB.

The secret is always passed in via `SessionKeys`; nothing here reads
process-wide config.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from workspace_platform.models import Principal, SessionPayload

from . import codec, signer


_HEADER: Dict[str, str] = {"alg": "HS256", "typ": "JWT"}


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


@dataclass(frozen=True)
class SessionKeys:
    secret: bytes
    ttl_seconds: int


def session_keys_from_config(cfg: Any) -> SessionKeys:
    return SessionKeys(
        secret=str(cfg.AUTH_SESSION_SECRET).encode("utf-8"),
        ttl_seconds=int(cfg.AUTH_TOKEN_TTL_SECONDS),
    )


class VerificationFailure(str, Enum):
    """Why a token was rejected. Values double as HTTP 401 detail strings."""

    MALFORMED_TOKEN = "token_malformed"
    BAD_SIGNATURE = "token_bad_signature"
    MALFORMED_PAYLOAD = "token_payload_malformed"
    EXPIRED = "token_expired"


VerificationResult = Union[Principal, VerificationFailure]


def create_session_token(
    *,
    keys: SessionKeys,
    subject_id: str,
    email: str,
    display_name: str | None = None,
    now: int | None = None,
) -> str:
    if not subject_id:
        raise ValueError("subject_id_blank")
    if not email:
        raise ValueError("email_blank")
    ttl = int(keys.ttl_seconds)
    if ttl <= 0:
        raise ValueError("ttl_not_positive")

    issued_at = int(time.time()) if now is None else int(now)
    payload = SessionPayload(
        subject_id=str(subject_id),
        email=str(email),
        display_name=display_name or None,
        issued_at=issued_at,
        expires_at=issued_at + ttl,
    )

    signing_input = f"{codec.encode_json(_HEADER)}.{codec.encode_json(payload.to_claims())}"
    signature = signer.sign(signing_input.encode("ascii"), keys.secret)
    return f"{signing_input}.{codec.encode(signature)}"


def _payload_from_claims(claims: Dict[str, Any]) -> Optional[SessionPayload]:
    sub = claims.get("sub")
    email = claims.get("email")
    name = claims.get("name")
    iat = claims.get("iat")
    exp = claims.get("exp")

    if not isinstance(sub, str) or not sub:
        return None
    if not isinstance(email, str):
        return None
    if name is not None and not isinstance(name, str):
        return None
    # bool is an int subclass; reject it explicitly
    for ts in (iat, exp):
        if isinstance(ts, bool) or not isinstance(ts, int):
            return None

    return SessionPayload(
        subject_id=sub,
        email=email,
        display_name=name,
        issued_at=iat,
        expires_at=exp,
    )


def verify_session_token(
    token: str,
    *,
    keys: SessionKeys,
    now: int | None = None,
) -> VerificationResult:
    """Validate a token and return its Principal, or the reason it was rejected.

    The signature is checked before anything in the payload is interpreted.
    """
    if not isinstance(token, str):
        return VerificationFailure.MALFORMED_TOKEN
    parts = token.split(".")
    if len(parts) != 3:
        return VerificationFailure.MALFORMED_TOKEN
    header_seg, payload_seg, sig_seg = parts

    try:
        signature = codec.decode(sig_seg)
        signing_input = f"{header_seg}.{payload_seg}".encode("ascii")
    except (codec.MalformedEncoding, UnicodeEncodeError):
        return VerificationFailure.BAD_SIGNATURE
    if not signer.verify(signing_input, signature, keys.secret):
        return VerificationFailure.BAD_SIGNATURE

    try:
        claims = codec.decode_json(payload_seg)
    except codec.MalformedEncoding as e:
        _debug(f"signed token with undecodable payload: {e}")
        return VerificationFailure.MALFORMED_PAYLOAD
    payload = _payload_from_claims(claims)
    if payload is None:
        return VerificationFailure.MALFORMED_PAYLOAD

    current = int(time.time()) if now is None else int(now)
    if payload.expires_at < current:
        return VerificationFailure.EXPIRED

    return Principal(id=payload.subject_id, email=payload.email, name=payload.display_name)
