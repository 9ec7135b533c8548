from __future__ import annotations

import binascii
import json
from typing import Any, Dict

from jwt.utils import base64url_decode, base64url_encode


class MalformedEncoding(ValueError):
    """A token segment is not canonical base64url (or not the JSON we expected)."""


def encode(data: bytes) -> str:
    """URL-safe base64 without '=' padding."""
    return base64url_encode(bytes(data)).decode("ascii")


def decode(segment: str) -> bytes:
    """Inverse of `encode`. Raises MalformedEncoding on anything else.

    Only the canonical encoding is accepted: non-alphabet characters and
    non-zero trailing bits (which base64 decoders usually ignore) are
    rejected, so two different strings never decode to the same bytes.
    """
    if not isinstance(segment, str):
        raise MalformedEncoding("segment_not_str")
    try:
        raw = base64url_decode(segment.encode("ascii"))
    except (UnicodeEncodeError, binascii.Error, ValueError) as e:
        raise MalformedEncoding(f"bad_base64url: {e}") from e
    if encode(raw) != segment:
        raise MalformedEncoding("non_canonical_base64url")
    return raw


def encode_json(obj: Dict[str, Any]) -> str:
    return encode(json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))


def decode_json(segment: str) -> Dict[str, Any]:
    raw = decode(segment)
    try:
        obj = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedEncoding(f"bad_json: {e}") from e
    if not isinstance(obj, dict):
        raise MalformedEncoding("json_not_object")
    return obj
