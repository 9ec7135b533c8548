"""Token segment codec: base64url framing + JSON."""

from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from workspace_platform.auth.codec import (
    MalformedEncoding,
    decode,
    decode_json,
    encode,
    encode_json,
)


@given(st.binary(max_size=512))
def test_decode_inverts_encode(data):
    assert decode(encode(data)) == data


@given(st.binary(max_size=256))
def test_encoding_is_url_safe_and_unpadded(data):
    s = encode(data)
    assert "+" not in s
    assert "/" not in s
    assert "=" not in s


def test_bytes_that_need_plus_slash_and_padding_in_standard_base64():
    # standard base64 of b"\xfb\xff" is "+/8="
    assert encode(b"\xfb\xff") == "-_8"
    assert decode("-_8") == b"\xfb\xff"

    for n in range(1, 8):
        data = bytes(range(250, 250 + n)) if n < 6 else b"\xff" * n
        assert decode(encode(data)) == data


def test_empty_input():
    assert encode(b"") == ""
    assert decode("") == b""


@pytest.mark.parametrize(
    "segment",
    [
        "a",            # impossible length
        "ab$c",         # non-alphabet character
        "+/8",          # standard (not url-safe) alphabet
        "QR",           # non-zero trailing bits; "QQ" is the canonical form of b"A"
        "QQ==",         # padding is never emitted
        "é",            # non-ascii
    ],
)
def test_malformed_segments_raise_malformed_encoding(segment):
    with pytest.raises(MalformedEncoding):
        decode(segment)


def test_non_string_segment_is_malformed():
    with pytest.raises(MalformedEncoding):
        decode(None)  # type: ignore[arg-type]


def test_json_round_trip():
    obj = {"sub": "u1", "email": "a@b.com", "name": "Zoë", "iat": 1, "exp": 2}
    assert decode_json(encode_json(obj)) == obj


def test_json_is_compact():
    assert decode(encode_json({"a": 1, "b": [1, 2]})) == b'{"a":1,"b":[1,2]}'


@pytest.mark.parametrize(
    "raw",
    [
        b"not json",
        b"[1]",             # JSON, but not an object
        b"\xff\xfe{}",       # not UTF-8
    ],
)
def test_decode_json_rejects_non_objects(raw):
    with pytest.raises(MalformedEncoding):
        decode_json(encode(raw))
