"""Session token issue/verify."""

from __future__ import annotations

import jwt
import pytest
from hypothesis import assume, given, settings, strategies as st

from workspace_platform.auth import codec, signer
from workspace_platform.auth.session import (
    SessionKeys,
    VerificationFailure,
    create_session_token,
    session_keys_from_config,
    verify_session_token,
)
from workspace_platform.config import Config
from workspace_platform.models import Principal


TEST_SECRET = b"test-secret-that-is-at-least-32-bytes-long"
NOW = 1_700_000_000
KEYS = SessionKeys(secret=TEST_SECRET, ttl_seconds=3600)


def _token(**kw) -> str:
    kw.setdefault("keys", KEYS)
    kw.setdefault("subject_id", "u1")
    kw.setdefault("email", "a@b.com")
    kw.setdefault("now", NOW)
    return create_session_token(**kw)


def _signed(payload_segment: str, *, secret: bytes = TEST_SECRET) -> str:
    """Hand-build a correctly signed token around an arbitrary payload segment."""
    header = codec.encode_json({"alg": "HS256", "typ": "JWT"})
    signing_input = f"{header}.{payload_segment}"
    return f"{signing_input}.{codec.encode(signer.sign(signing_input.encode('ascii'), secret))}"


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------

@settings(max_examples=200)
@given(
    subject_id=st.text(min_size=1, max_size=64),
    email=st.text(min_size=1, max_size=64),
    display_name=st.one_of(st.none(), st.text(min_size=1, max_size=64)),
    secret=st.binary(min_size=1, max_size=64),
    ttl=st.integers(min_value=1, max_value=10**8),
    now=st.integers(min_value=0, max_value=4_000_000_000),
)
def test_issued_token_verifies_to_its_claims(subject_id, email, display_name, secret, ttl, now):
    keys = SessionKeys(secret=secret, ttl_seconds=ttl)
    token = create_session_token(
        keys=keys, subject_id=subject_id, email=email, display_name=display_name, now=now
    )
    assert token.count(".") == 2
    assert verify_session_token(token, keys=keys, now=now) == Principal(subject_id, email, display_name)
    assert verify_session_token(token, keys=keys, now=now + ttl) == Principal(subject_id, email, display_name)


def test_claims_on_the_wire():
    token = _token(display_name="Ann")
    header_seg, payload_seg, _ = token.split(".")
    assert codec.decode_json(header_seg) == {"alg": "HS256", "typ": "JWT"}
    assert codec.decode_json(payload_seg) == {
        "sub": "u1",
        "email": "a@b.com",
        "name": "Ann",
        "iat": NOW,
        "exp": NOW + 3600,
    }


def test_name_claim_is_omitted_without_display_name():
    payload = codec.decode_json(_token().split(".")[1])
    assert "name" not in payload
    assert verify_session_token(_token(), keys=KEYS, now=NOW) == Principal("u1", "a@b.com", None)


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------

def test_token_is_valid_up_to_and_including_exp():
    token = _token()
    assert isinstance(verify_session_token(token, keys=KEYS, now=NOW + 3600), Principal)


def test_token_past_exp_is_expired():
    token = _token()
    assert verify_session_token(token, keys=KEYS, now=NOW + 3601) is VerificationFailure.EXPIRED


def test_expired_token_with_bad_signature_reports_signature():
    token = _token()
    forged = token.rsplit(".", 1)[0] + "." + codec.encode(b"\x00" * 32)
    assert verify_session_token(forged, keys=KEYS, now=NOW + 10**6) is VerificationFailure.BAD_SIGNATURE


# ---------------------------------------------------------------------------
# Tampering
# ---------------------------------------------------------------------------

def test_every_single_bit_flip_in_the_signature_is_rejected():
    token = _token()
    signing_input, sig_seg = token.rsplit(".", 1)
    sig = codec.decode(sig_seg)
    for i in range(len(sig) * 8):
        flipped = bytearray(sig)
        flipped[i // 8] ^= 1 << (i % 8)
        forged = f"{signing_input}.{codec.encode(bytes(flipped))}"
        assert verify_session_token(forged, keys=KEYS, now=NOW) is VerificationFailure.BAD_SIGNATURE


def test_swapped_payload_is_rejected():
    mine = _token(subject_id="u1")
    theirs = _token(subject_id="admin")
    h, _, s = mine.split(".")
    forged = ".".join([h, theirs.split(".")[1], s])
    assert verify_session_token(forged, keys=KEYS, now=NOW) is VerificationFailure.BAD_SIGNATURE


@settings(max_examples=300)
@given(data=st.data())
def test_any_character_change_never_yields_a_principal(data):
    token = _token()
    i = data.draw(st.integers(min_value=0, max_value=len(token) - 1))
    c = data.draw(st.characters(codec="ascii") | st.sampled_from("._-=+/"))
    assume(c != token[i])
    tampered = token[:i] + c + token[i + 1 :]

    result = verify_session_token(tampered, keys=KEYS, now=NOW)
    assert isinstance(result, VerificationFailure)


def test_wrong_secret_is_bad_signature():
    other = SessionKeys(secret=b"another-secret-that-is-32-bytes-long!!", ttl_seconds=3600)
    assert verify_session_token(_token(), keys=other, now=NOW) is VerificationFailure.BAD_SIGNATURE


# ---------------------------------------------------------------------------
# Shape
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "token",
    [
        "",
        "abc",
        "a.b",
        "a.b.c.d",
        None,
        123,
    ],
)
def test_wrong_segment_count_is_malformed(token):
    assert verify_session_token(token, keys=KEYS, now=NOW) is VerificationFailure.MALFORMED_TOKEN


def test_dropping_the_signature_segment_is_malformed():
    token = _token()
    assert verify_session_token(token.rsplit(".", 1)[0], keys=KEYS, now=NOW) is VerificationFailure.MALFORMED_TOKEN


def test_undecodable_signature_is_bad_signature():
    h, p, _ = _token().split(".")
    assert verify_session_token(f"{h}.{p}.!!!", keys=KEYS, now=NOW) is VerificationFailure.BAD_SIGNATURE


@pytest.mark.parametrize(
    "payload_segment",
    [
        codec.encode(b"not json"),
        codec.encode(b"[1,2]"),
        codec.encode_json({"email": "a@b.com", "iat": NOW, "exp": NOW + 60}),              # no sub
        codec.encode_json({"sub": "", "email": "a@b.com", "iat": NOW, "exp": NOW + 60}),   # blank sub
        codec.encode_json({"sub": "u1", "iat": NOW, "exp": NOW + 60}),                     # no email
        codec.encode_json({"sub": "u1", "email": "a@b.com", "iat": NOW}),                  # no exp
        codec.encode_json({"sub": "u1", "email": "a@b.com", "iat": NOW, "exp": "later"}),
        codec.encode_json({"sub": "u1", "email": "a@b.com", "iat": NOW, "exp": True}),
        codec.encode_json({"sub": "u1", "email": "a@b.com", "iat": NOW, "exp": 1.5e9}),
        codec.encode_json({"sub": "u1", "email": "a@b.com", "name": 7, "iat": NOW, "exp": NOW + 60}),
    ],
)
def test_signed_but_malformed_payload(payload_segment):
    token = _signed(payload_segment)
    assert verify_session_token(token, keys=KEYS, now=NOW) is VerificationFailure.MALFORMED_PAYLOAD


def test_failure_values_are_stable_strings():
    assert [f.value for f in VerificationFailure] == [
        "token_malformed",
        "token_bad_signature",
        "token_payload_malformed",
        "token_expired",
    ]


# ---------------------------------------------------------------------------
# Issuing errors / config
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "kw",
    [
        {"subject_id": ""},
        {"email": ""},
        {"keys": SessionKeys(secret=TEST_SECRET, ttl_seconds=0)},
        {"keys": SessionKeys(secret=b"", ttl_seconds=60)},
    ],
)
def test_create_refuses_bad_input(kw):
    with pytest.raises(ValueError):
        _token(**kw)


def test_keys_from_config():
    cfg = Config(AUTH_SESSION_SECRET="s3cret", AUTH_TOKEN_TTL_SECONDS=42)
    assert session_keys_from_config(cfg) == SessionKeys(secret=b"s3cret", ttl_seconds=42)


# ---------------------------------------------------------------------------
# Standard JWT interop
# ---------------------------------------------------------------------------

def test_pyjwt_accepts_our_tokens():
    token = create_session_token(keys=KEYS, subject_id="u1", email="a@b.com", display_name="Ann")
    claims = jwt.decode(token, TEST_SECRET, algorithms=["HS256"])
    assert claims["sub"] == "u1"
    assert claims["email"] == "a@b.com"
    assert claims["name"] == "Ann"
    assert claims["exp"] - claims["iat"] == 3600


def test_we_accept_pyjwt_tokens():
    claims = {"sub": "u1", "email": "a@b.com", "iat": NOW, "exp": NOW + 60}
    token = jwt.encode(claims, TEST_SECRET, algorithm="HS256")
    assert verify_session_token(token, keys=KEYS, now=NOW) == Principal("u1", "a@b.com", None)
