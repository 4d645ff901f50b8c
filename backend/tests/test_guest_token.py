"""
Unit tests for the guest token codec.
"""
import uuid
from datetime import timedelta

import pytest

from tribute.core.errors import Expired, InvalidSignature, MalformedToken
from tribute.services.guest_token import (
    GuestTokenCodec,
    extract_guest_token,
    guest_cookie_name,
    guest_cookie_options,
)

LINK_ID = uuid.UUID("6f1c7a52-2f44-4a3e-9a53-0c1d5e1f9b10")
FINGERPRINT = "f" * 64


def _mutate(token: str, index: int) -> str:
    original = token[index]
    replacement = "A" if original != "A" else "B"
    return token[:index] + replacement + token[index + 1:]


def test_verify_returns_issued_claims(codec):
    issued = codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=3600)

    claims = codec.verify(issued.token)

    assert claims == issued.claims
    assert claims.share_link_id == LINK_ID
    assert claims.fingerprint == FINGERPRINT
    assert claims.expires_at - claims.issued_at == timedelta(hours=1)


def test_issue_is_deterministic_for_same_inputs_and_clock(codec):
    first = codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=60)
    second = codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=60)

    assert first.token == second.token


def test_token_is_three_dot_separated_segments(codec):
    token = codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=60).token

    assert token.count(".") == 2
    assert all(token.split("."))


@pytest.mark.parametrize("segment", [1, 2])
def test_mutated_payload_or_signature_never_verifies(codec, segment):
    token = codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=3600).token
    header, payload, signature = token.split(".")
    start = len(header) + 1 if segment == 1 else len(header) + len(payload) + 2
    length = len(payload) if segment == 1 else len(signature)

    for index in range(start, start + length):
        with pytest.raises((InvalidSignature, MalformedToken)):
            codec.verify(_mutate(token, index))


def test_mutated_header_never_verifies(codec):
    token = codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=3600).token
    header_length = token.index(".")

    for index in range(header_length):
        with pytest.raises((InvalidSignature, MalformedToken)):
            codec.verify(_mutate(token, index))


def test_token_from_another_secret_is_invalid_signature(codec, clock):
    other = GuestTokenCodec(secret="another-deployment", clock=clock)
    token = other.issue(LINK_ID, FINGERPRINT, ttl_seconds=3600).token

    with pytest.raises(InvalidSignature):
        codec.verify(token)


@pytest.mark.parametrize("ttl", [0, 1, 60, 86400])
def test_past_expiry_is_expired(codec, clock, ttl):
    token = codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=ttl).token

    clock.advance(seconds=ttl + 1)

    with pytest.raises(Expired):
        codec.verify(token)


def test_zero_ttl_expires_one_second_later(codec, clock):
    token = codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=0).token

    # Still valid at the exact expiry instant
    assert codec.verify(token).expires_at == clock.now

    clock.advance(seconds=1)
    with pytest.raises(Expired):
        codec.verify(token)


def test_expired_and_tampered_reports_signature_first(codec, clock):
    token = codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=0).token
    clock.advance(days=2)
    tampered = token[:-2] + ("AA" if token[-2:] != "AA" else "BB")

    with pytest.raises(InvalidSignature):
        codec.verify(tampered)


def test_not_after_caps_expiry(codec, clock):
    link_expiry = clock.now + timedelta(minutes=5)

    issued = codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=3600, not_after=link_expiry)

    assert issued.claims.expires_at == link_expiry
    clock.advance(seconds=301)
    with pytest.raises(Expired):
        codec.verify(issued.token)


def test_ttl_wins_when_earlier_than_not_after(codec, clock):
    issued = codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=60, not_after=clock.now + timedelta(days=30))

    assert issued.claims.expires_at == clock.now + timedelta(seconds=60)


@pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d", "...", "!!!.???.###", "eyJ.eyJ.sig"])
def test_garbage_is_malformed(codec, token):
    with pytest.raises((MalformedToken, InvalidSignature)):
        codec.verify(token)


def test_unsigned_token_rejected(codec):
    token = codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=60).token
    header, payload, _ = token.split(".")

    with pytest.raises(MalformedToken):
        codec.verify(f"{header}.{payload}.")


def test_negative_ttl_rejected(codec):
    with pytest.raises(ValueError):
        codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=-1)


def test_fingerprint_is_stable_and_keyed(codec, clock):
    other = GuestTokenCodec(secret="another-deployment", clock=clock)

    assert codec.fingerprint("client-123") == codec.fingerprint("client-123")
    assert codec.fingerprint("client-123") != codec.fingerprint("client-456")
    assert codec.fingerprint("client-123") != other.fingerprint("client-123")
    assert len(codec.fingerprint("client-123")) == 64


@pytest.mark.parametrize("raw", ["", "   ", None])
def test_blank_fingerprint_input_rejected(codec, raw):
    with pytest.raises(MalformedToken):
        codec.fingerprint(raw)


def test_extract_guest_token():
    assert extract_guest_token(None) is None
    assert extract_guest_token("   ") is None
    assert extract_guest_token("abc.def.ghi") == "abc.def.ghi"
    assert extract_guest_token("Bearer abc.def.ghi") == "abc.def.ghi"


def test_cookie_options_follow_token_expiry(codec, clock):
    issued = codec.issue(LINK_ID, FINGERPRINT, ttl_seconds=600)

    options = guest_cookie_options(issued.claims, "abc123", now=clock.now)

    assert options["key"] == "guest_token_abc123"
    assert guest_cookie_name("abc123") == options["key"]
    assert options["httponly"] is True
    assert options["samesite"] == "lax"
    assert options["path"] == "/"
    assert options["max_age"] == 600
    assert options["secure"] is False
