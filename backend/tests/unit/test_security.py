"""Unit tests for app.core.security."""
import hashlib
from datetime import timedelta

import pytest
from jose import JWTError

from app.core.security import (
    LEGACY_PLAIN,
    LEGACY_ROLLING,
    LEGACY_SHA256,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    needs_rehash,
    rolling_hash,
    safe_str_compare,
    verify_password,
)


# ─── Password hashing ─────────────────────────────────────────────────────────

def test_hash_password_produces_bcrypt_hash():
    h = hash_password("hunter2")
    assert h.startswith("$2b$")


def test_verify_password_correct():
    h = hash_password("correct-horse")
    assert verify_password("correct-horse", h) is True


def test_verify_password_wrong():
    h = hash_password("correct-horse")
    assert verify_password("wrong-password", h) is False


def test_hash_is_non_deterministic():
    """bcrypt should produce different hashes for the same input."""
    assert hash_password("same") != hash_password("same")


def test_long_passwords_differ_past_bcrypt_limit():
    base = "x" * 80
    h = hash_password(base + "a")
    assert verify_password(base + "b", h) is False


def test_verify_password_garbage_hash_returns_false():
    assert verify_password("anything", "not-a-hash") is False


# ─── Legacy credentials ───────────────────────────────────────────────────────

@pytest.mark.parametrize(
    ("plain", "expected"),
    [("", "0"), ("a", "2p"), ("ab", "2e9")],
)
def test_rolling_hash_known_values(plain, expected):
    assert rolling_hash(plain) == expected


def test_rolling_hash_wraps_to_signed_32_bit():
    # long inputs overflow int32; the digest stays within its range
    digest = rolling_hash("senha-muito-longa-para-caber-em-32-bits")
    assert int(digest, 36) >= -(2**31)
    assert int(digest, 36) < 2**31


def test_verify_legacy_plain():
    assert verify_password("abc123", LEGACY_PLAIN + "abc123") is True
    assert verify_password("abc124", LEGACY_PLAIN + "abc123") is False


def test_verify_legacy_rolling():
    stored = LEGACY_ROLLING + rolling_hash("minhasenha")
    assert verify_password("minhasenha", stored) is True
    assert verify_password("outrasenha", stored) is False


def test_verify_legacy_sha256_is_case_insensitive():
    digest = hashlib.sha256(b"minhasenha").hexdigest().upper()
    assert verify_password("minhasenha", LEGACY_SHA256 + digest) is True


def test_needs_rehash_only_for_legacy():
    assert needs_rehash(LEGACY_PLAIN + "x") is True
    assert needs_rehash(hash_password("x")) is False


# ─── JWT ──────────────────────────────────────────────────────────────────────

def test_create_and_decode_access_token():
    token = create_access_token(subject="user-123", session_id="sess-1", role="oficial")
    payload = decode_token(token)
    assert payload["sub"] == "user-123"
    assert payload["sid"] == "sess-1"
    assert payload["role"] == "oficial"
    assert payload["type"] == "access"


def test_create_and_decode_refresh_token():
    token = create_refresh_token(subject="user-456", session_id="sess-2")
    payload = decode_token(token)
    assert payload["sub"] == "user-456"
    assert payload["sid"] == "sess-2"
    assert payload["type"] == "refresh"


def test_expired_token_rejected():
    token = create_access_token(
        subject="user-123", session_id="s", role="user", expires_delta=timedelta(seconds=-1)
    )
    with pytest.raises(JWTError):
        decode_token(token)


def test_tampered_token_rejected():
    token = create_access_token(subject="user-123", session_id="s", role="user")
    with pytest.raises(JWTError):
        decode_token(token[:-4] + "AAAA")


def test_tokens_are_unique():
    a = create_access_token(subject="u", session_id="s", role="user")
    b = create_access_token(subject="u", session_id="s", role="user")
    assert a != b


# ─── Constant-time compare ────────────────────────────────────────────────────

def test_safe_str_compare():
    assert safe_str_compare("abc", "abc") is True
    assert safe_str_compare("abc", "abd") is False
