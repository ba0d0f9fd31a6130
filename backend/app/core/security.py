"""
Security utilities: password hashing, legacy credential checks, JWTs.

Secrets are never logged. Password comparisons are timing-safe.

Stored credentials use one scheme: bcrypt over a SHA-256 pre-hash.
Credentials imported from the browser-storage era carry a ``legacy-*``
prefix; they are accepted once at login and then re-hashed.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import UTC, datetime, timedelta

import bcrypt
from jose import jwt

from app.config.settings import get_settings

LEGACY_PLAIN = "legacy-plain$"
LEGACY_ROLLING = "legacy-rolling$"
LEGACY_SHA256 = "legacy-sha256$"
_LEGACY_PREFIXES = (LEGACY_PLAIN, LEGACY_ROLLING, LEGACY_SHA256)


# ── Password ──────────────────────────────────────────────────────────── #


def _prehash(plain: str) -> bytes:
    # bcrypt truncates at 72 bytes; the hex digest keeps every input byte relevant
    return hashlib.sha256(plain.encode("utf-8")).hexdigest().encode("utf-8")


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(_prehash(plain), bcrypt.gensalt()).decode("utf-8")


def rolling_hash(plain: str) -> str:
    """
    Reproduce the 32-bit ``hash * 31 + code_unit`` digest used by old clients.

    Iterates UTF-16 code units and renders the signed result in base 36.
    """
    value = 0
    units = plain.encode("utf-16-le")
    for i in range(0, len(units), 2):
        code_unit = units[i] | (units[i + 1] << 8)
        value = ((value << 5) - value + code_unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return _to_base36(value)


def _to_base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return sign + "".join(reversed(out))


def verify_password(plain: str, hashed: str) -> bool:
    """
    Verify a plaintext password against a stored credential.

    Returns False (never raises) on any error.
    """
    try:
        if hashed.startswith(LEGACY_PLAIN):
            return safe_str_compare(plain, hashed[len(LEGACY_PLAIN):])
        if hashed.startswith(LEGACY_ROLLING):
            return safe_str_compare(rolling_hash(plain), hashed[len(LEGACY_ROLLING):])
        if hashed.startswith(LEGACY_SHA256):
            digest = hashlib.sha256(plain.encode("utf-8")).hexdigest()
            return safe_str_compare(digest, hashed[len(LEGACY_SHA256):].lower())
        return bcrypt.checkpw(_prehash(plain), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def needs_rehash(hashed: str) -> bool:
    """True when the stored credential is not in the current scheme."""
    return hashed.startswith(_LEGACY_PREFIXES)


# ── JWT ───────────────────────────────────────────────────────────────── #


def _now_utc() -> datetime:
    return datetime.now(UTC)


def create_access_token(
    subject: str,
    session_id: str,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed JWT access token.

    Args:
        subject: The user ID (``sub`` claim).
        session_id: Server-side session the token belongs to (``sid`` claim).
        role: Role at issue time. Informational only; permission checks
            always read the role from the database.
        expires_delta: Override for the configured TTL.

    Returns:
        Signed compact JWT string.
    """
    settings = get_settings()
    expire = _now_utc() + (
        expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )
    payload: dict[str, object] = {
        "sub": subject,
        "sid": session_id,
        "role": role,
        "iat": _now_utc(),
        "exp": expire,
        "type": "access",
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(
        payload,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def create_refresh_token(subject: str, session_id: str) -> str:
    """Create a signed JWT refresh token bound to the same session."""
    settings = get_settings()
    expire = _now_utc() + timedelta(days=settings.jwt_refresh_token_expire_days)
    payload: dict[str, object] = {
        "sub": subject,
        "sid": session_id,
        "iat": _now_utc(),
        "exp": expire,
        "type": "refresh",
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(
        payload,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> dict[str, object]:
    """
    Decode and validate a JWT.

    Raises:
        JWTError: If the token is invalid, expired, or tampered with.
    """
    settings = get_settings()
    return jwt.decode(  # type: ignore[return-value]
        token,
        settings.jwt_secret_key.get_secret_value(),
        algorithms=[settings.jwt_algorithm],
    )


def safe_str_compare(a: str, b: str) -> bool:
    """Constant-time string comparison to prevent timing attacks."""
    return secrets.compare_digest(a.encode(), b.encode())


__all__ = [
    "LEGACY_PLAIN",
    "LEGACY_ROLLING",
    "LEGACY_SHA256",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
    "hash_password",
    "needs_rehash",
    "rolling_hash",
    "safe_str_compare",
    "verify_password",
]
