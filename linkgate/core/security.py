"""
Cryptographic helpers for challenges and admin sessions.

Challenge signatures are HMAC-SHA256 over the concatenated challenge fields,
keyed with the server-held CHALLENGE_SECRET. The rotating secret handed to
clients is derived from the same key and the current time slot, so it can be
disclosed without revealing the key itself.

Admin sessions are JWTs carrying a ``role`` claim.
"""
from __future__ import annotations

import hashlib
import hmac
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from linkgate.core.exceptions import UnauthorizedError

__all__ = [
    "hmac_hex",
    "sha256_hex",
    "constant_time_equals",
    "rotating_secret",
    "sign_challenge",
    "verify_signature",
    "create_session_token",
    "decode_session_token",
]

ROTATING_SECRET_LABEL = "rotating-secret:"


def hmac_hex(key: str, message: str) -> str:
    return hmac.new(key.encode(), message.encode(), hashlib.sha256).hexdigest()


def sha256_hex(message: str) -> str:
    return hashlib.sha256(message.encode()).hexdigest()


def constant_time_equals(left: str, right: str) -> bool:
    """Compare two strings without leaking the mismatch position."""
    return hmac.compare_digest(left.encode(), right.encode())


def rotating_secret(key: str, now_ms: int, interval_ms: int) -> str:
    """Return the secret of the rotation slot containing ``now_ms``."""
    slot = now_ms // interval_ms
    return hmac_hex(key, f"{ROTATING_SECRET_LABEL}{slot}")


def sign_challenge(
    key: str,
    challenge_id: str,
    nonce: str,
    secret: str,
    expires_at: int,
) -> str:
    """Compute the signature binding every client-visible challenge field."""
    return hmac_hex(key, f"{challenge_id}{nonce}{secret}{expires_at}")


def verify_signature(key: str, fields: dict[str, Any]) -> bool:
    """
    Check a challenge payload against its signature without any store lookup.

    Args:
        key: The server-held challenge key
        fields: Mapping with challenge_id, nonce, rotating_secret,
            expiresAt and signature, as returned to clients

    Returns:
        True if the signature matches the other fields. Fields of the wrong
        type never verify, since coercing them (1.9 to 1, "01" to 1) would
        let an altered value pass.
    """
    try:
        text_fields = [fields[name] for name in ("challenge_id", "nonce", "rotating_secret", "signature")]
        expires_at = fields["expiresAt"]
    except KeyError:
        return False
    # type() rather than isinstance(): bool is an int subclass
    if type(expires_at) is not int or not all(isinstance(value, str) for value in text_fields):
        return False

    challenge_id, nonce, secret, signature = text_fields
    expected = sign_challenge(key, challenge_id, nonce, secret, expires_at)
    return constant_time_equals(expected, signature)


def create_session_token(
    subject: str,
    role: str,
    secret: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60,
) -> str:
    """Create a signed session token for ``subject`` with the given role."""
    claims: dict[str, object] = {
        "sub": subject,
        "role": role,
        "exp": datetime.now(UTC) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_session_token(token: str, secret: str, algorithm: str = "HS256") -> dict[str, Any]:
    """
    Decode and validate a session token.

    Raises:
        UnauthorizedError: If the token is malformed, expired or badly signed
    """
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as err:
        raise UnauthorizedError() from err
