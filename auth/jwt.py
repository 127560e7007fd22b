"""
JWT token creation and verification.

Tokens are compact HS256 JWTs (``header.payload.signature``, base64url)
signed with HMAC-SHA256.  Secret key is loaded from ``config.jwt_secret``
(env var: ``JWT_SECRET``).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from base64 import urlsafe_b64decode, urlsafe_b64encode
from dataclasses import dataclass

from api.errors import InvalidTokenError
from config.settings import config

_HEADER = {"alg": "HS256", "typ": "JWT"}


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str
    role: str
    issued_at: int
    expires_at: int


def _b64encode(raw: bytes) -> str:
    return urlsafe_b64encode(raw).rstrip(b"=").decode()


def _b64decode(segment: str) -> bytes:
    return urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _sign(signing_input: bytes, secret: str) -> str:
    return _b64encode(hmac.new(secret.encode(), signing_input, hashlib.sha256).digest())


def create_token(
    user_id: str,
    email: str,
    role: str,
    *,
    expires_in: int | None = None,
    now: float | None = None,
    secret: str | None = None,
) -> str:
    """Create a signed token embedding ``userId``, ``email`` and ``role``."""
    issued = int(now if now is not None else time.time())
    lifetime = config.jwt_expiry_seconds if expires_in is None else expires_in
    payload = {
        "userId": user_id,
        "email": email,
        "role": role,
        "iat": issued,
        "exp": issued + lifetime,
    }
    header_b64 = _b64encode(json.dumps(_HEADER, separators=(",", ":")).encode())
    payload_b64 = _b64encode(json.dumps(payload, separators=(",", ":")).encode())
    signing_input = f"{header_b64}.{payload_b64}".encode()
    return f"{header_b64}.{payload_b64}.{_sign(signing_input, secret or config.jwt_secret)}"


def verify_token(
    token: str,
    *,
    now: float | None = None,
    secret: str | None = None,
) -> TokenClaims:
    """
    Verify signature and expiry and return the embedded claims.

    Every failure (format, signature, expiry, payload shape) raises the
    same ``InvalidTokenError`` so callers learn nothing about the cause.
    """
    try:
        header_b64, payload_b64, signature = token.split(".")
        expected = _sign(f"{header_b64}.{payload_b64}".encode(), secret or config.jwt_secret)
        if not hmac.compare_digest(signature, expected):
            raise ValueError("bad signature")
        header = json.loads(_b64decode(header_b64))
        if header.get("alg") != _HEADER["alg"]:
            raise ValueError("unexpected algorithm")
        payload = json.loads(_b64decode(payload_b64))
        current = now if now is not None else time.time()
        if int(payload["exp"]) <= current:
            raise ValueError("token expired")
        return TokenClaims(
            user_id=str(payload["userId"]),
            email=str(payload["email"]),
            role=str(payload["role"]),
            issued_at=int(payload.get("iat", 0)),
            expires_at=int(payload["exp"]),
        )
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise InvalidTokenError() from exc
