"""JWT access token validation (ES256).

Identity is issued upstream; this service only verifies bearer tokens
and reads the `sub` claim as the caller's user id.

Key handling:
  - JWT_PUBLIC_KEY_PEM set: verify against that key; minting is disabled.
  - unset (dev/test): an ephemeral EC key pair is generated on import so
    tests and local scripts can mint tokens.
"""

from __future__ import annotations

import os
import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

ALGORITHM = "ES256"
ISSUER = os.environ.get("JWT_ISSUER", "auth-service")
AUDIENCE = os.environ.get("JWT_AUDIENCE", "lesson-progress")
ACCESS_TOKEN_TTL_MIN = 15

_public_pem = os.environ.get("JWT_PUBLIC_KEY_PEM", "").strip()
if _public_pem:
    _private_key: ec.EllipticCurvePrivateKey | None = None
    _public_key = serialization.load_pem_public_key(_public_pem.encode("utf-8"))
else:
    _private_key = ec.generate_private_key(ec.SECP256R1())
    _public_key = _private_key.public_key()


def create_access_token(
    *,
    sub: str,
    roles: list[str] | None = None,
    ttl: timedelta = timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
) -> str:
    """Build and sign an access token with the ephemeral dev key."""
    if _private_key is None:
        raise RuntimeError("token minting is disabled when JWT_PUBLIC_KEY_PEM is set")
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + ttl,
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["user"],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256 and validates exp, iss, and aud.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
