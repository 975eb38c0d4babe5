"""JWT access token validation (ES256).

Tokens are issued by the platform's identity service; this service only
verifies them and reads ``sub`` (the numeric user id) and ``roles``
(admin | teacher | student).

``create_access_token`` signs with this process's ephemeral key.  It is
used by tests and scripts/demo_progress_flow.py; in production the
verifying key would be the identity service's public key.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "lms-identity"
AUDIENCE = "progress-service"
ACCESS_TOKEN_TTL_MIN = 15


def create_access_token(
    *,
    sub: str,
    roles: list[str] | None = None,
    ttl_minutes: int = ACCESS_TOKEN_TTL_MIN,
) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ttl_minutes),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["student"],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature, exp, iss and aud; return the claims.

    The algorithm is pinned to ES256 so alg:none and alg-switching tokens
    are rejected.  Raises jwt.ExpiredSignatureError / jwt.InvalidTokenError.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
