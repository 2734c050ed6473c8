"""JWT access token creation and validation (HS256).

Bearer tokens are issued by the platform's auth service; this service
only verifies them.  create_access_token exists for tests and local
tooling that need a token signed with the same secret.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt

from badge_service.core.config import SETTINGS

ALGORITHM = "HS256"
ISSUER = "auth-service"
AUDIENCE = "badge-service"
ACCESS_TOKEN_TTL_MIN = 15


def create_access_token(
    *,
    sub: str,
    roles: list[str] | None = None,
    secret: str | None = None,
) -> str:
    """Build and sign a JWT access token.

    Claims: sub, iss, aud, exp, iat, jti, roles.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["user"],
    }
    return jwt.encode(payload, secret or SETTINGS.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins algorithm to HS256 to prevent alg:none and alg-switching attacks.
    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        SETTINGS.jwt_secret,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
