"""
JWT access tokens issued after a successful password login.

HS256 with the secret from JWTSettings; there is no fallback secret.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import jwt

from config import JWTSettings


def generate_access_jwt(
    settings: JWTSettings, subject: str, now: datetime, auth_method: str = "pwd"
) -> str:
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET must be set to issue access tokens")
    claims = {
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=settings.access_token_ttl_seconds)).timestamp()),
        "amr": [auth_method],  # Authentication Methods References
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
