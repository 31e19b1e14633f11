"""
Émission et vérification des JWT (PyJWT, HS256 par défaut).
- access: courte durée, porte id/email/rôle, utilisé en Bearer ou cookie
- refresh: longue durée, identifiant unique (jti); seul son condensat est stocké en base
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict
from uuid import uuid4
import jwt

from farmshare.config import (
    JWT_SECRET,
    JWT_ALGORITHM,
    ACCESS_TOKEN_EXPIRES_MINUTES,
    REFRESH_TOKEN_EXPIRES_DAYS,
)

ACCESS = "access"
REFRESH = "refresh"

class TokenError(Exception):
    """Token illisible, expiré ou du mauvais type."""

def _secret() -> str:
    if not JWT_SECRET:
        raise TokenError("JWT secret not configured")
    return JWT_SECRET

def _encode(claims: Dict[str, Any], ttl: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {**claims, "iat": now, "exp": now + ttl, "jti": uuid4().hex}
    return jwt.encode(payload, _secret(), algorithm=JWT_ALGORITHM)

def create_access_token(user: Dict[str, Any]) -> str:
    return _encode(
        {
            "sub": str(user.get("id")),
            "email": user.get("email"),
            "role": user.get("role") or "BUYER",
            "type": ACCESS,
        },
        timedelta(minutes=ACCESS_TOKEN_EXPIRES_MINUTES),
    )

def create_refresh_token(user_id: str) -> str:
    return _encode({"sub": str(user_id), "type": REFRESH}, timedelta(days=REFRESH_TOKEN_EXPIRES_DAYS))

def decode_token(token: str, expected_type: str = ACCESS) -> Dict[str, Any]:
    """Décode et valide signature/expiration/type. Lève TokenError avec un message stable."""
    secret = _secret()
    try:
        claims = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise TokenError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenError("Invalid token") from e
    if claims.get("type") != expected_type or not claims.get("sub"):
        raise TokenError("Invalid token")
    return claims
