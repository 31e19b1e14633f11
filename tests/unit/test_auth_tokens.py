from datetime import datetime, timedelta, timezone
import jwt
import pytest

from farmshare.auth import tokens
from farmshare.auth.tokens import (
    ACCESS,
    REFRESH,
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from farmshare.config import JWT_SECRET, JWT_ALGORITHM


def test_access_token_carries_identity_claims():
    token = create_access_token({"id": "u1", "email": "a@b.co", "role": "VENDOR"})
    claims = decode_token(token, ACCESS)
    assert claims["sub"] == "u1"
    assert claims["email"] == "a@b.co"
    assert claims["role"] == "VENDOR"
    assert claims["type"] == ACCESS
    assert claims["exp"] > claims["iat"]


def test_refresh_tokens_are_unique_per_issue():
    a = create_refresh_token("u1")
    b = create_refresh_token("u1")
    assert a != b
    assert decode_token(a, REFRESH)["sub"] == "u1"


def test_decode_rejects_wrong_type():
    refresh_token = create_refresh_token("u1")
    with pytest.raises(TokenError) as exc:
        decode_token(refresh_token, ACCESS)
    assert str(exc.value) == "Invalid token"


def test_decode_rejects_expired_token():
    now = datetime.now(timezone.utc)
    expired = jwt.encode(
        {"sub": "u1", "type": ACCESS, "iat": now - timedelta(hours=2), "exp": now - timedelta(hours=1)},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )
    with pytest.raises(TokenError) as exc:
        decode_token(expired, ACCESS)
    assert str(exc.value) == "Token expired"


def test_decode_rejects_foreign_signature():
    forged = jwt.encode({"sub": "u1", "type": ACCESS}, "another-secret-of-sufficient-length", algorithm="HS256")
    with pytest.raises(TokenError):
        decode_token(forged, ACCESS)
    with pytest.raises(TokenError):
        decode_token("garbage", ACCESS)


def test_role_defaults_to_buyer(monkeypatch):
    token = tokens.create_access_token({"id": "u2", "email": "x@y.z"})
    assert decode_token(token)["role"] == "BUYER"


def test_tokens_refused_without_secret(monkeypatch):
    token = create_access_token({"id": "u1", "email": "a@b.co"})
    monkeypatch.setattr(tokens, "JWT_SECRET", "")
    with pytest.raises(TokenError) as exc:
        decode_token(token, ACCESS)
    assert str(exc.value) == "JWT secret not configured"
    with pytest.raises(TokenError):
        create_refresh_token("u1")
