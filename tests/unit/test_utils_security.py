import pytest
from fastapi import FastAPI, Depends, HTTPException
from fastapi.testclient import TestClient

from farmshare.utils import security
from farmshare.utils.security import (
    COOKIE_NAME,
    hash_password,
    verify_password,
    hash_token,
    require_admin,
    get_current_user,
    optional_user,
)


def test_hash_and_verify_password():
    hashed = hash_password("Str0ng!Pass")
    assert hashed != "Str0ng!Pass"
    assert hashed.startswith("$2")
    assert verify_password("Str0ng!Pass", hashed) is True
    assert verify_password("wrong", hashed) is False


def test_verify_password_tolerates_missing_or_invalid_hash():
    assert verify_password("x", None) is False
    assert verify_password(None, "hash") is False
    assert verify_password("x", "not-a-bcrypt-hash") is False


def test_hash_token_is_stable_sha256():
    assert hash_token("abc") == hash_token("abc")
    assert hash_token("abc") != hash_token("abd")
    assert len(hash_token("abc")) == 64


def test_require_admin_allows_admin_flag_or_role():
    assert require_admin({"id": "a", "is_admin": True})["id"] == "a"
    assert require_admin({"id": "b", "role": "ADMIN"})["id"] == "b"


def test_require_admin_rejects_regular_user():
    with pytest.raises(HTTPException) as exc:
        require_admin({"id": "u", "role": "BUYER", "is_admin": False})
    assert exc.value.status_code == 403


def _make_app():
    app = FastAPI()

    @app.get("/me")
    def me(user=Depends(get_current_user)):
        return user

    @app.get("/maybe")
    def maybe(user=Depends(optional_user)):
        return {"user": user}

    return app


def test_get_current_user_requires_token():
    client = TestClient(_make_app())
    assert client.get("/me").status_code == 401


def test_get_current_user_prefers_bearer_over_cookie(monkeypatch):
    seen = []

    def _fake_get_user_from_token(token):
        seen.append(token)
        return {"id": "u1", "token": token}

    monkeypatch.setattr("farmshare.auth.service.get_user_from_token", _fake_get_user_from_token)
    client = TestClient(_make_app())
    client.cookies.set(COOKIE_NAME, "cookie-token")

    res = client.get("/me", headers={"Authorization": "Bearer header-token"})
    assert res.status_code == 200
    assert seen == ["header-token"]

    res = client.get("/me")
    assert res.json()["token"] == "cookie-token"


def test_optional_user_returns_none_on_invalid_token(monkeypatch):
    def _reject(token):
        raise HTTPException(status_code=401, detail="Invalid token")

    monkeypatch.setattr("farmshare.auth.service.get_user_from_token", _reject)
    client = TestClient(_make_app())
    assert client.get("/maybe").json() == {"user": None}
    assert client.get("/maybe", headers={"Authorization": "Bearer bad"}).json() == {"user": None}


def test_session_cookie_flags():
    from fastapi.responses import Response
    resp = Response()
    security.set_session_cookie(resp, "tok")
    header = resp.headers["set-cookie"]
    assert header.startswith(f"{COOKIE_NAME}=tok")
    assert "HttpOnly" in header
    assert "samesite=lax" in header.lower()
