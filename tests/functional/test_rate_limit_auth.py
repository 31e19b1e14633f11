from fastapi.testclient import TestClient

from farmshare.app_setup.factory import create_app
from farmshare.auth import views as auth_views
from farmshare.auth.models import AuthResponse, failure


def test_login_rate_limit_with_local_fallback(monkeypatch):
    # App dédiée: le compteur mémoire vit dans app.state
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    monkeypatch.setattr(auth_views, "svc_login", lambda email, pwd: failure("Invalid credentials", 401))
    app = create_app()

    with TestClient(app) as client:
        payload = {"email": "user@example.com", "password": "password123"}
        statuses = [client.post("/api/v1/auth/login", json=payload).status_code for _ in range(6)]

    assert statuses[:5] == [401] * 5
    assert statuses[5] == 429


def test_forgot_password_rate_limit(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    monkeypatch.setattr(auth_views, "svc_request_reset", lambda email: AuthResponse(True, message="ok"))
    app = create_app()

    with TestClient(app) as client:
        statuses = [
            client.post("/api/v1/auth/forgot-password", json={"email": "user@example.com"}).status_code
            for _ in range(4)
        ]

    assert statuses == [200, 200, 200, 429]
