from farmshare.health import router as health_router
from farmshare.security import tasks


def test_root_and_health(client):
    assert client.get("/").json()["name"] == "FarmShare API"
    assert client.get("/health").json() == {"ok": True}
    assert client.get("/favicon.ico").status_code == 204


def test_security_headers(client):
    res = client.get("/health")
    assert res.headers["X-Frame-Options"] == "DENY"
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert "no-store" not in res.headers.get("Cache-Control", "")


def test_force_https_redirect(client):
    res = client.get("/health", headers={"x-forwarded-proto": "http"}, follow_redirects=False)
    assert res.status_code == 301
    assert res.headers["location"].startswith("https://")


def test_health_supabase_reports_tables(client, fake_supabase):
    body = client.get("/health/supabase").json()
    assert body["connect_ok"] is True
    assert set(body["tables"]) == {"users", "newsletter_subscribers", "payouts"}
    assert all(t["ok"] for t in body["tables"].values())


def test_health_paystack(client, monkeypatch):
    monkeypatch.setattr(health_router, "paystack_health_check", lambda: False)
    res = client.get("/health/paystack")
    assert res.status_code == 503
    assert res.json() == {"ok": False, "service": "paystack"}

    monkeypatch.setattr(health_router, "paystack_health_check", lambda: True)
    assert client.get("/health/paystack").status_code == 200


def test_health_rate_limit_disabled_in_tests(client):
    body = client.get("/health/rate-limit").json()
    assert body["enabled"] is False


def test_admin_maintenance(admin_client, monkeypatch):
    monkeypatch.setattr(
        "farmshare.security.views.run_maintenance",
        lambda: {"otp_attempts_deleted": 1, "webhook_events_deleted": 0, "payment_windows_reset": 2},
    )
    res = admin_client.post("/api/v1/admin/security/maintenance")
    assert res.status_code == 200
    assert res.json()["results"]["payment_windows_reset"] == 2
    assert res.headers["Cache-Control"].startswith("no-store")


def test_admin_maintenance_requires_admin(client):
    assert client.post("/api/v1/admin/security/maintenance").status_code == 401


def test_maintenance_task_not_started_in_tests(app, client):
    assert app.state.maintenance_task is None
    assert tasks.MINIMUM_INTERVAL_SECONDS == 60
