import os

# Pas de Redis ni de tâche de fond pendant les tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
os.environ.setdefault("DISABLE_MAINTENANCE_TASK", "1")
# Clé de signature dédiée aux tests (create_app refuse de démarrer sans)
os.environ.setdefault("JWT_SECRET", "farmshare-test-secret-0123456789abcdef")

import pytest
from types import SimpleNamespace
from typing import Generator, Dict, Any, List, Optional
from fastapi.testclient import TestClient

from farmshare.app_setup.factory import create_app
from farmshare.utils.security import require_user, require_admin

# Modules qui importent get_service_supabase par nom
REPOSITORY_MODULES = (
    "farmshare.users.repository",
    "farmshare.auth.repository",
    "farmshare.security.repository",
    "farmshare.newsletter.repository",
    "farmshare.paystack.repository",
)

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "tests/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)

class FakeQuery:
    """Requête PostgREST factice: chaque méthode chaînée est enregistrée, execute() rend les lignes préparées."""
    def __init__(self, table: str, rows: List[dict], count: Optional[int] = None, error: Optional[Exception] = None):
        self.table = table
        self.rows = rows
        self.count = count
        self.error = error
        self.calls: List[tuple] = []

    def __getattr__(self, name):
        def _chain(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return _chain

    def called(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]

    def execute(self):
        if self.error:
            raise self.error
        return SimpleNamespace(data=list(self.rows), count=self.count)

class FakeSupabase:
    def __init__(self):
        self.rows: Dict[str, List[dict]] = {}
        self.counts: Dict[str, int] = {}
        self.errors: Dict[str, Exception] = {}
        self.queries: List[FakeQuery] = []

    def set_rows(self, table: str, rows: List[dict], count: Optional[int] = None):
        self.rows[table] = rows
        if count is not None:
            self.counts[table] = count

    def fail(self, table: str, error: Exception):
        self.errors[table] = error

    def table(self, name: str) -> FakeQuery:
        q = FakeQuery(name, self.rows.get(name, []), self.counts.get(name), self.errors.get(name))
        self.queries.append(q)
        return q

    def last(self, table: str) -> FakeQuery:
        return [q for q in self.queries if q.table == table][-1]

@pytest.fixture(scope="session")
def app():
    return create_app()

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture
def test_user() -> Dict[str, Any]:
    return {
        "id": "test-user",
        "email": "test@example.com",
        "name": "Test User",
        "role": "BUYER",
        "is_admin": False,
        "is_verified": True,
    }

@pytest.fixture
def admin_user() -> Dict[str, Any]:
    return {"id": "admin-user-id", "email": "admin@example.com", "role": "ADMIN", "is_admin": True}

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app, test_user):
    app.dependency_overrides[require_user] = lambda: test_user
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

@pytest.fixture
def admin_client(app, client, admin_user):
    app.dependency_overrides[require_admin] = lambda: admin_user
    yield client
    app.dependency_overrides.pop(require_admin, None)

# Aucun accès réseau à Supabase: toutes les tables sont vides par défaut
@pytest.fixture(autouse=True)
def fake_supabase(monkeypatch) -> FakeSupabase:
    fake = FakeSupabase()
    for module in REPOSITORY_MODULES:
        monkeypatch.setattr(f"{module}.get_service_supabase", lambda: fake)
    monkeypatch.setattr("farmshare.infra.supabase_client.get_supabase", lambda: fake)
    monkeypatch.setattr("farmshare.infra.supabase_client.get_service_supabase", lambda: fake)
    monkeypatch.setattr("farmshare.health.service.get_supabase", lambda: fake)
    return fake

@pytest.fixture
def paystack_key(monkeypatch):
    """Clé Paystack de test (les modules lisent la constante importée)."""
    key = "sk_test_farmshare"
    monkeypatch.setattr("farmshare.paystack.client.PAYSTACK_SECRET_KEY", key)
    monkeypatch.setattr("farmshare.paystack.webhook.PAYSTACK_SECRET_KEY", key)
    monkeypatch.setattr("farmshare.paystack.verification.RETRY_DELAY_SECONDS", 0)
    return key
