import asyncio
import logging
import pytest
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from farmshare.app_setup import lifespan as lifespan_mod

logger = logging.getLogger("tests.lifespan")


def test_rate_limiter_disabled_for_tests(monkeypatch):
    monkeypatch.setenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
    app = FastAPI()
    asyncio.run(lifespan_mod._init_rate_limiter(app, logger))
    assert app.state.rate_limit_enabled is False


def test_rate_limiter_init_failure_disables_limiting(monkeypatch):
    monkeypatch.setenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "0")
    monkeypatch.delenv("USE_FAKE_REDIS_FOR_TESTS", raising=False)
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)

    async def _unreachable(redis, *args, **kwargs):
        raise ConnectionError("redis down")

    monkeypatch.setattr(FastAPILimiter, "init", _unreachable)
    app = FastAPI()
    asyncio.run(lifespan_mod._init_rate_limiter(app, logger))
    assert app.state.rate_limit_enabled is False


def test_rate_limiter_init_failure_with_local_fallback(monkeypatch):
    monkeypatch.setenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "0")
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")

    async def _unreachable(redis, *args, **kwargs):
        raise ConnectionError("redis down")

    monkeypatch.setattr(FastAPILimiter, "init", _unreachable)
    app = FastAPI()
    asyncio.run(lifespan_mod._init_rate_limiter(app, logger))
    assert app.state.rate_limit_enabled is True


def test_lifespan_starts_and_stops_maintenance(monkeypatch):
    monkeypatch.setenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
    monkeypatch.delenv("DISABLE_MAINTENANCE_TASK", raising=False)
    events = []

    def _start(interval):
        events.append(("start", interval))
        return "task"

    async def _stop(task):
        events.append(("stop", task))

    monkeypatch.setattr(lifespan_mod, "start_maintenance_task", _start)
    monkeypatch.setattr(lifespan_mod, "stop_maintenance_task", _stop)

    async def _run():
        app = FastAPI()
        async with lifespan_mod.lifespan(app):
            assert app.state.maintenance_task == "task"

    asyncio.run(_run())
    assert events == [("start", lifespan_mod.MAINTENANCE_INTERVAL_SECONDS), ("stop", "task")]


def test_create_app_requires_jwt_secret(monkeypatch):
    from farmshare import config
    from farmshare.app_setup.factory import create_app

    monkeypatch.setattr(config, "JWT_SECRET", "")
    with pytest.raises(RuntimeError) as exc:
        create_app()
    assert "JWT_SECRET" in str(exc.value)
