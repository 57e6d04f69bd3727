# Import section
import time
import pytest
from fastapi import FastAPI, Depends, Request
from fastapi.testclient import TestClient
from fastapi_limiter import FastAPILimiter
from giving.utils.rate_limit import optional_rate_limit, rate_limit_health_info


def _make_app(times=2, seconds=60):
    app = FastAPI()

    @app.post("/api/pay", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def pay():
        return {"ok": True}

    @app.post("/api/create-payment-intent", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def create_intent():
        return {"ok": True}

    @app.get("/rl_info")
    def rl_info(request: Request):
        return rate_limit_health_info(request)

    return app


@pytest.fixture(autouse=True)
def _no_limiter(monkeypatch):
    # Aucun Redis réel: fastapi-limiter reste non initialisé
    monkeypatch.setattr(FastAPILimiter, "redis", None, raising=False)


def test_rate_limit_fallback_blocks_after_limit(monkeypatch):
    app = _make_app(times=2, seconds=60)
    client = TestClient(app)
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")

    r1 = client.post("/api/pay")
    r2 = client.post("/api/pay")
    r3 = client.post("/api/pay")

    assert r1.status_code == 200
    assert r2.status_code == 200
    assert r3.status_code == 429


def test_rate_limit_is_per_path_and_ip(monkeypatch):
    app = _make_app(times=2, seconds=60)
    client = TestClient(app)
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")

    # path A: 2 OK, 3e bloque
    assert client.post("/api/pay").status_code == 200
    assert client.post("/api/pay").status_code == 200
    assert client.post("/api/pay").status_code == 429

    # path B: indépendant de A
    assert client.post("/api/create-payment-intent").status_code == 200

    # Autre IP (derrière proxy): compteur séparé
    headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
    assert client.post("/api/pay", headers=headers).status_code == 200
    assert client.post("/api/pay", headers=headers).status_code == 200
    assert client.post("/api/pay", headers=headers).status_code == 429


def test_rate_limit_resets_after_window_sleep(monkeypatch):
    app = _make_app(times=2, seconds=1)
    client = TestClient(app)
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")

    assert client.post("/api/pay").status_code == 200
    assert client.post("/api/pay").status_code == 200
    assert client.post("/api/pay").status_code == 429

    # Attendre > 1s pour vider la fenêtre
    time.sleep(1.1)
    assert client.post("/api/pay").status_code == 200


def test_rate_limit_disabled_flag_bypasses_limit(monkeypatch):
    app = _make_app(times=2, seconds=60)
    client = TestClient(app)
    app.state.rate_limit_enabled = False

    for _ in range(4):
        assert client.post("/api/pay").status_code == 200


def test_rate_limit_without_initialized_limiter_is_noop(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app(times=1, seconds=60)
    client = TestClient(app)

    assert client.post("/api/pay").status_code == 200
    assert client.post("/api/pay").status_code == 200


def test_rate_limit_health_info(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app()
    client = TestClient(app)

    app.state.rate_limit_enabled = True
    info = client.get("/rl_info").json()
    assert info["enabled"] is True
    assert info["ready"] is False
    assert info["backend"] is None

    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    assert client.get("/rl_info").json()["backend"] == "memory"

    # Limiteur prêt: détails de l'URL Redis
    monkeypatch.setattr(FastAPILimiter, "redis", object(), raising=False)
    monkeypatch.setenv("RATE_LIMIT_REDIS_URL", "redis://localhost:6379/0")
    info2 = client.get("/rl_info").json()
    assert info2["ready"] is True
    assert info2["backend"] == "redis"
    assert info2["redis"] == {"scheme": "redis", "host": "localhost", "port": 6379}
