"""Tests for FastAPI app setup and router structure (no DB required).

Uses starlette TestClient with init_db and the hub loaders mocked so no live
PostgreSQL is needed.
"""

from unittest.mock import AsyncMock, patch


def _patched():
    return (
        patch("api.main.init_db", new_callable=AsyncMock),
        patch("api.main.load_activity", new=AsyncMock(return_value=[])),
    )


def test_health_returns_ok():
    """GET /health should return {status: ok} without a live database."""
    init_db, load_activity = _patched()
    with init_db, load_activity:
        from api.main import app
        from starlette.testclient import TestClient
        with TestClient(app, raise_server_exceptions=False) as client:
            resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["service"] == "traceloom-api"


def test_root_lists_endpoints():
    """GET / should list known endpoints."""
    init_db, load_activity = _patched()
    with init_db, load_activity:
        from api.main import app
        from starlette.testclient import TestClient
        with TestClient(app, raise_server_exceptions=False) as client:
            resp = client.get("/")
    assert resp.status_code == 200
    data = resp.json()
    assert "endpoints" in data
    for key in ("orders", "alerts", "iot", "live", "activity", "dashboard"):
        assert key in data["endpoints"], f"Missing endpoint key: {key}"


def test_unknown_route_returns_404():
    """Unknown paths should 404."""
    init_db, load_activity = _patched()
    with init_db, load_activity:
        from api.main import app
        from starlette.testclient import TestClient
        with TestClient(app, raise_server_exceptions=False) as client:
            resp = client.get("/this_route_does_not_exist")
    assert resp.status_code == 404


def test_lifespan_starts_and_closes_hub():
    init_db, load_activity = _patched()
    with init_db as mocked_init, load_activity:
        from api.main import app
        from starlette.testclient import TestClient
        with TestClient(app, raise_server_exceptions=False):
            assert app.state.hub is not None
            assert app.state.hub.started
        assert app.state.hub is None
    mocked_init.assert_awaited_once()


def test_risk_level_endpoint_buckets_score():
    init_db, load_activity = _patched()
    with init_db, load_activity:
        from api.main import app
        from starlette.testclient import TestClient
        with TestClient(app, raise_server_exceptions=False) as client:
            low = client.get("/dashboard/risk-level", params={"score": 29})
            high = client.get("/dashboard/risk-level", params={"score": 55})
            clamped = client.get("/dashboard/risk-level", params={"score": 140})
    assert low.json()["risk_level"] == "low"
    assert high.json() == {"score": 55.0, "risk_level": "high", "trust_score": 45.0}
    assert clamped.json()["risk_level"] == "critical"
    assert clamped.json()["trust_score"] == 0.0
