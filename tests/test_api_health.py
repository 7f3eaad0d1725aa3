"""Tests for the /health endpoint."""

from unittest.mock import AsyncMock
from fastapi import FastAPI
from fastapi.testclient import TestClient

from deal_context.api.routes.health import router


def _make_app(store) -> FastAPI:
    app = FastAPI()
    app.include_router(router)
    app.state.store = store
    return app


class TestHealthRoute:
    def test_health_ok(self):
        store = AsyncMock()
        store.verify_connectivity = AsyncMock(return_value=True)
        response = TestClient(_make_app(store)).get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health_store_unreachable(self):
        store = AsyncMock()
        store.verify_connectivity = AsyncMock(return_value=False)
        response = TestClient(_make_app(store)).get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_health_store_raises(self):
        store = AsyncMock()
        store.verify_connectivity = AsyncMock(side_effect=RuntimeError("not connected"))
        response = TestClient(_make_app(store)).get("/health")
        assert response.status_code == 503
