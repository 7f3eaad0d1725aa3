"""Tests for the /coach endpoints against an in-memory document store."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from deal_context.api.auth import verify_worker_token
from deal_context.api.routes.coach import router

from conftest import COMPANY_ID, DEAL_ID, FakeDocumentStore, TENANT_ID, seed_acme


def _make_app(store) -> FastAPI:
    """Build a test app with the auth dependency bypassed."""
    app = FastAPI()
    app.include_router(router)

    async def _noop_auth():
        return None

    app.dependency_overrides[verify_worker_token] = _noop_auth
    app.state.store = store
    return app


def _client(store=None) -> TestClient:
    return TestClient(_make_app(store or seed_acme(FakeDocumentStore())))


class TestCoachPrompt:
    def test_prompt_bundle(self):
        response = _client().post("/coach/prompt", json={
            "deal_id": DEAL_ID,
            "tenant_id": TENANT_ID,
            "user_id": "user_1",
            "message": "Any recent activity?",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["system_prompt"].startswith("You are the Deal Coach AI")
        assert "Relevant activity context: " in body["user_message"]
        assert [m["role"] for m in body["messages"]] == ["system", "user"]
        assert body["report"]["deal_found"] is True
        assert body["insights"]["company"][0] == "Company: Acme Corp (Manufacturing)"

    def test_degraded_branch_still_200(self):
        store = seed_acme(FakeDocumentStore())
        store.fail(f"crm_companies/{COMPANY_ID}/notes")

        response = _client(store).post("/coach/prompt", json={
            "deal_id": DEAL_ID, "tenant_id": TENANT_ID, "message": "hi",
        })

        assert response.status_code == 200
        assert response.json()["report"]["degraded"] is True

    def test_unknown_deal_404(self):
        response = _client().post("/coach/prompt", json={
            "deal_id": "ghost", "tenant_id": TENANT_ID, "message": "hi",
        })
        assert response.status_code == 404

    def test_deal_record_failure_503(self):
        store = seed_acme(FakeDocumentStore())
        store.fail("crm_deals")

        response = _client(store).post("/coach/prompt", json={
            "deal_id": DEAL_ID, "tenant_id": TENANT_ID, "message": "hi",
        })
        assert response.status_code == 503

    def test_empty_message_422(self):
        response = _client().post("/coach/prompt", json={
            "deal_id": DEAL_ID, "tenant_id": TENANT_ID, "message": "",
        })
        assert response.status_code == 422

    def test_missing_fields_422(self):
        response = _client().post("/coach/prompt", json={"deal_id": DEAL_ID})
        assert response.status_code == 422


class TestCoachContext:
    def test_context_and_report(self):
        response = _client().get(f"/coach/context/{TENANT_ID}/{DEAL_ID}")

        assert response.status_code == 200
        body = response.json()
        assert body["context"]["deal"]["name"] == "Acme Renewal"
        assert len(body["context"]["contacts"]) == 2
        assert body["report"]["failure_count"] == 0
        assert body["summary"].startswith("Deal: Acme Renewal (Discovery)")
        assert body["counts"]["contacts"] == 2
        assert body["insights"]["salesperson"] == [
            "Salesperson 1: Riley Park",
            "Riley Park performance: Closes fast in manufacturing",
        ]

    def test_unknown_deal_404(self):
        response = _client().get(f"/coach/context/{TENANT_ID}/ghost")
        assert response.status_code == 404


class TestCoachAuth:
    def test_requires_bearer_header(self):
        app = _make_app(FakeDocumentStore())
        app.dependency_overrides.clear()

        response = TestClient(app).post("/coach/prompt", json={
            "deal_id": DEAL_ID, "tenant_id": TENANT_ID, "message": "hi",
        })
        assert response.status_code == 401
