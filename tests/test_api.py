"""
API tests through FastAPI's TestClient

Services are swapped through app.dependency_overrides; the build runs as a
background task, which TestClient completes before returning the response.
"""
import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi.testclient import TestClient

from birthbuild.main import app
from birthbuild.api import deps
from birthbuild.agents.design_system.design_system_agent import DesignSystemAgent, DesignSystemProviderError
from birthbuild.agents.design_system.design_system_schemas import DesignSystemResult
from birthbuild.agents.orchestrator.orchestrator_agent import BuildOrchestrator
from birthbuild.agents.page.page_agent import PageAgent
from birthbuild.agents.page.page_schemas import PageResult
from birthbuild.core.checkpoint_store import CheckpointStore
from birthbuild.core.config import settings
from birthbuild.core.deploy_client import DeployResult, NetlifyClient
from birthbuild.core.model_client import ModelProviderError
from birthbuild.core.publisher import Publisher
from birthbuild.core.rate_limiter import RateLimiter
from birthbuild.core.record_store import InMemoryRecordStore, SITE_SPECS
from birthbuild.core.spec_store import SpecStore
from birthbuild.models.errors import PROVIDER_UNAVAILABLE_MESSAGE
from birthbuild.models.site_spec import page_filename
from conftest import make_spec_row

USER = {"X-User-Id": "user-1"}
PUBLIC_URL = "https://sarah-jones.birthbuild.com"


async def _generate_page(page, spec, resolved, design_system, prompt_config=None):
    return PageResult(page=page, filename=page_filename(page), html=f"<html><body>{page}</body></html>")


@pytest.fixture
def store():
    store = InMemoryRecordStore()
    asyncio.run(store.insert(SITE_SPECS, make_spec_row()))
    return store


@pytest.fixture
def deploy_client():
    client = MagicMock(spec=NetlifyClient)
    client.ensure_site = AsyncMock(return_value="site-abc")
    client.deploy = AsyncMock(return_value=DeployResult(
        deploy_id="deploy-1", site_id="site-abc", preview_url="https://birthbuild-sarah-jones.netlify.app"
    ))
    client.publish = AsyncMock(return_value=PUBLIC_URL)
    client.unpublish = AsyncMock(return_value=None)
    return client


@pytest.fixture
def design_agent(design_system):
    agent = MagicMock(spec=DesignSystemAgent)
    agent.run = AsyncMock(return_value=DesignSystemResult(design_system=design_system))
    return agent


@pytest.fixture
def client(store, deploy_client, design_agent):
    spec_store = SpecStore(store)
    checkpoint_store = CheckpointStore(store, retry_jitter_seconds=0)
    page_agent = MagicMock(spec=PageAgent)
    page_agent.run = AsyncMock(side_effect=_generate_page)
    orchestrator = BuildOrchestrator(
        spec_store,
        checkpoint_store,
        deploy_client,
        design_system_agent=design_agent,
        page_agent=page_agent,
        repair_policy="auto",
    )

    app.dependency_overrides[deps.get_spec_store] = lambda: spec_store
    app.dependency_overrides[deps.get_checkpoint_store] = lambda: checkpoint_store
    app.dependency_overrides[deps.get_rate_limiter] = lambda: RateLimiter(store, window_seconds=3600)
    app.dependency_overrides[deps.get_design_system_agent] = lambda: design_agent
    app.dependency_overrides[deps.get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[deps.get_publisher] = lambda: Publisher(spec_store, deploy_client)

    with patch.object(settings, "api_key", ""):
        yield TestClient(app)

    app.dependency_overrides.clear()


class TestHealth:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestAuth:

    def test_missing_user_id(self, client):
        response = client.post("/api/build", json={"site_spec_id": "spec-1"})
        assert response.status_code == 401

    def test_api_key_required_when_configured(self, client):
        with patch.object(settings, "api_key", "secret"):
            missing = client.post("/api/build", json={"site_spec_id": "spec-1"}, headers=USER)
            wrong = client.post("/api/build", json={"site_spec_id": "spec-1"}, headers={**USER, "X-API-Key": "nope"})
            ok = client.get("/api/checkpoints/spec-1", headers={**USER, "X-API-Key": "secret"})

        assert missing.status_code == 403
        assert wrong.status_code == 403
        assert ok.status_code == 200


class TestBuildEndpoint:

    def test_build_and_progress(self, client, store):
        response = client.post("/api/build", json={"site_spec_id": "spec-1"}, headers=USER)

        assert response.status_code == 202
        build_id = response.json()["build_id"]

        progress = client.get(f"/api/build/{build_id}/progress")
        assert progress.status_code == 200
        body = progress.json()
        assert body["phase"] == "READY"
        assert body["is_terminal"] is True
        assert body["error"] is None
        assert body["result"]["version"] == 1
        assert body["result"]["status"] == "preview"
        assert body["events"][0]["phase"] == "VALIDATING"

        row = asyncio.run(store.get(SITE_SPECS, "spec-1"))
        assert row["status"] == "preview"

    def test_missing_fields_rejected_synchronously(self, client, store, design_agent):
        asyncio.run(store.update(SITE_SPECS, "spec-1", {"service_area": "  "}))

        response = client.post("/api/build", json={"site_spec_id": "spec-1"}, headers=USER)

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert "service area" in body["message"]
        design_agent.run.assert_not_called()

    def test_failed_build_reports_error_in_progress(self, client, design_agent):
        design_agent.run.side_effect = DesignSystemProviderError(
            "Design system generation failed: model provider unavailable",
            ModelProviderError("anthropic", "secret internal detail", 500),
        )

        build_id = client.post("/api/build", json={"site_spec_id": "spec-1"}, headers=USER).json()["build_id"]
        body = client.get(f"/api/build/{build_id}/progress").json()

        assert body["phase"] == "ERROR"
        assert body["result"] is None
        assert body["error"]["code"] == "PROVIDER_ERROR"
        assert body["error"]["message"] == PROVIDER_UNAVAILABLE_MESSAGE
        assert "secret internal detail" not in str(body)

    def test_other_users_spec(self, client):
        response = client.post("/api/build", json={"site_spec_id": "spec-1"}, headers={"X-User-Id": "user-2"})
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_malformed_id(self, client):
        response = client.post("/api/build", json={"site_spec_id": "spec 1; drop"}, headers=USER)
        assert response.status_code == 422

    def test_unknown_build(self, client):
        response = client.get("/api/build/does-not-exist/progress")
        assert response.status_code == 404

    def test_rate_limited(self, client):
        with patch.object(settings, "build_rate_limit", 1):
            first = client.post("/api/build", json={"site_spec_id": "spec-1"}, headers=USER)
            second = client.post("/api/build", json={"site_spec_id": "spec-1"}, headers=USER)

        assert first.status_code == 202
        assert second.status_code == 429
        assert second.json()["code"] == "RATE_LIMITED"
        assert second.json()["retryable"] is True


class TestDesignSystemEndpoint:

    def test_returns_design_system_and_issues(self, client, design_agent, design_system):
        design_agent.run.return_value = DesignSystemResult(
            design_system=design_system, issues=["CSS is missing required selectors: .hero."]
        )

        response = client.post(
            "/api/design-system",
            json={"site_spec_id": "spec-1", "repair_issues": ["CSS is too short."]},
            headers=USER,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is False
        assert body["issues"] == ["CSS is missing required selectors: .hero."]
        assert body["design_system"]["css"] == design_system.css
        assert design_agent.run.await_args.kwargs["repair_issues"] == ["CSS is too short."]

    def test_unusable_output_returns_issues(self, client, design_agent):
        design_agent.run.return_value = DesignSystemResult(
            design_system=None,
            issues=["The response did not call the output_design_system tool."],
        )

        response = client.post("/api/design-system", json={"site_spec_id": "spec-1"}, headers=USER)

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is False
        assert body["design_system"] is None
        assert body["issues"] == ["The response did not call the output_design_system tool."]

    def test_provider_failure(self, client, design_agent):
        design_agent.run.side_effect = DesignSystemProviderError(
            "Design system generation failed: model provider unavailable",
            ModelProviderError("openai", "quota exceeded", 429),
        )

        response = client.post("/api/design-system", json={"site_spec_id": "spec-1"}, headers=USER)

        assert response.status_code == 502
        assert response.json()["message"] == PROVIDER_UNAVAILABLE_MESSAGE
        assert "quota" not in response.text


class TestPublishEndpoint:

    def test_publish_then_unpublish(self, client, store):
        client.post("/api/build", json={"site_spec_id": "spec-1"}, headers=USER)

        published = client.post("/api/publish", json={"site_spec_id": "spec-1", "action": "publish"}, headers=USER)
        assert published.status_code == 200
        assert published.json() == {"status": "live", "deploy_url": PUBLIC_URL}

        unpublished = client.post("/api/publish", json={"site_spec_id": "spec-1", "action": "unpublish"}, headers=USER)
        assert unpublished.json() == {"status": "preview", "deploy_url": None}

    def test_publish_draft_conflicts(self, client):
        response = client.post("/api/publish", json={"site_spec_id": "spec-1", "action": "publish"}, headers=USER)
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATE"

    def test_unknown_action(self, client):
        response = client.post("/api/publish", json={"site_spec_id": "spec-1", "action": "delete"}, headers=USER)
        assert response.status_code == 422


class TestCheckpointEndpoints:

    def test_list_and_redeploy(self, client, deploy_client):
        client.post("/api/build", json={"site_spec_id": "spec-1"}, headers=USER)
        client.post("/api/build", json={"site_spec_id": "spec-1"}, headers=USER)

        listing = client.get("/api/checkpoints/spec-1", headers=USER).json()
        assert [c["version"] for c in listing["checkpoints"]] == [2, 1]
        assert listing["checkpoints"][0]["pages"] == ["index.html", "services.html", "contact.html"]
        assert listing["checkpoints"][0]["has_design_system"] is True

        first_id = listing["checkpoints"][1]["id"]
        response = client.post(f"/api/checkpoints/{first_id}/deploy", json={"site_spec_id": "spec-1"}, headers=USER)

        assert response.status_code == 200
        assert response.json()["version"] == 1
        assert deploy_client.deploy.await_count == 3

    def test_list_for_other_user(self, client):
        response = client.get("/api/checkpoints/spec-1", headers={"X-User-Id": "user-2"})
        assert response.status_code == 404
