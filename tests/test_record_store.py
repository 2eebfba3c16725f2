"""Tests for the record store backends and the rate limiter"""
import json
import httpx
import pytest
from unittest.mock import AsyncMock

from birthbuild.core.rate_limiter import RateLimiter
from birthbuild.core.record_store import (
    InMemoryRecordStore,
    PostgrestRecordStore,
    RecordStoreError,
    UniqueViolationError,
    CHECKPOINTS,
    SITE_SPECS,
)
from birthbuild.core.spec_store import SpecStore
from birthbuild.models.errors import ApplicationError, ErrorCode
from conftest import make_spec_row


def _postgrest(handler) -> PostgrestRecordStore:
    return PostgrestRecordStore(
        base_url="https://db.example.supabase.co",
        service_key="service-key",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestInMemoryRecordStore:

    @pytest.mark.asyncio
    async def test_insert_assigns_id_and_timestamp(self, record_store):
        row = await record_store.insert(CHECKPOINTS, {"site_spec_id": "spec-1", "version": 1})
        assert row["id"]
        assert row["created_at"]

    @pytest.mark.asyncio
    async def test_unique_constraint(self, record_store):
        await record_store.insert(CHECKPOINTS, {"site_spec_id": "spec-1", "version": 1})
        with pytest.raises(UniqueViolationError):
            await record_store.insert(CHECKPOINTS, {"site_spec_id": "spec-1", "version": 1})
        await record_store.insert(CHECKPOINTS, {"site_spec_id": "spec-2", "version": 1})

    @pytest.mark.asyncio
    async def test_returned_rows_are_copies(self, seeded_store):
        row = await seeded_store.get(SITE_SPECS, "spec-1")
        row["status"] = "live"
        assert (await seeded_store.get(SITE_SPECS, "spec-1"))["status"] == "draft"

    @pytest.mark.asyncio
    async def test_select_filters(self, seeded_store):
        await seeded_store.insert(SITE_SPECS, make_spec_row(id="spec-2", subdomain_slug="Sarah-Jones"))

        matches = await seeded_store.select(SITE_SPECS, ilike={"subdomain_slug": "sarah-jones"})
        excluded = await seeded_store.select(SITE_SPECS, ilike={"subdomain_slug": "sarah-jones"}, neq={"id": "spec-2"})

        assert [r["id"] for r in matches] == ["spec-2"]
        assert excluded == []

    @pytest.mark.asyncio
    async def test_update_missing_row(self, record_store):
        assert await record_store.update(SITE_SPECS, "nope", {"status": "live"}) is None

    @pytest.mark.asyncio
    async def test_rate_limit_counts_per_scope_and_user(self, record_store):
        results = [await record_store.check_rate_limit("build", "user-1", 2, 3600) for _ in range(3)]
        assert results == [True, True, False]
        assert await record_store.check_rate_limit("publish", "user-1", 2, 3600)
        assert await record_store.check_rate_limit("build", "user-2", 2, 3600)


class TestPostgrestRecordStore:

    @pytest.mark.asyncio
    async def test_select_builds_query(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[{"id": "spec-2"}])

        rows = await _postgrest(handler).select(
            SITE_SPECS,
            ilike={"subdomain_slug": "sarah_jones"},
            neq={"id": "spec-1"},
            order_by="version",
            descending=True,
            limit=1,
        )

        assert rows == [{"id": "spec-2"}]
        request = seen[0]
        assert request.url.path == "/rest/v1/site_specs"
        assert request.url.params["subdomain_slug"] == "ilike.sarah\\_jones"
        assert request.url.params["id"] == "neq.spec-1"
        assert request.url.params["order"] == "version.desc"
        assert request.url.params["limit"] == "1"
        assert request.headers["apikey"] == "service-key"

    @pytest.mark.asyncio
    async def test_conflict_is_unique_violation(self):
        def handler(request):
            return httpx.Response(409, json={"code": "23505", "message": "duplicate key value"})

        with pytest.raises(UniqueViolationError):
            await _postgrest(handler).insert(CHECKPOINTS, {"site_spec_id": "spec-1", "version": 1})

    @pytest.mark.asyncio
    async def test_insert_returns_representation(self):
        def handler(request):
            body = json.loads(request.content)
            return httpx.Response(201, json=[{**body, "id": "cp-1", "created_at": "2026-01-01T00:00:00+00:00"}])

        row = await _postgrest(handler).insert(CHECKPOINTS, {"site_spec_id": "spec-1", "version": 1})

        assert row["id"] == "cp-1"
        assert row["version"] == 1

    @pytest.mark.asyncio
    async def test_update_targets_row(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[{"id": "spec-1", "status": "building"}])

        row = await _postgrest(handler).update(SITE_SPECS, "spec-1", {"status": "building"})

        assert row["status"] == "building"
        assert seen[0].method == "PATCH"
        assert seen[0].url.params["id"] == "eq.spec-1"
        assert "updated_at" in json.loads(seen[0].content)

    @pytest.mark.asyncio
    async def test_server_error(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        with pytest.raises(RecordStoreError):
            await _postgrest(handler).get(SITE_SPECS, "spec-1")

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(RecordStoreError):
            await _postgrest(handler).get(SITE_SPECS, "spec-1")

    @pytest.mark.asyncio
    async def test_rate_limit_rpc(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=False)

        allowed = await _postgrest(handler).check_rate_limit("build", "user-1", 5, 3600)

        assert allowed is False
        assert seen[0] == {"p_scope": "build", "p_user_id": "user-1", "p_max_requests": 5, "p_window_secs": 3600}

    def test_requires_configuration(self):
        with pytest.raises(ApplicationError) as exc_info:
            PostgrestRecordStore(base_url="", service_key="")
        assert exc_info.value.code == ErrorCode.CONFIGURATION_ERROR


class TestSpecStore:

    @pytest.mark.asyncio
    async def test_only_deployment_fields_writable(self, seeded_store):
        spec_store = SpecStore(seeded_store)
        with pytest.raises(ValueError):
            await spec_store.update("spec-1", business_name="Hijacked")
        await spec_store.update("spec-1", status="building")
        assert (await seeded_store.get(SITE_SPECS, "spec-1"))["status"] == "building"

    @pytest.mark.asyncio
    async def test_null_columns_load_as_defaults(self, record_store):
        await record_store.insert(SITE_SPECS, make_spec_row(
            services=None, social_links=None, faq_enabled=None, palette=None, pages=None
        ))

        spec = await SpecStore(record_store).get("spec-1", "user-1")

        assert spec.services == []
        assert spec.social_links == {}
        assert spec.faq_enabled is False
        assert spec.palette == "sage_sand"
        assert spec.pages == ["home", "about", "services", "contact"]
        assert spec.missing_required_fields() == ["at least one service"]

    @pytest.mark.asyncio
    async def test_malformed_record_is_validation_error(self, record_store):
        await record_store.insert(SITE_SPECS, make_spec_row(pages=["home", "blog"]))

        with pytest.raises(ApplicationError) as exc_info:
            await SpecStore(record_store).get("spec-1", "user-1")

        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
        assert exc_info.value.http_status == 400
        assert "pages" in exc_info.value.message


class TestRateLimiter:

    @pytest.mark.asyncio
    async def test_enforce_raises_when_exhausted(self, record_store):
        limiter = RateLimiter(record_store, window_seconds=3600)
        await limiter.enforce("build", "user-1", 1)

        with pytest.raises(ApplicationError) as exc_info:
            await limiter.enforce("build", "user-1", 1)

        assert exc_info.value.code == ErrorCode.RATE_LIMITED
        assert exc_info.value.http_status == 429
        assert "60 minutes" in exc_info.value.hint

    @pytest.mark.asyncio
    async def test_fails_closed_when_store_unavailable(self, record_store):
        record_store.check_rate_limit = AsyncMock(side_effect=RecordStoreError("down"))
        limiter = RateLimiter(record_store, window_seconds=3600)

        assert await limiter.is_allowed("build", "user-1", 5) is False
