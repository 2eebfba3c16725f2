"""
Tests for the Netlify deployment client against a mocked HTTP transport
"""
import json
import httpx
import pytest

from birthbuild.core.deploy_client import NetlifyClient, custom_domain_for, site_name_for, public_url_for
from birthbuild.models.errors import ApplicationError, ErrorCode

API_PREFIX = "/api/v1"


class RecordingHandler:
    """Routes (method, path) to canned responses and records every request"""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path[len(API_PREFIX):])
        if key not in self.routes:
            return httpx.Response(500, json={"message": f"unexpected {key}"})
        route = self.routes[key]
        if isinstance(route, Exception):
            raise route
        status, body = route
        return httpx.Response(status, json=body)


def _client(handler: RecordingHandler, token: str = "netlify-token") -> NetlifyClient:
    return NetlifyClient(
        api_token=token,
        base_url="https://api.netlify.com/api/v1",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestEnsureSite:

    @pytest.mark.asyncio
    async def test_existing_site_id_short_circuits(self):
        handler = RecordingHandler({})
        assert await _client(handler).ensure_site("site-abc", "gentle-births") == "site-abc"
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_creates_site_with_deterministic_name(self):
        handler = RecordingHandler({("POST", "/sites"): (201, {"id": "site-new"})})

        site_id = await _client(handler).ensure_site(None, "gentle-births")

        assert site_id == "site-new"
        request = handler.requests[0]
        assert json.loads(request.content) == {"name": "birthbuild-gentle-births"}
        assert request.headers["Authorization"] == "Bearer netlify-token"

    @pytest.mark.asyncio
    async def test_name_taken_adopts_existing_site(self):
        handler = RecordingHandler({
            ("POST", "/sites"): (422, {"errors": {"subdomain": ["must be unique"]}}),
            ("GET", "/sites/birthbuild-gentle-births.netlify.app"): (200, {"id": "site-old"}),
        })

        site_id = await _client(handler).ensure_site(None, "gentle-births")

        assert site_id == "site-old"
        assert [r.method for r in handler.requests] == ["POST", "GET"]

    @pytest.mark.asyncio
    async def test_name_taken_but_lookup_empty(self):
        handler = RecordingHandler({
            ("POST", "/sites"): (422, {"errors": {}}),
            ("GET", "/sites/birthbuild-gentle-births.netlify.app"): (404, {"message": "Not Found"}),
        })

        with pytest.raises(ApplicationError) as exc_info:
            await _client(handler).ensure_site(None, "gentle-births")

        assert exc_info.value.code == ErrorCode.DEPLOYMENT_FAILED
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_missing_token_is_configuration_error(self):
        handler = RecordingHandler({})
        with pytest.raises(ApplicationError) as exc_info:
            await _client(handler, token="").ensure_site(None, "gentle-births")
        assert exc_info.value.code == ErrorCode.CONFIGURATION_ERROR
        assert handler.requests == []


class TestDeploy:

    @pytest.mark.asyncio
    async def test_uploads_zip(self):
        handler = RecordingHandler({
            ("POST", "/sites/site-abc/deploys"): (200, {
                "id": "deploy-1",
                "ssl_url": "https://birthbuild-gentle-births.netlify.app",
            }),
        })

        result = await _client(handler).deploy("site-abc", b"PK\x03\x04zip")

        assert result.deploy_id == "deploy-1"
        assert result.site_id == "site-abc"
        assert result.preview_url == "https://birthbuild-gentle-births.netlify.app"
        assert handler.requests[0].headers["Content-Type"] == "application/zip"
        assert handler.requests[0].content == b"PK\x03\x04zip"

    @pytest.mark.asyncio
    async def test_preview_url_falls_back_to_deploy_url(self):
        handler = RecordingHandler({
            ("POST", "/sites/site-abc/deploys"): (200, {"id": "deploy-2", "deploy_ssl_url": "https://deploy-2--x.netlify.app"}),
        })
        result = await _client(handler).deploy("site-abc", b"zip")
        assert result.preview_url == "https://deploy-2--x.netlify.app"

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self):
        handler = RecordingHandler({("POST", "/sites/site-abc/deploys"): (503, {"message": "unavailable"})})

        with pytest.raises(ApplicationError) as exc_info:
            await _client(handler).deploy("site-abc", b"zip")

        assert exc_info.value.code == ErrorCode.DEPLOYMENT_FAILED
        assert exc_info.value.retryable
        assert "unavailable" not in exc_info.value.message
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_network_error(self):
        handler = RecordingHandler({("POST", "/sites/site-abc/deploys"): httpx.ConnectError("connection refused")})

        with pytest.raises(ApplicationError) as exc_info:
            await _client(handler).deploy("site-abc", b"zip")

        assert exc_info.value.code == ErrorCode.DEPLOYMENT_FAILED
        assert exc_info.value.retryable


class TestCustomDomain:

    @pytest.mark.asyncio
    async def test_publish_attaches_custom_domain(self):
        handler = RecordingHandler({("PUT", "/sites/site-abc"): (200, {"id": "site-abc"})})

        url = await _client(handler).publish("site-abc", "gentle-births")

        assert url == public_url_for("gentle-births")
        assert url.startswith("https://gentle-births.")
        body = json.loads(handler.requests[0].content)
        assert body["custom_domain"] == custom_domain_for("gentle-births")
        assert body["force_ssl"] is True

    @pytest.mark.asyncio
    async def test_unpublish_clears_custom_domain(self):
        handler = RecordingHandler({("PUT", "/sites/site-abc"): (200, {"id": "site-abc"})})

        await _client(handler).unpublish("site-abc")

        assert json.loads(handler.requests[0].content) == {"custom_domain": None}

    @pytest.mark.asyncio
    async def test_publish_client_error_not_retryable(self):
        handler = RecordingHandler({("PUT", "/sites/site-abc"): (422, {"message": "domain in use"})})
        with pytest.raises(ApplicationError) as exc_info:
            await _client(handler).publish("site-abc", "gentle-births")
        assert not exc_info.value.retryable


class TestSiteLookup:

    @pytest.mark.asyncio
    async def test_missing_site_is_none(self):
        handler = RecordingHandler({("GET", "/sites/birthbuild-x.netlify.app"): (404, {})})
        assert await _client(handler).get_site_by_name(site_name_for("x")) is None

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        client = _client(RecordingHandler({("GET", "/sites/birthbuild-x.netlify.app"): (200, {"id": "s"})}))
        await client.get_site_by_name("birthbuild-x")
        await client.close()
        await client.close()
        assert client._client is None
