"""Netlify deployment client - site create-or-adopt, ZIP deploys and custom domains"""

import logging
from typing import Dict, Any, Optional

import httpx
from pydantic import BaseModel

from birthbuild.core.config import settings
from birthbuild.models.errors import ApplicationError, ErrorCode

logger = logging.getLogger(__name__)

SITE_NAME_PREFIX = "birthbuild-"
DEPLOY_FAILED_MESSAGE = "Deployment failed. Please try again."


class DeployResult(BaseModel):
    deploy_id: str
    site_id: str
    preview_url: Optional[str] = None


def site_name_for(subdomain: str) -> str:
    return f"{SITE_NAME_PREFIX}{subdomain}"


def custom_domain_for(subdomain: str) -> str:
    return f"{subdomain}.{settings.site_domain}"


def public_url_for(subdomain: str) -> str:
    return f"https://{custom_domain_for(subdomain)}"


class NetlifyClient:
    """
    Thin Netlify API client.

    Every call is bounded by the configured timeout and is not retried here;
    failures raise DEPLOYMENT_FAILED with the provider detail kept out of the message.
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_token = api_token if api_token is not None else settings.netlify_api_token
        self.base_url = (base_url or settings.netlify_api_url).rstrip("/")
        self.timeout = timeout or settings.netlify_timeout_seconds
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        if not self.api_token:
            logger.warning("NETLIFY_API_TOKEN not set in .env file")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {self.api_token}"},
                timeout=self.timeout,
                transport=self.transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_token(self) -> None:
        if not self.api_token:
            raise ApplicationError(
                code=ErrorCode.CONFIGURATION_ERROR,
                message="Hosting is not configured. Please contact support.",
                detail="NETLIFY_API_TOKEN not configured",
            )

    async def _request(self, method: str, path: str, action: str, **kwargs) -> httpx.Response:
        self._require_token()
        client = await self._get_client()
        try:
            return await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[NETLIFY] {action} failed: {type(e).__name__}: {e}")
            raise ApplicationError(
                code=ErrorCode.DEPLOYMENT_FAILED,
                message=DEPLOY_FAILED_MESSAGE,
                retryable=True,
                detail=f"{action}: {e}",
            ) from e

    @staticmethod
    def _fail(action: str, response: httpx.Response) -> ApplicationError:
        logger.error(f"[NETLIFY] {action} failed (HTTP {response.status_code}): {response.text[:500]}")
        return ApplicationError(
            code=ErrorCode.DEPLOYMENT_FAILED,
            message=DEPLOY_FAILED_MESSAGE,
            retryable=response.status_code >= 500,
            detail=f"{action}: HTTP {response.status_code}",
        )

    async def get_site_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        """Look a site up by its deterministic name; None if it does not exist"""
        response = await self._request("GET", f"/sites/{name}.netlify.app", "site lookup")
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise self._fail("site lookup", response)
        return response.json()

    async def ensure_site(self, existing_site_id: Optional[str], subdomain: str) -> str:
        """
        Return the provider site id, creating the site when needed.

        A "name taken" response (422) adopts the existing site with the same
        deterministic name instead of failing, so repeated builds are idempotent.
        """
        if existing_site_id:
            return existing_site_id

        name = site_name_for(subdomain)
        logger.info(f"[NETLIFY] Creating site {name}")
        response = await self._request("POST", "/sites", "site create", json={"name": name})

        if response.status_code in (200, 201):
            site_id = response.json()["id"]
            logger.info(f"[NETLIFY] Created site {name} ({site_id})")
            return site_id

        if response.status_code == 422:
            logger.info(f"[NETLIFY] Site name {name} taken, adopting existing site")
            site = await self.get_site_by_name(name)
            if site and site.get("id"):
                return site["id"]
            logger.error(f"[NETLIFY] Site name {name} reported taken but lookup found nothing")

        raise self._fail("site create", response)

    async def deploy(self, site_id: str, zip_bytes: bytes) -> DeployResult:
        """Upload a ZIP archive as a new deploy (not retried)"""
        logger.info(f"[NETLIFY] Deploying {len(zip_bytes)} bytes to site {site_id}")
        response = await self._request(
            "POST",
            f"/sites/{site_id}/deploys",
            "deploy",
            content=zip_bytes,
            headers={"Content-Type": "application/zip"},
        )
        if response.status_code >= 400:
            raise self._fail("deploy", response)

        data = response.json()
        preview_url = data.get("ssl_url") or data.get("deploy_ssl_url") or data.get("url")
        logger.info(f"[NETLIFY] ✓ Deploy {data.get('id')} created for site {site_id}")
        return DeployResult(deploy_id=str(data.get("id", "")), site_id=site_id, preview_url=preview_url)

    async def publish(self, site_id: str, subdomain: str) -> str:
        """Attach {subdomain}.{site_domain} to the site; returns the public URL"""
        response = await self._request(
            "PUT",
            f"/sites/{site_id}",
            "publish",
            json={"custom_domain": custom_domain_for(subdomain), "force_ssl": True},
        )
        if response.status_code >= 400:
            raise self._fail("publish", response)
        logger.info(f"[NETLIFY] Published site {site_id} at {custom_domain_for(subdomain)}")
        return public_url_for(subdomain)

    async def unpublish(self, site_id: str) -> None:
        response = await self._request("PUT", f"/sites/{site_id}", "unpublish", json={"custom_domain": None})
        if response.status_code >= 400:
            raise self._fail("unpublish", response)
        logger.info(f"[NETLIFY] Removed custom domain from site {site_id}")


# Global Netlify client instance
netlify_client = NetlifyClient()
