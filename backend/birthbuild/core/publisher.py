"""Publish / unpublish a built site on its custom domain"""

import logging
from typing import Dict, Any

from birthbuild.core.deploy_client import NetlifyClient, site_name_for
from birthbuild.core.spec_store import SpecStore
from birthbuild.core.state_machine import SiteStatus, coerce_status, require_transition
from birthbuild.models.errors import ApplicationError, ErrorCode
from birthbuild.models.site_spec import SiteSpec

logger = logging.getLogger(__name__)


class Publisher:
    """Moves a site between preview and live by attaching or detaching its custom domain"""

    def __init__(self, spec_store: SpecStore, deploy_client: NetlifyClient):
        self.spec_store = spec_store
        self.deploy_client = deploy_client

    async def _site_id(self, spec: SiteSpec) -> str:
        """Provider site id, recovered by deterministic name lookup when the spec lost it"""
        if spec.netlify_site_id:
            return spec.netlify_site_id

        site = await self.deploy_client.get_site_by_name(site_name_for(spec.subdomain_slug))
        if not site or not site.get("id"):
            raise ApplicationError(
                code=ErrorCode.INVALID_STATE,
                message="This site hasn't been deployed yet. Please build it first.",
                site_spec_id=spec.id,
            )
        logger.info(f"[PUBLISH] Recovered site id {site['id']} for {spec.id}")
        await self.spec_store.update(spec.id, netlify_site_id=site["id"])
        return site["id"]

    def _require_slug(self, spec: SiteSpec) -> None:
        if not spec.subdomain_slug:
            raise ApplicationError(
                code=ErrorCode.INVALID_STATE,
                message="This site doesn't have a web address yet. Please build it first.",
                site_spec_id=spec.id,
            )

    async def publish(self, site_spec_id: str, user_id: str) -> Dict[str, Any]:
        spec = await self.spec_store.get(site_spec_id, user_id)
        require_transition("publish", coerce_status(spec.status), SiteStatus.LIVE)
        self._require_slug(spec)

        site_id = await self._site_id(spec)
        deploy_url = await self.deploy_client.publish(site_id, spec.subdomain_slug)
        await self.spec_store.update(site_spec_id, status=SiteStatus.LIVE.value, deploy_url=deploy_url)

        logger.info(f"[PUBLISH] {site_spec_id} is live at {deploy_url}")
        return {"status": SiteStatus.LIVE.value, "deploy_url": deploy_url}

    async def unpublish(self, site_spec_id: str, user_id: str) -> Dict[str, Any]:
        spec = await self.spec_store.get(site_spec_id, user_id)
        require_transition("unpublish", coerce_status(spec.status), SiteStatus.PREVIEW)
        self._require_slug(spec)

        site_id = await self._site_id(spec)
        await self.deploy_client.unpublish(site_id)
        await self.spec_store.update(site_spec_id, status=SiteStatus.PREVIEW.value, deploy_url=None)

        logger.info(f"[PUBLISH] {site_spec_id} unpublished")
        return {"status": SiteStatus.PREVIEW.value, "deploy_url": None}
