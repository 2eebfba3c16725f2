"""Site specification access scoped to the owning user"""

import logging
from typing import Dict, Any, Optional
from pydantic import ValidationError

from birthbuild.core.record_store import RecordStore, SITE_SPECS
from birthbuild.models.errors import ApplicationError, ErrorCode
from birthbuild.models.site_spec import SiteSpec

logger = logging.getLogger(__name__)

# The pipeline may only write deployment state; everything else belongs to upstream editors
WRITABLE_FIELDS = {
    "status",
    "preview_url",
    "deploy_url",
    "subdomain_slug",
    "netlify_site_id",
    "latest_checkpoint_id",
}


class SpecStore:
    """Reads specs for their owner and writes the deployment-state columns"""

    def __init__(self, store: RecordStore):
        self.store = store

    async def get(self, site_spec_id: str, user_id: str) -> SiteSpec:
        row = await self.store.get(SITE_SPECS, site_spec_id)
        if row is None or row.get("user_id") != user_id:
            raise ApplicationError(
                code=ErrorCode.NOT_FOUND,
                message="Site specification not found.",
                site_spec_id=site_spec_id,
            )
        try:
            return SiteSpec(**row)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}" for err in e.errors()[:5]
            )
            logger.warning(f"[SPEC_STORE] ✗ Spec {site_spec_id} failed to load: {problems}")
            raise ApplicationError(
                code=ErrorCode.VALIDATION_ERROR,
                message=f"Site specification is invalid: {problems}",
                site_spec_id=site_spec_id,
            )

    async def update(self, site_spec_id: str, **values: Any) -> Optional[Dict[str, Any]]:
        illegal = set(values) - WRITABLE_FIELDS
        if illegal:
            raise ValueError(f"Pipeline may not write site spec fields: {', '.join(sorted(illegal))}")
        logger.info(f"[SPEC_STORE] Updating {site_spec_id}: {sorted(values)}")
        return await self.store.update(SITE_SPECS, site_spec_id, values)

    async def slug_taken(self, slug: str, exclude_site_spec_id: Optional[str] = None) -> bool:
        """Case-insensitive check against every other specification"""
        neq = {"id": exclude_site_spec_id} if exclude_site_spec_id else None
        rows = await self.store.select(SITE_SPECS, ilike={"subdomain_slug": slug}, neq=neq, limit=1)
        return len(rows) > 0
