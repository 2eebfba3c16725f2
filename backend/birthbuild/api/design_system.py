"""Design system operator endpoint - generate (or repair) and report validation issues"""
from fastapi import APIRouter, Depends
from birthbuild.models.schemas import DesignSystemRequest, DesignSystemResponse
from birthbuild.models.errors import provider_error
from birthbuild.models.site_spec import ResolvedSpec
from birthbuild.core.auth import verify_api_key, get_user_id
from birthbuild.core.config import settings
from birthbuild.core.rate_limiter import RateLimiter
from birthbuild.core.spec_store import SpecStore
from birthbuild.agents.design_system.design_system_agent import DesignSystemAgent, DesignSystemProviderError
from birthbuild.api.deps import get_design_system_agent, get_rate_limiter, get_spec_store
import logging
from typing import Optional

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/design-system", response_model=DesignSystemResponse)
async def generate_design_system(
    request: DesignSystemRequest,
    api_key: Optional[str] = Depends(verify_api_key),
    user_id: str = Depends(get_user_id),
    agent: DesignSystemAgent = Depends(get_design_system_agent),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    spec_store: SpecStore = Depends(get_spec_store),
) -> DesignSystemResponse:
    """
    Generate one design system without building pages.

    Validation issues are returned, not repaired; pass them back as
    `repair_issues` to request a corrected design system.
    """
    logger.info(
        f"POST /api/design-system received for site_spec_id: {request.site_spec_id} "
        f"(repair: {bool(request.repair_issues)})"
    )
    await rate_limiter.enforce("design_system", user_id, settings.design_system_rate_limit)

    spec = await spec_store.get(request.site_spec_id, user_id)
    resolved = ResolvedSpec.from_spec(spec)

    try:
        result = await agent.run(resolved, repair_issues=request.repair_issues, prompt_config=request.prompt_config)
    except DesignSystemProviderError as e:
        logger.error(f"[DESIGN_SYSTEM] Provider failure for {request.site_spec_id}: {e.cause}")
        raise provider_error(str(e.cause), site_spec_id=request.site_spec_id) from e

    if result.design_system is None:
        logger.warning(f"[DESIGN_SYSTEM] No usable output for {request.site_spec_id}: {result.issues}")

    return DesignSystemResponse(
        design_system=result.design_system,
        valid=result.is_valid,
        issues=result.issues,
        stripped=result.stripped,
    )
