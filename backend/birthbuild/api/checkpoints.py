"""Checkpoint API endpoints - version history and redeploying a saved version"""
from fastapi import APIRouter, Depends
from birthbuild.models.schemas import (
    CheckpointListResponse,
    CheckpointSummary,
    DeployCheckpointRequest,
    DeployResponse,
)
from birthbuild.core.auth import verify_api_key, get_user_id
from birthbuild.core.checkpoint_store import CheckpointStore
from birthbuild.core.config import settings
from birthbuild.core.rate_limiter import RateLimiter
from birthbuild.core.spec_store import SpecStore
from birthbuild.agents.orchestrator.orchestrator_agent import BuildOrchestrator
from birthbuild.api.deps import get_checkpoint_store, get_orchestrator, get_rate_limiter, get_spec_store
import logging
from typing import Optional

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/checkpoints/{site_spec_id}", response_model=CheckpointListResponse)
async def list_checkpoints(
    site_spec_id: str,
    api_key: Optional[str] = Depends(verify_api_key),
    user_id: str = Depends(get_user_id),
    spec_store: SpecStore = Depends(get_spec_store),
    checkpoint_store: CheckpointStore = Depends(get_checkpoint_store),
) -> CheckpointListResponse:
    """Checkpoints for a site, newest version first"""
    # Ownership check
    await spec_store.get(site_spec_id, user_id)

    checkpoints = await checkpoint_store.list_checkpoints(site_spec_id)
    return CheckpointListResponse(
        site_spec_id=site_spec_id,
        checkpoints=[
            CheckpointSummary(
                id=checkpoint.id,
                version=checkpoint.version,
                label=checkpoint.label,
                created_at=checkpoint.created_at,
                pages=[page.filename for page in checkpoint.pages],
                has_design_system=checkpoint.design_system is not None,
            )
            for checkpoint in checkpoints
        ],
    )


# POST /api/checkpoints/{checkpoint_id}/deploy: packages and deploys a saved version.
# Shares the build budget since it touches the hosting provider the same way a build does.
@router.post("/checkpoints/{checkpoint_id}/deploy", response_model=DeployResponse)
async def deploy_checkpoint(
    checkpoint_id: str,
    request: DeployCheckpointRequest,
    api_key: Optional[str] = Depends(verify_api_key),
    user_id: str = Depends(get_user_id),
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> DeployResponse:
    logger.info(f"POST /api/checkpoints/{checkpoint_id}/deploy received for {request.site_spec_id}")
    await rate_limiter.enforce("build", user_id, settings.build_rate_limit)

    outcome = await orchestrator.deploy_checkpoint(request.site_spec_id, user_id, checkpoint_id)
    return DeployResponse(
        site_spec_id=outcome.site_spec_id,
        checkpoint_id=outcome.checkpoint_id,
        version=outcome.version,
        status=outcome.status,
        preview_url=outcome.preview_url,
        deploy_url=outcome.deploy_url,
    )
