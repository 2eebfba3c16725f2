"""Build API endpoints - start a build, poll its progress"""
from fastapi import APIRouter, BackgroundTasks, Depends
from birthbuild.models.schemas import BuildRequest, BuildResponse, ProgressEvent, ProgressResponse
from birthbuild.models.errors import ApplicationError, ErrorCode
from birthbuild.core.auth import verify_api_key, get_user_id
from birthbuild.core.config import settings
from birthbuild.core.rate_limiter import RateLimiter
from birthbuild.core.spec_store import SpecStore
from birthbuild.core.state_machine import BuildState, BuildPhase
from birthbuild.agents.orchestrator.orchestrator_agent import BuildOrchestrator, validate_required_fields
from birthbuild.api.deps import get_orchestrator, get_rate_limiter, get_spec_store
import uuid
import logging
from typing import Dict, Optional
from datetime import datetime, timedelta

router = APIRouter()
logger = logging.getLogger(__name__)

# In-memory build progress (progress only; site state lives in the record store)
build_sessions: Dict[str, BuildState] = {}

SESSION_TTL = timedelta(hours=1)


# Drops finished builds older than SESSION_TTL so the progress map stays bounded.
def _prune_sessions() -> None:
    cutoff = datetime.utcnow() - SESSION_TTL
    expired = [
        build_id for build_id, state in build_sessions.items()
        if state.is_terminal() and state.last_updated and state.last_updated < cutoff
    ]
    for build_id in expired:
        del build_sessions[build_id]
    if expired:
        logger.info(f"[BUILD] Pruned {len(expired)} finished build session(s)")


# Formats a build error into the state so the progress endpoint can show it.
# ApplicationErrors keep their public message; anything else becomes a generic retryable error.
def _handle_error(state: BuildState, error: Exception) -> None:
    if isinstance(error, ApplicationError):
        if error.detail:
            logger.error(f"[BUILD] {state.build_id} failed: {error.code.value}: {error.detail}")
        error_info = error.model_dump()
    else:
        logger.error(f"[BUILD] {state.build_id} failed: {repr(error)}", exc_info=True)
        error_info = {
            "message": "An error occurred. Please try again.",
            "type": type(error).__name__,
            "retryable": True,
        }
    state.metadata["success"] = False
    state.metadata["error"] = error_info
    if state.phase != BuildPhase.ERROR:
        state.log_event(BuildPhase.ERROR, f"✗ {error_info['message']}")


async def _run_build(
    orchestrator: BuildOrchestrator,
    state: BuildState,
    site_spec_id: str,
    user_id: str,
    prompt_overrides=None,
) -> None:
    """Background task: run the build and record its outcome in the session state"""
    logger.info(f"[BUILD] Background build {state.build_id} started for {site_spec_id}")
    try:
        outcome = await orchestrator.build(site_spec_id, user_id, state=state, prompt_overrides=prompt_overrides)
        state.metadata["success"] = True
        logger.info(f"[BUILD] Build {state.build_id} finished: v{outcome.version} at {outcome.preview_url}")
    except Exception as e:
        _handle_error(state, e)


# POST /api/build: validates ownership and required fields up front, then builds in the background.
# Returns 202 Accepted with build_id for progress polling.
@router.post("/build", response_model=BuildResponse, status_code=202)
async def start_build(
    request: BuildRequest,
    background_tasks: BackgroundTasks,
    api_key: Optional[str] = Depends(verify_api_key),
    user_id: str = Depends(get_user_id),
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    spec_store: SpecStore = Depends(get_spec_store),
) -> BuildResponse:
    logger.info(f"POST /api/build received for site_spec_id: {request.site_spec_id}")

    await rate_limiter.enforce("build", user_id, settings.build_rate_limit)

    spec = await spec_store.get(request.site_spec_id, user_id)
    validate_required_fields(spec)

    _prune_sessions()
    build_id = str(uuid.uuid4())
    state = BuildState(build_id, request.site_spec_id)
    build_sessions[build_id] = state

    background_tasks.add_task(
        _run_build, orchestrator, state, request.site_spec_id, user_id, request.prompt_overrides
    )
    logger.info(f"Background task started for build {build_id}")

    return BuildResponse(build_id=build_id)


@router.get("/build/{build_id}/progress", response_model=ProgressResponse)
async def get_progress(
    build_id: str,
    api_key: Optional[str] = Depends(verify_api_key),
) -> ProgressResponse:
    """Current phase and the full event log of one build"""
    state = build_sessions.get(build_id)
    if state is None:
        raise ApplicationError(code=ErrorCode.NOT_FOUND, message="Build not found.")

    success = state.metadata.get("success")
    return ProgressResponse(
        build_id=build_id,
        site_spec_id=state.site_spec_id,
        phase=state.phase.value,
        is_terminal=state.is_terminal(),
        events=[ProgressEvent(**event) for event in state.event_log],
        result={k: v for k, v in state.metadata.items() if k not in ("error", "success")} if success else None,
        error=state.metadata.get("error"),
    )
