"""Publish API endpoint - attach or detach the site's public domain"""
from fastapi import APIRouter, Depends
from birthbuild.models.schemas import PublishRequest, PublishResponse
from birthbuild.core.auth import verify_api_key, get_user_id
from birthbuild.core.config import settings
from birthbuild.core.publisher import Publisher
from birthbuild.core.rate_limiter import RateLimiter
from birthbuild.api.deps import get_publisher, get_rate_limiter
import logging
from typing import Optional

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/publish", response_model=PublishResponse)
async def publish_site(
    request: PublishRequest,
    api_key: Optional[str] = Depends(verify_api_key),
    user_id: str = Depends(get_user_id),
    publisher: Publisher = Depends(get_publisher),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> PublishResponse:
    logger.info(f"POST /api/publish received: {request.action} {request.site_spec_id}")
    await rate_limiter.enforce("publish", user_id, settings.publish_rate_limit)

    if request.action == "publish":
        result = await publisher.publish(request.site_spec_id, user_id)
    else:
        result = await publisher.unpublish(request.site_spec_id, user_id)
    return PublishResponse(**result)
