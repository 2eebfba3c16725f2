"""Fixed-window rate limiting backed by the shared record store"""

import logging
from typing import Optional

from birthbuild.core.config import settings
from birthbuild.core.record_store import RecordStore, RecordStoreError
from birthbuild.models.errors import ApplicationError, ErrorCode

logger = logging.getLogger(__name__)


class RateLimiter:
    """Counts requests per (scope, user) in the record store so every instance shares one budget"""

    def __init__(self, store: RecordStore, window_seconds: Optional[int] = None):
        self.store = store
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds

    async def is_allowed(self, scope: str, user_id: str, max_requests: int) -> bool:
        try:
            return await self.store.check_rate_limit(scope, user_id, max_requests, self.window_seconds)
        except RecordStoreError as e:
            # Fail closed: these endpoints spend money on paid APIs
            logger.error(f"[RATE_LIMIT] Counter unavailable for {scope}, blocking request: {e}")
            return False

    async def enforce(self, scope: str, user_id: str, max_requests: int) -> None:
        """Raise RATE_LIMITED when the user has exhausted the scope's budget"""
        if not await self.is_allowed(scope, user_id, max_requests):
            logger.warning(f"[RATE_LIMIT] {scope} limit reached for user {user_id}")
            raise ApplicationError(
                code=ErrorCode.RATE_LIMITED,
                message="Too many requests. Please wait and try again.",
                retryable=True,
                hint=f"The limit is {max_requests} per {self.window_seconds // 60} minutes.",
            )
