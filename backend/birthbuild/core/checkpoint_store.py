"""Checkpoint store - immutable, monotonically versioned page snapshots"""

import random
import asyncio
import logging
from typing import List, Optional

from birthbuild.core.record_store import (
    RecordStore,
    RecordStoreError,
    UniqueViolationError,
    CHECKPOINTS,
    SITE_SPECS,
)
from birthbuild.models.checkpoint import Checkpoint, DesignSystem, GeneratedPage
from birthbuild.models.errors import ApplicationError, ErrorCode

logger = logging.getLogger(__name__)

# Read-increment-insert cycles before giving up on a contended version
MAX_VERSION_ATTEMPTS = 3


class CheckpointStore:
    """Allocates versions optimistically against the (site_spec_id, version) unique constraint"""

    def __init__(self, store: RecordStore, retry_jitter_seconds: float = 0.02):
        self.store = store
        self.retry_jitter_seconds = retry_jitter_seconds

    async def _next_version(self, site_spec_id: str) -> int:
        rows = await self.store.select(
            CHECKPOINTS,
            filters={"site_spec_id": site_spec_id},
            order_by="version",
            descending=True,
            limit=1,
        )
        return (rows[0]["version"] + 1) if rows else 1

    async def create_checkpoint(
        self,
        site_spec_id: str,
        pages: List[GeneratedPage],
        design_system: Optional[DesignSystem] = None,
        label: Optional[str] = None,
    ) -> Checkpoint:
        """
        Persist a new checkpoint as version max+1.

        Retries the whole read-increment-insert cycle when a concurrent writer claims
        the same version; a failure to move latest_checkpoint_id is logged only.

        Raises:
            ApplicationError: CHECKPOINT_CONFLICT after MAX_VERSION_ATTEMPTS collisions
        """
        row = None
        for attempt in range(1, MAX_VERSION_ATTEMPTS + 1):
            version = await self._next_version(site_spec_id)
            try:
                row = await self.store.insert(CHECKPOINTS, {
                    "site_spec_id": site_spec_id,
                    "version": version,
                    "html_pages": {"pages": [page.model_dump() for page in pages]},
                    "design_system": design_system.model_dump() if design_system else None,
                    "label": label,
                })
                break
            except UniqueViolationError:
                logger.warning(
                    f"[CHECKPOINT] Version {version} for {site_spec_id} taken by a concurrent writer "
                    f"(attempt {attempt}/{MAX_VERSION_ATTEMPTS})"
                )
                if attempt < MAX_VERSION_ATTEMPTS and self.retry_jitter_seconds:
                    await asyncio.sleep(random.uniform(0, self.retry_jitter_seconds))

        if row is None:
            raise ApplicationError(
                code=ErrorCode.CHECKPOINT_CONFLICT,
                message="Could not save a new version of your site because another save was in progress. Please try again.",
                retryable=True,
                site_spec_id=site_spec_id,
            )

        checkpoint = self._to_checkpoint(row)
        logger.info(f"[CHECKPOINT] Created v{checkpoint.version} ({checkpoint.id}) for {site_spec_id}")

        try:
            await self.store.update(SITE_SPECS, site_spec_id, {"latest_checkpoint_id": checkpoint.id})
        except RecordStoreError as e:
            logger.error(f"[CHECKPOINT] Failed to update latest_checkpoint_id for {site_spec_id}: {e}")

        return checkpoint

    async def list_checkpoints(self, site_spec_id: str) -> List[Checkpoint]:
        rows = await self.store.select(
            CHECKPOINTS,
            filters={"site_spec_id": site_spec_id},
            order_by="version",
            descending=True,
        )
        return [self._to_checkpoint(row) for row in rows]

    async def get_checkpoint(self, checkpoint_id: str, site_spec_id: Optional[str] = None) -> Checkpoint:
        row = await self.store.get(CHECKPOINTS, checkpoint_id)
        if row is None or (site_spec_id and row.get("site_spec_id") != site_spec_id):
            raise ApplicationError(
                code=ErrorCode.NOT_FOUND,
                message="Checkpoint not found.",
                site_spec_id=site_spec_id,
            )
        return self._to_checkpoint(row)

    async def get_latest(self, site_spec_id: str) -> Optional[Checkpoint]:
        rows = await self.store.select(
            CHECKPOINTS,
            filters={"site_spec_id": site_spec_id},
            order_by="version",
            descending=True,
            limit=1,
        )
        return self._to_checkpoint(rows[0]) if rows else None

    @staticmethod
    def _to_checkpoint(row) -> Checkpoint:
        html_pages = row.get("html_pages") or {}
        return Checkpoint(
            id=row["id"],
            site_spec_id=row["site_spec_id"],
            version=row["version"],
            pages=[GeneratedPage(**page) for page in html_pages.get("pages", [])],
            design_system=DesignSystem(**row["design_system"]) if row.get("design_system") else None,
            label=row.get("label"),
            created_at=row["created_at"],
        )
