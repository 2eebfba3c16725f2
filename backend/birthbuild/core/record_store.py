"""Record store - CRUD access to site specs, checkpoints and rate-limit counters"""

import time
import uuid
import asyncio
import logging
from copy import deepcopy
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List, Tuple

import httpx

from birthbuild.core.config import settings
from birthbuild.models.errors import ApplicationError, ErrorCode

logger = logging.getLogger(__name__)

SITE_SPECS = "site_specs"
CHECKPOINTS = "site_checkpoints"

# Columns that must be unique together, per table
UNIQUE_CONSTRAINTS: Dict[str, List[Tuple[str, ...]]] = {
    CHECKPOINTS: [("site_spec_id", "version")],
}

POSTGRES_UNIQUE_VIOLATION = "23505"


class UniqueViolationError(Exception):
    """Insert rejected by a uniqueness constraint"""
    def __init__(self, table: str, columns: Tuple[str, ...] = ()):
        self.table = table
        self.columns = columns
        super().__init__(f"Unique constraint violated on {table}({', '.join(columns)})")


class RecordStoreError(Exception):
    """Storage backend unreachable or returned an unexpected error"""
    pass


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RecordStore:
    """Storage contract used by the pipeline; implementations must enforce unique constraints atomically"""

    async def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
        neq: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def update(self, table: str, record_id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def check_rate_limit(self, scope: str, user_id: str, max_requests: int, window_seconds: int) -> bool:
        """Atomically count one request; returns True if it is allowed"""
        raise NotImplementedError


class InMemoryRecordStore(RecordStore):
    """Single-process store for development and tests"""

    def __init__(self):
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._rate_counters: Dict[Tuple[str, str, int], int] = {}
        self._lock = asyncio.Lock()

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._tables.setdefault(table, {})

    async def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        row = self._table(table).get(record_id)
        return deepcopy(row) if row is not None else None

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
        neq: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        # Yield like a network round trip so concurrent writers interleave
        await asyncio.sleep(0)
        rows = list(self._table(table).values())
        for column, value in (filters or {}).items():
            rows = [r for r in rows if r.get(column) == value]
        for column, value in (ilike or {}).items():
            rows = [r for r in rows if isinstance(r.get(column), str) and r[column].lower() == value.lower()]
        for column, value in (neq or {}).items():
            rows = [r for r in rows if r.get(column) != value]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return [deepcopy(r) for r in rows]

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        await asyncio.sleep(0)
        async with self._lock:
            record = deepcopy(row)
            record.setdefault("id", str(uuid.uuid4()))
            record.setdefault("created_at", _now())
            rows = self._table(table)
            if record["id"] in rows:
                raise UniqueViolationError(table, ("id",))
            for columns in UNIQUE_CONSTRAINTS.get(table, []):
                key = tuple(record.get(c) for c in columns)
                if any(tuple(r.get(c) for c in columns) == key for r in rows.values()):
                    raise UniqueViolationError(table, columns)
            rows[record["id"]] = record
            return deepcopy(record)

    async def update(self, table: str, record_id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        async with self._lock:
            row = self._table(table).get(record_id)
            if row is None:
                return None
            row.update(deepcopy(values))
            row["updated_at"] = _now()
            return deepcopy(row)

    async def check_rate_limit(self, scope: str, user_id: str, max_requests: int, window_seconds: int) -> bool:
        async with self._lock:
            window = int(time.time() // window_seconds)
            key = (scope, user_id, window)
            count = self._rate_counters.get(key, 0) + 1
            self._rate_counters[key] = count
            return count <= max_requests


class PostgrestRecordStore(RecordStore):
    """Supabase/PostgREST-backed store; unique violations surface as HTTP 409 / code 23505"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        service_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.supabase_url).rstrip("/")
        self.service_key = service_key or settings.supabase_service_key
        self.timeout = timeout or settings.record_store_timeout_seconds
        self.transport = transport
        if not self.base_url or not self.service_key:
            raise ApplicationError(
                code=ErrorCode.CONFIGURATION_ERROR,
                message="Storage is not configured.",
                detail="SUPABASE_URL and SUPABASE_SERVICE_KEY are required for the postgrest record store",
            )

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1",
            headers=self._headers(),
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[RECORD_STORE] {method} {path} failed: {e}")
            raise RecordStoreError(f"Storage request failed: {e}") from e

    def _raise_for_status(self, response: httpx.Response, table: str) -> None:
        if response.status_code < 400:
            return
        code = None
        try:
            code = response.json().get("code")
        except ValueError:
            pass
        if response.status_code == 409 or code == POSTGRES_UNIQUE_VIOLATION:
            raise UniqueViolationError(table)
        logger.error(f"[RECORD_STORE] {table} request failed (HTTP {response.status_code}): {response.text[:500]}")
        raise RecordStoreError(f"Storage returned HTTP {response.status_code} for {table}")

    async def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        rows = await self.select(table, filters={"id": record_id}, limit=1)
        return rows[0] if rows else None

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
        neq: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params: List[Tuple[str, str]] = [("select", "*")]
        for column, value in (filters or {}).items():
            params.append((column, f"eq.{value}"))
        for column, value in (ilike or {}).items():
            # Escape LIKE wildcards so the match is an exact case-insensitive comparison
            escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            params.append((column, f"ilike.{escaped}"))
        for column, value in (neq or {}).items():
            params.append((column, f"neq.{value}"))
        if order_by:
            params.append(("order", f"{order_by}.{'desc' if descending else 'asc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))

        response = await self._request("GET", f"/{table}", params=params)
        self._raise_for_status(response, table)
        return response.json()

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request("POST", f"/{table}", json=row)
        self._raise_for_status(response, table)
        data = response.json()
        return data[0] if isinstance(data, list) else data

    async def update(self, table: str, record_id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        payload = dict(values)
        payload["updated_at"] = _now()
        response = await self._request("PATCH", f"/{table}", params={"id": f"eq.{record_id}"}, json=payload)
        self._raise_for_status(response, table)
        data = response.json()
        if isinstance(data, list):
            return data[0] if data else None
        return data

    async def check_rate_limit(self, scope: str, user_id: str, max_requests: int, window_seconds: int) -> bool:
        response = await self._request(
            "POST",
            "/rpc/check_rate_limit",
            json={
                "p_scope": scope,
                "p_user_id": user_id,
                "p_max_requests": max_requests,
                "p_window_secs": window_seconds,
            },
        )
        self._raise_for_status(response, "rpc/check_rate_limit")
        return response.json() is True


def create_record_store() -> RecordStore:
    """Build the configured record store backend"""
    if settings.record_store == "postgrest":
        logger.info("[RECORD_STORE] Using PostgREST record store")
        return PostgrestRecordStore()
    if settings.record_store != "memory":
        raise ApplicationError(
            code=ErrorCode.CONFIGURATION_ERROR,
            message="Storage is not configured.",
            detail=f"Unknown RECORD_STORE '{settings.record_store}'. Must be 'memory' or 'postgrest'",
        )
    logger.info("[RECORD_STORE] Using in-memory record store")
    return InMemoryRecordStore()
