"""
Audit Cache — TTL-bounded store of audit results keyed by normalized URL.

Two interchangeable backends share one contract (``get`` / ``put`` /
``sweep`` / ``stats``):

- ``SqlAuditCache``: durable, one row per URL in ``audit_cache``.
- ``MemoryAuditCache``: per-process dict, for serverless runs and tests.

Expired entries are invisible to ``get`` but only removed by ``sweep``.
Storage failures degrade to a miss; auditing never depends on the cache.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from pydantic import ValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitescout.config import settings
from sitescout.database import async_session_factory
from sitescout.models.audit_cache import AuditCacheEntry
from sitescout.schemas import AuditResult, AuditStatus

logger = logging.getLogger("sitescout.cache")

Clock = Callable[[], datetime]

# Driver connect failures (asyncpg, aiosqlite) surface as raw OSError, unwrapped
STORAGE_ERRORS = (SQLAlchemyError, OSError)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _default_ttl() -> timedelta:
    return timedelta(days=settings.cache_expiry_days)


def _storable(result: AuditResult) -> bool:
    return result.status == AuditStatus.AUDITED


def _to_stored(result: AuditResult) -> dict:
    # correlation ids belong to the caller, not the URL
    return result.model_copy(update={"correlation_id": None, "source": "live"}).to_wire()


class AuditCache(Protocol):
    ttl: timedelta

    async def get(self, url: str) -> Optional[AuditResult]: ...

    async def put(self, url: str, result: AuditResult) -> bool: ...

    async def sweep(self) -> int: ...

    async def stats(self) -> dict: ...


# ─── In-memory backend ────────────────────────────────────────────────

@dataclass(frozen=True)
class CacheEntry:
    key: str
    result: AuditResult
    created_at: datetime


class MemoryAuditCache:
    """Dict-backed cache. Entries are replaced whole, so readers never see a partial write."""

    def __init__(self, ttl: Optional[timedelta] = None, clock: Clock = _utcnow):
        self.ttl = ttl if ttl is not None else _default_ttl()
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def _is_live(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.created_at <= self.ttl

    async def get(self, url: str) -> Optional[AuditResult]:
        entry = self._entries.get(url)
        if entry is None or not self._is_live(entry):
            return None
        return entry.result.model_copy(deep=True, update={"source": "cache"})

    async def put(self, url: str, result: AuditResult) -> bool:
        if not _storable(result):
            return False
        stored = AuditResult.model_validate(_to_stored(result))
        self._entries[url] = CacheEntry(key=url, result=stored, created_at=self._clock())
        return True

    async def sweep(self) -> int:
        dead = [key for key, entry in self._entries.items() if not self._is_live(entry)]
        for key in dead:
            del self._entries[key]
        return len(dead)

    async def stats(self) -> dict:
        live = sum(1 for entry in self._entries.values() if self._is_live(entry))
        total = len(self._entries)
        return {"audits": total, "live": live, "expired": total - live}


# ─── SQL backend ──────────────────────────────────────────────────────

class SqlAuditCache:
    """Durable cache on the application database (one row per URL)."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        ttl: Optional[timedelta] = None,
        clock: Clock = _utcnow,
    ):
        self._session_factory = session_factory or async_session_factory
        self.ttl = ttl if ttl is not None else _default_ttl()
        self._clock = clock
        self._write_lock = asyncio.Lock()

    def _cutoff(self) -> datetime:
        return self._clock() - self.ttl

    async def get(self, url: str) -> Optional[AuditResult]:
        try:
            async with self._session_factory() as session:
                row = await session.execute(
                    select(AuditCacheEntry.audit_data).where(
                        AuditCacheEntry.url == url,
                        AuditCacheEntry.created_at >= self._cutoff(),
                    )
                )
                data = row.scalar_one_or_none()
        except STORAGE_ERRORS as e:
            logger.warning("Cache read failed for %s — treating as miss: %s", url, e)
            return None

        if data is None:
            return None
        try:
            result = AuditResult.model_validate(data)
        except ValidationError as e:
            logger.warning("Corrupt cache entry for %s — ignoring: %s", url, e)
            return None
        logger.debug("Cache hit: %s", url)
        return result.model_copy(update={"source": "cache"})

    async def put(self, url: str, result: AuditResult) -> bool:
        """Upsert; a second put for the same URL replaces it and resets its age."""
        if not _storable(result):
            return False
        data = _to_stored(result)

        async with self._write_lock:
            try:
                async with self._session_factory() as session:
                    existing = await session.execute(
                        select(AuditCacheEntry).where(AuditCacheEntry.url == url)
                    )
                    entry = existing.scalar_one_or_none()
                    now = self._clock()
                    if entry is None:
                        session.add(AuditCacheEntry(
                            url=url,
                            audit_data=data,
                            site_score=result.site_score,
                            status=result.status.value,
                            created_at=now,
                        ))
                    else:
                        entry.audit_data = data
                        entry.site_score = result.site_score
                        entry.status = result.status.value
                        entry.created_at = now
                    await session.commit()
            except STORAGE_ERRORS as e:
                logger.warning("Cache write failed for %s: %s", url, e)
                return False
        return True

    async def sweep(self) -> int:
        try:
            async with self._session_factory() as session:
                res = await session.execute(
                    delete(AuditCacheEntry).where(AuditCacheEntry.created_at < self._cutoff())
                )
                await session.commit()
        except STORAGE_ERRORS as e:
            logger.warning("Cache sweep failed: %s", e)
            return 0
        removed = res.rowcount or 0
        if removed:
            logger.info("Cache sweep removed %d expired audit(s)", removed)
        return removed

    async def stats(self) -> dict:
        async with self._session_factory() as session:
            total = await session.scalar(select(func.count()).select_from(AuditCacheEntry))
            live = await session.scalar(
                select(func.count())
                .select_from(AuditCacheEntry)
                .where(AuditCacheEntry.created_at >= self._cutoff())
            )
        total = total or 0
        live = live or 0
        return {"audits": total, "live": live, "expired": total - live}


# ─── Default instance (FastAPI dependency) ────────────────────────────

_default_cache: Optional[AuditCache] = None


def build_audit_cache() -> AuditCache:
    if settings.cache_backend == "memory":
        return MemoryAuditCache()
    return SqlAuditCache()


def get_audit_cache() -> AuditCache:
    """FastAPI dependency — the process-wide cache, built on first use."""
    global _default_cache
    if _default_cache is None:
        _default_cache = build_audit_cache()
        logger.info("Audit cache backend: %s", type(_default_cache).__name__)
    return _default_cache
