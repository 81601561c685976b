"""
API Routes — single audit, SSE audit stream, cache admin, health.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from sitescout.config import settings
from sitescout.schemas import (
    AuditRequest,
    AuditResult,
    CacheClearResponse,
    CacheStatsResponse,
    HealthResponse,
    StreamItem,
    StreamRequest,
)
from sitescout.services.audit_cache import STORAGE_ERRORS, AuditCache, get_audit_cache
from sitescout.services.audit_stream import AuditStream, CancellationToken
from sitescout.services.auditor import audit_with_cache

logger = logging.getLogger(__name__)

router = APIRouter()

VERSION = "1.0.0"
DISCONNECT_POLL_SECS = 0.5


# ── Health ──────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health():
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=VERSION,
        pagespeed_configured=settings.pagespeed_configured,
        cache_backend=settings.cache_backend,
    )


# ── Single Audit ────────────────────────────────────────

@router.post("/audit", response_model=AuditResult, tags=["audit"])
async def audit_one(
    req: AuditRequest,
    cache: AuditCache = Depends(get_audit_cache),
):
    return await audit_with_cache(req.url, req.correlation_id, cache)


# ── SSE Stream ──────────────────────────────────────────

async def _watch_disconnect(request: Request, token: CancellationToken) -> None:
    """Cancel the stream once the client goes away."""
    while not token.cancelled:
        if await request.is_disconnected():
            logger.info("Client disconnected — cancelling audit stream")
            token.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECS)


def _stream_response(request: Request, items: list[StreamItem], cache: AuditCache) -> StreamingResponse:
    token = CancellationToken()
    stream = AuditStream(items, cache=cache, token=token)

    async def event_generator():
        watcher = asyncio.create_task(_watch_disconnect(request, token))
        try:
            async for event in stream.events():
                yield f"data: {json.dumps(event.to_frame())}\n\n"
        finally:
            token.cancel()
            watcher.cancel()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/audit/stream", tags=["audit"])
async def stream_audits(
    req: StreamRequest,
    request: Request,
    cache: AuditCache = Depends(get_audit_cache),
):
    """Audit many URLs in order; one SSE frame per result, then ``{"done": true}``."""
    return _stream_response(request, req.items, cache)


@router.get("/audit/stream", tags=["audit"])
async def stream_audits_query(
    request: Request,
    urls: str = Query(..., description="Comma-separated URLs; empty slot = no website"),
    ids: Optional[str] = Query(None, description="Comma-separated correlation ids"),
    cache: AuditCache = Depends(get_audit_cache),
):
    if not urls.strip():
        raise HTTPException(status_code=400, detail="urls parameter required")

    url_list = urls.split(",")
    id_list = ids.split(",") if ids else []
    if id_list and len(id_list) != len(url_list):
        raise HTTPException(status_code=400, detail="urls and ids must have the same length")

    items = [
        StreamItem(url=url or None, correlation_id=id_list[i] if id_list else None)
        for i, url in enumerate(url_list)
    ]
    return _stream_response(request, items, cache)


# ── Cache Admin ─────────────────────────────────────────

@router.get("/cache/stats", response_model=CacheStatsResponse, tags=["cache"])
async def cache_stats(cache: AuditCache = Depends(get_audit_cache)):
    try:
        stats = await cache.stats()
    except STORAGE_ERRORS as e:
        logger.error("Cache stats failed: %s", e)
        raise HTTPException(status_code=500, detail="Cache unavailable")
    return CacheStatsResponse(ttl_days=cache.ttl.days, **stats)


@router.post("/cache/clear", response_model=CacheClearResponse, tags=["cache"])
async def cache_clear(cache: AuditCache = Depends(get_audit_cache)):
    """Remove expired audits."""
    removed = await cache.sweep()
    return CacheClearResponse(success=True, removed=removed)
