"""
FastAPI Application — entry point.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sitescout.config import settings
from sitescout.database import close_db, init_db
from sitescout.routes import VERSION, router
from sitescout.services.audit_cache import get_audit_cache

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

logger = logging.getLogger(__name__)


async def periodic_cache_sweep(interval: int = 3600) -> None:
    """Drop expired audits every ``interval`` seconds."""
    cache = get_audit_cache()
    while True:
        try:
            await asyncio.sleep(interval)
            await cache.sweep()
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error("Cache sweep error: %s", e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hook."""
    logger.info("🚀 Starting SiteScout Audit API v%s", VERSION)
    if settings.cache_backend != "memory":
        await init_db()
        logger.info("✅ Database ready")

    if not settings.pagespeed_configured:
        logger.info("ℹ️ PageSpeed API key not set — performance scores use neutral defaults")

    sweeper = None
    if settings.cache_sweep_interval > 0:
        sweeper = asyncio.create_task(periodic_cache_sweep(settings.cache_sweep_interval))

    yield

    # Shutdown
    if sweeper:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
    await close_db()
    logger.info("👋 Shutdown complete")


app = FastAPI(
    title="SiteScout Audit API",
    description=(
        "Website audit engine — scores local business websites to surface "
        "web-design leads."
    ),
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "SiteScout Audit API",
        "version": VERSION,
        "docs": "/docs",
    }
