"""
Shared test fixtures — async DB, audit caches, mocked signal sources, FastAPI test client.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import sitescout.models  # noqa: F401  register tables
from sitescout.database import Base
from sitescout.main import app
from sitescout.schemas import (
    PageDetails,
    PageReading,
    PerformanceDetails,
    PerformanceReading,
)
from sitescout.services.audit_cache import MemoryAuditCache, SqlAuditCache, get_audit_cache


# ── Test Database (SQLite in-memory) ────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ── Controllable clock ──────────────────────────────────

class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_cache(clock):
    return MemoryAuditCache(ttl=timedelta(days=7), clock=clock)


@pytest_asyncio.fixture()
async def sql_cache(session_factory, clock):
    return SqlAuditCache(session_factory=session_factory, ttl=timedelta(days=7), clock=clock)


# ── Sample HTML ─────────────────────────────────────────

MODERN_HTML = """<!DOCTYPE html>
<html><head>
  <title>Joe's Plumbing — Manor TX</title>
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta name="description" content="Licensed plumbers serving Manor since 2015">
  <link rel="stylesheet" href="/css/site.css">
  <style>.hero { display: flex; } @media (max-width: 600px) { .hero { display: block; } }</style>
</head>
<body>
  <nav>
    <a href="/about-us">About</a>
    <a href="/services">Our Services</a>
    <a href="/contact">Contact</a>
    <a href="/hours">Hours</a>
    <a href="/book-online">Book Now</a>
  </nav>
  <h1>Professional Plumbing</h1>
  <img src="/img/van.jpg" alt="Our service van" srcset="/img/van-2x.jpg 2x">
  <img src="/img/team.jpg" alt="The team">
</body></html>
"""

ANCIENT_HTML = """<html><head></head>
<body>
  <table><tr><td>Welcome to our site</td></tr></table>
  <embed src="intro.swf" type="application/x-shockwave-flash">
</body></html>
"""


@pytest.fixture
def modern_html():
    return MODERN_HTML


@pytest.fixture
def ancient_html():
    return ANCIENT_HTML


# ── Canned readings ─────────────────────────────────────

def make_perf(performance: int = 80, mobile: int = 90, error: str | None = None) -> PerformanceReading:
    return PerformanceReading(
        performance_score=performance,
        mobile_score=mobile,
        details=PerformanceDetails(
            page_speed_error=error,
            lighthouse_performance=None if error else performance,
        ),
    )


def make_page(
    ssl: int = 100, broken: int = 100, key_pages: int = 80,
    design: int = 100, seo: int = 75, fetch_error: str | None = None,
) -> PageReading:
    return PageReading(
        ssl_score=ssl,
        broken_resources_score=broken,
        key_pages_score=key_pages,
        modern_design_score=design,
        seo_score=seo,
        details=PageDetails(
            fetch_error=fetch_error,
            page_title=None if fetch_error else "Test Site",
        ),
    )


@pytest.fixture
def mock_sources():
    """Patch both signal sources as seen by the auditor. No network."""
    with patch("sitescout.services.auditor.measure",
               new_callable=AsyncMock) as mock_measure, \
         patch("sitescout.services.auditor.inspect",
               new_callable=AsyncMock) as mock_inspect:
        mock_measure.return_value = make_perf()
        mock_inspect.return_value = make_page()
        yield {"measure": mock_measure, "inspect": mock_inspect}


# ── FastAPI test client ─────────────────────────────────

@pytest_asyncio.fixture()
async def client(memory_cache):
    """FastAPI test client with an in-memory audit cache injected and no stream delay."""
    app.dependency_overrides[get_audit_cache] = lambda: memory_cache

    transport = ASGITransport(app=app)
    with patch("sitescout.services.audit_stream.settings.audit_delay_secs", 0):
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac

    app.dependency_overrides.clear()
