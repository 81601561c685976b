"""
Tests for ORM models — AuditCacheEntry CRUD.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from sitescout.database import engine_options
from sitescout.models.audit_cache import AuditCacheEntry


class TestAuditCacheEntry:
    async def test_create_entry(self, db_session):
        entry = AuditCacheEntry(
            url="https://joesplumbing.com",
            audit_data={"siteScore": 72, "status": "audited"},
            site_score=72,
        )
        db_session.add(entry)
        await db_session.commit()
        await db_session.refresh(entry)

        assert entry.id is not None
        assert entry.status == "audited"
        assert entry.created_at is not None

    async def test_to_dict(self, db_session):
        entry = AuditCacheEntry(
            url="https://dict.example.com",
            audit_data={"siteScore": 40},
            site_score=40,
        )
        db_session.add(entry)
        await db_session.commit()
        await db_session.refresh(entry)

        d = entry.to_dict()
        assert d["url"] == "https://dict.example.com"
        assert d["site_score"] == 40
        assert "created_at" in d
        assert "audit_data" not in d

    async def test_json_round_trip(self, db_session):
        payload = {
            "siteScore": 55,
            "subScores": {"ssl": {"score": 100, "weight": 0.1, "label": "SSL Certificate"}},
            "details": {"keyPages": {"about": True, "contact": False}},
        }
        db_session.add(AuditCacheEntry(url="https://json.example.com", audit_data=payload, site_score=55))
        await db_session.commit()

        row = (await db_session.execute(
            select(AuditCacheEntry).where(AuditCacheEntry.url == "https://json.example.com")
        )).scalar_one()
        assert row.audit_data == payload

    async def test_url_unique(self, db_session):
        db_session.add(AuditCacheEntry(url="https://dup.example.com", audit_data={}, site_score=1))
        await db_session.commit()

        db_session.add(AuditCacheEntry(url="https://dup.example.com", audit_data={}, site_score=2))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    async def test_repr(self):
        entry = AuditCacheEntry(url="https://r.example.com", audit_data={}, site_score=9)
        assert "r.example.com" in repr(entry)


class TestEngineOptions:
    def test_sqlite_has_no_pool_settings(self):
        opts = engine_options("sqlite+aiosqlite:///./sitescout.db")
        assert "pool_size" not in opts
        assert opts["connect_args"]["timeout"] == 30

    def test_server_database_pooled(self):
        opts = engine_options("postgresql+asyncpg://u:p@db/sitescout")
        assert opts["pool_pre_ping"] is True
        assert opts["pool_size"] == 5
