"""
SiteScout — SQLAlchemy ORM model for the durable audit cache.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column

from sitescout.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditCacheEntry(Base):
    """One cached audit per normalized URL. Rows older than the TTL are dead."""

    __tablename__ = "audit_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(Text, unique=True, index=True, nullable=False)
    audit_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    site_score: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="audited")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, index=True
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "site_score": self.site_score,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AuditCacheEntry {self.url} — {self.site_score}>"
