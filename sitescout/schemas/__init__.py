"""
SiteScout — Pydantic request/response schemas.

Wire format is camelCase (``correlationId``, ``siteScore`` ...); Python code
uses the snake_case field names.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AuditStatus(str, Enum):
    NO_URL = "no_url"
    AUDITED = "audited"
    ERROR = "error"


class SubScore(BaseModel):
    score: int = Field(..., ge=0, le=100)
    weight: float = Field(..., gt=0, le=1)
    label: str


class AuditResult(BaseModel):
    correlation_id: str | None = Field(None, alias="correlationId")
    site_score: int = Field(0, alias="siteScore", ge=0, le=100)
    status: AuditStatus
    sub_scores: dict[str, SubScore] = Field(default_factory=dict, alias="subScores")
    details: dict[str, Any] = Field(default_factory=dict)
    normalized_url: str | None = Field(None, alias="normalizedUrl")
    source: str = "live"  # "live" or "cache"

    model_config = {"populate_by_name": True}

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class PipelineProgress(BaseModel):
    completed: int = Field(..., ge=0)
    total: int = Field(..., ge=0)

    @property
    def finished(self) -> bool:
        return self.completed == self.total


# ── Per-source detail bags ──────────────────────────────


class PerformanceDetails(BaseModel):
    page_speed_error: str | None = Field(None, alias="pageSpeedError")
    lighthouse_performance: int | None = Field(None, alias="lighthousePerformance")
    lighthouse_mobile: int | None = Field(None, alias="lighthouseMobile")
    first_contentful_paint: str | None = Field(None, alias="firstContentfulPaint")
    largest_contentful_paint: str | None = Field(None, alias="largestContentfulPaint")
    speed_index: str | None = Field(None, alias="speedIndex")
    total_blocking_time: str | None = Field(None, alias="totalBlockingTime")
    cumulative_layout_shift: str | None = Field(None, alias="cumulativeLayoutShift")

    model_config = {"populate_by_name": True}


class PageDetails(BaseModel):
    http_status: int | None = Field(None, alias="httpStatus")
    final_url: str | None = Field(None, alias="finalUrl")
    fetch_error: str | None = Field(None, alias="fetchError")
    has_ssl: bool | None = Field(None, alias="hasSSL")
    total_images: int | None = Field(None, alias="totalImages")
    broken_images: int | None = Field(None, alias="brokenImages")
    key_pages: dict[str, bool] | None = Field(None, alias="keyPages")
    modern_design: dict[str, bool] | None = Field(None, alias="modernDesign")
    seo: dict[str, bool] | None = None
    page_title: str | None = Field(None, alias="pageTitle")

    model_config = {"populate_by_name": True}


class ContactInfo(BaseModel):
    email: str | None = None
    owner_name: str | None = Field(None, alias="ownerName")
    facebook: str | None = None
    instagram: str | None = None

    model_config = {"populate_by_name": True}


class PerformanceReading(BaseModel):
    performance_score: int = Field(..., ge=0, le=100)
    mobile_score: int = Field(..., ge=0, le=100)
    details: PerformanceDetails = Field(default_factory=PerformanceDetails)


class PageReading(BaseModel):
    ssl_score: int = Field(..., ge=0, le=100)
    broken_resources_score: int = Field(..., ge=0, le=100)
    key_pages_score: int = Field(..., ge=0, le=100)
    modern_design_score: int = Field(..., ge=0, le=100)
    seo_score: int = Field(..., ge=0, le=100)
    details: PageDetails = Field(default_factory=PageDetails)


# ── Requests / responses ────────────────────────────────


class AuditRequest(BaseModel):
    url: str | None = Field(None, max_length=2048)
    correlation_id: str | None = Field(None, alias="correlationId", max_length=255)

    model_config = {"populate_by_name": True}


class StreamItem(AuditRequest):
    pass


class StreamRequest(BaseModel):
    items: list[StreamItem] = Field(..., min_length=1, max_length=500)


class CacheStatsResponse(BaseModel):
    audits: int
    live: int
    expired: int
    ttl_days: int = Field(..., alias="ttlDays")

    model_config = {"populate_by_name": True}


class CacheClearResponse(BaseModel):
    success: bool = True
    removed: int = 0


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "1.0.0"
    timestamp: datetime | str | None = None
    pagespeed_configured: bool = Field(False, alias="pagespeedConfigured")
    cache_backend: str = Field("sql", alias="cacheBackend")

    model_config = {"populate_by_name": True}
