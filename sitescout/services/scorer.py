"""
Scorer — combines the seven sub-scores into one weighted SiteScore.

Pure functions only; no I/O.
"""

from typing import Optional

from sitescout.schemas import (
    AuditResult,
    AuditStatus,
    PageReading,
    PerformanceReading,
    SubScore,
)

# key → (label, weight). Weights sum to 1.0.
CATEGORY_WEIGHTS: dict[str, tuple[str, float]] = {
    "performance": ("Performance", 0.25),
    "mobile": ("Mobile Responsiveness", 0.20),
    "ssl": ("SSL Certificate", 0.10),
    "brokenResources": ("Broken Resources", 0.10),
    "keyPages": ("Key Pages Present", 0.15),
    "modernDesign": ("Modern Design", 0.10),
    "seo": ("SEO Basics", 0.10),
}


def round_half_up(value: float) -> int:
    """Nearest int with halves rounded up, unlike Python's banker's ``round``."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def build_sub_scores(perf: PerformanceReading, page: PageReading) -> dict[str, SubScore]:
    raw = {
        "performance": perf.performance_score,
        "mobile": perf.mobile_score,
        "ssl": page.ssl_score,
        "brokenResources": page.broken_resources_score,
        "keyPages": page.key_pages_score,
        "modernDesign": page.modern_design_score,
        "seo": page.seo_score,
    }
    return {
        key: SubScore(score=raw[key], weight=weight, label=label)
        for key, (label, weight) in CATEGORY_WEIGHTS.items()
    }


def compute_site_score(sub_scores: dict[str, SubScore]) -> int:
    total = sum(s.score * s.weight for s in sub_scores.values())
    return max(0, min(100, round_half_up(total)))


def merge_details(perf: PerformanceReading, page: PageReading) -> dict:
    """Flatten both typed detail bags into the wire-format ``details`` map."""
    merged = perf.details.model_dump(by_alias=True, exclude_none=True)
    merged.update(page.details.model_dump(by_alias=True, exclude_none=True))
    return merged


def score(
    perf: PerformanceReading,
    page: PageReading,
    correlation_id: Optional[str] = None,
    normalized_url: Optional[str] = None,
) -> AuditResult:
    """
    Build the ``audited`` result. Degraded readings score like measured ones;
    only ``details`` (``pageSpeedError`` / ``fetchError``) tells them apart.
    """
    sub_scores = build_sub_scores(perf, page)
    return AuditResult(
        correlation_id=correlation_id,
        site_score=compute_site_score(sub_scores),
        status=AuditStatus.AUDITED,
        sub_scores=sub_scores,
        details=merge_details(perf, page),
        normalized_url=normalized_url,
    )
