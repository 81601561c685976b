"""
PageSpeed Engine — performance + mobile signals from Google PageSpeed Insights.

One mobile-strategy call per URL, no retries. Every failure mode degrades to
fixed scores so an audit is never aborted by this source.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from sitescout.config import settings
from sitescout.schemas import PerformanceDetails, PerformanceReading
from sitescout.services.scorer import round_half_up

logger = logging.getLogger("sitescout.pagespeed")

# ─── Degraded readings ─────────────────────────────────────────────────
UNCONFIGURED_SCORE = 50
API_FAILURE_SCORE = 30  # non-2xx or timeout
UNEXPECTED_FAILURE_SCORE = 20
MOBILE_SCORE_FLOOR = 10

# Partial response: categories + audits are all we read
FIELD_SELECTION = "lighthouseResult(categories,audits)"

TIMING_AUDITS = {
    "first_contentful_paint": "first-contentful-paint",
    "largest_contentful_paint": "largest-contentful-paint",
    "speed_index": "speed-index",
    "total_blocking_time": "total-blocking-time",
    "cumulative_layout_shift": "cumulative-layout-shift",
}


def _degraded(score: int, reason: str) -> PerformanceReading:
    return PerformanceReading(
        performance_score=score,
        mobile_score=score,
        details=PerformanceDetails(page_speed_error=reason),
    )


def _audit_score(audits: dict, key: str, default: float) -> float:
    score = (audits.get(key) or {}).get("score")
    return default if score is None else float(score)


def parse_pagespeed_payload(data: dict) -> PerformanceReading:
    """
    Turn a PageSpeed v5 response into scores.

    ``mobileScore`` is the mean of the viewport, font-size and tap-target
    audits (each 0–1), floored at 10.
    """
    lighthouse = data.get("lighthouseResult") or {}
    categories = lighthouse.get("categories") or {}
    audits = lighthouse.get("audits") or {}

    perf_raw = (categories.get("performance") or {}).get("score") or 0
    performance_score = round_half_up(float(perf_raw) * 100)

    viewport = _audit_score(audits, "viewport", 0.0)
    font_size = _audit_score(audits, "font-size", 0.5)
    tap_targets = _audit_score(audits, "tap-targets", 0.5)
    mobile_raw = round_half_up((viewport + font_size + tap_targets) / 3 * 100)

    timings = {
        field: (audits.get(key) or {}).get("displayValue") or "N/A"
        for field, key in TIMING_AUDITS.items()
    }

    return PerformanceReading(
        performance_score=max(0, min(100, performance_score)),
        mobile_score=max(MOBILE_SCORE_FLOOR, min(100, mobile_raw)),
        details=PerformanceDetails(
            lighthouse_performance=performance_score,
            lighthouse_mobile=mobile_raw,
            **timings,
        ),
    )


async def _pagespeed_request(
    session: aiohttp.ClientSession, params: list[tuple[str, str]]
) -> tuple[int, Optional[dict]]:
    """GET the PageSpeed endpoint. Returns (status, json-or-None)."""
    async with session.get(
        settings.pagespeed_api_url,
        params=params,
        timeout=aiohttp.ClientTimeout(total=settings.pagespeed_timeout),
    ) as resp:
        if resp.status < 200 or resp.status >= 300:
            return resp.status, None
        return resp.status, await resp.json(content_type=None)


async def measure(url: str, api_key: Optional[str] = None) -> PerformanceReading:
    """Performance + mobile sub-scores for an already-normalized URL."""
    key = settings.google_pagespeed_api_key if api_key is None else api_key
    if not key or not key.strip():
        return _degraded(UNCONFIGURED_SCORE, "API key not configured, using defaults")

    params = [
        ("url", url),
        ("key", key.strip()),
        ("strategy", "mobile"),
        ("category", "performance"),
        ("category", "accessibility"),
        ("fields", FIELD_SELECTION),
    ]

    try:
        async with aiohttp.ClientSession() as session:
            status, data = await _pagespeed_request(session, params)
    except asyncio.TimeoutError:
        logger.warning("PageSpeed timed out for %s", url)
        return _degraded(API_FAILURE_SCORE, f"API timed out after {settings.pagespeed_timeout:g}s")
    except (aiohttp.ClientError, ValueError) as e:
        logger.warning("PageSpeed request failed for %s: %s", url, e)
        return _degraded(UNEXPECTED_FAILURE_SCORE, str(e) or e.__class__.__name__)

    if data is None:
        logger.warning("PageSpeed returned %d for %s", status, url)
        return _degraded(API_FAILURE_SCORE, f"API returned {status}")

    try:
        return parse_pagespeed_payload(data)
    except (AttributeError, TypeError, ValueError) as e:
        logger.warning("Unreadable PageSpeed payload for %s: %s", url, e)
        return _degraded(UNEXPECTED_FAILURE_SCORE, f"Unreadable API response: {e}")
