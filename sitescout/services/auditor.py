"""
Auditor — single-URL audit orchestration.

Normalizes the URL, runs the PageSpeed and page-inspection sources
concurrently, and hands both readings to the scorer. This is the unit that
gets cached and the unit the stream pipeline runs per item.
"""

import asyncio
import logging
import re
from typing import Optional
from urllib.parse import urlparse

from sitescout.config import settings
from sitescout.schemas import AuditResult, AuditStatus
from sitescout.services.audit_cache import AuditCache
from sitescout.services.contact_extractor import extract_contact_info
from sitescout.services.page_inspector import inspect
from sitescout.services.pagespeed import measure
from sitescout.services.scorer import score

logger = logging.getLogger("sitescout.audit")

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


class InvalidAuditUrl(ValueError):
    """URL could not be turned into a fetchable http(s) address."""


def normalize_url(url: Optional[str]) -> Optional[str]:
    """
    Strip whitespace and prepend ``https://`` when no scheme is given.
    Empty input → None. Idempotent.
    """
    if url is None:
        return None
    url = url.strip()
    if not url:
        return None
    if not _SCHEME_RE.match(url):
        url = f"https://{url}"
    try:
        hostname = urlparse(url).hostname
    except ValueError as e:
        raise InvalidAuditUrl(f"Malformed URL {url!r}: {e}") from e
    if not hostname:
        raise InvalidAuditUrl(f"No host in URL: {url!r}")
    return url


def no_url_result(correlation_id: Optional[str] = None) -> AuditResult:
    return AuditResult(
        correlation_id=correlation_id,
        site_score=0,
        status=AuditStatus.NO_URL,
        details={"message": "No website found"},
    )


def error_result(
    error: str,
    correlation_id: Optional[str] = None,
    normalized_url: Optional[str] = None,
) -> AuditResult:
    return AuditResult(
        correlation_id=correlation_id,
        site_score=0,
        status=AuditStatus.ERROR,
        details={"error": error},
        normalized_url=normalized_url,
    )


async def _run_sources(url: str) -> AuditResult:
    if settings.contact_extraction_enabled:
        perf, page, contact = await asyncio.gather(
            measure(url), inspect(url), extract_contact_info(url)
        )
        result = score(perf, page, normalized_url=url)
        result.details["contact"] = contact.model_dump(by_alias=True)
        return result

    perf, page = await asyncio.gather(measure(url), inspect(url))
    return score(perf, page, normalized_url=url)


async def audit_url(url: Optional[str], correlation_id: Optional[str] = None) -> AuditResult:
    """
    Audit one URL. Never raises (except on cancellation): missing URL →
    ``no_url``, anything that prevents scoring → ``error``.
    """
    try:
        normalized = normalize_url(url)
    except InvalidAuditUrl as e:
        logger.warning("Rejected URL %r: %s", url, e)
        return error_result(str(e), correlation_id)

    if normalized is None:
        return no_url_result(correlation_id)

    try:
        result = await _run_sources(normalized)
    except Exception as e:
        logger.exception("Audit failed for %s: %s", normalized, e)
        return error_result(str(e) or e.__class__.__name__, correlation_id, normalized)

    result.correlation_id = correlation_id
    logger.info("Audit complete: %s → %d/100", normalized, result.site_score)
    return result


async def audit_with_cache(
    url: Optional[str],
    correlation_id: Optional[str],
    cache: Optional[AuditCache],
) -> AuditResult:
    """Cache-first single audit; fresh ``audited`` results are written back."""
    try:
        normalized = normalize_url(url)
    except InvalidAuditUrl as e:
        return error_result(str(e), correlation_id)
    if normalized is None:
        return no_url_result(correlation_id)

    if cache is not None:
        cached = await cache.get(normalized)
        if cached is not None:
            return cached.model_copy(update={"correlation_id": correlation_id})

    result = await audit_url(normalized, correlation_id)
    if cache is not None and result.status == AuditStatus.AUDITED:
        await cache.put(normalized, result)
    return result
