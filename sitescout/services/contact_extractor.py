"""
Contact Extractor — optional add-on that pulls an email, owner name and
social links off a business website.

Homepage first, then up to four conventional about/contact paths while
anything is still missing. Never affects scoring.
"""

import asyncio
import logging
import re
from typing import Optional
from urllib.parse import urlparse

import aiohttp

from sitescout.config import settings
from sitescout.schemas import ContactInfo

logger = logging.getLogger("sitescout.contact")

# ─── Constants ─────────────────────────────────────────────────────────
EMAIL_REGEX = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")
MAILTO_REGEX = re.compile(r"mailto:([a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,})")

# Substrings that mark a regex hit as an asset/vendor address, not a contact
EMAIL_NOISE = (
    "example.com", "sentry", "webpack", ".png", ".jpg", ".jpeg", ".gif",
    ".webp", "wixpress", "schema.org", "protection",
)

OWNER_PATTERNS = [
    re.compile(
        r"(?:owner|founder|proprietor|ceo|president|operated by|owned by)[:\s]*([A-Z][a-z]+ [A-Z][a-z]+)",
        re.IGNORECASE,
    ),
    re.compile(r"(?:Dr\.|Dr)\s+([A-Z][a-z]+ [A-Z][a-z]+)"),
    re.compile(
        r"(?:meet|about)\s+(?:the\s+)?(?:owner|founder)?[:\s]*([A-Z][a-z]+ [A-Z][a-z]+)",
        re.IGNORECASE,
    ),
]

FACEBOOK_REGEX = re.compile(r"href=[\"'](https?://(?:www\.)?facebook\.com/[^\"'\s>]+)", re.IGNORECASE)
INSTAGRAM_REGEX = re.compile(r"href=[\"'](https?://(?:www\.)?instagram\.com/[^\"'\s>]+)", re.IGNORECASE)

PROBE_PATHS = ["/about", "/contact", "/about-us", "/contact-us"]


def find_email(html: str) -> Optional[str]:
    for candidate in EMAIL_REGEX.findall(html):
        lowered = candidate.lower()
        if not any(noise in lowered for noise in EMAIL_NOISE):
            return candidate
    match = MAILTO_REGEX.search(html)
    return match.group(1) if match else None


def find_owner_name(html: str) -> Optional[str]:
    for pattern in OWNER_PATTERNS:
        match = pattern.search(html)
        if match:
            return match.group(1).strip()
    return None


def parse_contact_info(html: str, info: Optional[ContactInfo] = None) -> ContactInfo:
    """Fill whatever ``info`` is still missing from ``html``."""
    info = info.model_copy() if info else ContactInfo()
    if not info.email:
        info.email = find_email(html)
    if not info.owner_name:
        info.owner_name = find_owner_name(html)
    if not info.facebook:
        fb = FACEBOOK_REGEX.search(html)
        info.facebook = fb.group(1) if fb else None
    if not info.instagram:
        ig = INSTAGRAM_REGEX.search(html)
        info.instagram = ig.group(1) if ig else None
    return info


async def _fetch_html(session: aiohttp.ClientSession, url: str) -> Optional[str]:
    """Body of a 2xx response, else None."""
    try:
        async with session.get(
            url,
            timeout=aiohttp.ClientTimeout(total=settings.contact_fetch_timeout),
            allow_redirects=True,
            headers={"User-Agent": settings.user_agent},
        ) as resp:
            if resp.status < 200 or resp.status >= 300:
                return None
            return await resp.text(errors="replace")
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.debug("Contact fetch failed for %s: %s", url, e)
        return None


async def extract_contact_info(url: str) -> ContactInfo:
    info = ContactInfo()
    parsed = urlparse(url)
    origin = f"{parsed.scheme}://{parsed.netloc}"

    async with aiohttp.ClientSession() as session:
        html = await _fetch_html(session, url)
        if html:
            info = parse_contact_info(html, info)

        for path in PROBE_PATHS:
            if info.email and info.owner_name:
                break
            page_html = await _fetch_html(session, origin + path)
            if page_html:
                info = parse_contact_info(page_html, info)

    return info
