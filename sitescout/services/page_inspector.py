"""
Page Inspector — direct fetch + static HTML analysis.

Fetches the page once (bounded timeout, redirects followed) and derives five
independent 0-100 sub-scores from the served HTML: SSL, broken images, key
pages, modern design signals and basic SEO. No JavaScript is executed.
"""

import asyncio
import logging
from dataclasses import dataclass

import aiohttp
from bs4 import BeautifulSoup

from sitescout.config import settings
from sitescout.schemas import PageDetails, PageReading
from sitescout.services.scorer import round_half_up

logger = logging.getLogger("sitescout.page")

# ─── Constants ─────────────────────────────────────────────────────────
BROKEN_SRC_VALUES = {"", "#", "undefined"}

KEY_PAGE_PATTERNS: dict[str, list[str]] = {
    "about": ["about", "about-us", "our-story", "who-we-are"],
    "contact": ["contact", "contact-us", "get-in-touch", "reach-us"],
    "services": ["services", "menu", "products", "offerings", "what-we-do", "our-services"],
    "hours": ["hours", "schedule", "business-hours", "open"],
    "booking": ["book", "booking", "appointment", "reserve", "order", "schedule"],
}
CONTACT_TEXT_MARKERS = ("tel:", "email")

FLASH_MARKERS = ("<embed", "shockwave-flash", ".swf")
RESPONSIVE_MARKERS = ("max-width", "object-fit")
MODERN_CSS_MARKERS = (
    "flexbox", "display:flex", "display: flex", "grid",
    "@media", "tailwind", "bootstrap",
)

# Fetch failed: neutral-ish defaults so the item still scores
FALLBACK_SSL_HTTPS = 50
FALLBACK_BROKEN_RESOURCES = 50
FALLBACK_OTHER = 30


@dataclass
class FetchedPage:
    html: str
    final_url: str
    status: int


async def fetch_page(url: str) -> FetchedPage:
    """GET ``url`` following redirects. Raises on transport errors/timeouts."""
    async with aiohttp.ClientSession() as session:
        async with session.get(
            url,
            timeout=aiohttp.ClientTimeout(total=settings.page_fetch_timeout),
            allow_redirects=True,
            headers={
                "User-Agent": settings.user_agent,
                "Accept": "text/html,application/xhtml+xml",
            },
        ) as resp:
            html = await resp.text(errors="replace")
            return FetchedPage(html=html, final_url=str(resp.url), status=resp.status)


# ─── Individual checks ────────────────────────────────────────────────

def score_ssl(final_url: str) -> int:
    return 100 if final_url.lower().startswith("https://") else 0


def check_broken_images(soup: BeautifulSoup) -> dict:
    """
    Count ``<img>`` tags whose ``src`` is empty, ``#`` or ``undefined``.
    Tags without a ``src`` attribute (lazy loaders) are never broken.
    """
    images = soup.find_all("img")
    broken = sum(
        1 for img in images
        if img.has_attr("src") and img["src"].strip() in BROKEN_SRC_VALUES
    )
    if images:
        score = round_half_up((1 - broken / len(images)) * 100)
    else:
        score = 100
    return {"score": score, "total": len(images), "broken": broken}


def check_key_pages(soup: BeautifulSoup, html_lower: str) -> dict:
    """Which of about/contact/services/hours/booking the page links to."""
    found = {category: False for category in KEY_PAGE_PATTERNS}

    for link in soup.find_all("a"):
        combined = f"{(link.get('href') or '').lower()} {link.get_text().lower()}"
        for category, patterns in KEY_PAGE_PATTERNS.items():
            if not found[category] and any(p in combined for p in patterns):
                found[category] = True

    # Contact details inline on the page count as a contact page
    if any(marker in html_lower for marker in CONTACT_TEXT_MARKERS):
        found["contact"] = True

    count = sum(found.values())
    return {"score": round_half_up(count / len(found) * 100), "pages": found}


def check_modern_design(soup: BeautifulSoup, html_lower: str) -> dict:
    signals = {
        "hasViewport": soup.find("meta", attrs={"name": "viewport"}) is not None,
        "hasResponsiveImages": (
            soup.find("img", srcset=True) is not None
            or soup.find("picture") is not None
            or any(marker in html_lower for marker in RESPONSIVE_MARKERS)
        ),
        "noFlash": not any(marker in html_lower for marker in FLASH_MARKERS),
        "modernCSS": (
            any(marker in html_lower for marker in MODERN_CSS_MARKERS)
            or soup.find("link", rel="stylesheet") is not None
        ),
    }
    count = sum(signals.values())
    return {"score": round_half_up(count / len(signals) * 100), "signals": signals}


def check_seo(soup: BeautifulSoup) -> dict:
    title = soup.title.get_text(strip=True) if soup.title else ""

    meta_desc = soup.find("meta", attrs={"name": "description"})
    description = (meta_desc.get("content") or "").strip() if meta_desc else ""

    images = soup.find_all("img")
    with_alt = sum(1 for img in images if (img.get("alt") or "").strip())

    checks = {
        "hasTitle": bool(title),
        "hasMetaDescription": bool(description),
        "hasH1": soup.find("h1") is not None,
        # vacuous pass when there are no images
        "hasAltText": not images or with_alt / len(images) > 0.5,
    }
    count = sum(checks.values())
    return {
        "score": round_half_up(count / len(checks) * 100),
        "checks": checks,
        "title": title,
    }


# ─── Entry points ─────────────────────────────────────────────────────

def analyze_html(html: str, final_url: str, http_status: int | None = None) -> PageReading:
    """Score already-fetched HTML. Pure — used by ``inspect`` and tests."""
    soup = BeautifulSoup(html, "lxml")
    html_lower = html.lower()

    ssl_score = score_ssl(final_url)
    broken = check_broken_images(soup)
    key_pages = check_key_pages(soup, html_lower)
    design = check_modern_design(soup, html_lower)
    seo = check_seo(soup)

    return PageReading(
        ssl_score=ssl_score,
        broken_resources_score=broken["score"],
        key_pages_score=key_pages["score"],
        modern_design_score=design["score"],
        seo_score=seo["score"],
        details=PageDetails(
            http_status=http_status,
            final_url=final_url,
            has_ssl=ssl_score == 100,
            total_images=broken["total"],
            broken_images=broken["broken"],
            key_pages=key_pages["pages"],
            modern_design=design["signals"],
            seo=seo["checks"],
            page_title=seo["title"] or "None",
        ),
    )


def fallback_reading(url: str, reason: str) -> PageReading:
    return PageReading(
        ssl_score=FALLBACK_SSL_HTTPS if url.lower().startswith("https") else 0,
        broken_resources_score=FALLBACK_BROKEN_RESOURCES,
        key_pages_score=FALLBACK_OTHER,
        modern_design_score=FALLBACK_OTHER,
        seo_score=FALLBACK_OTHER,
        details=PageDetails(fetch_error=reason),
    )


async def inspect(url: str) -> PageReading:
    """Fetch + analyze. A failed or timed-out fetch yields fallback scores."""
    try:
        page = await fetch_page(url)
    except asyncio.TimeoutError:
        logger.warning("Fetch timed out for %s", url)
        return fallback_reading(url, f"Timed out after {settings.page_fetch_timeout:g}s")
    except aiohttp.ClientError as e:
        logger.warning("Failed to fetch %s: %s", url, e)
        return fallback_reading(url, str(e) or e.__class__.__name__)

    return analyze_html(page.html, page.final_url, page.status)
