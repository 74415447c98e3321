from __future__ import annotations

from bs4 import BeautifulSoup

from ..models import UNTITLED_ARTICLE
from ..utils import origin_of, parse_date_value, resolve_url, strip_html

TITLE_SELECTORS = (
    "h1",
    '[property="og:title"]',
    '[name="twitter:title"]',
    "title",
)

AUTHOR_SELECTORS = (
    '[property="article:author"]',
    '[name="author"]',
    '[property="og:article:author"]',
    ".author",
    ".byline",
    '[rel="author"]',
)

DESCRIPTION_SELECTORS = (
    '[property="og:description"]',
    '[name="description"]',
    '[name="twitter:description"]',
    '[property="description"]',
)

PUBLISHED_SELECTORS = (
    '[property="article:published_time"]',
    '[property="og:article:published_time"]',
    '[name="pubdate"]',
    "time[datetime]",
    ".published",
    ".date",
)

FAVICON_SELECTORS = (
    'link[rel="icon"]',
    'link[rel="shortcut icon"]',
    'link[rel="apple-touch-icon"]',
)

LEAD_IMAGE_SELECTORS = (
    '[property="og:image"]',
    '[name="twitter:image"]',
    "article img",
    ".featured-image img",
    "img",
)


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def extract_title(document: BeautifulSoup) -> str:
    return _first_value(document, TITLE_SELECTORS, ("content",)) or UNTITLED_ARTICLE


def extract_author(document: BeautifulSoup) -> str | None:
    return _first_value(document, AUTHOR_SELECTORS, ("content",))


def extract_description(document: BeautifulSoup) -> str | None:
    return _first_value(document, DESCRIPTION_SELECTORS, ("content",), use_text=False)


def extract_published_date(document: BeautifulSoup) -> str | None:
    """First candidate that parses as a date, as an ISO-8601 UTC string."""
    for selector in PUBLISHED_SELECTORS:
        element = document.select_one(selector)
        if element is None:
            continue
        raw = element.get("content") or element.get("datetime") or element.get_text()
        parsed = parse_date_value(raw)
        if parsed is not None:
            return parsed.isoformat()
    return None


def extract_favicon(document: BeautifulSoup, base_url: str | None) -> str | None:
    for selector in FAVICON_SELECTORS:
        element = document.select_one(selector)
        if element is None:
            continue
        href = (element.get("href") or "").strip()
        if href:
            return resolve_url(href, base_url)
    if base_url:
        origin = origin_of(base_url)
        if origin:
            return f"{origin}/favicon.ico"
    return None


def lead_image_candidates(document: BeautifulSoup, base_url: str | None) -> list[str]:
    """Lead image URLs in order of preference, without duplicates."""
    candidates: list[str] = []
    for selector in LEAD_IMAGE_SELECTORS:
        element = document.select_one(selector)
        if element is None:
            continue
        src = (element.get("content") or element.get("src") or "").strip()
        if not src or src.startswith("data:"):
            continue
        url = resolve_url(src, base_url)
        if url not in candidates:
            candidates.append(url)
    return candidates


def extract_excerpt(content: str, length: int = 200) -> str | None:
    plain = strip_html(content)
    if len(plain) > length:
        return plain[:length] + "..."
    return plain or None


def _first_value(
    document: BeautifulSoup,
    selectors: tuple[str, ...],
    attributes: tuple[str, ...],
    *,
    use_text: bool = True,
) -> str | None:
    for selector in selectors:
        element = document.select_one(selector)
        if element is None:
            continue
        value = None
        for attribute in attributes:
            candidate = element.get(attribute)
            if isinstance(candidate, str) and candidate.strip():
                value = candidate
                break
        if value is None and use_text:
            value = element.get_text()
        if value and value.strip():
            return " ".join(value.split())
    return None
