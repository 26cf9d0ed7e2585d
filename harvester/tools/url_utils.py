"""
URL parsing and normalization utilities.
Handles canonicalization, relative-link resolution, site matching and
URL-embedded publish dates.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

import tldextract

logger = logging.getLogger(__name__)

# Bundled public-suffix snapshot only; the list is never fetched mid-run.
_TLD_EXTRACT = tldextract.TLDExtract(suffix_list_urls=())

# Image query params that change the rendered image; everything else is tracking noise.
_IMAGE_PARAMS = {"w", "h", "fit", "crop", "quality"}

_URL_DATE_PATTERNS = [
    re.compile(r"/(\d{4})-(\d{2})-(\d{2})(?:/|$)"),          # /news/articles/2025-07-14/slug
    re.compile(r"/(\d{4})/(\d{1,2})/(\d{1,2})(?:/|$)"),      # /2025/07/14/slug
    re.compile(r"/(20\d{2})(\d{2})(\d{2})(?:/|$|[-_])"),      # /20250714/ or /20250714-slug
]


def canonicalize_url(url: str) -> str:
    """
    Canonical form used for identity: query string and fragment dropped,
    scheme and host lower-cased.

    Examples:
        "https://Example.com/a/b?utm_source=x#top" → "https://example.com/a/b"
        "https://example.com/a/b"                  → "https://example.com/a/b"
    """
    if not url:
        return ""
    parsed = urlparse(url.strip())
    if not parsed.scheme or not parsed.netloc:
        return url.strip().split("?", 1)[0].split("#", 1)[0]
    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path or "/",
        "",
        "",
        "",
    ))


def absolutize(href: str, base_url: str) -> Optional[str]:
    """Resolve protocol-relative and relative hrefs against a document URL. None for non-http links."""
    if not href:
        return None
    href = href.strip()
    if href.startswith(("javascript:", "mailto:", "tel:", "data:", "#")):
        return None
    if href.startswith("//"):
        href = "https:" + href
    resolved = urljoin(base_url, href)
    if not resolved.startswith(("http://", "https://")):
        return None
    return resolved


def registered_domain(url: str) -> str:
    """
    "https://www.scmp.com/news/x" → "scmp.com"
    "https://news.rthk.hk/rthk/en" → "rthk.hk"
    """
    if not url:
        return ""
    extracted = _TLD_EXTRACT(url)
    if extracted.domain and extracted.suffix:
        return f"{extracted.domain}.{extracted.suffix}".lower()
    return urlparse(url).netloc.lower().replace("www.", "")


def is_same_site(url: str, base_url: str) -> bool:
    """True when both URLs share a registered domain (subdomains allowed)."""
    return bool(url) and registered_domain(url) == registered_domain(base_url)


def normalize_image_url(src: str, base_url: str) -> Optional[str]:
    """Absolute image URL with only sizing query params kept."""
    absolute = absolutize(src, base_url)
    if not absolute:
        return None
    parsed = urlparse(absolute)
    kept = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=False) if k in _IMAGE_PARAMS]
    return urlunparse(parsed._replace(query=urlencode(kept), fragment=""))


def date_from_url(url: str) -> Optional[datetime]:
    """Publish date embedded in the URL path, as a UTC midnight datetime."""
    if not url:
        return None
    path = urlparse(url).path
    for pattern in _URL_DATE_PATTERNS:
        match = pattern.search(path)
        if not match:
            continue
        try:
            year, month, day = (int(g) for g in match.groups())
            return datetime(year, month, day, tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def build_lightweight_url(url: str, template: Optional[str]) -> Optional[str]:
    """Lightweight (AMP) variant of a canonical URL, or None if the source has none."""
    if not template:
        return None
    canonical = canonicalize_url(url)
    if template.startswith("{url}/") and canonical.endswith("/"):
        canonical = canonical.rstrip("/")
    lightweight = template.format(url=canonical)
    return None if lightweight == canonical else lightweight
