"""
Helper utility functions shared by discovery and extraction.
"""

import html
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

_DATE_FORMATS = [
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%d/%m/%Y %H:%M",
    "%d %B %Y",
    "%B %d, %Y",
]


def parse_datetime(value) -> Optional[datetime]:
    """Parse the date formats feeds, sitemaps and article pages use. Always tz-aware (UTC default).

    Returns None instead of guessing "now": an unknown date must not look fresh.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
        return parse_datetime(value)

    text = str(value).strip()
    if not text:
        return None
    # "2025-07-14T08:30:00Z" → "+00:00" offset so %z accepts it
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = re.sub(r"([+-]\d{2}):(\d{2})$", r"\1\2", text)

    for fmt in _DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    # RFC 822 (RSS pubDate): "Mon, 14 Jul 2025 08:30:00 GMT"
    try:
        parsed = parsedate_to_datetime(str(value).strip())
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def strip_html_tags(text: str) -> str:
    """Remove HTML tags and decode entities, for feed titles/summaries."""
    if not text:
        return ""
    clean = re.sub(r"<[^>]+>", "", text)
    clean = html.unescape(clean).replace("\xa0", " ")
    return re.sub(r"\s+", " ", clean).strip()


def truncate_text(text: str, max_len: int = 60) -> str:
    """Truncate text with ellipsis."""
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + "..."
