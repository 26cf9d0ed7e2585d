"""
Shared fixtures: zero-delay settings, a test source, page builders and a
stubbed HTTP layer (httpx.MockTransport, no network).
"""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httpx
import pytest

from harvester.config import HarvestSettings
from harvester.schemas import SourceConfig

BASE_URL = "https://news.example.com"

PARAGRAPH = (
    "Paragraph {i} of story {n}: the harbour authority said on Tuesday that container "
    "volumes rose for a third straight month as regional trade recovered."
)


def _article_html(
    n: int = 1,
    title: str = None,
    paragraphs: int = 5,
    image: str = None,
    published: str = None,
    container: str = "story-body",
) -> str:
    title = title or f"Harbour volumes climb for third month, story {n}"
    body = "".join(f"<p>{PARAGRAPH.format(i=i, n=n)}</p>" for i in range(1, paragraphs + 1))
    head = f"<title>{title} - Test Wire</title><meta property='og:title' content='{title}'>"
    if image:
        head += f"<meta property='og:image' content='{image}'>"
    if published:
        head += f"<meta property='article:published_time' content='{published}'>"
    return (
        f"<html><head>{head}</head><body>"
        f"<nav><a href='/'>Home</a><a href='/markets'>Markets</a></nav>"
        f"<h1>{title}</h1><div class='{container}'>{body}</div>"
        f"<footer>Copyright Test Wire</footer></body></html>"
    )


def _rss_feed(links, now: datetime = None) -> str:
    now = now or datetime.now(timezone.utc)
    items = "".join(
        f"<item><title>Story {i}</title><link>{link}</link>"
        f"<pubDate>{format_datetime(now - timedelta(hours=i + 1))}</pubDate></item>"
        for i, link in enumerate(links)
    )
    return f"<rss version='2.0'><channel><title>Test Wire</title>{items}</channel></rss>"


def _source(**overrides) -> SourceConfig:
    data = {
        "id": "testwire",
        "name": "Test Wire",
        "base_url": BASE_URL,
        "feed_urls": [f"{BASE_URL}/feed.xml"],
        "body_selectors": ["div.story-body"],
        "title_suffix_pattern": r"\s*-\s*Test Wire$",
        "lightweight_url_template": None,
        "min_body_length": 150,
    }
    data.update(overrides)
    return SourceConfig.load(data)


@pytest.fixture
def settings():
    return HarvestSettings(
        concurrency=2,
        per_url_delay=0,
        batch_size=20,
        batch_delay=0,
        variant_backoff=0,
        fetch_timeout=5,
        discovery_timeout=5,
        provider_api_key="",
        text_proxy_endpoint="",
    )


@pytest.fixture
def make_source():
    return _source


@pytest.fixture
def article_html():
    return _article_html


@pytest.fixture
def rss_feed():
    return _rss_feed


@pytest.fixture
def mock_http():
    """Factory: handler → httpx.AsyncClient routed through MockTransport."""
    def _make(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return _make
