"""
URLCandidateCollector: tier fallback, sitemap parsing, listing anchors,
relevance / freshness filters, canonical dedup and the candidate cap.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httpx

from harvester.news.collector import URLCandidateCollector
from harvester.schemas import DiscoveryTier
from harvester.tools.http_client import FetchClient

BASE = "https://news.example.com"
NOW = datetime(2025, 7, 15, 12, 0, tzinfo=timezone.utc)
EMPTY_FEED = "<rss version='2.0'><channel><title>Test Wire</title></channel></rss>"


def _collect(source, settings, routes, now=NOW):
    """Run collect() against a dict of url → (status, body)."""
    requested = []

    def handler(request):
        url = str(request.url)
        requested.append(url)
        status, body = routes.get(url, (404, "not found"))
        return httpx.Response(status, text=body)

    async def _run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            async with FetchClient(settings, http=http) as client:
                return await URLCandidateCollector(source, settings, client, now=now).collect()

    return asyncio.run(_run()), requested


def _urlset(entries):
    body = "".join(
        f"<url><loc>{loc}</loc>" + (f"<lastmod>{lastmod}</lastmod>" if lastmod else "") + "</url>"
        for loc, lastmod in entries
    )
    return f"<urlset xmlns='http://www.sitemaps.org/schemas/sitemap/0.9'>{body}</urlset>"


def _iso(dt):
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def _rss(items):
    body = "".join(
        f"<item><title>{title}</title><link>{link}</link>"
        + (f"<pubDate>{format_datetime(date)}</pubDate>" if date else "")
        + "</item>"
        for title, link, date in items
    )
    return f"<rss version='2.0'><channel><title>Test Wire</title>{body}</channel></rss>"


# ════════════════════════════════════════════════════════════════════
# Tier fallback
# ════════════════════════════════════════════════════════════════════

def test_empty_feed_falls_back_to_sitemap(settings, make_source):
    source = make_source(latest_sitemap_url=f"{BASE}/sitemaps/latest.xml")
    entries = [(f"{BASE}/news/story-{i}", _iso(NOW - timedelta(hours=5 * i))) for i in range(12)]
    routes = {
        f"{BASE}/feed.xml": (200, EMPTY_FEED),
        f"{BASE}/sitemaps/latest.xml": (200, _urlset(entries)),
    }
    candidates, _ = _collect(source, settings, routes)
    assert len(candidates) == 12
    assert all(c.source_hint == DiscoveryTier.SITEMAP for c in candidates)
    assert candidates[0].url == f"{BASE}/news/story-0"


def test_sitemap_capped(settings, make_source):
    source = make_source(latest_sitemap_url=f"{BASE}/sitemaps/latest.xml", max_candidates=5)
    entries = [(f"{BASE}/news/story-{i}", _iso(NOW - timedelta(hours=i))) for i in range(12)]
    routes = {
        f"{BASE}/feed.xml": (500, "error"),
        f"{BASE}/sitemaps/latest.xml": (200, _urlset(entries)),
    }
    candidates, _ = _collect(source, settings, routes)
    assert [c.url for c in candidates] == [f"{BASE}/news/story-{i}" for i in range(5)]


def test_first_productive_tier_wins(settings, rss_feed, make_source):
    source = make_source(latest_sitemap_url=f"{BASE}/sitemaps/latest.xml")
    routes = {f"{BASE}/feed.xml": (200, rss_feed([f"{BASE}/news/a", f"{BASE}/news/b"], now=NOW))}
    candidates, requested = _collect(source, settings, routes)
    assert [c.url for c in candidates] == [f"{BASE}/news/a", f"{BASE}/news/b"]
    assert f"{BASE}/sitemaps/latest.xml" not in requested


def test_all_tiers_failing_returns_empty(settings, make_source):
    source = make_source(listing_urls=[f"{BASE}/hk"])
    routes = {f"{BASE}/feed.xml": (503, "down"), f"{BASE}/hk": (500, "error")}
    candidates, requested = _collect(source, settings, routes)
    assert candidates == []
    assert requested == [f"{BASE}/feed.xml", f"{BASE}/hk"]


# ════════════════════════════════════════════════════════════════════
# Sitemap index
# ════════════════════════════════════════════════════════════════════

def test_index_selects_recent_period_sitemaps(settings, make_source):
    source = make_source(
        feed_urls=[],
        sitemap_index_url=f"{BASE}/sitemaps/index.xml",
        sitemap_pattern=r"/sitemaps/\d{4}-\d+\.xml$",
    )
    index = (
        "<sitemapindex xmlns='http://www.sitemaps.org/schemas/sitemap/0.9'>"
        + "".join(f"<sitemap><loc>{BASE}/sitemaps/2025-{m}.xml</loc></sitemap>" for m in (4, 5, 6, 7))
        + f"<sitemap><loc>{BASE}/sitemaps/video.xml</loc></sitemap>"
        "</sitemapindex>"
    )
    routes = {
        f"{BASE}/sitemaps/index.xml": (200, index),
        f"{BASE}/sitemaps/2025-6.xml": (200, _urlset([(f"{BASE}/news/june", _iso(NOW - timedelta(days=20)))])),
        f"{BASE}/sitemaps/2025-7.xml": (200, _urlset([(f"{BASE}/news/july", _iso(NOW - timedelta(days=1)))])),
    }
    candidates, requested = _collect(source, settings.model_copy(update={"max_sitemaps": 2}), routes)
    assert [c.url for c in candidates] == [f"{BASE}/news/july"]
    assert f"{BASE}/sitemaps/2025-5.xml" not in requested
    assert f"{BASE}/sitemaps/video.xml" not in requested


def test_news_publication_date_preferred(settings, make_source):
    source = make_source(feed_urls=[], latest_sitemap_url=f"{BASE}/latest.xml")
    xml = (
        "<urlset xmlns='http://www.sitemaps.org/schemas/sitemap/0.9' "
        "xmlns:news='http://www.google.com/schemas/sitemap-news/0.9'>"
        f"<url><loc>{BASE}/news/fresh</loc><lastmod>2020-01-01</lastmod>"
        f"<news:news><news:publication_date>{_iso(NOW - timedelta(hours=3))}</news:publication_date>"
        "<news:title>Fresh story</news:title></news:news></url>"
        "</urlset>"
    )
    candidates, _ = _collect(source, settings, {f"{BASE}/latest.xml": (200, xml)})
    assert len(candidates) == 1
    assert candidates[0].title_hint == "Fresh story"


# ════════════════════════════════════════════════════════════════════
# Listing pages
# ════════════════════════════════════════════════════════════════════

def test_listing_anchors_same_site_and_pattern(settings, make_source):
    source = make_source(feed_urls=[], listing_urls=[f"{BASE}/hk"], link_pattern=r"/news/\d{4}/\d{2}/\d{2}/")
    html = (
        "<html><body>"
        "<a href='/news/2025/07/14/ferry-service'>Ferry service resumes</a>"
        "<a href='/news/2025/07/15/harbour-reopens'>Harbour reopens</a>"
        "<a href='https://other.org/news/2025/07/15/elsewhere'>Elsewhere</a>"
        "<a href='/about'>About</a>"
        "<a href='javascript:void(0)'>Menu</a>"
        "</body></html>"
    )
    candidates, _ = _collect(source, settings, {f"{BASE}/hk": (200, html)})
    assert [c.url for c in candidates] == [
        f"{BASE}/news/2025/07/15/harbour-reopens",
        f"{BASE}/news/2025/07/14/ferry-service",
    ]
    assert candidates[0].title_hint == "Harbour reopens"
    assert candidates[0].source_hint == DiscoveryTier.LISTING


# ════════════════════════════════════════════════════════════════════
# Filters
# ════════════════════════════════════════════════════════════════════

def test_freshness_window_and_undated(settings, make_source):
    items = [
        ("Fresh", f"{BASE}/news/fresh", NOW - timedelta(days=1)),
        ("Stale", f"{BASE}/news/stale", NOW - timedelta(days=10)),
        ("Undated", f"{BASE}/news/undated", None),
    ]
    routes = {f"{BASE}/feed.xml": (200, _rss(items))}

    candidates, _ = _collect(make_source(), settings, routes)
    assert [c.url for c in candidates] == [f"{BASE}/news/fresh", f"{BASE}/news/undated"]

    candidates, _ = _collect(make_source(require_date=True), settings, routes)
    assert [c.url for c in candidates] == [f"{BASE}/news/fresh"]


def test_url_date_overrides_feed_date(settings, make_source):
    items = [("Old slug", f"{BASE}/news/articles/2025-06-01/old-story", NOW - timedelta(hours=2))]
    candidates, _ = _collect(make_source(), settings, {f"{BASE}/feed.xml": (200, _rss(items))})
    assert candidates == []


def test_relevance_keywords_and_paths(settings, make_source):
    source = make_source(
        relevance_path_patterns=[r"/news/articles/"],
        relevance_keywords=["hong-kong", "china"],
    )
    items = [
        ("Asia", f"{BASE}/news/articles/2025-07-15/hong-kong-rates", NOW),
        ("Wrong path", f"{BASE}/opinion/2025-07-15/hong-kong-view", NOW),
        ("US only", f"{BASE}/news/articles/2025-07-15/us-payrolls", NOW),
        ("Keyword in title: China", f"{BASE}/news/articles/2025-07-15/trade-deal", NOW),
    ]
    candidates, _ = _collect(source, settings, {f"{BASE}/feed.xml": (200, _rss(items))})
    assert [c.url for c in candidates] == [
        f"{BASE}/news/articles/2025-07-15/hong-kong-rates",
        f"{BASE}/news/articles/2025-07-15/trade-deal",
    ]


def test_tracking_variants_collapse_to_one_candidate(settings, make_source):
    items = [
        ("A", f"{BASE}/news/a?utm_source=rss", NOW - timedelta(hours=1)),
        ("A again", f"{BASE}/news/a", NOW - timedelta(hours=2)),
    ]
    candidates, _ = _collect(make_source(), settings, {f"{BASE}/feed.xml": (200, _rss(items))})
    assert [c.url for c in candidates] == [f"{BASE}/news/a"]
