"""
URL candidate collection for one source.

DISCOVERY TIERS (priority order, first tier with >= 1 kept candidate wins):
  1. RSS        configured feed URLs, parsed with feedparser
  2. SITEMAP    latest sitemap + last N period sitemaps from the index
  3. LISTING    anchors scraped from homepage / section pages

FILTERS (applied to every tier's raw output, in order):
  canonical dedup → relevance (keywords / path patterns) → freshness
  (URL-embedded date, else feed/sitemap date) → newest first → cap

A failing tier (unreachable, unparseable) is logged and skipped. All tiers
empty means an empty candidate list, never an exception.
"""

import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import feedparser
from bs4 import BeautifulSoup

from ..config import Settings
from ..errors import DiscoveryError, FetchError
from ..schemas.base import DiscoveryTier
from ..schemas.news import CandidateURL
from ..schemas.source import SourceConfig
from ..shared.helpers import parse_datetime, strip_html_tags
from ..tools.http_client import FetchClient
from ..tools.url_utils import absolutize, canonicalize_url, date_from_url, is_same_site

logger = logging.getLogger(__name__)


class URLCandidateCollector:
    """Discovers, filters and caps candidate article URLs for one source."""

    def __init__(
        self,
        source: SourceConfig,
        settings: Settings,
        client: FetchClient,
        now: Optional[datetime] = None,
    ):
        self.source = source
        self.settings = settings
        self.client = client
        self._now = now
        self._path_patterns = [re.compile(p) for p in source.relevance_path_patterns]
        self._keywords = [k.lower() for k in source.relevance_keywords]
        self._link_pattern = re.compile(source.link_pattern) if source.link_pattern else None
        self._sitemap_pattern = re.compile(source.sitemap_pattern) if source.sitemap_pattern else None

    @property
    def now(self) -> datetime:
        return self._now or datetime.now(timezone.utc)

    @property
    def max_age_days(self) -> int:
        return self.source.max_age_days or self.settings.default_max_age_days

    @property
    def max_candidates(self) -> int:
        return self.source.max_candidates or self.settings.default_max_candidates

    # ══════════════════════════════════════════════════════════════════════
    # ENTRY POINT
    # ══════════════════════════════════════════════════════════════════════

    def _tiers(self):
        tiers = []
        if self.source.feed_urls:
            tiers.append((DiscoveryTier.RSS, self.discover_rss))
        if self.source.latest_sitemap_url or self.source.sitemap_index_url:
            tiers.append((DiscoveryTier.SITEMAP, self.discover_sitemaps))
        if self.source.listing_urls:
            tiers.append((DiscoveryTier.LISTING, self.discover_listings))
        return tiers

    async def collect(self) -> List[CandidateURL]:
        name = self.source.display_name
        for tier, discover in self._tiers():
            try:
                raw = await discover()
            except DiscoveryError as e:
                logger.warning(f"[FAIL] {name}: {e}")
                continue

            kept = self.filter_candidates(raw)
            logger.info(f"[{tier.value.upper()}] {name}: {len(raw)} discovered, {len(kept)} kept")
            if kept:
                return kept

        logger.warning(f"[SKIP] {name}: no candidates from any discovery tier")
        return []

    # ══════════════════════════════════════════════════════════════════════
    # TIERS
    # ══════════════════════════════════════════════════════════════════════

    async def _get(self, tier: DiscoveryTier, url: str) -> str:
        try:
            return await self.client.fetch_discovery(url)
        except FetchError as e:
            raise DiscoveryError(tier.value, url, e.reason) from e

    async def _gather_documents(self, tier: DiscoveryTier, urls) -> List[Tuple[str, str]]:
        """Fetch several discovery documents; individual failures are logged, all failing raises."""
        results = await asyncio.gather(*(self._get(tier, u) for u in urls), return_exceptions=True)
        documents = []
        for url, result in zip(urls, results):
            if isinstance(result, DiscoveryError):
                logger.debug(f"{result}")
                continue
            if isinstance(result, BaseException):
                raise result
            documents.append((url, result))
        if urls and not documents:
            raise DiscoveryError(tier.value, urls[0], f"all {len(urls)} documents unreachable")
        return documents

    async def discover_rss(self) -> List[CandidateURL]:
        candidates: List[CandidateURL] = []
        documents = await self._gather_documents(DiscoveryTier.RSS, list(self.source.feed_urls))
        for feed_url, text in documents:
            feed = feedparser.parse(text)
            if feed.bozo and not feed.entries:
                logger.debug(f"Unparseable feed {feed_url}: {feed.get('bozo_exception')}")
                continue
            for entry in feed.entries:
                link = entry.get("link")
                url = absolutize(link, self.source.base_url) if link else None
                if not url:
                    continue
                candidates.append(CandidateURL(
                    url=url,
                    source_hint=DiscoveryTier.RSS,
                    freshness_date=self._entry_date(entry),
                    title_hint=strip_html_tags(entry.get("title", "")),
                ))
        return candidates

    @staticmethod
    def _entry_date(entry) -> Optional[datetime]:
        for key in ("published_parsed", "updated_parsed"):
            parsed = entry.get(key)
            if parsed:
                return datetime(*parsed[:6], tzinfo=timezone.utc)
        return parse_datetime(entry.get("published") or entry.get("updated"))

    async def discover_sitemaps(self) -> List[CandidateURL]:
        sitemap_urls: List[str] = []
        if self.source.latest_sitemap_url:
            sitemap_urls.append(self.source.latest_sitemap_url)

        if self.source.sitemap_index_url:
            try:
                index_xml = await self._get(DiscoveryTier.SITEMAP, self.source.sitemap_index_url)
            except DiscoveryError as e:
                if not sitemap_urls:
                    raise
                logger.debug(f"{e}; continuing with latest sitemap only")
            else:
                sitemap_urls.extend(self.period_sitemaps(index_xml))

        documents = await self._gather_documents(DiscoveryTier.SITEMAP, sitemap_urls)
        candidates: List[CandidateURL] = []
        for _, xml in documents:
            candidates.extend(self.parse_sitemap(xml))
        return candidates

    def period_sitemaps(self, index_xml: str) -> List[str]:
        """Child sitemaps matching the source pattern; the last N listed are the most recent."""
        soup = BeautifulSoup(index_xml, "xml")
        locs = [loc.get_text(strip=True) for sm in soup.find_all("sitemap") for loc in sm.find_all("loc")]
        if self._sitemap_pattern:
            locs = [loc for loc in locs if self._sitemap_pattern.search(loc)]
        return locs[-self.settings.max_sitemaps:]

    def parse_sitemap(self, xml: str) -> List[CandidateURL]:
        soup = BeautifulSoup(xml, "xml")
        candidates = []
        for node in soup.find_all("url"):
            loc = node.find("loc")
            if not loc or not loc.get_text(strip=True):
                continue
            published = node.find("publication_date")
            lastmod = node.find("lastmod")
            news_title = node.find("title")
            dated = published if published is not None else lastmod
            date_text = dated.get_text(strip=True) if dated is not None else None
            candidates.append(CandidateURL(
                url=loc.get_text(strip=True),
                source_hint=DiscoveryTier.SITEMAP,
                freshness_date=parse_datetime(date_text),
                title_hint=news_title.get_text(strip=True) if news_title else "",
            ))
        return candidates

    async def discover_listings(self) -> List[CandidateURL]:
        documents = await self._gather_documents(DiscoveryTier.LISTING, list(self.source.listing_urls))
        candidates: List[CandidateURL] = []
        for page_url, html_content in documents:
            candidates.extend(self.parse_listing(html_content, page_url))
        return candidates

    def parse_listing(self, html_content: str, page_url: str) -> List[CandidateURL]:
        soup = BeautifulSoup(html_content, "lxml")
        candidates = []
        for anchor in soup.find_all("a", href=True):
            url = absolutize(anchor["href"], page_url)
            if not url or not is_same_site(url, self.source.base_url):
                continue
            if self._link_pattern and not self._link_pattern.search(canonicalize_url(url)):
                continue
            candidates.append(CandidateURL(
                url=url,
                source_hint=DiscoveryTier.LISTING,
                title_hint=anchor.get_text(" ", strip=True),
            ))
        return candidates

    # ══════════════════════════════════════════════════════════════════════
    # FILTERS
    # ══════════════════════════════════════════════════════════════════════

    def is_relevant(self, candidate: CandidateURL) -> bool:
        """Path patterns and keywords each apply only when configured."""
        url = candidate.url
        if self._path_patterns and not any(p.search(url) for p in self._path_patterns):
            return False
        if self._keywords:
            haystack = f"{url} {candidate.title_hint}".lower()
            if not any(k in haystack for k in self._keywords):
                return False
        return True

    def is_fresh(self, candidate: CandidateURL) -> bool:
        if candidate.freshness_date is None:
            return not self.source.require_date
        return self.now - candidate.freshness_date <= timedelta(days=self.max_age_days)

    def filter_candidates(self, candidates: List[CandidateURL]) -> List[CandidateURL]:
        seen = set()
        kept: List[CandidateURL] = []
        for candidate in candidates:
            canonical = canonicalize_url(candidate.url)
            if canonical in seen:
                continue
            seen.add(canonical)
            candidate = candidate.model_copy(update={
                "url": canonical,
                "freshness_date": date_from_url(canonical) or candidate.freshness_date,
            })
            if self.is_relevant(candidate) and self.is_fresh(candidate):
                kept.append(candidate)

        # Newest first so the cap keeps the freshest; undated keep discovery order at the end
        dated = sorted((c for c in kept if c.freshness_date), key=lambda c: c.freshness_date, reverse=True)
        undated = [c for c in kept if c.freshness_date is None]
        return (dated + undated)[:self.max_candidates]
