"""
Per-source harvest run.

FLOW:
  validate config (the only fail-fast step)
    → URLCandidateCollector.collect()
    → WorkerPool: per URL  FetchStrategyChain → clean → length check → score → record
    → RunDeduplicator, in candidate order
    → HarvestReport (records + RunStats)

A run owns nothing beyond its own lifetime: the FetchClient is created per
run (or handed in by the caller) and closed when the run created it.
"""

import logging
import re
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import httpx

from ..config import Settings, get_settings, get_source_config
from ..errors import ConfigurationError
from ..schemas.base import FetchOutcome, MetadataPresence, RejectReason
from ..schemas.news import ArticleRecord, CandidateURL, FetchAttempt, HarvestReport, RunStats
from ..schemas.source import SourceConfig
from ..shared.helpers import truncate_text
from ..tools.http_client import FetchClient
from ..tools.url_utils import canonicalize_url
from .cleaner import clean_content
from .collector import URLCandidateCollector
from .dedup import KnownArticleIndex, RunDeduplicator, compute_content_hash, derive_record_id
from .extractor import ContentExtractor
from .fetch_chain import FetchStrategyChain
from .quality import score_article
from .worker_pool import WorkerPool

logger = logging.getLogger(__name__)

SourceLike = Union[SourceConfig, Dict[str, Any], str]
ClientLike = Union[FetchClient, httpx.AsyncClient, None]


def resolve_source(source: SourceLike) -> SourceConfig:
    """SourceConfig as-is, raw dict validated, registry id looked up."""
    if isinstance(source, SourceConfig):
        return source
    if isinstance(source, dict):
        return SourceConfig.load(source)
    if isinstance(source, str):
        return get_source_config(source)
    raise ConfigurationError(str(source), f"unsupported source config type {type(source).__name__}")


class SourceHarvester:
    """
    One run over one source.

    Usage:
        report = await SourceHarvester("scmp", settings).run()
        for record in report.records:
            payload = record.to_payload()
    """

    def __init__(
        self,
        source: SourceLike,
        settings: Optional[Settings] = None,
        client: ClientLike = None,
        known: Optional[KnownArticleIndex] = None,
        now: Optional[datetime] = None,
    ):
        # Config problems surface here, before any request is made
        self.source = resolve_source(source)
        self.settings = settings or get_settings()
        self.known = known
        self.now = now
        self._client = client
        self._article_id_pattern = (
            re.compile(self.source.article_id_pattern) if self.source.article_id_pattern else None
        )

    def _open_client(self):
        """(FetchClient, owned) for this run."""
        if isinstance(self._client, FetchClient):
            return self._client, False
        if isinstance(self._client, httpx.AsyncClient):
            return FetchClient(self.settings, http=self._client), False
        return FetchClient(self.settings), True

    async def run(self) -> HarvestReport:
        started = time.monotonic()
        name = self.source.display_name
        stats = RunStats(source=self.source.id)

        client, owned = self._open_client()
        try:
            collector = URLCandidateCollector(self.source, self.settings, client, now=self.now)
            candidates = await collector.collect()
            stats.candidates = len(candidates)

            chain = FetchStrategyChain(self.source, self.settings, client, ContentExtractor(self.source))
            pool = WorkerPool(
                concurrency=self.settings.concurrency,
                per_item_delay=self.settings.per_url_delay,
                batch_size=self.settings.batch_size,
                batch_delay=self.settings.batch_delay,
            )

            async def handle(candidate: CandidateURL) -> Optional[ArticleRecord]:
                try:
                    return await self.process(candidate, chain, stats)
                except Exception:
                    stats.count_reject(RejectReason.ERROR)
                    raise

            built = await pool.run(candidates, handle)
        finally:
            if owned:
                await client.aclose()

        dedup = RunDeduplicator(self.known)
        records: List[ArticleRecord] = []
        for record in built:
            if dedup.admit(record):
                records.append(record)
                stats.count_class(record.quality_class)
            else:
                stats.count_reject(RejectReason.DUPLICATE)

        stats.records = len(records)
        stats.elapsed_seconds = round(time.monotonic() - started, 2)
        logger.info(
            f"[OK] {name}: {stats.records} records from {stats.candidates} candidates "
            f"in {stats.elapsed_seconds:.1f}s | tiers={stats.accepted_by_tier} "
            f"rejected={stats.rejected} classes={stats.by_class}"
        )
        return HarvestReport(records=records, stats=stats)

    # ── Per-URL stages ───────────────────────────────────────────────────

    async def process(
        self,
        candidate: CandidateURL,
        chain: FetchStrategyChain,
        stats: RunStats,
    ) -> Optional[ArticleRecord]:
        """Fetch chain → clean → validate → score → record, for one candidate."""
        attempts: List[FetchAttempt] = []
        result = await chain.fetch(candidate.url, candidate.title_hint, attempts)
        if result is None:
            stats.count_reject(self._exhausted_reason(attempts))
            return None

        stats.fetched += 1
        stats.count_tier(result.tier)
        fields = result.fields

        cleaned = clean_content(fields.body_text, self.source.boilerplate_patterns)
        if len(cleaned.body) <= self.source.min_body_length:
            logger.info(
                f"[SKIP] {result.url}: body {len(cleaned.body)} chars after cleaning "
                f"(minimum {self.source.min_body_length})"
            )
            stats.count_reject(RejectReason.SHORT_BODY)
            return None

        canonical = canonicalize_url(result.url)
        content_hash = compute_content_hash(fields.title, cleaned.body)
        source_article_id = self.source_article_id(canonical)
        has_image = bool(fields.cover_image_url) and fields.cover_image_url != self.source.placeholder_image

        assessment = score_article(cleaned, MetadataPresence(
            title=fields.title,
            has_image=has_image,
            has_date=fields.publish_date is not None,
            has_identity=bool(source_article_id or canonical),
        ))
        if assessment.issues:
            logger.debug(f"{truncate_text(fields.title)}: {'; '.join(assessment.issues)}")

        return ArticleRecord(
            id=derive_record_id(self.source.id, canonical, content_hash, self.source.stable_urls),
            canonical_url=canonical,
            content_hash=content_hash,
            source=self.source.id,
            title=fields.title,
            body=cleaned.body,
            cover_image_url=fields.cover_image_url,
            published_at=fields.publish_date or candidate.freshness_date,
            quality_score=assessment.score,
            quality_class=assessment.quality_class,
            sponsored=fields.sponsored,
            source_article_id=source_article_id,
            fetch_tier=result.tier,
        )

    def source_article_id(self, canonical_url: str) -> Optional[str]:
        if not self._article_id_pattern:
            return None
        match = self._article_id_pattern.search(canonical_url)
        if not match:
            return None
        return match.group(1) if match.groups() else match.group(0)

    @staticmethod
    def _exhausted_reason(attempts: List[FetchAttempt]) -> RejectReason:
        """Last rejection reason seen along the chain, else plain exhaustion."""
        for attempt in reversed(attempts):
            if attempt.outcome == FetchOutcome.REJECTED:
                try:
                    return RejectReason(attempt.detail)
                except ValueError:
                    break
        return RejectReason.FETCH_EXHAUSTED


async def harvest_source(
    source: SourceLike,
    settings: Optional[Settings] = None,
    client: ClientLike = None,
    known: Optional[KnownArticleIndex] = None,
) -> HarvestReport:
    """Harvest one source. Raises ConfigurationError only; everything else becomes fewer records."""
    return await SourceHarvester(source, settings, client, known).run()
