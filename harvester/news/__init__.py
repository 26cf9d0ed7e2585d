"""
News harvesting core.

Modules:
- collector (URLCandidateCollector): RSS / sitemap / listing URL discovery
- fetch_chain (FetchStrategyChain): provider parse → AMP → canonical HTML → text proxy
- worker_pool (WorkerPool): bounded-concurrency queue workers
- extractor (ContentExtractor): payload → title/date/image/body
- cleaner: style/JSON/boilerplate stripping + structure metrics
- quality: 0-100 score and excellent/good/fair/poor class
- dedup: canonical URL, content hash, stable ids, intra-run dedup
- pipeline (SourceHarvester): one source run end-to-end
"""

from harvester.news.cleaner import clean_content, detect_contamination, strip_noise_subtrees
from harvester.news.collector import URLCandidateCollector
from harvester.news.dedup import (
    KnownArticleIndex, RunDeduplicator, compute_content_hash, derive_record_id,
)
from harvester.news.extractor import ContentExtractor
from harvester.news.fetch_chain import FetchStrategyChain
from harvester.news.pipeline import SourceHarvester, harvest_source
from harvester.news.quality import classify_score, score_article
from harvester.news.worker_pool import WorkerPool

__all__ = [
    "clean_content", "detect_contamination", "strip_noise_subtrees",
    "URLCandidateCollector",
    "KnownArticleIndex", "RunDeduplicator", "compute_content_hash", "derive_record_id",
    "ContentExtractor",
    "FetchStrategyChain",
    "SourceHarvester", "harvest_source",
    "classify_score", "score_article",
    "WorkerPool",
]
