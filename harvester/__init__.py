"""
News harvester: heterogeneous news sites → quality-scored, deduplicated article records.

    report = await harvest_source("scmp", HarvestSettings(concurrency=6))
"""

from harvester.config import HarvestSettings, Settings, get_settings, get_source_config, list_source_ids
from harvester.errors import ConfigurationError, DiscoveryError, FetchError, HarvestError
from harvester.news import (
    ContentExtractor, FetchStrategyChain, KnownArticleIndex, RunDeduplicator,
    SourceHarvester, URLCandidateCollector, WorkerPool,
    classify_score, clean_content, compute_content_hash, derive_record_id,
    harvest_source, score_article,
)
from harvester.schemas import ArticleRecord, HarvestReport, RunStats, SourceConfig
from harvester.tools import FetchClient, canonicalize_url

__all__ = [
    "HarvestSettings", "Settings", "get_settings", "get_source_config", "list_source_ids",
    "ConfigurationError", "DiscoveryError", "FetchError", "HarvestError",
    "ContentExtractor", "FetchStrategyChain", "KnownArticleIndex", "RunDeduplicator",
    "SourceHarvester", "URLCandidateCollector", "WorkerPool",
    "classify_score", "clean_content", "compute_content_hash", "derive_record_id",
    "harvest_source", "score_article",
    "ArticleRecord", "HarvestReport", "RunStats", "SourceConfig",
    "FetchClient", "canonicalize_url",
]
