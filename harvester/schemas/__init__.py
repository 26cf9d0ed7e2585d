"""
Schemas package: all data models for the news harvester.

Models are organized by concern in submodules:
  - base.py: enums (tiers, outcomes, quality classes) and value objects
  - source.py: SourceConfig, the immutable per-source configuration
  - news.py: CandidateURL, FetchAttempt, ExtractedFields, ArticleRecord, run stats
"""

from harvester.schemas.base import (
    DiscoveryTier, FetchTier, FetchOutcome, QualityClass, RejectReason,
    RequestVariant, DEFAULT_VARIANTS, MetadataPresence, ScoreBreakdown,
)

from harvester.schemas.source import SourceConfig, DEFAULT_PLACEHOLDER_IMAGE

from harvester.schemas.news import (
    CandidateURL, FetchAttempt, ExtractedFields, FetchResult,
    CleanedContent, QualityAssessment, ArticleRecord, RunStats, HarvestReport,
)

__all__ = [
    # base
    "DiscoveryTier", "FetchTier", "FetchOutcome", "QualityClass", "RejectReason",
    "RequestVariant", "DEFAULT_VARIANTS", "MetadataPresence", "ScoreBreakdown",
    # source
    "SourceConfig", "DEFAULT_PLACEHOLDER_IMAGE",
    # news
    "CandidateURL", "FetchAttempt", "ExtractedFields", "FetchResult",
    "CleanedContent", "QualityAssessment", "ArticleRecord", "RunStats", "HarvestReport",
]
