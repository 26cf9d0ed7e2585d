"""
Article data models, from discovered URL to emitted record.

Hierarchy: CandidateURL → FetchAttempt* → ExtractedFields → CleanedContent
→ QualityAssessment → ArticleRecord

Everything except ArticleRecord lives only inside a run. ArticleRecord is
frozen: a re-scrape produces a new record, reconciliation is the storage
collaborator's job.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from .base import (
    DiscoveryTier, FetchOutcome, FetchTier, QualityClass, RejectReason,
    RequestVariant, ScoreBreakdown,
)


class CandidateURL(BaseModel):
    """A discovered URL that may hold a publishable article."""
    url: str
    discovered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source_hint: DiscoveryTier = DiscoveryTier.RSS
    freshness_date: Optional[datetime] = None
    title_hint: str = ""          # feed/listing title, used when the page has none

    model_config = {"use_enum_values": False}


class FetchAttempt(BaseModel):
    """Bookkeeping for one strategy try."""
    tier: FetchTier
    variant: Optional[RequestVariant] = None
    outcome: FetchOutcome
    detail: str = ""


class ExtractedFields(BaseModel):
    """Output of extraction, before cleaning."""
    title: str = ""
    publish_date: Optional[datetime] = None
    body_text: str = ""
    cover_image_url: Optional[str] = None
    sponsored: bool = False

    @field_validator("title", "body_text", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return v if v is not None else ""

    def is_acceptable(self, min_body_length: int) -> bool:
        """Title present AND body strictly longer than the source minimum."""
        return bool(self.title.strip()) and len(self.body_text.strip()) > min_body_length


class FetchResult(BaseModel):
    """The first fetch tier whose payload passed acceptance."""
    url: str
    tier: FetchTier
    variant: Optional[RequestVariant] = None
    fields: ExtractedFields
    attempts: List[FetchAttempt] = Field(default_factory=list)


class CleanedContent(BaseModel):
    """Cleaned body plus the structural metrics used for scoring."""
    body: str
    paragraphs: int = 0
    sentences: int = 0
    words: int = 0
    avg_words_per_paragraph: int = 0
    avg_words_per_sentence: int = 0
    readability: int = 0
    contamination: List[str] = Field(default_factory=list)   # labels removed during cleaning


class QualityAssessment(BaseModel):
    """Score, class and human-readable findings for one article."""
    score: int = Field(ge=0, le=100)
    quality_class: QualityClass
    breakdown: ScoreBreakdown
    issues: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class ArticleRecord(BaseModel):
    """
    Terminal output of the pipeline.

    id is derived from (source, canonical_url), or from content_hash when
    the source's URLs are unstable, so re-runs reproduce the same id.
    """
    id: UUID
    canonical_url: str
    content_hash: str
    source: str
    title: str
    body: str
    cover_image_url: Optional[str] = None
    published_at: Optional[datetime] = None
    quality_score: int = Field(ge=0, le=100)
    quality_class: QualityClass
    sponsored: bool = False

    # Provenance (not part of the collaborator payload)
    source_article_id: Optional[str] = None
    fetch_tier: Optional[FetchTier] = None

    model_config = {"frozen": True}

    def to_payload(self) -> Dict[str, Any]:
        """Shape handed to the enrichment/storage collaborator."""
        return {
            "id": str(self.id),
            "source": self.source,
            "canonicalUrl": self.canonical_url,
            "contentHash": self.content_hash,
            "title": self.title,
            "body": self.body,
            "coverImageUrl": self.cover_image_url,
            "publishedAt": self.published_at.isoformat() if self.published_at else None,
            "qualityScore": self.quality_score,
            "qualityClass": self.quality_class.value,
            "sponsored": self.sponsored,
        }


class RunStats(BaseModel):
    """Counters for one source run. Logged as the run summary."""
    source: str
    candidates: int = 0
    fetched: int = 0
    records: int = 0
    accepted_by_tier: Dict[str, int] = Field(default_factory=dict)
    rejected: Dict[str, int] = Field(default_factory=dict)
    by_class: Dict[str, int] = Field(default_factory=dict)
    elapsed_seconds: float = 0.0

    def count_reject(self, reason: RejectReason) -> None:
        self.rejected[reason.value] = self.rejected.get(reason.value, 0) + 1

    def count_tier(self, tier: FetchTier) -> None:
        self.accepted_by_tier[tier.value] = self.accepted_by_tier.get(tier.value, 0) + 1

    def count_class(self, quality_class: QualityClass) -> None:
        self.by_class[quality_class.value] = self.by_class.get(quality_class.value, 0) + 1


class HarvestReport(BaseModel):
    """Records emitted by one source run, in candidate order, plus stats."""
    records: List[ArticleRecord] = Field(default_factory=list)
    stats: RunStats
