"""
Common enums and value objects used across the harvester.

These define the vocabulary of a run: which discovery tier found a URL,
which fetch tier produced a payload, how an attempt ended, and which
quality bucket an article landed in.
"""

from enum import Enum

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════════════════════

class DiscoveryTier(str, Enum):
    """URL discovery strategies, in priority order."""
    RSS = "rss"
    SITEMAP = "sitemap"
    LISTING = "listing"


class FetchTier(str, Enum):
    """Content fetch strategies, in priority order."""
    PROVIDER_PARSE = "provider_parse"    # provider-side structured (JSON) parse
    LIGHTWEIGHT = "lightweight"          # AMP / lite markup variant
    CANONICAL_HTML = "canonical_html"    # canonical URL parsed as HTML
    TEXT_PROXY = "text_proxy"            # last-resort text-extraction proxy


class FetchOutcome(str, Enum):
    """How a single fetch attempt ended."""
    ACCEPTED = "accepted"        # payload parsed and passed acceptance
    REJECTED = "rejected"        # payload parsed but title/body insufficient
    FAILED = "failed"            # network error, timeout, non-2xx
    SKIPPED = "skipped"          # tier not applicable (e.g. no provider key)


class QualityClass(str, Enum):
    """Discrete quality bucket derived from the 0-100 score."""
    EXCELLENT = "excellent"   # >= 80
    GOOD = "good"             # 60-79
    FAIR = "fair"             # 40-59
    POOR = "poor"             # < 40


class RejectReason(str, Enum):
    """Why a candidate URL produced no record. Silent: logged and counted only."""
    FETCH_EXHAUSTED = "fetch_exhausted"
    MISSING_TITLE = "missing_title"
    SHORT_BODY = "short_body"
    DUPLICATE = "duplicate"
    ERROR = "error"


# ══════════════════════════════════════════════════════════════════════════════
# VALUE OBJECTS
# ══════════════════════════════════════════════════════════════════════════════

class RequestVariant(BaseModel):
    """
    One egress-region/device combination used to get past source-side blocking.

    Direct fetches express it as Accept-Language + User-Agent; provider
    fetches pass it through as query parameters.
    """
    region: str = "us"
    device: str = "desktop"      # desktop | mobile

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return f"{self.region}/{self.device}"


DEFAULT_VARIANTS = (
    RequestVariant(region="hk", device="mobile"),
    RequestVariant(region="sg", device="mobile"),
    RequestVariant(region="us", device="mobile"),
)


class MetadataPresence(BaseModel):
    """Which metadata fields an article carries. Input to metadata scoring."""
    title: str = ""
    has_image: bool = False
    has_date: bool = False
    has_identity: bool = False     # source article id or canonical URL

    model_config = {"frozen": True}


class ScoreBreakdown(BaseModel):
    """The four weighted sub-scores."""
    length: int = Field(default=0, ge=0, le=30)
    structure: int = Field(default=0, ge=0, le=25)
    cleanliness: int = Field(default=0, ge=0, le=25)
    metadata: int = Field(default=0, ge=0, le=20)

    @property
    def total(self) -> int:
        return self.length + self.structure + self.cleanliness + self.metadata
