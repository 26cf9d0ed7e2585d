"""
Per-source configuration.

One immutable SourceConfig per news site, consumed by the generic
collector/extractor. No per-source subclasses: everything that varies
between sites (feeds, selectors, markers, thresholds) is data here.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..errors import ConfigurationError
from .base import DEFAULT_VARIANTS, RequestVariant

DEFAULT_PLACEHOLDER_IMAGE = (
    "https://images.unsplash.com/photo-1504711434969-e33886168f5c?w=800&h=400&fit=crop"
)


class SourceConfig(BaseModel):
    """Immutable configuration for one news source."""
    id: str
    name: str = ""
    base_url: str

    # Discovery
    feed_urls: Tuple[str, ...] = ()
    sitemap_index_url: Optional[str] = None
    latest_sitemap_url: Optional[str] = None
    sitemap_pattern: Optional[str] = None          # selects period sitemaps from the index
    listing_urls: Tuple[str, ...] = ()
    link_pattern: Optional[str] = None             # article-link regex for listing pages
    relevance_keywords: Tuple[str, ...] = ()
    relevance_path_patterns: Tuple[str, ...] = ()
    max_age_days: Optional[int] = Field(default=None, ge=1)
    max_candidates: Optional[int] = Field(default=None, ge=1)
    require_date: bool = False

    # Extraction
    title_selectors: Tuple[str, ...] = ()
    body_selectors: Tuple[str, ...] = ()
    image_selectors: Tuple[str, ...] = ()
    date_selectors: Tuple[str, ...] = ()
    image_hints: Tuple[str, ...] = ()              # domain/keyword fragments of real article images
    title_suffix_pattern: Optional[str] = None     # e.g. r"\s*[-|]\s*South China Morning Post.*$"
    sponsored_markers: Tuple[str, ...] = ()
    min_body_length: int = Field(default=150, gt=0)

    # Cleaning
    boilerplate_patterns: Tuple[str, ...] = ()

    # Fetching / identity
    lightweight_url_template: Optional[str] = "{url}/amp"
    request_variants: Tuple[RequestVariant, ...] = DEFAULT_VARIANTS
    placeholder_image: str = DEFAULT_PLACEHOLDER_IMAGE
    stable_urls: bool = True
    article_id_pattern: Optional[str] = None

    model_config = {"frozen": True}

    @field_validator("base_url")
    @classmethod
    def _http_base(cls, v: str) -> str:
        v = (v or "").strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an absolute http(s) URL, got {v!r}")
        return v.rstrip("/")

    @field_validator("request_variants")
    @classmethod
    def _at_least_one_variant(cls, v):
        if not v:
            raise ValueError("request_variants must not be empty")
        return v

    @model_validator(mode="after")
    def _check_discovery_and_patterns(self):
        if not (self.feed_urls or self.sitemap_index_url or self.latest_sitemap_url or self.listing_urls):
            raise ValueError("no discovery tier configured (feed_urls, sitemaps or listing_urls)")

        patterns = [
            self.sitemap_pattern, self.link_pattern, self.title_suffix_pattern,
            self.article_id_pattern, *self.relevance_path_patterns, *self.boilerplate_patterns,
        ]
        for pattern in patterns:
            if pattern is None:
                continue
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid regex {pattern!r}: {e}")

        if self.lightweight_url_template and "{url}" not in self.lightweight_url_template:
            raise ValueError("lightweight_url_template must contain '{url}'")
        return self

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @classmethod
    def load(cls, data: Dict[str, Any]) -> "SourceConfig":
        """Validate a raw config dict. The one fail-fast path of a run."""
        source_id = str(data.get("id") or "<unknown>")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(source_id, problems) from e

    def variants(self) -> List[RequestVariant]:
        return list(self.request_variants)
