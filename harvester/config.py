"""
Configuration management for the news harvester.

Two layers:
  - HarvestSettings: run-wide tuning (concurrency, delays, timeouts, endpoints).
  - SOURCES: registry of per-source configs, validated into SourceConfig.

Constructing HarvestSettings reads HARVEST_* variables and .env, as any
BaseSettings does. A run uses the settings value it is handed and falls back
to the cached get_settings() only when it is given none.
"""

from functools import lru_cache
from typing import Any, Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings

from .errors import ConfigurationError
from .schemas.source import SourceConfig


class Settings(BaseSettings):
    """Run-wide settings. HARVEST_* env vars and .env override the defaults on construction."""

    # ── Worker pool ──
    # 4-8 workers is polite enough for news sites; more trips rate limiters.
    concurrency: int = Field(default=4, ge=1, le=32, alias="HARVEST_CONCURRENCY")
    per_url_delay: float = Field(default=0.15, ge=0.0, alias="HARVEST_PER_URL_DELAY")
    batch_size: int = Field(default=20, ge=1, alias="HARVEST_BATCH_SIZE")
    batch_delay: float = Field(default=2.0, ge=0.0, alias="HARVEST_BATCH_DELAY")

    # ── Fetch chain ──
    fetch_timeout: float = Field(default=45.0, gt=0.0, alias="HARVEST_FETCH_TIMEOUT")
    variant_backoff: float = Field(default=0.8, ge=0.0, alias="HARVEST_VARIANT_BACKOFF")
    user_agent: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
        alias="HARVEST_USER_AGENT",
    )
    mobile_user_agent: str = Field(
        default="Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 "
                "(KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1",
        alias="HARVEST_MOBILE_USER_AGENT",
    )

    # Provider-side structured parse (ScraperAPI-compatible). Empty key → tier skipped.
    provider_endpoint: str = Field(default="https://api.scraperapi.com/", alias="HARVEST_PROVIDER_ENDPOINT")
    provider_api_key: str = Field(default="", alias="HARVEST_PROVIDER_API_KEY")

    # Last-resort text-extraction proxy. Empty → tier skipped.
    text_proxy_endpoint: str = Field(default="https://r.jina.ai/", alias="HARVEST_TEXT_PROXY_ENDPOINT")

    # ── Discovery ──
    discovery_timeout: float = Field(default=20.0, gt=0.0, alias="HARVEST_DISCOVERY_TIMEOUT")
    max_sitemaps: int = Field(default=8, ge=1, alias="HARVEST_MAX_SITEMAPS")
    default_max_age_days: int = Field(default=7, ge=1, alias="HARVEST_MAX_AGE_DAYS")
    default_max_candidates: int = Field(default=50, ge=1, alias="HARVEST_MAX_CANDIDATES")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    @property
    def provider_enabled(self) -> bool:
        return bool(self.provider_api_key and self.provider_endpoint)

    @property
    def text_proxy_enabled(self) -> bool:
        return bool(self.text_proxy_endpoint)


HarvestSettings = Settings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_source_config(source_id: str) -> SourceConfig:
    """Validate and return a registered source. Raises ConfigurationError."""
    raw = SOURCES.get(source_id)
    if raw is None:
        raise ConfigurationError(source_id, "unknown source id")
    return SourceConfig.load(raw)


def list_source_ids() -> List[str]:
    return list(SOURCES.keys())


# Example source registry. Invocation/scheduling picks which of these run;
# any caller can also build a SourceConfig directly.
SOURCES: Dict[str, Dict[str, Any]] = {
    # ─────────────────────────────────────────────────────────────────────────
    # Sitemap-first wire service (RSS as backup). URLs carry the publish date.
    # ─────────────────────────────────────────────────────────────────────────
    "bloomberg": {
        "id": "bloomberg",
        "name": "Bloomberg",
        "base_url": "https://www.bloomberg.com",
        "latest_sitemap_url": "https://www.bloomberg.com/sitemaps/news/latest.xml",
        "sitemap_index_url": "https://www.bloomberg.com/sitemaps/news/index.xml",
        "sitemap_pattern": r"/sitemaps/news/\d{4}-\d+\.xml$",
        "feed_urls": [
            "https://feeds.bloomberg.com/markets/news.rss",
            "https://feeds.bloomberg.com/politics/news.rss",
            "https://feeds.bloomberg.com/technology/news.rss",
        ],
        "relevance_path_patterns": [r"/news/articles/"],
        "relevance_keywords": [
            "hong-kong", "asia", "china", "singapore", "japan", "korea", "taiwan",
            "thailand", "vietnam", "malaysia", "indonesia", "philippines",
            "yuan", "nikkei", "hang-seng", "alibaba", "tencent", "xiaomi", "baidu",
        ],
        "require_date": True,
        "max_age_days": 7,
        "max_candidates": 50,
        "body_selectors": ["article p", "[data-component='paragraph']", "[data-testid='article-body'] p"],
        "boilerplate_patterns": [r"^Connecting decision makers.*$", r"^(Americas|EMEA|Asia Pacific)\+.*$"],
        "title_suffix_pattern": r"\s*-\s*Bloomberg.*$",
        "min_body_length": 150,
    },
    # ─────────────────────────────────────────────────────────────────────────
    # RSS-first daily with JSON-LD article bodies
    # ─────────────────────────────────────────────────────────────────────────
    "scmp": {
        "id": "scmp",
        "name": "South China Morning Post",
        "base_url": "https://www.scmp.com",
        "feed_urls": [
            "https://www.scmp.com/rss/91/feed",
            "https://www.scmp.com/rss/2/feed",
            "https://www.scmp.com/rss/3/feed",
            "https://www.scmp.com/rss/4/feed",
        ],
        "body_selectors": [
            "article.article-body", "div.article-body", "div.basic-article__body",
            "div[data-testid='article-body']",
        ],
        "title_suffix_pattern": r"\s*[-|]\s*South China Morning Post.*$",
        "boilerplate_patterns": [
            r"^\s*\d{2}:\d{2}\s*$",
            r"^\s*SCMP\+?.*$",
            r"^Why you can trust SCMP.*$",
        ],
        "article_id_pattern": r"/article/(\d+)/",
        "lightweight_url_template": None,
        "min_body_length": 100,
    },
    # ─────────────────────────────────────────────────────────────────────────
    # Listing-page-only Chinese daily; sponsored posts carry a fixed marker
    # ─────────────────────────────────────────────────────────────────────────
    "am730": {
        "id": "am730",
        "name": "AM730",
        "base_url": "https://www.am730.com.hk",
        "listing_urls": [
            "https://www.am730.com.hk/本地", "https://www.am730.com.hk/國際",
            "https://www.am730.com.hk/財經", "https://www.am730.com.hk/中國",
        ],
        "link_pattern": r"/\d+$",
        "title_selectors": ["h1.title", "h1.headline"],
        "body_selectors": ["div.article_content", "#articleContent", "section.article_detail"],
        "sponsored_markers": ["資料由客戶提供"],
        "boilerplate_patterns": [
            r"^(返回|分享：|ADVERTISEMENT|熱門搜尋|支持AM730)$",
            r"熱門搜尋:.*$",
            r"window\._taboola.*$",
            r"_taboola\.push.*$",
        ],
        "title_suffix_pattern": r"\s*[-|]\s*AM730.*$",
        "article_id_pattern": r"/(\d+)$",
        "lightweight_url_template": None,
        "min_body_length": 80,
    },
    # ─────────────────────────────────────────────────────────────────────────
    # WordPress site: RSS feed, featured images under wp-content/uploads
    # ─────────────────────────────────────────────────────────────────────────
    "hkfp": {
        "id": "hkfp",
        "name": "Hong Kong Free Press",
        "base_url": "https://hongkongfp.com",
        "feed_urls": ["https://hongkongfp.com/feed/"],
        "listing_urls": ["https://hongkongfp.com/hong-kong-news/"],
        "link_pattern": r"/\d{4}/\d{2}/\d{2}/[^/]+/?$",
        "title_selectors": ["h1.entry-title"],
        "body_selectors": ["div.entry-content", "div.post-content"],
        "image_selectors": ["img.wp-post-image", "img.featured", "img.attachment"],
        "image_hints": ["hongkongfp.com", "wp-content", "uploads"],
        "boilerplate_patterns": [r"^Share this.*$", r"^Subscribe.*$", r"^Support HKFP.*$"],
        "title_suffix_pattern": r"\s*[-|]\s*Hong Kong Free Press.*$",
        "lightweight_url_template": "{url}amp/",
        "min_body_length": 150,
    },
}
