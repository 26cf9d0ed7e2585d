"""
Fetch strategy chain: one URL → first acceptable ExtractedFields.

TIERS (strict priority order):
  1. PROVIDER_PARSE   provider-side structured JSON parse      (needs provider key)
  2. LIGHTWEIGHT      AMP / lite markup variant of the URL     (needs a URL template)
  3. CANONICAL_HTML   canonical URL parsed as HTML
  4. TEXT_PROXY       text-extraction proxy, last resort       (needs proxy endpoint)

Tiers 2 and 3 go through the provider when a key is configured, direct
otherwise. Within a tier the source's request variants are tried in order
with a fixed backoff between them, until one returns a payload. That
payload is parsed and checked for acceptance (title present, body longer
than the source minimum); the first accepted tier short-circuits the rest.

Every failure here is local: FetchError moves to the next variant, a
rejected or unparseable payload moves to the next tier, and an exhausted
chain returns None.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from ..config import Settings
from ..errors import FetchError
from ..schemas.base import FetchOutcome, FetchTier, RequestVariant
from ..schemas.news import ExtractedFields, FetchAttempt, FetchResult
from ..schemas.source import SourceConfig
from ..shared.helpers import truncate_text
from ..tools.http_client import FetchClient
from ..tools.url_utils import build_lightweight_url, canonicalize_url
from .extractor import ContentExtractor

logger = logging.getLogger(__name__)

Fetcher = Callable[[RequestVariant], Awaitable[str]]
Parser = Callable[[str, str, str], ExtractedFields]


class FetchStrategyChain:
    """Ordered fallback of fetch tiers for one source."""

    def __init__(
        self,
        source: SourceConfig,
        settings: Settings,
        client: FetchClient,
        extractor: Optional[ContentExtractor] = None,
    ):
        self.source = source
        self.settings = settings
        self.client = client
        self.extractor = extractor or ContentExtractor(source)

    # ── Tier plans ───────────────────────────────────────────────────────

    def _markup_fetcher(self, target: str) -> Fetcher:
        if self.settings.provider_enabled:
            return lambda variant: self.client.fetch_via_provider(target, variant)
        return lambda variant: self.client.fetch_direct(target, variant)

    def plan(self, url: str):
        """
        (tier, fetcher, parser, skip_reason) per tier, in priority order.
        A non-empty skip_reason means the tier does not apply to this run.
        """
        lightweight = build_lightweight_url(url, self.source.lightweight_url_template)
        provider_skip = "" if self.settings.provider_enabled else "no provider key configured"
        proxy_skip = "" if self.settings.text_proxy_enabled else "no text proxy configured"

        return [
            (
                FetchTier.PROVIDER_PARSE,
                lambda variant: self.client.fetch_via_provider(url, variant, autoparse=True),
                self.extractor.parse_structured,
                provider_skip,
            ),
            (
                FetchTier.LIGHTWEIGHT,
                self._markup_fetcher(lightweight) if lightweight else None,
                self.extractor.parse_html,
                "" if lightweight else "no lightweight variant for this source",
            ),
            (
                FetchTier.CANONICAL_HTML,
                self._markup_fetcher(url),
                self.extractor.parse_html,
                "",
            ),
            (
                FetchTier.TEXT_PROXY,
                lambda variant: self.client.fetch_text_proxy(url, variant),
                self.extractor.parse_text_proxy,
                proxy_skip,
            ),
        ]

    # ── Execution ────────────────────────────────────────────────────────

    async def _first_payload(
        self,
        tier: FetchTier,
        fetcher: Fetcher,
        attempts: List[FetchAttempt],
    ):
        """Cycle variants until one returns a payload. Returns (payload, variant) or (None, None)."""
        for i, variant in enumerate(self.source.variants()):
            if i > 0 and self.settings.variant_backoff > 0:
                await asyncio.sleep(self.settings.variant_backoff)
            try:
                payload = await fetcher(variant)
            except FetchError as e:
                status = f"HTTP {e.status_code}: " if e.status_code else ""
                attempts.append(FetchAttempt(
                    tier=tier, variant=variant, outcome=FetchOutcome.FAILED, detail=f"{status}{e.reason}",
                ))
                logger.debug(f"{tier.value} [{variant.label}] failed: {e}")
                continue
            return payload, variant
        return None, None

    async def fetch(
        self,
        url: str,
        title_hint: str = "",
        attempts: Optional[List[FetchAttempt]] = None,
    ) -> Optional[FetchResult]:
        """
        Run the chain for one URL.

        Pass a list as `attempts` to receive the per-tier bookkeeping even
        when the chain comes back empty.
        """
        attempts = attempts if attempts is not None else []
        url = canonicalize_url(url)

        for tier, fetcher, parser, skip_reason in self.plan(url):
            if skip_reason:
                attempts.append(FetchAttempt(tier=tier, outcome=FetchOutcome.SKIPPED, detail=skip_reason))
                continue

            payload, variant = await self._first_payload(tier, fetcher, attempts)
            if payload is None:
                continue

            try:
                fields = parser(payload, url, title_hint)
            except Exception as e:
                attempts.append(FetchAttempt(
                    tier=tier, variant=variant, outcome=FetchOutcome.FAILED,
                    detail=f"parse error: {type(e).__name__}: {e}",
                ))
                logger.warning(f"[FAIL] {tier.value} [{variant.label}] could not parse {url}: {e}")
                continue

            reason = self.extractor.reject_reason(fields)
            if reason is not None:
                attempts.append(FetchAttempt(
                    tier=tier, variant=variant, outcome=FetchOutcome.REJECTED, detail=reason.value,
                ))
                logger.debug(
                    f"{tier.value} [{variant.label}] rejected {url}: {reason.value} "
                    f"(title={bool(fields.title)}, body={len(fields.body_text)} chars)"
                )
                continue

            attempts.append(FetchAttempt(tier=tier, variant=variant, outcome=FetchOutcome.ACCEPTED))
            logger.debug(f"[OK] {tier.value} [{variant.label}] {truncate_text(fields.title)}")
            return FetchResult(url=url, tier=tier, variant=variant, fields=fields, attempts=list(attempts))

        logger.info(f"[SKIP] {url}: all fetch tiers exhausted ({len(attempts)} attempts)")
        return None
