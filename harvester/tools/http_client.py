"""
HTTP fetch capability shared by discovery and the fetch chain.

One FetchClient per run (never a module-level singleton): it owns an
httpx.AsyncClient for connection pooling plus the run's session number, and
knows how to express a RequestVariant either as direct request headers or as
provider query parameters.

Every method either returns response text or raises FetchError; callers
decide whether a failure means "next variant", "next tier" or "skip tier".
"""

import asyncio
import logging
import random
from typing import Dict, Optional
from urllib.parse import urlencode

import httpx

from ..config import Settings
from ..errors import FetchError
from ..schemas.base import RequestVariant

logger = logging.getLogger(__name__)

# Silence per-request INFO lines; one run makes hundreds of requests.
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

_BLOCKED_STATUSES = frozenset({401, 403, 429, 451, 503})

# Short interstitial pages that come back 200 but hold no article
_BLOCK_MARKERS = (
    "captcha",
    "are you a robot",
    "access denied",
    "unusual traffic",
    "enable javascript and cookies",
)

_REGION_LANGUAGES = {
    "hk": "zh-HK,zh;q=0.9,en;q=0.8",
    "sg": "en-SG,en;q=0.9,zh;q=0.7",
    "us": "en-US,en;q=0.9",
    "gb": "en-GB,en;q=0.9",
}

_BASE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Encoding": "gzip, deflate",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
}


class FetchClient:
    """
    Per-run HTTP client.

    Usage:
        async with FetchClient(settings) as client:
            html = await client.fetch_direct(url, variant)
    """

    def __init__(
        self,
        settings: Settings,
        http: Optional[httpx.AsyncClient] = None,
        session_number: Optional[int] = None,
    ):
        self.settings = settings
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(follow_redirects=True)
        # Sticky provider session for the whole run, like a browser would have
        self.session_number = session_number or random.randint(100000, 999999)

    async def __aenter__(self) -> "FetchClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    # ── Header / URL construction ────────────────────────────────────────

    def variant_headers(self, variant: Optional[RequestVariant]) -> Dict[str, str]:
        headers = dict(_BASE_HEADERS)
        if variant is None:
            headers["User-Agent"] = self.settings.user_agent
            headers["Accept-Language"] = _REGION_LANGUAGES["us"]
            return headers
        headers["User-Agent"] = (
            self.settings.mobile_user_agent if variant.device == "mobile" else self.settings.user_agent
        )
        headers["Accept-Language"] = _REGION_LANGUAGES.get(variant.region, _REGION_LANGUAGES["us"])
        return headers

    def provider_url(self, url: str, variant: RequestVariant, autoparse: bool = False) -> str:
        """ScraperAPI-compatible request URL for a target page."""
        params = {
            "api_key": self.settings.provider_api_key,
            "url": url,
            "country_code": variant.region,
            "device_type": variant.device,
            "session_number": str(self.session_number),
            "keep_headers": "false",
        }
        if autoparse:
            params["autoparse"] = "true"
        return f"{self.settings.provider_endpoint}?{urlencode(params)}"

    def text_proxy_url(self, url: str) -> str:
        return f"{self.settings.text_proxy_endpoint.rstrip('/')}/{url}"

    # ── Fetching ─────────────────────────────────────────────────────────

    async def get_text(
        self,
        url: str,
        timeout: float,
        headers: Optional[Dict[str, str]] = None,
    ) -> str:
        """GET a URL and return its body text. Raises FetchError on any failure."""
        try:
            response = await asyncio.wait_for(
                self.http.get(url, headers=headers, timeout=timeout, follow_redirects=True),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise FetchError(url, f"timed out after {timeout:.0f}s")
        except httpx.TimeoutException:
            raise FetchError(url, f"timed out after {timeout:.0f}s")
        except httpx.HTTPError as e:
            raise FetchError(url, f"{type(e).__name__}: {e}")

        if response.status_code in _BLOCKED_STATUSES:
            raise FetchError(url, "blocked by source", status_code=response.status_code)
        if response.status_code >= 400:
            raise FetchError(url, "non-success status", status_code=response.status_code)

        text = response.text
        if not text or not text.strip():
            raise FetchError(url, "empty response body", status_code=response.status_code)
        if len(text) < 3000:
            lowered = text.lower()
            if any(marker in lowered for marker in _BLOCK_MARKERS):
                raise FetchError(url, "bot-check interstitial", status_code=response.status_code)
        return text

    async def fetch_direct(self, url: str, variant: Optional[RequestVariant] = None) -> str:
        return await self.get_text(url, self.settings.fetch_timeout, self.variant_headers(variant))

    async def fetch_via_provider(self, url: str, variant: RequestVariant, autoparse: bool = False) -> str:
        return await self.get_text(self.provider_url(url, variant, autoparse), self.settings.fetch_timeout)

    async def fetch_text_proxy(self, url: str, variant: Optional[RequestVariant] = None) -> str:
        return await self.get_text(
            self.text_proxy_url(url), self.settings.fetch_timeout, self.variant_headers(variant)
        )

    async def fetch_discovery(self, url: str) -> str:
        """Feeds, sitemaps and listing pages: shorter timeout, desktop headers."""
        headers = self.variant_headers(None)
        headers["Accept"] = "application/rss+xml, application/xml, text/xml, text/html;q=0.9, */*;q=0.8"
        return await self.get_text(url, self.settings.discovery_timeout, headers)
