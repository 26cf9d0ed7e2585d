"""
Exception types for the harvesting core.

Only ConfigurationError ever reaches the caller. DiscoveryError and
FetchError are raised by the HTTP/discovery layer and caught one level up
(collector, fetch chain), where they turn into a skipped tier.
"""

from typing import Optional


class HarvestError(Exception):
    """Base class for all harvester errors."""


class ConfigurationError(HarvestError):
    """Source or run configuration is missing or invalid."""

    def __init__(self, source_id: str, message: str):
        self.source_id = source_id
        super().__init__(f"[{source_id}] {message}")


class DiscoveryError(HarvestError):
    """A feed, sitemap or listing page was unreachable or unparseable."""

    def __init__(self, tier: str, url: str, reason: str):
        self.tier = tier
        self.url = url
        self.reason = reason
        super().__init__(f"{tier} discovery failed for {url}: {reason}")


class FetchError(HarvestError):
    """One fetch attempt failed (timeout, non-2xx status, blocked, empty body)."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        status = f" (HTTP {status_code})" if status_code else ""
        super().__init__(f"Fetch failed for {url}{status}: {reason}")
