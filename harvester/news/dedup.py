"""
Stable identity and intra-run deduplication.

IDENTITY:
  canonical URL  = URL without query string / fragment (url_utils.canonicalize_url)
  content hash   = sha256 over casefolded, whitespace-collapsed "title\\nbody"
  record id      = uuid5(source|canonical_url), or uuid5(source|content_hash)
                   for sources whose URLs change between runs

Same inputs → same id on every run, so re-running an unchanged source
produces no new identities.

DEDUP:
  A record is dropped when its canonical URL or content hash was already
  admitted in this run, or when the storage collaborator reports it as
  known. Dropping is bookkeeping, never an error.
"""

import hashlib
import logging
import re
import uuid
from typing import Optional, Protocol, Set

from ..schemas.news import ArticleRecord
from ..tools.url_utils import canonicalize_url

logger = logging.getLogger(__name__)

# Fixed namespace so ids stay stable across processes and versions
RECORD_NAMESPACE = uuid.UUID("5b0c3f1e-7a4d-5e8b-9c2f-6d1a0e4b7c39")


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").casefold()).strip()


def compute_content_hash(title: str, body: str) -> str:
    """sha256 hex digest of normalized title + body."""
    payload = f"{_normalize(title)}\n{_normalize(body)}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def derive_record_id(
    source: str,
    canonical_url: str,
    content_hash: str,
    stable_urls: bool = True,
) -> uuid.UUID:
    """Deterministic record id. Falls back to the content hash when URLs are unstable or missing."""
    if stable_urls and canonical_url:
        key = f"{source}|{canonicalize_url(canonical_url)}"
    else:
        key = f"{source}|{content_hash}"
    return uuid.uuid5(RECORD_NAMESPACE, key)


class KnownArticleIndex(Protocol):
    """Implemented by the storage collaborator to report already-persisted articles."""

    def is_known(self, canonical_url: str, content_hash: str) -> bool:
        ...


class RunDeduplicator:
    """
    Admits each canonical URL and each content hash at most once per run.

    Not shared between runs; create one per source run.
    """

    def __init__(self, known: Optional[KnownArticleIndex] = None):
        self.known = known
        self._urls: Set[str] = set()
        self._hashes: Set[str] = set()
        self.duplicates = 0

    def admit(self, record: ArticleRecord) -> bool:
        canonical = canonicalize_url(record.canonical_url)
        if canonical in self._urls:
            reason = "canonical URL already emitted"
        elif record.content_hash in self._hashes:
            reason = "content hash already emitted"
        elif self.known is not None and self.known.is_known(canonical, record.content_hash):
            reason = "already known to storage"
        else:
            self._urls.add(canonical)
            self._hashes.add(record.content_hash)
            return True

        self.duplicates += 1
        logger.debug(f"Duplicate dropped ({reason}): {canonical}")
        return False
