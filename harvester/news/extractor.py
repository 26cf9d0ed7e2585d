"""
Content extractor: fetched payload → ExtractedFields.

Three payload shapes, one generic extractor configured per source:
  - structured: provider-side JSON parse (title/headline, date, image, content)
  - html:       canonical or AMP markup
  - text proxy: plain-text/markdown rendering of the page

HTML BODY STRATEGIES (first one yielding >= 80 chars wins):
  1. source-specific body selectors
  2. <article>
  3. [itemprop=articleBody]
  4. JSON-LD articleBody (NewsArticle, "Article, NewsArticle", ["NewsArticle"])
  5. trafilatura main-text extraction
  6. raw paragraph aggregation

Each strategy is a plain function of the parsed page, so each is testable
on its own. parse_* methods always return ExtractedFields; from_* methods
additionally validate and return None when the page is unusable.
"""

import json
import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import trafilatura
from bs4 import BeautifulSoup

from ..schemas.base import RejectReason
from ..schemas.news import ExtractedFields
from ..schemas.source import SourceConfig
from ..shared.helpers import parse_datetime
from ..tools.url_utils import date_from_url, normalize_image_url, registered_domain
from .cleaner import clean_title, strip_noise_subtrees

logger = logging.getLogger(__name__)

# "empty HTML tree" / "parsed tree length" noise on JS-heavy pages is not actionable
for _noisy in ("trafilatura", "trafilatura.core", "trafilatura.utils", "trafilatura.htmlprocessing",
               "trafilatura.settings", "trafilatura.main_extractor", "trafilatura.external"):
    _tlog = logging.getLogger(_noisy)
    _tlog.setLevel(logging.CRITICAL + 1)
    _tlog.propagate = False

MIN_STRATEGY_CHARS = 80
MIN_PARAGRAPH_CHARS = 30
MIN_IMAGE_SIZE = 300
MIN_PROXY_LINE_CHARS = 30

ARTICLE_TYPES = frozenset({
    "NewsArticle", "Article", "ReportageNewsArticle", "AnalysisNewsArticle",
    "OpinionNewsArticle", "BackgroundNewsArticle", "BlogPosting", "LiveBlogPosting",
})

DEFAULT_SPONSORED_MARKERS = (
    "sponsored content", "paid post", "paid content",
    "advertorial", "partner content", "資料由客戶提供",
)

_GENERIC_IMAGE = re.compile(r"logo|avatar|icon|placeholder|default|generic|favicon|sprite|blank|pixel", re.I)
_URL_DIMENSIONS = re.compile(r"(\d{3,4})x(\d{3,4})|[?&]w(?:idth)?=(\d{3,4})")
_MD_LINK = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_MD_IMAGE = re.compile(r"!\[[^\]]*\]\(([^)\s]+)[^)]*\)")

_PUBLISHED_META = (
    "meta[property='article:published_time']",
    "meta[name='article:published_time']",
    "meta[itemprop='datePublished']",
    "meta[name='pubdate']",
    "meta[name='publishdate']",
    "meta[name='date']",
    "meta[property='og:published_time']",
)


# ══════════════════════════════════════════════════════════════════════════════
# STRUCTURED DATA (JSON-LD)
# ══════════════════════════════════════════════════════════════════════════════

def _type_names(node: Dict[str, Any]) -> List[str]:
    """@type as a list: "NewsArticle", "Article, NewsArticle" and ["NewsArticle"] all work."""
    declared = node.get("@type")
    if isinstance(declared, str):
        return [t.strip() for t in declared.split(",") if t.strip()]
    if isinstance(declared, (list, tuple)):
        names = []
        for item in declared:
            if isinstance(item, str):
                names.extend(t.strip() for t in item.split(",") if t.strip())
        return names
    return []


def _flatten_ld(data: Any) -> Iterable[Dict[str, Any]]:
    if isinstance(data, list):
        for item in data:
            yield from _flatten_ld(item)
    elif isinstance(data, dict):
        yield data
        if "@graph" in data:
            yield from _flatten_ld(data["@graph"])


def structured_article(soup: BeautifulSoup) -> Dict[str, Any]:
    """First JSON-LD node declaring an article type, or {}."""
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text() or ""
        if not raw.strip():
            continue
        try:
            data = json.loads(raw, strict=False)
        except json.JSONDecodeError:
            logger.debug("Unparseable JSON-LD block skipped")
            continue
        for node in _flatten_ld(data):
            if any(name in ARTICLE_TYPES for name in _type_names(node)):
                return node
    return {}


def _image_from_value(value: Any) -> Optional[str]:
    """schema.org / provider image: "url", {"url": ...} or a list of either, nested any depth."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        return _image_from_value(value.get("url")) or _image_from_value(value.get("contentUrl"))
    if isinstance(value, list):
        for item in value:
            found = _image_from_value(item)
            if found:
                return found
    return None


# ══════════════════════════════════════════════════════════════════════════════
# BODY STRATEGIES
# ══════════════════════════════════════════════════════════════════════════════

def _element_text(el) -> List[str]:
    if el.name == "p":
        text = el.get_text(" ", strip=True)
        return [text] if text else []
    paragraphs = el.find_all("p")
    if paragraphs:
        return [p.get_text(" ", strip=True) for p in paragraphs if p.get_text(strip=True)]
    text = el.get_text("\n", strip=True)
    return [text] if text else []


def body_from_selectors(soup: BeautifulSoup, selectors: Iterable[str]) -> Optional[str]:
    """Text of the first selector whose matches add up to MIN_STRATEGY_CHARS."""
    for selector in selectors:
        try:
            elements = soup.select(selector)
        except ValueError:
            logger.debug(f"Invalid CSS selector skipped: {selector}")
            continue
        chunks: List[str] = []
        for el in elements:
            for chunk in _element_text(el):
                if chunk not in chunks:
                    chunks.append(chunk)
        text = "\n\n".join(chunks)
        if len(text) >= MIN_STRATEGY_CHARS:
            return text
    return None


def body_from_structured(article: Dict[str, Any]) -> Optional[str]:
    body = article.get("articleBody") if article else None
    if isinstance(body, list):
        body = "\n\n".join(str(b) for b in body if b)
    if isinstance(body, str) and len(body.strip()) >= MIN_STRATEGY_CHARS:
        return body.strip()
    return None


def body_from_trafilatura(html_content: str, url: str) -> Optional[str]:
    try:
        text = trafilatura.extract(
            html_content,
            url=url,
            include_comments=False,
            include_tables=False,
            favor_precision=True,
            deduplicate=True,
        )
    except Exception as e:
        logger.debug(f"trafilatura failed for {url}: {e}")
        return None
    if text and len(text) >= MIN_STRATEGY_CHARS:
        return text
    return None


def body_from_paragraphs(soup: BeautifulSoup) -> Optional[str]:
    paragraphs = [p.get_text(" ", strip=True) for p in soup.find_all("p")]
    text = "\n\n".join(p for p in paragraphs if len(p) > MIN_PARAGRAPH_CHARS)
    return text if len(text) >= MIN_STRATEGY_CHARS else None


# ══════════════════════════════════════════════════════════════════════════════
# EXTRACTOR
# ══════════════════════════════════════════════════════════════════════════════

class ContentExtractor:
    """Generic extractor driven entirely by one SourceConfig."""

    def __init__(self, source: SourceConfig):
        self.source = source
        self._site_domain = registered_domain(source.base_url)
        self._image_hints = tuple(h.lower() for h in source.image_hints) or (
            self._site_domain, "uploads", "images", "photo", "media", "cdn",
        )
        self._sponsored_markers = tuple(
            m.lower() for m in (*DEFAULT_SPONSORED_MARKERS, *source.sponsored_markers)
        )

    # ── Validation ───────────────────────────────────────────────────────

    def reject_reason(self, fields: ExtractedFields) -> Optional[RejectReason]:
        if not fields.title.strip():
            return RejectReason.MISSING_TITLE
        if not fields.is_acceptable(self.source.min_body_length):
            return RejectReason.SHORT_BODY
        return None

    def _validated(self, fields: ExtractedFields, url: str) -> Optional[ExtractedFields]:
        reason = self.reject_reason(fields)
        if reason is not None:
            logger.debug(f"Rejected {url}: {reason.value} (body {len(fields.body_text)} chars)")
            return None
        return fields

    def from_structured(self, payload: str, url: str, title_hint: str = "") -> Optional[ExtractedFields]:
        return self._validated(self.parse_structured(payload, url, title_hint), url)

    def from_html(self, html_content: str, url: str, title_hint: str = "") -> Optional[ExtractedFields]:
        return self._validated(self.parse_html(html_content, url, title_hint), url)

    def from_text_proxy(self, text: str, url: str, title_hint: str = "") -> Optional[ExtractedFields]:
        return self._validated(self.parse_text_proxy(text, url, title_hint), url)

    # ── Structured payload ───────────────────────────────────────────────

    def parse_structured(self, payload: str, url: str, title_hint: str = "") -> ExtractedFields:
        """Provider autoparse JSON: title|headline, date|datePublished, image, articles[].content|content."""
        try:
            data = json.loads(payload) if isinstance(payload, str) else payload
        except json.JSONDecodeError:
            logger.debug(f"Structured payload for {url} is not JSON")
            return ExtractedFields()
        if not isinstance(data, dict):
            return ExtractedFields()

        title = next(
            (v for v in (data.get("title"), data.get("headline")) if isinstance(v, str) and v.strip()),
            title_hint,
        )
        date = data.get("date") or data.get("datePublished") or data.get("publishedAt")

        meta = data.get("meta") if isinstance(data.get("meta"), dict) else {}
        og = meta.get("og") if isinstance(meta.get("og"), dict) else {}
        image = _image_from_value(data.get("image")) or _image_from_value(og.get("image"))

        body = ""
        articles = data.get("articles")
        if isinstance(articles, list):
            body = "\n\n".join(
                a["content"] for a in articles if isinstance(a, dict) and isinstance(a.get("content"), str)
            )
        if not body and isinstance(data.get("content"), str):
            body = data["content"]
        if not body and isinstance(data.get("articleBody"), str):
            body = data["articleBody"]

        return self._finish(title, date, body, self._usable_image(image, url), url)

    # ── HTML payload ─────────────────────────────────────────────────────

    def body_strategies(self, soup: BeautifulSoup, article: Dict[str, Any],
                        html_content: str, url: str) -> List[Tuple[str, Callable[[], Optional[str]]]]:
        return [
            ("source selectors", lambda: body_from_selectors(soup, self.source.body_selectors)),
            ("article", lambda: body_from_selectors(soup, ("article",))),
            ("articleBody", lambda: body_from_selectors(soup, ("[itemprop='articleBody']",))),
            ("structured data", lambda: body_from_structured(article)),
            ("trafilatura", lambda: body_from_trafilatura(html_content, url)),
            ("paragraphs", lambda: body_from_paragraphs(soup)),
        ]

    def parse_html(self, html_content: str, url: str, title_hint: str = "") -> ExtractedFields:
        if not html_content:
            return ExtractedFields()
        soup = BeautifulSoup(html_content, "lxml")

        # Metadata lives in <head> and JSON-LD, both gone after noise stripping
        article = structured_article(soup)
        title = self._html_title(soup, article) or title_hint
        date = self._html_date(soup, article)
        preview_image = (
            self._usable_image(self._meta(soup, "meta[property='og:image']", "meta[name='twitter:image']",
                                          "meta[property='twitter:image']"), url)
            or self._usable_image(_image_from_value(article.get("image")), url)
        )

        strip_noise_subtrees(soup)

        body = ""
        for name, strategy in self.body_strategies(soup, article, html_content, url):
            found = strategy()
            if found:
                logger.debug(f"Body for {url} from {name} ({len(found)} chars)")
                body = found
                break

        image = preview_image or self._content_image(soup, url)
        return self._finish(title, date, body, image, url)

    def _meta(self, soup: BeautifulSoup, *selectors: str) -> Optional[str]:
        for selector in selectors:
            tag = soup.select_one(selector)
            if tag and tag.get("content"):
                return tag["content"].strip()
        return None

    def _html_title(self, soup: BeautifulSoup, article: Dict[str, Any]) -> Optional[str]:
        for selector in self.source.title_selectors:
            tag = soup.select_one(selector)
            if tag and tag.get_text(strip=True):
                return tag.get_text(" ", strip=True)
        meta = self._meta(soup, "meta[property='og:title']", "meta[name='twitter:title']")
        if meta:
            return meta
        if isinstance(article.get("headline"), str) and article["headline"].strip():
            return article["headline"]
        h1 = soup.find("h1")
        if h1 and h1.get_text(strip=True):
            return h1.get_text(" ", strip=True)
        if soup.title and soup.title.string:
            return soup.title.string
        return None

    def _html_date(self, soup: BeautifulSoup, article: Dict[str, Any]):
        for selector in self.source.date_selectors:
            tag = soup.select_one(selector)
            if tag:
                value = tag.get("datetime") or tag.get("content") or tag.get_text(strip=True)
                parsed = parse_datetime(value)
                if parsed:
                    return parsed
        for value in (self._meta(soup, *_PUBLISHED_META), article.get("datePublished")):
            parsed = parse_datetime(value)
            if parsed:
                return parsed
        time_tag = soup.find("time", attrs={"datetime": True})
        return parse_datetime(time_tag["datetime"]) if time_tag else None

    # ── Images ───────────────────────────────────────────────────────────

    def _usable_image(self, src: Any, page_url: str) -> Optional[str]:
        """Absolute, non-generic image URL; relative paths resolve against the article page."""
        if not isinstance(src, str) or not src.strip() or _GENERIC_IMAGE.search(src.rsplit("/", 1)[-1]):
            return None
        return normalize_image_url(src.strip(), page_url or self.source.base_url)

    @staticmethod
    def _img_src(img) -> Optional[str]:
        for attr in ("src", "data-src", "data-lazy-src", "data-original"):
            value = img.get(attr)
            if value and not value.startswith("data:"):
                return value
        srcset = img.get("srcset") or img.get("data-srcset")
        if srcset:
            return srcset.split(",")[0].strip().split(" ")[0]
        return None

    @staticmethod
    def _image_size(img, src: str) -> int:
        sizes = []
        for attr in ("width", "height"):
            value = str(img.get(attr) or "").replace("px", "")
            if value.isdigit():
                sizes.append(int(value))
        if sizes:
            return max(sizes)
        match = _URL_DIMENSIONS.search(src)
        if match:
            return max(int(g) for g in match.groups() if g)
        return 0

    def _content_image(self, soup: BeautifulSoup, url: str) -> str:
        """Hinted image → large non-icon image → placeholder."""
        candidates = []
        for selector in self.source.image_selectors:
            candidates.extend(soup.select(selector))
        candidates.extend(soup.find_all("img"))

        usable = []
        for img in candidates:
            src = self._img_src(img)
            normalized = self._usable_image(src, url)
            if normalized:
                usable.append((img, src, normalized))

        for img, src, normalized in usable:
            if any(hint and hint in normalized.lower() for hint in self._image_hints):
                return normalized
        for img, src, normalized in usable:
            if self._image_size(img, src) >= MIN_IMAGE_SIZE:
                return normalized

        logger.debug(f"No content image for {url}, using placeholder")
        return self.source.placeholder_image

    # ── Text proxy payload ───────────────────────────────────────────────

    def parse_text_proxy(self, text: str, url: str, title_hint: str = "") -> ExtractedFields:
        """
        Envelope form:
            Title: ...
            Published Time: ...
            Markdown Content:
            ...
        Otherwise the first "# " heading is the title.
        """
        if not text:
            return ExtractedFields()

        title = None
        date = None
        content = text
        marker = "Markdown Content:"
        if marker in text:
            header, content = text.split(marker, 1)
            for line in header.splitlines():
                if line.startswith("Title:"):
                    title = line[len("Title:"):].strip()
                elif line.startswith("Published Time:"):
                    date = line[len("Published Time:"):].strip()

        lines = [line.strip() for line in content.splitlines()]
        if not title:
            title = next((line[2:].strip() for line in lines if line.startswith("# ")), None)

        body_lines = []
        for line in lines:
            if not line or line.startswith(("#", "*", "!", "[")):
                continue
            line = _MD_LINK.sub(r"\1", line).strip()
            if len(line) >= MIN_PROXY_LINE_CHARS:
                body_lines.append(line)

        image = None
        for match in _MD_IMAGE.finditer(content):
            image = self._usable_image(match.group(1), url)
            if image:
                break

        return self._finish(title or title_hint, date, "\n\n".join(body_lines), image, url)

    # ── Shared tail ──────────────────────────────────────────────────────

    def _finish(self, title: Optional[str], date: Any, body: str,
                image: Optional[str], url: str) -> ExtractedFields:
        title = clean_title(title or "", self.source.title_suffix_pattern)
        body = (body or "").strip()
        published: Optional[datetime] = parse_datetime(date) or date_from_url(url)
        return ExtractedFields(
            title=title,
            publish_date=published,
            body_text=body,
            cover_image_url=image or self.source.placeholder_image,
            sponsored=self.is_sponsored(title, body),
        )

    def is_sponsored(self, title: str, body: str) -> bool:
        haystack = f"{title}\n{body}".lower()
        return any(marker in haystack for marker in self._sponsored_markers)
