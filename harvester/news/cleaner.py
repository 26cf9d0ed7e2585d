"""
Article text cleaning.

Extracted article text from real news sites is dirty: inline CSS bleeds
into the text when a site renders styles inside the article container,
JSON-LD fragments survive when body text comes from structured data, and
every site has its own bylines, captions and "ADVERTISEMENT" markers.

CLEANING ORDER (each step assumes the previous ones ran):
  1. strip_noise_subtrees()    HTML stage, run by the extractor before get_text
  2. style leakage             CSS rules/declarations and their leftovers
  3. structured-data remnants  @context/@type lines, JSON braces, [Type] leftovers
  4. navigation-only lines     lines holding only a parenthetical or dashes
  5. whitespace collapse
  6. boilerplate phrases       default + per-source patterns
  7. entity decoding           then one final whitespace pass

The cleaner also reports WHICH contamination it found, so the quality
scorer can deduct cleanliness for content that needed rescuing.
"""

import html
import logging
import re
from typing import Dict, Iterable, List, Pattern, Tuple

from ..schemas.news import CleanedContent

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
# HTML STAGE
# ══════════════════════════════════════════════════════════════════════════════

NOISE_TAGS = (
    "script", "style", "noscript", "template", "nav", "header", "footer",
    "aside", "form", "iframe", "svg", "button",
)

NOISE_SELECTORS = (
    "[class*='share']", "[class*='social']", "[class*='newsletter']",
    "[class*='related']", "[class*='comment']", "[class*='promo']",
    "[class*='advert']", "[id*='advert']", ".ad", ".ads", ".ad-slot",
    "[class*='sidebar']", "[class*='breadcrumb']", "[aria-hidden='true']",
)


def strip_noise_subtrees(soup) -> None:
    """Decompose script/style/nav/footer/share/ad subtrees in place."""
    for tag in soup.find_all(NOISE_TAGS):
        if not tag.decomposed:
            tag.decompose()
    for selector in NOISE_SELECTORS:
        for tag in soup.select(selector):
            # Never drop the document itself or a node that holds the whole article
            if tag.decomposed or tag.name in ("html", "body", "article", "main"):
                continue
            tag.decompose()


# ══════════════════════════════════════════════════════════════════════════════
# CONTAMINATION DETECTION
# ══════════════════════════════════════════════════════════════════════════════

# label → pattern. Labels are what the quality report shows.
CONTAMINATION_PATTERNS: Dict[str, Pattern] = {
    "CSS styling": re.compile(r"background(?:-color|-image)?\s*:", re.I),
    "CSS properties": re.compile(
        r"cursor\s*:\s*pointer|box-shadow\s*:|-webkit-appearance|no-repeat\s+center", re.I
    ),
    "Color values": re.compile(r"rgba?\(\s*\d", re.I),
    "JSON fragments": re.compile(r"^\s*[{}\[\]]|\"@(?:context|type)\"\s*:", re.M),
    "Subscription prompts": re.compile(r"\bSubscribe\b"),
}


def detect_contamination(text: str) -> List[str]:
    """Labels of every contamination pattern present in text, in fixed order."""
    if not text:
        return []
    return [label for label, pattern in CONTAMINATION_PATTERNS.items() if pattern.search(text)]


# ══════════════════════════════════════════════════════════════════════════════
# TEXT STAGE
# ══════════════════════════════════════════════════════════════════════════════

_CSS_PROPERTY = (
    r"(?:-webkit-|-moz-|-ms-)?"
    r"(?:background(?:-color|-image|-size|-position|-repeat)?|cursor|box-shadow|"
    r"border(?:-radius|-color|-width|-style)?|font(?:-family|-size|-weight)?|"
    r"margin(?:-(?:top|bottom|left|right))?|padding(?:-(?:top|bottom|left|right))?|"
    r"z-index|opacity|line-height|text-align|text-decoration|appearance|transition|"
    r"transform|display|position|overflow|color|width|height|max-width|min-height)"
)

_CSS_VALUE = (
    r"(?:#[0-9a-fA-F]{3,8}|-?\d+(?:\.\d+)?(?:px|em|rem|vh|vw|%)|rgba?\([^)]*\)|"
    r"pointer|none|inherit|auto|!important)(?![\w-])"
)
_CSS_VALUES = rf"{_CSS_VALUE}(?:[ \t]+{_CSS_VALUE})*"

_STYLE_LEAKAGE = [
    # whole rule blocks: ".foo .bar{color:#333;cursor:pointer}"
    re.compile(r"[^\s{}]*\s*\{[^{}\n]*:[^{}\n]*;?[^{}\n]*\}"),
    # two or more chained declarations: "display:block;width:100%;"
    re.compile(rf"(?:(?<![\w-]){_CSS_PROPERTY}\s*:\s*[^;\n{{}}]{{1,60}};\s*){{2,}}"),
    # single declarations, only with a CSS-shaped value: "cursor:pointer", "color: #333;"
    re.compile(rf"(?<![\w-]){_CSS_PROPERTY}\s*:\s*{_CSS_VALUES}[ \t]*;?", re.I),
    re.compile(r"rgba?\([^)]*\)", re.I),
    re.compile(r"\bno-repeat\s+center\b[^\n]*", re.I),
    re.compile(r"^.*(?:element reset style|css specificities|!important).*$", re.I | re.M),
]

_STRUCTURED_REMNANTS = [
    re.compile(r"^\s*@\w+.*$", re.M),                                  # @context / @type lines
    re.compile(r"\"@(?:context|type|id)\"\s*:\s*\"[^\"]*\"\s*,?"),      # inline "@type": "X"
    re.compile(r"^\s*[\{\}\[\]][^\n]*$", re.M),                         # JSON brace lines
    re.compile(r"\[\s*(?:object Object|(?:News)?Article(?:\s*,\s*\w+)*|WebPage|ReportageNewsArticle)\s*\]"),
]

_NAV_ONLY_LINES = [
    re.compile(r"^\s*[()\[\]]+\s*$", re.M),          # only brackets
    re.compile(r"^\s*\([^()\n]{0,80}\)\s*$", re.M),  # only a parenthetical
    re.compile(r"^\s*[-–—_|•·]+\s*$", re.M),         # only separators
]

_BYLINE_NAME = r"[A-Z][\w.'’\-]*(?:[ \t]+[A-Z][\w.'’\-]*){0,3}"

DEFAULT_BOILERPLATE = (
    # byline: "By Jane Doe", "By Jane Doe and John Roe, Reuters", "By Staff | Bloomberg"
    rf"^[ \t]*By[ \t]+{_BYLINE_NAME}(?:[ \t]+(?:and|&)[ \t]+{_BYLINE_NAME})*"
    r"(?:[ \t]*[,|][ \t]*[A-Z][\w.'’\- ]{0,40})?[ \t]*$",
    r"^\s*(?:Reporting|Writing|Editing|Additional reporting) by\b.*$",
    r"\((?:Photo|Image|Picture|Photograph|File photo)s?\s*:?[^)]{0,120}\)",  # photo-caption parentheticals
    r"^\s*(?:ADVERTISEMENT|Advertisement|Sponsored|SPONSORED|AD)\s*$",
    r"^\s*Subscribe\b.*$",
    r"^\s*(?:Share this|Share on|Follow us on)\b.*$",
    r"^\s*(?:Read more|Related|Also read)\s*:.*$",
)

_SENTENCE_SPLIT = re.compile(r"[.!?。！？]+")
_WORD_TOKEN = re.compile(r"[㐀-鿿]|[^\s㐀-鿿]+")


def _apply(patterns: Iterable[Pattern], text: str) -> str:
    for pattern in patterns:
        text = pattern.sub("", text)
    return text


def _collapse_whitespace(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t\f\v]+", " ", text)
    lines = [line.strip() for line in text.split("\n")]
    text = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def _compile_boilerplate(extra: Iterable[str]) -> Tuple[Pattern, ...]:
    return tuple(re.compile(p, re.M) for p in (*DEFAULT_BOILERPLATE, *extra))


def _promote_sentence_breaks(text: str) -> str:
    """Sentence end + single newline + capital = paragraph break (JSON-LD bodies use single \\n)."""
    return re.sub(r"([.!?\"”])\n(?=[A-Z“\"])", r"\1\n\n", text)


def clean_text(text: str, boilerplate_patterns: Iterable[str] = ()) -> Tuple[str, List[str]]:
    """
    Run the text stages in order.

    Returns (cleaned_text, contamination_labels_found_in_input).
    """
    if not text:
        return "", []

    found = detect_contamination(text)

    cleaned = _apply(_STYLE_LEAKAGE, text)
    cleaned = _apply(_STRUCTURED_REMNANTS, cleaned)
    cleaned = _apply(_NAV_ONLY_LINES, cleaned)
    cleaned = _collapse_whitespace(cleaned)
    cleaned = _apply(_compile_boilerplate(boilerplate_patterns), cleaned)
    cleaned = html.unescape(cleaned).replace("\xa0", " ").replace("​", "")
    # Decoding can reveal separators/empties again
    cleaned = _apply(_NAV_ONLY_LINES, cleaned)
    cleaned = _collapse_whitespace(cleaned)
    cleaned = _promote_sentence_breaks(cleaned)

    return cleaned, found


def analyze_structure(text: str) -> Dict[str, int]:
    """Paragraph/sentence/word counts plus a coarse readability bucket."""
    if not text:
        return {
            "paragraphs": 0, "sentences": 0, "words": 0,
            "avg_words_per_paragraph": 0, "avg_words_per_sentence": 0, "readability": 0,
        }

    paragraphs = [p for p in text.split("\n\n") if p.strip()]
    sentences = [s for s in _SENTENCE_SPLIT.split(text) if len(s.strip()) > 10]
    words = _WORD_TOKEN.findall(text)

    avg_sentence = len(words) / len(sentences) if sentences else 0.0
    if not sentences or not words:
        readability = 0
    elif 15 <= avg_sentence <= 20:
        readability = 100
    elif 10 <= avg_sentence <= 25:
        readability = 80
    elif 5 <= avg_sentence <= 30:
        readability = 60
    else:
        readability = 40

    return {
        "paragraphs": len(paragraphs),
        "sentences": len(sentences),
        "words": len(words),
        "avg_words_per_paragraph": round(len(words) / len(paragraphs)) if paragraphs else 0,
        "avg_words_per_sentence": round(avg_sentence),
        "readability": readability,
    }


def clean_content(text: str, boilerplate_patterns: Iterable[str] = ()) -> CleanedContent:
    """Clean extracted body text and compute the metrics the scorer needs."""
    cleaned, found = clean_text(text, boilerplate_patterns)
    metrics = analyze_structure(cleaned)
    if found:
        logger.debug(f"Cleaned contamination: {', '.join(found)}")
    return CleanedContent(body=cleaned, contamination=found, **metrics)


def clean_title(title: str, suffix_pattern: str = None) -> str:
    """Decode entities, collapse whitespace, drop a trailing " - Site Name"."""
    if not title:
        return ""
    title = html.unescape(title).replace("\xa0", " ")
    title = re.sub(r"\s+", " ", title).strip()
    if suffix_pattern:
        stripped = re.sub(suffix_pattern, "", title).strip()
        title = stripped or title
    return title
