"""
Quality scoring and classification.

Pure functions: (cleaned content, metadata presence) → QualityAssessment.
No I/O, no clock, no randomness.

SCORE (0-100):
  Length       0-30   >=1000 chars 30, >=500 20, >=200 10
  Structure    0-25   >=5 paragraphs 25, >=3 15, >=2 10
  Cleanliness  0-25   25 minus 5 per contamination label
  Metadata     0-20   5 each for title (>10 chars), image, date, identity

CLASS: >=80 excellent, 60-79 good, 40-59 fair, <40 poor.
Poor articles are still emitted; dropping them is the consumer's call.
"""

from typing import Iterable, List, Tuple

from ..schemas.base import MetadataPresence, QualityClass, ScoreBreakdown
from ..schemas.news import CleanedContent, QualityAssessment
from .cleaner import detect_contamination

CONTAMINATION_PENALTY = 5


def _length_score(chars: int) -> int:
    if chars >= 1000:
        return 30
    if chars >= 500:
        return 20
    if chars >= 200:
        return 10
    return 0


def _structure_score(paragraphs: int) -> int:
    if paragraphs >= 5:
        return 25
    if paragraphs >= 3:
        return 15
    if paragraphs >= 2:
        return 10
    return 0


def _cleanliness_score(labels: Iterable[str]) -> int:
    return max(0, 25 - CONTAMINATION_PENALTY * len(list(labels)))


def _metadata_score(metadata: MetadataPresence) -> int:
    score = 0
    if len(metadata.title.strip()) > 10:
        score += 5
    if metadata.has_image:
        score += 5
    if metadata.has_date:
        score += 5
    if metadata.has_identity:
        score += 5
    return score


def classify_score(score: int) -> QualityClass:
    """Map a 0-100 score to its class. Out-of-range input is clamped first."""
    score = max(0, min(100, int(score)))
    if score >= 80:
        return QualityClass.EXCELLENT
    if score >= 60:
        return QualityClass.GOOD
    if score >= 40:
        return QualityClass.FAIR
    return QualityClass.POOR


def contamination_labels(cleaned: CleanedContent) -> List[str]:
    """Labels removed by the cleaner plus any still present, without repeats."""
    labels = list(cleaned.contamination)
    for label in detect_contamination(cleaned.body):
        if label not in labels:
            labels.append(label)
    return labels


def _findings(cleaned: CleanedContent, metadata: MetadataPresence,
              breakdown: ScoreBreakdown, labels: List[str]) -> Tuple[List[str], List[str]]:
    issues: List[str] = []
    recommendations: List[str] = []

    if breakdown.length < 10:
        issues.append(f"Content too short ({len(cleaned.body)} characters)")
        recommendations.append("Check the body selectors for this source")
    if breakdown.structure < 10:
        issues.append(f"Poor paragraph structure ({cleaned.paragraphs} paragraphs)")
        recommendations.append("Preserve paragraph breaks during extraction")
    if labels:
        issues.append(f"Content contamination: {', '.join(labels)}")
        recommendations.append("Add the leaking markup to the noise selectors or boilerplate patterns")
    if not metadata.has_image:
        issues.append("Missing cover image")
    if not metadata.has_date:
        issues.append("Missing publish date")
        recommendations.append("Add a date selector or rely on URL-embedded dates")
    if cleaned.sentences and cleaned.readability <= 40:
        issues.append(f"Unusual sentence length ({cleaned.avg_words_per_sentence} words per sentence)")

    return issues, recommendations


def score_article(cleaned: CleanedContent, metadata: MetadataPresence) -> QualityAssessment:
    """Score one cleaned article and list what dragged the score down."""
    labels = contamination_labels(cleaned)
    breakdown = ScoreBreakdown(
        length=_length_score(len(cleaned.body)),
        structure=_structure_score(cleaned.paragraphs),
        cleanliness=_cleanliness_score(labels),
        metadata=_metadata_score(metadata),
    )
    score = max(0, min(100, breakdown.total))
    issues, recommendations = _findings(cleaned, metadata, breakdown, labels)
    return QualityAssessment(
        score=score,
        quality_class=classify_score(score),
        breakdown=breakdown,
        issues=issues,
        recommendations=recommendations,
    )
