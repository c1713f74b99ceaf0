"""Source confidence — is this answer backed by decision-grade coverage?"""

from __future__ import annotations

from collections.abc import Sequence

from hybrid_intel.models.report import ConfidenceLevel, SourceConfidence
from hybrid_intel.models.source import InternalSource, InternalSourceType

# Words shorter than this are ignored when matching categories ("it", "hr").
MIN_CATEGORY_WORD_LENGTH = 3

_LABELS = {
    ConfidenceLevel.HIGH: "Decision Grade",
    ConfidenceLevel.MEDIUM: "Partial Coverage",
    ConfidenceLevel.LOW: "Limited Data",
    ConfidenceLevel.WEB_ONLY: "Web Research",
}


def calculate_source_confidence(
    internal: Sequence[InternalSource],
    web_count: int,
    detected_category: str | None = None,
    managed_categories: Sequence[str] | None = None,
) -> SourceConfidence:
    """Grade coverage from the number of Beroe sources and the category.

    Only ``beroe`` sources count; D&B, EcoVadis and other internal feeds do
    not make an answer decision grade on their own.
    """
    beroe_count = sum(1 for s in internal if s.type is InternalSourceType.BEROE)
    normalized = detected_category.lower().strip() if detected_category else ""
    managed = [c.lower().strip() for c in managed_categories or []]
    is_managed = bool(normalized) and matches_any_category(normalized, managed)

    if is_managed and beroe_count >= 2:
        return SourceConfidence(
            level=ConfidenceLevel.HIGH,
            reason="Comprehensive Beroe coverage for this category",
            is_managed_category=True,
            category_name=detected_category,
            beroe_source_count=beroe_count,
            web_source_count=web_count,
        )
    if beroe_count >= 3:
        return SourceConfidence(
            level=ConfidenceLevel.HIGH,
            reason="Strong Beroe data coverage",
            is_managed_category=is_managed,
            category_name=detected_category,
            beroe_source_count=beroe_count,
            web_source_count=web_count,
        )
    if beroe_count >= 1:
        return SourceConfidence(
            level=ConfidenceLevel.MEDIUM,
            reason="Partial Beroe data available",
            is_managed_category=is_managed,
            category_name=detected_category,
            beroe_source_count=beroe_count,
            web_source_count=web_count,
            show_expand_to_web=True,
        )
    if web_count > 0:
        return SourceConfidence(
            level=ConfidenceLevel.WEB_ONLY,
            reason="Response based on web research",
            category_name=detected_category,
            web_source_count=web_count,
        )
    return SourceConfidence(
        level=ConfidenceLevel.LOW,
        reason="Limited source data available",
        category_name=detected_category,
        show_expand_to_web=True,
    )


def matches_any_category(detected: str, managed_categories: Sequence[str]) -> bool:
    """Conservative match of a detected category against managed ones.

    "steel" matches "steel (hot rolled coil)"; "carbon steel prices"
    matches "steel"; "it services" does not match "facilities".
    """
    if not detected or not managed_categories:
        return False

    detected_words = [
        w for w in detected.split() if len(w) >= MIN_CATEGORY_WORD_LENGTH
    ]

    for managed in managed_categories:
        if detected == managed:
            return True
        base = managed.split("(")[0].strip()
        if not base:
            continue
        if detected == base or detected.startswith(base):
            return True
        base_words = [w for w in base.split() if len(w) >= MIN_CATEGORY_WORD_LENGTH]
        if base_words and all(w in detected_words for w in base_words):
            return True

    return False


def confidence_label(level: ConfidenceLevel) -> str:
    return _LABELS.get(level, "")


def should_show_decision_grade_badge(confidence: SourceConfidence) -> bool:
    return confidence.level is ConfidenceLevel.HIGH


def should_suggest_web_expansion(confidence: SourceConfidence) -> bool:
    return confidence.show_expand_to_web and confidence.level is not ConfidenceLevel.WEB_ONLY
