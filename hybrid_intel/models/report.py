"""Provider result, sources view and hybrid response data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from hybrid_intel.models.citation import Citation, CitationMap
from hybrid_intel.models.source import InternalSource, WebSource


@dataclass(frozen=True)
class InternalResult:
    """What the internal intelligence provider returned for one query."""

    content: str
    sources: tuple[InternalSource, ...] = ()
    structured_data: dict[str, Any] | None = None
    insight: dict[str, Any] | None = None


@dataclass(frozen=True)
class WebResult:
    """What the web-research provider returned for one query."""

    content: str
    sources: tuple[WebSource, ...] = ()
    raw_citations: tuple[Any, ...] = ()


@dataclass(frozen=True)
class HybridData:
    """Both provider results plus the evidence pool built from them."""

    internal: InternalResult
    web: WebResult | None
    evidence_pool: list[Citation]


class AgreementLevel(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class SynthesisMetadata:
    beroe_claims_count: int = 0
    web_claims_count: int = 0
    agreement_level: AgreementLevel = AgreementLevel.HIGH

    def to_dict(self) -> dict:
        return {
            "beroeClaimsCount": self.beroe_claims_count,
            "webClaimsCount": self.web_claims_count,
            "agreementLevel": self.agreement_level.value,
        }


class ConfidenceLevel(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    WEB_ONLY = "web_only"


@dataclass
class SourceConfidence:
    """Whether the answer is backed by decision-grade internal coverage."""

    level: ConfidenceLevel
    reason: str
    is_managed_category: bool = False
    category_name: str | None = None
    beroe_source_count: int = 0
    web_source_count: int = 0
    show_expand_to_web: bool = False

    def to_dict(self) -> dict:
        data = {
            "level": self.level.value,
            "reason": self.reason,
            "isManagedCategory": self.is_managed_category,
            "beroeSourceCount": self.beroe_source_count,
            "webSourceCount": self.web_source_count,
            "showExpandToWeb": self.show_expand_to_web,
        }
        if self.category_name:
            data["categoryName"] = self.category_name
        return data


@dataclass
class SourcesView:
    """De-duplicated, UI-facing source listing with a citation lookup table.

    ``citations`` is keyed both by pool ids (``B1``, ``W1``) and by plain
    sequential numbers (``"1"``, ``"2"``, web sources first); both keys of a
    source point at the same object.
    """

    web: list[WebSource] = field(default_factory=list)
    internal: list[InternalSource] = field(default_factory=list)
    citations: dict[str, InternalSource | WebSource] = field(default_factory=dict)
    confidence: SourceConfidence | None = None

    @property
    def total_web_count(self) -> int:
        return len(self.web)

    @property
    def total_internal_count(self) -> int:
        return len(self.internal)

    def to_dict(self) -> dict:
        data: dict = {
            "web": [s.to_dict() for s in self.web],
            "internal": [s.to_dict() for s in self.internal],
            "totalWebCount": self.total_web_count,
            "totalInternalCount": self.total_internal_count,
        }
        if self.citations:
            data["citations"] = {k: s.to_dict() for k, s in self.citations.items()}
        if self.confidence is not None:
            data["confidence"] = self.confidence.to_dict()
        return data


@dataclass
class HybridResponse:
    """A synthesized narrative whose every marker resolves in ``citations``."""

    content: str
    citations: CitationMap
    confidence: SourceConfidence
    synthesis_metadata: SynthesisMetadata
    sources: SourcesView | None = None
    widget: dict[str, Any] | None = None
    insight: dict[str, Any] | None = None
    key_insight: str | None = None
    used_fallback: bool = False

    def to_dict(self) -> dict:
        data: dict = {
            "content": self.content,
            "citations": {k: c.to_dict() for k, c in self.citations.items()},
            "confidence": self.confidence.to_dict(),
            "synthesisMetadata": self.synthesis_metadata.to_dict(),
        }
        if self.widget is not None:
            data["widget"] = self.widget
        if self.insight is not None:
            data["insight"] = self.insight
        if self.key_insight:
            data["keyInsight"] = self.key_insight
        return data
