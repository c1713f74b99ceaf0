"""Detected user intent, as handed to us by the caller."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class IntentCategory(Enum):
    PORTFOLIO_OVERVIEW = "portfolio_overview"
    FILTERED_DISCOVERY = "filtered_discovery"
    SUPPLIER_DEEP_DIVE = "supplier_deep_dive"
    TREND_DETECTION = "trend_detection"
    EXPLANATION_WHY = "explanation_why"
    ACTION_TRIGGER = "action_trigger"
    COMPARISON = "comparison"
    SETUP_CONFIG = "setup_config"
    REPORTING_EXPORT = "reporting_export"
    MARKET_CONTEXT = "market_context"
    INFLATION_SUMMARY = "inflation_summary"
    INFLATION_DRIVERS = "inflation_drivers"
    INFLATION_IMPACT = "inflation_impact"
    INFLATION_JUSTIFICATION = "inflation_justification"
    INFLATION_SCENARIOS = "inflation_scenarios"
    INFLATION_COMMUNICATION = "inflation_communication"
    INFLATION_BENCHMARK = "inflation_benchmark"
    RESTRICTED_QUERY = "restricted_query"
    GENERAL = "general"

    @classmethod
    def parse(cls, value: object) -> IntentCategory | None:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass
class DetectedIntent:
    """Intent classification result. ``category`` may be an unknown tag."""

    category: str = IntentCategory.GENERAL.value
    sub_intent: str | None = None
    confidence: float = 1.0
    extracted_entities: dict[str, str] = field(default_factory=dict)

    @property
    def known_category(self) -> IntentCategory | None:
        return IntentCategory.parse(self.category)

    @property
    def topic(self) -> str | None:
        """Category or commodity named in the query, used for confidence."""
        return self.extracted_entities.get("category") or self.extracted_entities.get(
            "commodity"
        )

    def to_dict(self) -> dict:
        data: dict = {
            "category": self.category,
            "confidence": self.confidence,
            "extractedEntities": dict(self.extracted_entities),
        }
        if self.sub_intent:
            data["subIntent"] = self.sub_intent
        return data

    @classmethod
    def from_dict(cls, data: dict) -> DetectedIntent:
        entities = data.get("extractedEntities") or data.get("extracted_entities") or {}
        return cls(
            category=str(data.get("category") or IntentCategory.GENERAL.value),
            sub_intent=data.get("subIntent") or data.get("sub_intent"),
            confidence=float(data.get("confidence", 1.0)),
            extracted_entities={
                k: str(v) for k, v in entities.items() if isinstance(v, str)
            },
        )
