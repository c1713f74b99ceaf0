"""Response validator — checks canonical responses and repairs broken ones.

Repair never raises and never edits its input: it builds a fresh response,
filling required fields with defaults derived from the detected intent and
keeping optional fields only when each is individually well-shaped.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from hybrid_intel.models.canonical import (
    PROVIDERS,
    CanonicalResponse,
    ResponseSources,
    Suggestion,
)
from hybrid_intel.models.intent import DetectedIntent, IntentCategory

logger = logging.getLogger(__name__)

DEFAULT_ACKNOWLEDGEMENT = "Here's what I found."
DEFAULT_NARRATIVE = "I found relevant information for your query."

ACKNOWLEDGEMENTS: dict[IntentCategory, str] = {
    IntentCategory.PORTFOLIO_OVERVIEW: "Here's your portfolio overview.",
    IntentCategory.FILTERED_DISCOVERY: "I found these suppliers for you.",
    IntentCategory.SUPPLIER_DEEP_DIVE: "Here's the supplier profile.",
    IntentCategory.TREND_DETECTION: "Here are the recent changes.",
    IntentCategory.EXPLANATION_WHY: "Let me explain.",
    IntentCategory.ACTION_TRIGGER: "Here are your options.",
    IntentCategory.COMPARISON: "Here's the comparison.",
    IntentCategory.SETUP_CONFIG: "I can help with that.",
    IntentCategory.REPORTING_EXPORT: "Generating your report.",
    IntentCategory.MARKET_CONTEXT: "Here's the market context.",
    IntentCategory.INFLATION_SUMMARY: "Here's the inflation update.",
    IntentCategory.INFLATION_DRIVERS: "Here's what's driving prices.",
    IntentCategory.INFLATION_IMPACT: "Here's the impact analysis.",
    IntentCategory.INFLATION_JUSTIFICATION: "Let me validate that price.",
    IntentCategory.INFLATION_SCENARIOS: "Here's the scenario analysis.",
    IntentCategory.INFLATION_COMMUNICATION: "Here's your briefing.",
    IntentCategory.INFLATION_BENCHMARK: "Here's the benchmark data.",
    IntentCategory.RESTRICTED_QUERY: "I can help with some of that.",
    IntentCategory.GENERAL: DEFAULT_ACKNOWLEDGEMENT,
}

NO_INTENT_SUGGESTIONS: list[Suggestion] = [
    {"id": "def-1", "text": "Tell me more", "icon": "message"},
    {"id": "def-2", "text": "Show related data", "icon": "chart"},
    {"id": "def-3", "text": "Export this information", "icon": "document"},
]

GENERIC_SUGGESTIONS: list[Suggestion] = [
    {"id": "def-1", "text": "Tell me more", "icon": "message"},
    {"id": "def-2", "text": "Show related data", "icon": "chart"},
    {"id": "def-3", "text": "What should I do next?", "icon": "lightbulb"},
]

SUGGESTIONS: dict[IntentCategory, list[Suggestion]] = {
    IntentCategory.PORTFOLIO_OVERVIEW: [
        {"id": "po-1", "text": "Show high-risk suppliers", "icon": "search"},
        {"id": "po-2", "text": "What changed recently?", "icon": "alert"},
        {"id": "po-3", "text": "Break down by category", "icon": "chart"},
    ],
    IntentCategory.FILTERED_DISCOVERY: [
        {"id": "fd-1", "text": "Compare these suppliers", "icon": "compare"},
        {"id": "fd-2", "text": "Find alternatives", "icon": "search"},
        {"id": "fd-3", "text": "Export this list", "icon": "document"},
    ],
    IntentCategory.SUPPLIER_DEEP_DIVE: [
        {"id": "sd-1", "text": "Why this risk level?", "icon": "lightbulb"},
        {"id": "sd-2", "text": "Show risk history", "icon": "chart"},
        {"id": "sd-3", "text": "Find alternatives", "icon": "search"},
    ],
    IntentCategory.TREND_DETECTION: [
        {"id": "td-1", "text": "Why did this change?", "icon": "lightbulb"},
        {"id": "td-2", "text": "Show affected suppliers", "icon": "search"},
        {"id": "td-3", "text": "Set up alerts", "icon": "alert"},
    ],
    IntentCategory.MARKET_CONTEXT: [
        {"id": "mc-1", "text": "How does this affect my portfolio?", "icon": "chart"},
        {"id": "mc-2", "text": "Show exposed suppliers", "icon": "search"},
        {"id": "mc-3", "text": "What should I do?", "icon": "lightbulb"},
    ],
    IntentCategory.INFLATION_SUMMARY: [
        {"id": "is-1", "text": "Why did prices change?", "icon": "lightbulb"},
        {"id": "is-2", "text": "Show my exposure", "icon": "chart"},
        {"id": "is-3", "text": "Generate executive brief", "icon": "document"},
    ],
    IntentCategory.INFLATION_DRIVERS: [
        {"id": "id-1", "text": "How does this impact my spend?", "icon": "chart"},
        {"id": "id-2", "text": "What can I do about it?", "icon": "lightbulb"},
        {"id": "id-3", "text": "Show price forecast", "icon": "chart"},
    ],
}


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    repaired: bool = False

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": list(self.errors), "repaired": self.repaired}


@dataclass
class RepairOutcome:
    response: CanonicalResponse
    validation: ValidationResult


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def validate_response(response: Any) -> ValidationResult:
    """Check required fields and the shape of any optional ones present."""
    if not isinstance(response, Mapping):
        return ValidationResult(valid=False, errors=["response is not an object"])

    errors: list[str] = []
    if not _non_empty_str(response.get("id")):
        errors.append("missing id")
    if not _non_empty_str(response.get("acknowledgement")):
        errors.append("missing acknowledgement")
    narrative = response.get("narrative")
    if not isinstance(narrative, str) or not narrative.strip():
        errors.append("missing narrative")
    if response.get("provider") not in PROVIDERS:
        errors.append("invalid provider")

    if "widget" in response:
        widget = response["widget"]
        if not isinstance(widget, Mapping):
            errors.append("invalid widget")
        elif not isinstance(widget.get("type"), str):
            errors.append("widget missing type")

    if "suggestions" in response and not isinstance(response["suggestions"], list):
        errors.append("suggestions must be an array")

    if "sources" in response:
        sources = response["sources"]
        if not (
            isinstance(sources, Mapping)
            and isinstance(sources.get("web"), list)
            and isinstance(sources.get("internal"), list)
        ):
            errors.append("invalid sources format")

    return ValidationResult(valid=not errors, errors=errors)


def _category(intent: DetectedIntent | None) -> IntentCategory | None:
    return intent.known_category if intent is not None else None


def default_acknowledgement(intent: DetectedIntent | None = None) -> str:
    category = _category(intent)
    if category is None:
        return DEFAULT_ACKNOWLEDGEMENT
    return ACKNOWLEDGEMENTS.get(category, DEFAULT_ACKNOWLEDGEMENT)


def default_suggestions(intent: DetectedIntent | None = None) -> list[Suggestion]:
    if intent is None:
        return [dict(s) for s in NO_INTENT_SUGGESTIONS]
    table = SUGGESTIONS.get(_category(intent), GENERIC_SUGGESTIONS)
    return [dict(s) for s in table]


def normalize_sources(sources: Any) -> ResponseSources | None:
    """Coerce canonical or legacy source listings into ``ResponseSources``.

    Returns None when nothing usable is found; callers treat "no sources"
    and "invalid sources" the same way.
    """
    if isinstance(sources, Mapping) and "web" in sources and "internal" in sources:
        web = sources.get("web") if isinstance(sources.get("web"), list) else []
        internal = sources.get("internal") if isinstance(sources.get("internal"), list) else []
        result: ResponseSources = {
            "web": list(web),
            "internal": list(internal),
            "totalWebCount": sources.get("totalWebCount") or len(web),
            "totalInternalCount": sources.get("totalInternalCount") or len(internal),
        }
        citations = sources.get("citations")
        if isinstance(citations, Mapping) and citations:
            result["citations"] = dict(citations)
        confidence = sources.get("confidence")
        if isinstance(confidence, Mapping) and confidence:
            result["confidence"] = dict(confidence)
        return result

    if isinstance(sources, list):
        records = [s for s in sources if isinstance(s, Mapping)]
        web = [
            {
                "title": r.get("title") or r.get("name") or "Source",
                "url": r["url"],
                **({"favicon": r["favicon"]} if r.get("favicon") else {}),
            }
            for r in records
            if "url" in r
        ]
        internal = [dict(r) for r in records if "url" not in r and "type" in r]
        if not web and not internal:
            return None
        return {
            "web": web,
            "internal": internal,
            "totalWebCount": len(web),
            "totalInternalCount": len(internal),
        }

    return None


def new_response_id() -> str:
    return f"resp-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


def _repair_suggestions(raw: list) -> list[Suggestion]:
    repaired: list[Suggestion] = []
    for i, item in enumerate(raw):
        if isinstance(item, Mapping):
            suggestion: Suggestion = {
                "id": item["id"] if isinstance(item.get("id"), str) else f"sug-{i}",
                "text": item["text"] if isinstance(item.get("text"), str) else str(item.get("text") or ""),
            }
            if isinstance(item.get("icon"), str):
                suggestion["icon"] = item["icon"]
            repaired.append(suggestion)
        else:
            repaired.append({"id": f"sug-{i}", "text": str(item)})
    return repaired


def repair_response(response: Any, intent: DetectedIntent | None = None) -> CanonicalResponse:
    """Build a schema-valid response from ``response``, whatever it is."""
    r: Mapping[str, Any] = response if isinstance(response, Mapping) else {}

    if _non_empty_str(r.get("narrative")) and r["narrative"].strip():
        narrative = r["narrative"]
    elif _non_empty_str(r.get("content")) and r["content"].strip():
        narrative = r["content"]
    else:
        narrative = DEFAULT_NARRATIVE

    provider = r.get("provider")
    repaired: CanonicalResponse = {
        "id": r["id"] if _non_empty_str(r.get("id")) else new_response_id(),
        "acknowledgement": (
            r["acknowledgement"]
            if _non_empty_str(r.get("acknowledgement"))
            else default_acknowledgement(intent)
        ),
        "narrative": narrative,
        "provider": provider if provider in PROVIDERS else "local",
    }

    if _non_empty_str(r.get("headline")):
        repaired["headline"] = r["headline"]

    bullets = r.get("bullets")
    if isinstance(bullets, list) and all(isinstance(b, str) for b in bullets):
        repaired["bullets"] = list(bullets)

    for key, required in (("widget", "type"), ("insight", "headline"), ("artifactContent", "title")):
        value = r.get(key)
        if isinstance(value, Mapping) and isinstance(value.get(required), str):
            repaired[key] = dict(value)

    suggestions = r.get("suggestions")
    if isinstance(suggestions, list) and suggestions:
        repaired["suggestions"] = _repair_suggestions(suggestions)
    else:
        repaired["suggestions"] = default_suggestions(intent)

    sources = normalize_sources(r.get("sources"))
    if sources is not None:
        repaired["sources"] = sources

    if isinstance(r.get("intent"), Mapping):
        repaired["intent"] = dict(r["intent"])
    elif intent is not None:
        repaired["intent"] = intent.to_dict()

    return repaired


def validate_and_repair(response: Any, intent: DetectedIntent | None = None) -> RepairOutcome:
    """Return ``response`` itself when valid, otherwise a repaired copy."""
    validation = validate_response(response)
    if validation.valid:
        return RepairOutcome(response=response, validation=validation)

    logger.warning("Repairing invalid response: %s", ", ".join(validation.errors))
    validation.repaired = True
    return RepairOutcome(response=repair_response(response, intent), validation=validation)
