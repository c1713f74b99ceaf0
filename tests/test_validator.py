import pytest

from hybrid_intel.models.intent import DetectedIntent
from hybrid_intel.validation.validator import (
    DEFAULT_ACKNOWLEDGEMENT,
    DEFAULT_NARRATIVE,
    GENERIC_SUGGESTIONS,
    NO_INTENT_SUGGESTIONS,
    default_acknowledgement,
    default_suggestions,
    normalize_sources,
    repair_response,
    validate_and_repair,
    validate_response,
)

VALID = {
    "id": "resp-1",
    "acknowledgement": "Here's the market context.",
    "narrative": "Steel is up [B1].",
    "provider": "internal",
    "suggestions": [{"id": "s1", "text": "More"}],
    "sources": {"web": [], "internal": [{"name": "Steel Report", "type": "beroe"}]},
}


def test_repair_minimal_response(portfolio_intent):
    """
    WHY: A legacy response with only content must still be deliverable.
    HOW: Repair {"content": "hi"} with a portfolio_overview intent.
    EXPECTED: Narrative from content, intent acknowledgement, suggestions, local provider.
    """
    repaired = repair_response({"content": "hi"}, portfolio_intent)

    assert repaired["narrative"] == "hi"
    assert repaired["acknowledgement"] == "Here's your portfolio overview."
    assert repaired["provider"] == "local"
    assert repaired["suggestions"]
    assert repaired["id"].startswith("resp-")
    assert repaired["intent"]["category"] == "portfolio_overview"
    assert validate_response(repaired).valid


def test_valid_response_passes_through_unchanged():
    outcome = validate_and_repair(VALID)

    assert outcome.response is VALID
    assert outcome.validation.valid
    assert outcome.validation.repaired is False


def test_invalid_response_is_repaired(portfolio_intent):
    broken = {"content": "hi", "provider": "openai"}

    outcome = validate_and_repair(broken, portfolio_intent)

    assert outcome.validation.valid is False
    assert outcome.validation.repaired is True
    assert "missing narrative" in outcome.validation.errors
    assert "invalid provider" in outcome.validation.errors
    assert validate_response(outcome.response).valid
    assert broken == {"content": "hi", "provider": "openai"}


@pytest.mark.parametrize("value", [None, "text", 42, ["a"]])
def test_non_object_is_repaired(value):
    outcome = validate_and_repair(value)

    assert outcome.response["narrative"] == DEFAULT_NARRATIVE
    assert outcome.response["acknowledgement"] == DEFAULT_ACKNOWLEDGEMENT
    assert outcome.response["suggestions"] == NO_INTENT_SUGGESTIONS
    assert outcome.validation.errors == ["response is not an object"]


def test_validate_reports_optional_field_shapes():
    response = dict(VALID, widget={"data": 1}, suggestions="nope", sources=[])

    errors = validate_response(response).errors

    assert errors == [
        "widget missing type",
        "suggestions must be an array",
        "invalid sources format",
    ]


def test_whitespace_narrative_is_invalid():
    assert "missing narrative" in validate_response(dict(VALID, narrative="   ")).errors


def test_repair_keeps_only_well_shaped_optional_fields():
    repaired = repair_response(
        {
            "narrative": "Steel is up.",
            "provider": "web",
            "headline": "Steel up",
            "bullets": ["a", 3],
            "widget": {"type": "price_chart", "data": [1]},
            "insight": {"summary": "no headline"},
            "artifactContent": {"title": "Brief"},
            "suggestions": [{"text": "More"}, "plain", {"id": "x", "text": "Why?", "icon": "lightbulb"}],
        }
    )

    assert repaired["provider"] == "web"
    assert repaired["headline"] == "Steel up"
    assert "bullets" not in repaired
    assert repaired["widget"] == {"type": "price_chart", "data": [1]}
    assert "insight" not in repaired
    assert repaired["artifactContent"] == {"title": "Brief"}
    assert repaired["suggestions"] == [
        {"id": "sug-0", "text": "More"},
        {"id": "sug-1", "text": "plain"},
        {"id": "x", "text": "Why?", "icon": "lightbulb"},
    ]


def test_repair_prefers_narrative_over_content():
    repaired = repair_response({"narrative": "primary", "content": "legacy"})

    assert repaired["narrative"] == "primary"


def test_normalize_legacy_source_list():
    sources = normalize_sources(
        [
            {"title": "Reuters", "url": "https://reuters.com/a"},
            {"name": "FT", "url": "https://ft.com/b", "favicon": "https://ft.com/f.ico"},
            {"name": "Steel Report", "type": "beroe"},
            {"name": "Untyped"},
            "junk",
        ]
    )

    assert sources == {
        "web": [
            {"title": "Reuters", "url": "https://reuters.com/a"},
            {"title": "FT", "url": "https://ft.com/b", "favicon": "https://ft.com/f.ico"},
        ],
        "internal": [{"name": "Steel Report", "type": "beroe"}],
        "totalWebCount": 2,
        "totalInternalCount": 1,
    }


def test_normalize_canonical_sources_fills_counts():
    sources = normalize_sources(
        {"web": [{"url": "https://a.com"}], "internal": "bad", "citations": {}}
    )

    assert sources == {
        "web": [{"url": "https://a.com"}],
        "internal": [],
        "totalWebCount": 1,
        "totalInternalCount": 0,
    }


@pytest.mark.parametrize("value", [None, [], ["junk"], {"web": []}, "text"])
def test_normalize_unusable_sources(value):
    assert normalize_sources(value) is None


def test_default_acknowledgement_and_suggestions():
    unknown = DetectedIntent(category="something_new")
    comparison = DetectedIntent(category="comparison")

    assert default_acknowledgement(None) == DEFAULT_ACKNOWLEDGEMENT
    assert default_acknowledgement(unknown) == DEFAULT_ACKNOWLEDGEMENT
    assert default_acknowledgement(comparison) == "Here's the comparison."
    assert default_suggestions(None) == NO_INTENT_SUGGESTIONS
    assert default_suggestions(unknown) == GENERIC_SUGGESTIONS
    assert default_suggestions(comparison) == GENERIC_SUGGESTIONS
    assert default_suggestions(DetectedIntent(category="market_context"))[0]["id"] == "mc-1"


def test_default_suggestions_are_copies():
    suggestions = default_suggestions(None)
    suggestions[0]["text"] = "changed"

    assert NO_INTENT_SUGGESTIONS[0]["text"] == "Tell me more"
