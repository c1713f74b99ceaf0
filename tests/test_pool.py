import pytest

from hybrid_intel.models.citation import CitationType
from hybrid_intel.models.report import InternalResult, WebResult
from hybrid_intel.models.source import InternalSource, InternalSourceType, WebSource
from hybrid_intel.orchestrator.pool import (
    assign_citation_ids,
    build_pool,
    build_sources_view,
    domain_display_name,
    extract_domain,
    normalize_url,
)


def _internal(*names, source_type=InternalSourceType.BEROE):
    return InternalResult(
        content="internal",
        sources=tuple(InternalSource(name=n, type=source_type) for n in names),
    )


def _web(*urls):
    return WebResult(
        content="web",
        sources=tuple(
            WebSource(name=extract_domain(u), url=u, domain=extract_domain(u)) for u in urls
        ),
    )


@pytest.mark.parametrize("m,n", [(0, 0), (1, 0), (0, 2), (3, 2), (12, 11)])
def test_pool_numbering(m, n):
    """
    WHY: Citation ids are the wire contract between synthesis and rendering.
    HOW: Build pools for m internal and n web sources.
    EXPECTED: B1..Bm then W1..Wn, and each annotated source carries its id.
    """
    internal = _internal(*[f"Report {i}" for i in range(m)])
    web = _web(*[f"https://site{i}.com/a" for i in range(n)])

    annotated_internal, annotated_web = assign_citation_ids(internal, web)
    pool = build_pool(annotated_internal, annotated_web)

    assert len(pool) == m + n
    assert [c.id for c in pool] == [f"B{i}" for i in range(1, m + 1)] + [
        f"W{i}" for i in range(1, n + 1)
    ]
    assert [s.citation_id for s in annotated_internal.sources] == [c.id for c in pool[:m]]
    assert [s.citation_id for s in annotated_web.sources] == [c.id for c in pool[m:]]


def test_assign_citation_ids_leaves_inputs_untouched():
    internal = _internal("A")
    annotated, _ = assign_citation_ids(internal, None)

    assert internal.sources[0].citation_id is None
    assert annotated.sources[0].citation_id == "B1"


def test_duplicate_names_are_numbered_independently():
    pool = build_pool(_internal("Steel Report", "Steel Report"), None)

    assert [(c.id, c.name) for c in pool] == [("B1", "Steel Report"), ("B2", "Steel Report")]


def test_pool_without_web_has_only_internal_entries():
    pool = build_pool(_internal("A", "B"), None)

    assert all(c.type is CitationType.BEROE for c in pool)


def test_pool_projects_source_fields():
    internal = InternalResult(
        content="",
        sources=(
            InternalSource(
                name="Steel Report", report_id="r-1", category="Metals", summary="Up 4%."
            ),
        ),
    )
    web = WebResult(
        content="",
        sources=(WebSource(name="Reuters", url="https://reuters.com/a", domain="reuters.com", snippet="Demand up."),),
    )

    b1, w1 = build_pool(internal, web)

    assert (b1.snippet, b1.report_id, b1.category, b1.url) == ("Up 4%.", "r-1", "Metals", None)
    assert (w1.type, w1.snippet, w1.url) == (CitationType.WEB, "Demand up.", "https://reuters.com/a")


def test_sources_view_keys_resolve_to_same_source():
    """
    WHY: Generated text may cite "[1]" instead of "[W1]"; both must resolve.
    HOW: Build a view for two internal and two web sources.
    EXPECTED: Numeric keys count web sources first, and point at the same objects.
    """
    internal, web = assign_citation_ids(
        _internal("Steel Report", "Aluminum Report"),
        _web("https://reuters.com/a", "https://ft.com/b"),
    )
    pool = build_pool(internal, web)

    view = build_sources_view(internal, web, pool)

    assert view.citations["W1"] is view.citations["1"]
    assert view.citations["W2"] is view.citations["2"]
    assert view.citations["B1"] is view.citations["3"]
    assert view.citations["B2"] is view.citations["4"]
    assert view.total_web_count == 2
    assert view.total_internal_count == 2


def test_sources_view_uses_pool_ids_for_unannotated_sources():
    internal = _internal("Steel Report")
    pool = build_pool(internal, None)

    view = build_sources_view(internal, None, pool)

    assert view.citations["B1"] is internal.sources[0]


def test_sources_view_dedupes_listing_but_keeps_lookup():
    internal, web = assign_citation_ids(
        InternalResult(
            content="",
            sources=(
                InternalSource(name="Steel Report"),
                InternalSource(name="steel report"),
            ),
        ),
        _web("https://reuters.com/a/", "https://reuters.com/a"),
    )
    view = build_sources_view(internal, web, build_pool(internal, web))

    assert len(view.internal) == 1
    assert len(view.web) == 1
    assert {"B1", "B2", "W1", "W2"} <= set(view.citations)


def test_sources_view_attaches_confidence():
    internal, _ = assign_citation_ids(_internal("A", "B", "C"), None)
    view = build_sources_view(internal, None, build_pool(internal, None), "steel", ["Steel"])

    assert view.confidence is not None
    assert view.confidence.level.value == "high"
    assert view.confidence.is_managed_category is True


def test_normalize_url():
    assert normalize_url("https://Example.com/path/?q=1") == "https://example.com/path?q=1"
    assert normalize_url("https://example.com/path#frag") == "https://example.com/path"
    assert normalize_url("not a url") == "not a url"


def test_extract_domain():
    assert extract_domain("https://www.reuters.com/markets") == "reuters.com"
    assert extract_domain("garbage") == "source"
    assert domain_display_name("https://www.reuters.com/x") == "Reuters.com"
