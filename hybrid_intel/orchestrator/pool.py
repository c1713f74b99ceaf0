"""Evidence pool builder — numbers every source as a citation target."""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from urllib.parse import urlsplit

from hybrid_intel.citations.grammar import INTERNAL_PREFIX, WEB_PREFIX, make_id
from hybrid_intel.models.citation import Citation, CitationType
from hybrid_intel.models.report import InternalResult, SourcesView, WebResult
from hybrid_intel.models.source import InternalSource, WebSource
from hybrid_intel.orchestrator.confidence import calculate_source_confidence


def assign_citation_ids(
    internal: InternalResult, web: WebResult | None
) -> tuple[InternalResult, WebResult | None]:
    """Return copies of both results whose sources carry their pool id.

    Internal sources get ``B1, B2, ...`` and web sources ``W1, W2, ...`` in
    array order. Duplicate names are numbered independently.
    """
    annotated_internal = dataclasses.replace(
        internal,
        sources=tuple(
            dataclasses.replace(s, citation_id=make_id(INTERNAL_PREFIX, i))
            for i, s in enumerate(internal.sources, 1)
        ),
    )
    if web is None:
        return annotated_internal, None
    annotated_web = dataclasses.replace(
        web,
        sources=tuple(
            dataclasses.replace(s, citation_id=make_id(WEB_PREFIX, i))
            for i, s in enumerate(web.sources, 1)
        ),
    )
    return annotated_internal, annotated_web


def build_pool(internal: InternalResult, web: WebResult | None) -> list[Citation]:
    """Build the ordered evidence pool: all ``B*`` entries, then all ``W*``."""
    pool: list[Citation] = []

    for i, source in enumerate(internal.sources, 1):
        pool.append(
            Citation(
                id=make_id(INTERNAL_PREFIX, i),
                type=CitationType.BEROE,
                name=source.name,
                snippet=source.summary,
                report_id=source.report_id,
                category=source.category,
            )
        )

    if web is not None:
        for i, source in enumerate(web.sources, 1):
            pool.append(
                Citation(
                    id=make_id(WEB_PREFIX, i),
                    type=CitationType.WEB,
                    name=source.name,
                    snippet=source.snippet,
                    url=source.url,
                )
            )

    return pool


def build_sources_view(
    internal: InternalResult,
    web: WebResult | None,
    pool: Sequence[Citation],
    detected_category: str | None = None,
    managed_categories: Sequence[str] | None = None,
) -> SourcesView:
    """Build the UI-facing source listing and its citation lookup table.

    The listing is de-duplicated (web by normalized URL, internal by type
    and name). The lookup table keeps every source and is keyed twice: by
    pool id, and by plain sequential numbers with web sources first, since
    generated text does not always use the ``B``/``W`` convention.
    """
    internal_sources = list(internal.sources)
    web_sources = list(web.sources) if web is not None else []

    internal_ids = [c.id for c in pool if c.type is CitationType.BEROE]
    web_ids = [c.id for c in pool if c.type is CitationType.WEB]

    citations: dict[str, InternalSource | WebSource] = {}
    for ids, sources in ((internal_ids, internal_sources), (web_ids, web_sources)):
        for position, source in enumerate(sources):
            key = source.citation_id or (ids[position] if position < len(ids) else None)
            if key:
                citations[key] = source

    for number, source in enumerate([*web_sources, *internal_sources], 1):
        citations[str(number)] = source

    listed_web = _dedupe_web(web_sources)
    listed_internal = _dedupe_internal(internal_sources)

    return SourcesView(
        web=listed_web,
        internal=listed_internal,
        citations=citations,
        confidence=calculate_source_confidence(
            listed_internal,
            len(listed_web),
            detected_category,
            managed_categories,
        ),
    )


def _dedupe_web(sources: list[WebSource]) -> list[WebSource]:
    seen: set[str] = set()
    unique: list[WebSource] = []
    for source in sources:
        key = normalize_url(source.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(source)
    return unique


def _dedupe_internal(sources: list[InternalSource]) -> list[InternalSource]:
    seen: set[str] = set()
    unique: list[InternalSource] = []
    for source in sources:
        if not source.name:
            continue
        key = f"{source.type.value}:{source.name}".lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(source)
    return unique


def normalize_url(url: str) -> str:
    """Origin + path without trailing slash + query; fragments ignored."""
    trimmed = url.strip()
    if not trimmed:
        return trimmed
    parts = urlsplit(trimmed)
    if not parts.scheme or not parts.netloc:
        return trimmed
    path = parts.path.rstrip("/")
    query = f"?{parts.query}" if parts.query else ""
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}{path}{query}"


def extract_domain(url: str) -> str:
    """Hostname without a leading ``www.``; ``source`` when unparseable."""
    try:
        hostname = urlsplit(url.strip()).hostname
    except ValueError:
        return "source"
    if not hostname:
        return "source"
    return hostname[4:] if hostname.startswith("www.") else hostname


def domain_display_name(url: str) -> str:
    domain = extract_domain(url)
    return domain[:1].upper() + domain[1:]
