"""Hybrid fetcher — queries the internal and web providers in parallel."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from hybrid_intel.backends.base import ChatTurn, InternalProvider, WebProvider
from hybrid_intel.models.intent import DetectedIntent
from hybrid_intel.models.report import HybridData, InternalResult, WebResult
from hybrid_intel.models.source import InternalSource, WebSource, map_internal_type
from hybrid_intel.orchestrator.pool import (
    assign_citation_ids,
    build_pool,
    domain_display_name,
    extract_domain,
)

logger = logging.getLogger(__name__)

INTERNAL_UNAVAILABLE = "Unable to retrieve Beroe intelligence data."
WEB_UNAVAILABLE = "Unable to retrieve web research data."
DEFAULT_INTERNAL_NAME = "Beroe Report"


@dataclass
class FetchOptions:
    web_enabled: bool = False
    intent: DetectedIntent | None = None
    history: list[ChatTurn] = field(default_factory=list)


class HybridFetcher:
    """Fans a query out to both providers and builds the evidence pool.

    A provider that raises is replaced by an empty-evidence placeholder
    result; it never aborts the other call or the fetch.
    """

    def __init__(self, internal: InternalProvider, web: WebProvider | None = None) -> None:
        self.internal = internal
        self.web = web

    async def fetch(self, query: str, options: FetchOptions) -> HybridData:
        if not isinstance(query, str):
            raise TypeError("query must be a string")
        if not isinstance(options, FetchOptions):
            raise TypeError("options must be FetchOptions")

        use_web = bool(options.web_enabled) and self.web is not None and self.web.is_configured()
        logger.info("Starting hybrid fetch (web=%s)", use_web)

        internal_task = self._fetch_internal(query, options)
        if use_web:
            internal, web = await asyncio.gather(
                internal_task, self._fetch_web(query, options)
            )
        else:
            internal, web = await internal_task, None

        internal, web = assign_citation_ids(internal, web)
        evidence_pool = build_pool(internal, web)

        logger.info(
            "Fetch complete: %d internal, %d web sources",
            len(internal.sources),
            len(web.sources) if web else 0,
        )
        return HybridData(internal=internal, web=web, evidence_pool=evidence_pool)

    async def _fetch_internal(self, query: str, options: FetchOptions) -> InternalResult:
        try:
            response = await self.internal.query(query, options.history, options.intent)
        except Exception as exc:
            logger.error("Internal provider %s failed: %s", self.internal.name, exc)
            return InternalResult(content=INTERNAL_UNAVAILABLE)

        return InternalResult(
            content=response.content or "",
            sources=extract_internal_sources(response.sources),
            structured_data=response.widget,
            insight=response.insight,
        )

    async def _fetch_web(self, query: str, options: FetchOptions) -> WebResult:
        try:
            response = await self.web.query(query, options.history)
        except Exception as exc:
            logger.error("Web provider %s failed: %s", self.web.name, exc)
            return WebResult(content=WEB_UNAVAILABLE)

        return WebResult(
            content=response.content or "",
            sources=extract_web_sources(response.sources),
            raw_citations=tuple(response.citations or ()),
        )


def _internal_from_record(record: Any) -> InternalSource | None:
    if isinstance(record, InternalSource):
        return record
    if not isinstance(record, Mapping):
        return None
    source_type = map_internal_type(record.get("type"))
    if source_type is None:
        return None
    return InternalSource(
        name=str(record.get("name") or DEFAULT_INTERNAL_NAME),
        type=source_type,
        report_id=record.get("reportId") or record.get("report_id"),
        category=record.get("category"),
        summary=record.get("summary"),
    )


def extract_internal_sources(sources: Any) -> tuple[InternalSource, ...]:
    """Accept the canonical ``{"internal": [...]}`` shape or a legacy list.

    Records whose type tag is not recognized are dropped.
    """
    if isinstance(sources, Mapping):
        records = sources.get("internal")
        if not isinstance(records, list):
            return ()
    elif isinstance(sources, list):
        records = sources
    else:
        return ()

    extracted = (_internal_from_record(r) for r in records)
    return tuple(s for s in extracted if s is not None)


def extract_web_sources(sources: Any) -> tuple[WebSource, ...]:
    """Normalize web records; records without a url are unusable and dropped."""
    if not isinstance(sources, list):
        return ()

    extracted: list[WebSource] = []
    for record in sources:
        if isinstance(record, WebSource):
            extracted.append(record)
            continue
        if not isinstance(record, Mapping):
            continue
        url = record.get("url")
        if not isinstance(url, str) or not url.strip():
            continue
        url = url.strip()
        extracted.append(
            WebSource(
                name=str(record.get("name") or record.get("title") or domain_display_name(url)),
                url=url,
                domain=str(record.get("domain") or extract_domain(url)),
                snippet=record.get("snippet"),
                date=record.get("date"),
            )
        )
    return tuple(extracted)
