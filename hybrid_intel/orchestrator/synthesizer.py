"""Synthesizer — merges internal and web findings into one cited narrative."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Collection, Sequence
from dataclasses import dataclass, field

from hybrid_intel.backends.base import GenerationError, GenerationTimeoutError, TextGenerator
from hybrid_intel.citations import grammar
from hybrid_intel.config import settings
from hybrid_intel.models.citation import Citation, CitationType, citation_map
from hybrid_intel.models.intent import DetectedIntent
from hybrid_intel.models.report import (
    AgreementLevel,
    HybridData,
    HybridResponse,
    SynthesisMetadata,
)
from hybrid_intel.orchestrator.envelope import parse_envelope
from hybrid_intel.orchestrator.pool import build_sources_view

logger = logging.getLogger(__name__)

SYNTHESIS_PROMPT = """\
Synthesize procurement intelligence into one unified narrative.

BEROE DATA (decision-grade):
{internal_content}

WEB RESEARCH:
{web_content}

CITATIONS (use these IDs only):
{evidence_pool}

Rules:
1. Write one cohesive narrative, not two summaries side by side.
2. Cite every factual claim immediately after it using the IDs above, \
e.g. "Prices rose 6.2% [B1] amid port congestion [W2]".
3. Prefer Beroe evidence [B#] for decision-grade claims (prices, \
benchmarks, risk); use web evidence [W#] for news and trends.
4. Say explicitly where the two sources agree or conflict.
5. Never invent citation IDs that are not in the list.

Respond with ONLY valid JSON in this exact format:
{{"content": "narrative with [B1] [W1] citations", "agreementLevel": "high|medium|low", "keyInsight": "one sentence summary"}}\
"""

FALLBACK_TRANSITION = "Market research provides additional context."
EMPTY_NARRATIVE = "Analysis based on available data."

MIN_INTERNAL_CITATIONS = 2
MIN_WEB_CITATIONS = 1
MIN_SENTENCE_LENGTH = 20
MAX_EXCERPT_LENGTH = 200

_SENTENCE_END = re.compile(r"[.!?]")


@dataclass
class SynthesizeOptions:
    managed_categories: list[str] = field(default_factory=list)


class Synthesizer:
    """Produces a ``HybridResponse`` whose every marker resolves in the pool.

    Internal-only data skips generation. Hybrid data goes through the
    generation backend under a hard timeout; any failure falls back to a
    deterministic merge of the two provider texts.
    """

    def __init__(
        self, generator: TextGenerator | None = None, timeout: float | None = None
    ) -> None:
        self.generator = generator
        self.timeout = timeout if timeout is not None else settings.synthesis_timeout

    async def synthesize(
        self,
        data: HybridData,
        intent: DetectedIntent | None = None,
        options: SynthesizeOptions | None = None,
    ) -> HybridResponse:
        if data is None or data.evidence_pool is None:
            raise ValueError("synthesize requires fetched data with an evidence pool")
        options = options or SynthesizeOptions()

        if data.web is None or not data.web.sources:
            return self._internal_only(data, intent, options)

        key_insight: str | None = None
        used_fallback = False
        try:
            raw_text = await self._generate(build_prompt(data))
            result = parse_envelope(raw_text)
            if not result.ok:
                raise GenerationError("Generation reply had no usable content")
            if result.stage != "json":
                logger.warning("Synthesis envelope parsed at stage %r", result.stage)
            content = augment_citations(result.envelope.content, data.evidence_pool)
            key_insight = result.envelope.key_insight
        except Exception as exc:
            logger.warning("Synthesis generation failed, using deterministic merge: %s", exc)
            content = deterministic_merge(data)
            used_fallback = True

        if not content.strip():
            logger.warning("Synthesis produced no content, using internal content directly")
            content = (data.internal.content or "").strip() or EMPTY_NARRATIVE

        content, unknown = validate_citations(content, {c.id for c in data.evidence_pool})
        if unknown:
            logger.warning("Removed unknown citations: %s", unknown)

        metadata = compute_synthesis_metadata(content)
        logger.info(
            "Synthesis %s: %d chars, %d internal / %d web citations",
            "used fallback" if used_fallback else "succeeded",
            len(content),
            metadata.beroe_claims_count,
            metadata.web_claims_count,
        )
        return self._respond(data, intent, options, content, metadata, key_insight, used_fallback)

    async def _generate(self, prompt: str) -> str:
        if self.generator is None:
            raise GenerationError("No generation backend configured")
        try:
            return await asyncio.wait_for(self.generator.generate(prompt), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise GenerationTimeoutError(
                f"Synthesis call timed out after {self.timeout}s"
            ) from exc

    def _internal_only(
        self,
        data: HybridData,
        intent: DetectedIntent | None,
        options: SynthesizeOptions,
    ) -> HybridResponse:
        content = data.internal.content or EMPTY_NARRATIVE
        first_internal = _first_id(data.evidence_pool, CitationType.BEROE)
        if first_internal and grammar.count_markers(content, grammar.INTERNAL_PREFIX) == 0:
            content = f"{content} {grammar.format_marker(first_internal)}"

        metadata = SynthesisMetadata(
            beroe_claims_count=grammar.count_markers(content, grammar.INTERNAL_PREFIX),
            web_claims_count=0,
            agreement_level=AgreementLevel.HIGH,
        )
        logger.info("Internal-only synthesis: %d chars", len(content))
        return self._respond(data, intent, options, content, metadata, None, False)

    def _respond(
        self,
        data: HybridData,
        intent: DetectedIntent | None,
        options: SynthesizeOptions,
        content: str,
        metadata: SynthesisMetadata,
        key_insight: str | None,
        used_fallback: bool,
    ) -> HybridResponse:
        sources = build_sources_view(
            data.internal,
            data.web,
            data.evidence_pool,
            intent.topic if intent else None,
            options.managed_categories,
        )
        return HybridResponse(
            content=content,
            citations=citation_map(data.evidence_pool),
            confidence=sources.confidence,
            synthesis_metadata=metadata,
            sources=sources,
            widget=data.internal.structured_data,
            insight=data.internal.insight,
            key_insight=key_insight,
            used_fallback=used_fallback,
        )


def format_evidence_pool(pool: Sequence[Citation]) -> str:
    """One line per pool entry: id, name, quoted snippet, category."""
    if not pool:
        return "No citations available."
    lines = []
    for c in pool:
        parts = [f"{grammar.format_marker(c.id)} {c.name}"]
        if c.snippet:
            parts.append(f'"{c.snippet}"')
        if c.category:
            parts.append(f"({c.category})")
        lines.append(" - ".join(parts))
    return "\n".join(lines)


def build_prompt(data: HybridData) -> str:
    return SYNTHESIS_PROMPT.format(
        internal_content=data.internal.content or "No Beroe data available.",
        web_content=(data.web.content if data.web else "") or "No web data available.",
        evidence_pool=format_evidence_pool(data.evidence_pool),
    )


def extract_key_sentence(text: str) -> str:
    """First sentence when it is long enough, else a bounded prefix."""
    match = _SENTENCE_END.search(text)
    first = text[:match.start()] if match else text
    if len(first.strip()) > MIN_SENTENCE_LENGTH:
        return first.strip() + "."
    suffix = "..." if len(text) > MAX_EXCERPT_LENGTH else ""
    return text[:MAX_EXCERPT_LENGTH].strip() + suffix


def deterministic_merge(data: HybridData) -> str:
    """Internal content cited with its first id, then a cited web excerpt."""
    sections: list[str] = []

    internal_text = (data.internal.content or "").strip()
    if internal_text:
        first_internal = _first_id(data.evidence_pool, CitationType.BEROE)
        if first_internal:
            internal_text = f"{internal_text} {grammar.format_marker(first_internal)}"
        sections.append(internal_text)

    web_text = (data.web.content if data.web else "").strip()
    if web_text:
        excerpt = extract_key_sentence(web_text)
        first_web = _first_id(data.evidence_pool, CitationType.WEB)
        if first_web:
            excerpt = f"{excerpt} {grammar.format_marker(first_web)}"
        sections.append(f"{FALLBACK_TRANSITION} {excerpt}")

    return "\n\n".join(sections)


def augment_citations(content: str, pool: Sequence[Citation]) -> str:
    """Append a supporting-evidence paragraph when coverage is too thin.

    Required coverage is ``MIN_INTERNAL_CITATIONS`` internal and
    ``MIN_WEB_CITATIONS`` web markers, capped by what the pool holds.
    """
    internal_ids = [c.id for c in pool if c.type is CitationType.BEROE]
    web_ids = [c.id for c in pool if c.type is CitationType.WEB]
    need_internal = min(MIN_INTERNAL_CITATIONS, len(internal_ids))
    need_web = min(MIN_WEB_CITATIONS, len(web_ids))

    if (
        grammar.count_markers(content, grammar.INTERNAL_PREFIX) >= need_internal
        and grammar.count_markers(content, grammar.WEB_PREFIX) >= need_web
    ):
        return content

    used = set(grammar.unique_ids(content))
    unused_internal = [i for i in internal_ids if i not in used][:3]
    unused_web = [i for i in web_ids if i not in used][:3]

    parts = []
    if unused_internal:
        refs = " ".join(grammar.format_marker(i) for i in unused_internal)
        parts.append(f"Additional Beroe intelligence {refs} supports this analysis.")
    if unused_web:
        refs = " ".join(grammar.format_marker(i) for i in unused_web)
        parts.append(f"Market research {refs} provides further context.")
    if not parts:
        return content
    logger.info("Augmenting narrative with unused citations")
    return f"{content}\n\nSupporting evidence: {' '.join(parts)}"


def validate_citations(text: str, valid_ids: Collection[str]) -> tuple[str, list[str]]:
    """Remove markers whose id is not in ``valid_ids``.

    Returns the cleaned text and the removed ids in order of appearance.
    Valid markers and all other text are left untouched.
    """
    unknown: list[str] = []

    def _repl(citation_id: str, literal: str) -> str:
        if citation_id in valid_ids:
            return literal
        unknown.append(citation_id)
        return ""

    return grammar.replace_markers(text, _repl), unknown


def compute_synthesis_metadata(content: str) -> SynthesisMetadata:
    """Describe how the narrative leans between internal and web evidence."""
    beroe = grammar.count_markers(content, grammar.INTERNAL_PREFIX)
    web = grammar.count_markers(content, grammar.WEB_PREFIX)

    if web == 0:
        level = AgreementLevel.HIGH
    elif beroe > 0:
        level = AgreementLevel.HIGH if beroe >= web else AgreementLevel.MEDIUM
    elif web > beroe * 2:
        level = AgreementLevel.LOW
    else:
        level = AgreementLevel.MEDIUM

    return SynthesisMetadata(
        beroe_claims_count=beroe, web_claims_count=web, agreement_level=level
    )


def _first_id(pool: Sequence[Citation], kind: CitationType) -> str | None:
    return next((c.id for c in pool if c.type is kind), None)
