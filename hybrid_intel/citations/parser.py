"""Citation parser — splits narrative text into renderable segments.

Unlike the synthesizer, which removes markers that do not resolve, the
parser keeps unknown markers as plain text: content reaching the renderer
may never have been through synthesis validation.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from hybrid_intel.citations import grammar
from hybrid_intel.models.citation import Citation, CitationType
from hybrid_intel.models.source import WebSource


@dataclass(frozen=True)
class Segment:
    """A run of plain text, or one resolved citation marker.

    For citation segments ``content`` is the bare id (``B1``); ``literal``
    is the exact text the segment was cut from.
    """

    type: str
    content: str
    citation_id: str | None = None
    source_type: str | None = None

    @property
    def literal(self) -> str:
        if self.type == "citation":
            return grammar.format_marker(self.content)
        return self.content

    def to_dict(self) -> dict:
        data = {"type": self.type, "content": self.content}
        if self.type == "citation":
            data["citationId"] = self.citation_id
            data["sourceType"] = self.source_type
        return data


@dataclass(frozen=True)
class CitationStats:
    total: int
    beroe: int
    web: int
    unique: list[str]

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "beroe": self.beroe,
            "web": self.web,
            "unique": list(self.unique),
        }


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def source_type_of(record: Any) -> str:
    """Classify a resolved citation record by its shape, not its id."""
    if isinstance(record, WebSource):
        return CitationType.WEB.value
    if isinstance(record, Citation):
        return CitationType.WEB.value if record.url else CitationType.BEROE.value
    if _field(record, "url") or _field(record, "domain"):
        return CitationType.WEB.value
    return CitationType.BEROE.value


def parse(content: str, citations: Mapping[str, Any]) -> list[Segment]:
    """Parse ``content`` into alternating text and citation segments.

    Adjacent text (including unresolved markers) is merged into a single
    text segment.
    """
    if not content:
        return []

    segments: list[Segment] = []
    buffer: list[str] = []
    last = 0

    for marker in grammar.tokenize(content):
        buffer.append(content[last:marker.start])
        last = marker.end
        record = citations.get(marker.id)
        if record is None:
            buffer.append(content[marker.start:marker.end])
            continue
        text = "".join(buffer)
        if text:
            segments.append(Segment(type="text", content=text))
        buffer = []
        segments.append(
            Segment(
                type="citation",
                content=marker.id,
                citation_id=marker.id,
                source_type=source_type_of(record),
            )
        )

    buffer.append(content[last:])
    text = "".join(buffer)
    if text:
        segments.append(Segment(type="text", content=text))
    return segments


def reconstruct(segments: list[Segment]) -> str:
    return "".join(s.literal for s in segments)


def extract_citation_ids(content: str) -> list[str]:
    return grammar.unique_ids(content)


def extract_citation_ids_by_type(content: str) -> dict[str, list[str]]:
    beroe, web = grammar.partition_by_prefix(grammar.unique_ids(content))
    return {"beroe": beroe, "web": web}


def has_citations(content: str) -> bool:
    return grammar.has_markers(content)


def count_total_citations(content: str) -> int:
    return len(grammar.unique_ids(content))


def strip_citations(content: str) -> str:
    """Drop every marker, for plain-text previews."""
    return grammar.replace_markers(content, lambda _id, _literal: "")


def humanize_citations(content: str, citations: Mapping[str, Any]) -> str:
    """Replace markers with ``(source name)`` where the record has a name."""

    def _repl(citation_id: str, literal: str) -> str:
        name = _field(citations.get(citation_id), "name")
        return f"({name})" if name else literal

    return grammar.replace_markers(content, _repl)


def citation_stats(content: str) -> CitationStats:
    ids = grammar.unique_ids(content)
    beroe, web = grammar.partition_by_prefix(ids)
    return CitationStats(total=len(ids), beroe=len(beroe), web=len(web), unique=ids)
