"""Citation data model — the read-only pool entry a marker resolves to."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CitationType(Enum):
    BEROE = "beroe"
    WEB = "web"


@dataclass(frozen=True)
class Citation:
    """One entry of the evidence pool, addressed by ``[B1]``/``[W1]`` markers."""

    id: str
    type: CitationType
    name: str
    snippet: str | None = None
    url: str | None = None
    report_id: str | None = None
    category: str | None = None

    def to_dict(self) -> dict:
        data = {"id": self.id, "type": self.type.value, "name": self.name}
        if self.snippet:
            data["snippet"] = self.snippet
        if self.url:
            data["url"] = self.url
        if self.report_id:
            data["reportId"] = self.report_id
        if self.category:
            data["category"] = self.category
        return data


CitationMap = dict[str, Citation]


def citation_map(pool: list[Citation]) -> CitationMap:
    """Index a pool by citation id."""
    return {c.id: c for c in pool}
