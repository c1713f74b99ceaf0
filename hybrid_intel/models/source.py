"""Source data models — the evidence items each provider hands back."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum


class InternalSourceType(Enum):
    BEROE = "beroe"
    DUN_BRADSTREET = "dun_bradstreet"
    ECOVADIS = "ecovadis"
    INTERNAL_DATA = "internal_data"
    SUPPLIER_DATA = "supplier_data"


# Legacy provider tags accepted on the wire. Anything not listed is dropped.
_LEGACY_TYPE_TAGS: dict[str, InternalSourceType] = {
    "beroe": InternalSourceType.BEROE,
    "dnd": InternalSourceType.DUN_BRADSTREET,
    "dun_bradstreet": InternalSourceType.DUN_BRADSTREET,
    "ecovadis": InternalSourceType.ECOVADIS,
    "internal_data": InternalSourceType.INTERNAL_DATA,
    "supplier_data": InternalSourceType.SUPPLIER_DATA,
}


def map_internal_type(tag: object) -> InternalSourceType | None:
    """Map an incoming type tag to an internal source type.

    Returns None for unrecognized tags so the caller drops the source
    instead of filing it under a generic bucket.
    """
    if isinstance(tag, InternalSourceType):
        return tag
    if not isinstance(tag, str):
        return None
    return _LEGACY_TYPE_TAGS.get(tag)


@dataclass(frozen=True)
class InternalSource:
    """A decision-grade source from the internal intelligence engine."""

    name: str
    type: InternalSourceType = InternalSourceType.BEROE
    report_id: str | None = None
    category: str | None = None
    summary: str | None = None
    citation_id: str | None = None

    def to_dict(self) -> dict:
        data = {"name": self.name, "type": self.type.value}
        if self.report_id:
            data["reportId"] = self.report_id
        if self.category:
            data["category"] = self.category
        if self.summary:
            data["summary"] = self.summary
        if self.citation_id:
            data["citationId"] = self.citation_id
        return data


@dataclass(frozen=True)
class WebSource:
    """A web-research source. Always carries a url."""

    name: str
    url: str
    domain: str
    snippet: str | None = None
    date: str | None = None
    citation_id: str | None = None

    def to_dict(self) -> dict:
        data = {k: v for k, v in asdict(self).items() if v is not None}
        if "citation_id" in data:
            data["citationId"] = data.pop("citation_id")
        return data
