"""Inline citation marker grammar.

``[B<n>]`` marks internal (decision-grade) evidence, ``[W<n>]`` marks web
evidence. ``n`` starts at 1 with no leading zeros and the prefix letters
are case-sensitive. The synthesizer, the parser and the statistics helpers
all read markers through this module and nothing else.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass

INTERNAL_PREFIX = "B"
WEB_PREFIX = "W"

MARKER_PATTERN = re.compile(r"\[([BW][1-9][0-9]*)\]")


@dataclass(frozen=True)
class Marker:
    id: str
    start: int
    end: int

    @property
    def prefix(self) -> str:
        return self.id[0]


def format_marker(citation_id: str) -> str:
    return f"[{citation_id}]"


def make_id(prefix: str, number: int) -> str:
    if prefix not in (INTERNAL_PREFIX, WEB_PREFIX) or number < 1:
        raise ValueError(f"invalid citation id parts: {prefix!r}, {number!r}")
    return f"{prefix}{number}"


def tokenize(text: str) -> Iterator[Marker]:
    """Yield every marker in ``text`` from left to right."""
    for match in MARKER_PATTERN.finditer(text or ""):
        yield Marker(id=match.group(1), start=match.start(), end=match.end())


def unique_ids(text: str) -> list[str]:
    """Distinct marker ids in order of first appearance."""
    return list(dict.fromkeys(m.id for m in tokenize(text)))


def partition_by_prefix(ids: list[str]) -> tuple[list[str], list[str]]:
    """Split ids into (internal, web) keeping their order."""
    internal = [i for i in ids if i.startswith(INTERNAL_PREFIX)]
    web = [i for i in ids if i.startswith(WEB_PREFIX)]
    return internal, web


def count_markers(text: str, prefix: str) -> int:
    """Number of marker occurrences (repeats included) with ``prefix``."""
    return sum(1 for m in tokenize(text) if m.prefix == prefix)


def has_markers(text: str) -> bool:
    return MARKER_PATTERN.search(text or "") is not None


def replace_markers(text: str, repl: Callable[[str, str], str]) -> str:
    """Substitute each marker with ``repl(marker_id, literal)``."""
    return MARKER_PATTERN.sub(lambda m: repl(m.group(1), m.group(0)), text or "")
