"""Parsing of the generation envelope ``{content, agreementLevel, keyInsight}``.

Three stages, tried in order, each total:

1. strict JSON: a ``{...}`` object whose ``content`` is a non-empty string;
2. field extraction: the quoted ``"content"`` value, unescaped, non-empty;
3. raw text: the reply itself minus obvious JSON-field noise.

A reply that decodes to a JSON object never reaches the raw stage, and a
raw remainder that is only noise (``null``, ``{}``) is a failure.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^\s*`{1,3}(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*`{1,3}\s*$")
_CONTENT_KEY = re.compile(r'"content"\s*:\s*"')
_AGREEMENT_FIELD = re.compile(r'"agreementLevel"\s*:\s*"(high|medium|low)"', re.IGNORECASE)
_INSIGHT_FIELD = re.compile(r'"keyInsight"\s*:\s*"((?:[^"\\]|\\.)*)"')
_NOISE_PREFIX = re.compile(r'^\s*\{\s*"content"\s*:\s*"?', re.IGNORECASE)
_NOISE_SUFFIX = re.compile(r'"?\s*,?\s*"(?:agreementLevel|keyInsight)".*$', re.DOTALL)
_NOISE_CLOSE = re.compile(r'"\s*\}\s*$')
_NOISE_ONLY = frozenset({"", "null", "{}", "[]", '"', '""'})


@dataclass(frozen=True)
class Envelope:
    content: str
    agreement_level: str | None = None
    key_insight: str | None = None


@dataclass(frozen=True)
class ParseResult:
    """Outcome of one stage. ``envelope`` is set only when ``ok``."""

    ok: bool
    stage: str
    envelope: Envelope | None = None

    @classmethod
    def success(cls, stage: str, envelope: Envelope) -> ParseResult:
        return cls(ok=True, stage=stage, envelope=envelope)

    @classmethod
    def failure(cls, stage: str) -> ParseResult:
        return cls(ok=False, stage=stage)


def strip_fences(text: str) -> str:
    """Remove a leading ```json / `json fence and a trailing fence."""
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text, count=1), count=1).strip()


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


def _json_object(text: str) -> dict | None:
    """The outermost ``{...}`` in ``text`` when it decodes to an object."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        parsed = json.loads(text[start:end + 1])
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_strict_json(text: str) -> ParseResult:
    parsed = _json_object(text)
    if parsed is None:
        return ParseResult.failure("json")
    content = parsed.get("content")
    if not isinstance(content, str) or not content.strip():
        return ParseResult.failure("json")
    return ParseResult.success(
        "json",
        Envelope(
            content=content,
            agreement_level=_optional_str(parsed.get("agreementLevel")),
            key_insight=_optional_str(parsed.get("keyInsight")),
        ),
    )


def _unescape(raw: str) -> str:
    try:
        return json.loads(f'"{raw}"')
    except ValueError:
        return raw.replace("\\n", "\n").replace('\\"', '"').replace("\\\\", "\\")


def _closing_quote(text: str, start: int) -> int:
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            return i
    return -1


def parse_content_field(text: str) -> ParseResult:
    match = _CONTENT_KEY.search(text)
    if not match:
        return ParseResult.failure("field")
    end = _closing_quote(text, match.end())
    if end == -1:
        return ParseResult.failure("field")
    content = _unescape(text[match.end():end])
    if not content.strip():
        return ParseResult.failure("field")

    agreement = _AGREEMENT_FIELD.search(text)
    insight = _INSIGHT_FIELD.search(text)
    return ParseResult.success(
        "field",
        Envelope(
            content=content,
            agreement_level=agreement.group(1).lower() if agreement else None,
            key_insight=_unescape(insight.group(1)) if insight else None,
        ),
    )


def parse_raw_text(text: str) -> ParseResult:
    cleaned = _NOISE_PREFIX.sub("", text, count=1)
    cleaned = _NOISE_SUFFIX.sub("", cleaned, count=1)
    cleaned = _NOISE_CLOSE.sub("", cleaned, count=1).strip()
    if cleaned in _NOISE_ONLY:
        return ParseResult.failure("raw")
    return ParseResult.success("raw", Envelope(content=cleaned))


def parse_envelope(raw_text: str) -> ParseResult:
    """Run the stages in order and return the first success.

    Fails when the reply is empty, when it is a JSON object without usable
    ``content``, or when nothing but JSON noise is left of it.
    """
    text = strip_fences(raw_text or "")
    for result in (parse_strict_json(text), parse_content_field(text)):
        if result.ok:
            return result
    if _json_object(text) is not None:
        logger.warning("Generation reply is a JSON object without usable content")
        return ParseResult.failure("json")
    logger.warning("Generation reply is not a JSON envelope, using raw text")
    return parse_raw_text(text)
