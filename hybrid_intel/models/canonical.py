"""Canonical response wire shapes handed to the rendering layer."""

from __future__ import annotations

from typing import Any, Literal, TypedDict

Provider = Literal["internal", "web", "local"]

PROVIDERS: tuple[str, ...] = ("internal", "web", "local")


class Suggestion(TypedDict, total=False):
    id: str
    text: str
    icon: str


class ResponseSources(TypedDict, total=False):
    web: list[dict[str, Any]]
    internal: list[dict[str, Any]]
    totalWebCount: int
    totalInternalCount: int
    citations: dict[str, Any]
    confidence: dict[str, Any]


class CanonicalResponse(TypedDict, total=False):
    id: str
    acknowledgement: str
    narrative: str
    provider: Provider
    headline: str
    bullets: list[str]
    widget: dict[str, Any]
    insight: dict[str, Any]
    artifactContent: dict[str, Any]
    suggestions: list[Suggestion]
    sources: ResponseSources
    intent: dict[str, Any]
