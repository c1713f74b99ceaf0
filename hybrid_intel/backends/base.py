"""Base protocols for the data providers and the generation backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from hybrid_intel.models.intent import DetectedIntent


@dataclass
class ChatTurn:
    """One prior message of the conversation."""

    role: str
    content: str


@dataclass
class InternalResponse:
    """Raw internal-provider answer.

    ``sources`` is either the canonical ``{"internal": [...], "web": [...]}``
    mapping or a legacy flat list of ``{"type", "name", ...}`` records.
    """

    content: str
    sources: dict[str, Any] | list[dict[str, Any]] | None = None
    widget: dict[str, Any] | None = None
    insight: dict[str, Any] | None = None


@dataclass
class WebResponse:
    """Raw web-provider answer: ``{name?, url, domain?, snippet?}`` sources."""

    content: str
    sources: list[dict[str, Any]] = field(default_factory=list)
    citations: list[Any] = field(default_factory=list)


class GenerationError(RuntimeError):
    """The generation backend could not produce text."""


class GenerationTimeoutError(GenerationError, TimeoutError):
    """The generation call exceeded its hard timeout and was cancelled."""


@runtime_checkable
class InternalProvider(Protocol):
    """Decision-grade internal intelligence engine."""

    name: str

    async def query(
        self, text: str, history: list[ChatTurn], intent: DetectedIntent | None
    ) -> InternalResponse:
        ...


@runtime_checkable
class WebProvider(Protocol):
    """General web-research engine."""

    name: str

    def is_configured(self) -> bool:
        ...

    async def query(self, text: str, history: list[ChatTurn]) -> WebResponse:
        ...


@runtime_checkable
class TextGenerator(Protocol):
    """Single-shot prompt → raw text generation call."""

    name: str

    async def generate(self, prompt: str) -> str:
        ...
