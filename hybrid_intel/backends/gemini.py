"""Gemini backends — internal intelligence provider and synthesis generator."""

from __future__ import annotations

import json
import logging

import httpx

from hybrid_intel.backends.base import (
    ChatTurn,
    GenerationError,
    GenerationTimeoutError,
    InternalResponse,
)
from hybrid_intel.config import settings
from hybrid_intel.models.intent import DetectedIntent

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

INTELLIGENCE_PROMPT = """\
You are a procurement intelligence analyst with access to Beroe market \
intelligence, Dun & Bradstreet financials, EcoVadis sustainability ratings \
and the customer's supplier data. Answer the user's question with \
decision-grade analysis.

Respond with valid JSON in this exact format:
{
  "content": "A narrative answer grounded in the intelligence sources.",
  "sources": [
    {
      "name": "Steel Market Report Q4",
      "type": "beroe",
      "reportId": "beroe-steel-q4",
      "category": "Metals",
      "summary": "One sentence on what the source says."
    }
  ],
  "insight": {"headline": "Short headline", "summary": "One sentence."}
}

Rules:
- "type" is one of: beroe, dnd, ecovadis, internal_data, supplier_data.
- List only sources you actually used.
- Prefer concrete figures (prices, percentages, dates) over generalities.\
"""


def _strip_fences(raw_text: str) -> str:
    text = raw_text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0]
    return text.strip()


def _candidate_text(data: dict) -> str:
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"] or ""
    except (KeyError, IndexError, TypeError):
        return ""


class GeminiIntelligenceBackend:
    """Internal intelligence provider backed by Gemini."""

    name: str = "Beroe Intelligence"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.google_api_key
        self.model = model or settings.internal_model
        self._transport = transport

    async def query(
        self, text: str, history: list[ChatTurn], intent: DetectedIntent | None
    ) -> InternalResponse:
        """Ask the intelligence engine and return its content and sources."""
        if not self.api_key:
            raise RuntimeError("Google API key not configured")

        async with httpx.AsyncClient(
            timeout=settings.provider_timeout, transport=self._transport
        ) as client:
            response = await client.post(
                GEMINI_API_URL.format(model=self.model),
                headers={
                    "Content-Type": "application/json",
                    "x-goog-api-key": self.api_key,
                },
                json={
                    "systemInstruction": {"parts": [{"text": INTELLIGENCE_PROMPT}]},
                    "contents": self._build_contents(text, history, intent),
                    "generationConfig": {
                        "temperature": 0.4,
                        "maxOutputTokens": 2048,
                        "responseMimeType": "application/json",
                    },
                },
            )
            response.raise_for_status()

        raw_text = _candidate_text(response.json())
        logger.info("%s returned %d chars", self.name, len(raw_text))
        return self._parse_response(raw_text)

    def _build_contents(
        self, text: str, history: list[ChatTurn], intent: DetectedIntent | None
    ) -> list[dict]:
        contents = [
            {
                "role": "user" if turn.role == "user" else "model",
                "parts": [{"text": turn.content}],
            }
            for turn in history
        ]
        message = text
        if intent is not None:
            message = f"{text}\n\n[intent: {intent.category}]"
            if intent.topic:
                message += f" [category: {intent.topic}]"
        contents.append({"role": "user", "parts": [{"text": message}]})
        return contents

    def _parse_response(self, raw_text: str) -> InternalResponse:
        try:
            parsed = json.loads(_strip_fences(raw_text))
            if not isinstance(parsed, dict):
                raise TypeError("expected a JSON object")
            sources = parsed.get("sources")
            return InternalResponse(
                content=str(parsed.get("content") or ""),
                sources=sources if isinstance(sources, (dict, list)) else None,
                widget=parsed.get("widget") if isinstance(parsed.get("widget"), dict) else None,
                insight=parsed.get("insight") if isinstance(parsed.get("insight"), dict) else None,
            )
        except (json.JSONDecodeError, TypeError) as exc:
            logger.warning("%s: failed to parse structured response: %s", self.name, exc)
            return InternalResponse(content=raw_text, sources=None)


class GeminiGenerator:
    """Single-shot synthesis generation call, tuned for determinism."""

    name: str = "Gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.google_api_key
        self.model = model or settings.synthesis_model
        self.timeout = timeout if timeout is not None else settings.synthesis_timeout
        self._transport = transport

    async def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise GenerationError("Gemini API key not configured")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    GEMINI_API_URL.format(model=self.model),
                    headers={
                        "Content-Type": "application/json",
                        "x-goog-api-key": self.api_key,
                    },
                    json={
                        "contents": [{"parts": [{"text": prompt}]}],
                        "generationConfig": {
                            "temperature": settings.synthesis_temperature,
                            "topP": 0.8,
                            "topK": 40,
                            "maxOutputTokens": 2048,
                            "responseMimeType": "application/json",
                        },
                    },
                )
        except httpx.TimeoutException as exc:
            raise GenerationTimeoutError(
                f"Synthesis call timed out after {self.timeout}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"Synthesis call failed: {exc}") from exc

        if response.status_code >= 400:
            raise GenerationError(
                f"Gemini API error: {response.status_code} - {response.text[:200]}"
            )

        text = _candidate_text(response.json())
        if not text.strip():
            raise GenerationError("Empty response from Gemini")
        return text
