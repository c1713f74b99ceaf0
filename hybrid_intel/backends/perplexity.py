"""Perplexity web-research backend — OpenAI-compatible chat completions."""

from __future__ import annotations

import json
import logging
import re

import httpx

from hybrid_intel.backends.base import ChatTurn, WebResponse
from hybrid_intel.config import settings

logger = logging.getLogger(__name__)

PERPLEXITY_API_URL = "https://api.perplexity.ai/chat/completions"

SYSTEM_PROMPT = """\
You are a procurement market researcher with real-time web access. \
Research the user's question using current news, market data and \
industry publications.

Respond with valid JSON in this exact format:
{
  "content": "A concise, factual research summary.",
  "sources": [
    {
      "name": "Publication name",
      "url": "https://example.com/article",
      "snippet": "The sentence from the source that supports the summary."
    }
  ]
}

Rules:
- Every source must have a real, resolvable URL.
- Focus on publicly available market intelligence.
- Never reveal partner-restricted supplier scores.\
"""

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class PerplexityBackend:
    """Web-research provider using Perplexity's online models."""

    name: str = "Perplexity"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.perplexity_api_key
        self.model = model or settings.web_model
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def query(self, text: str, history: list[ChatTurn]) -> WebResponse:
        """Run a web research query and return content, sources and citations."""
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        turns = settings.web_history_turns
        recent = history[-turns:] if turns > 0 else []
        messages.extend(
            {
                "role": "user" if turn.role == "user" else "assistant",
                "content": turn.content,
            }
            for turn in recent
        )
        messages.append({"role": "user", "content": text})

        async with httpx.AsyncClient(
            timeout=settings.provider_timeout, transport=self._transport
        ) as client:
            response = await client.post(
                PERPLEXITY_API_URL,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.model,
                    "messages": messages,
                    "temperature": 0.2,
                    "max_tokens": 1500,
                },
            )
            response.raise_for_status()

        data = response.json()
        raw_text = data["choices"][0]["message"]["content"] or ""
        citations = data.get("citations") or []
        return self._parse_response(raw_text, citations)

    def _parse_response(self, raw_text: str, citations: list) -> WebResponse:
        match = _JSON_OBJECT.search(raw_text)
        if match:
            try:
                parsed = json.loads(match.group(0))
                sources = parsed.get("sources") or []
                if not sources:
                    sources = _sources_from_citations(citations)
                return WebResponse(
                    content=str(parsed.get("content") or ""),
                    sources=[s for s in sources if isinstance(s, dict)],
                    citations=citations,
                )
            except (json.JSONDecodeError, AttributeError) as exc:
                logger.warning("Perplexity: failed to parse structured response: %s", exc)

        return WebResponse(
            content=raw_text,
            sources=_sources_from_citations(citations),
            citations=citations,
        )


def _sources_from_citations(citations: list) -> list[dict]:
    return [{"url": url} for url in citations if isinstance(url, str) and url]
