import json

import httpx
import pytest

from hybrid_intel.backends.base import (
    ChatTurn,
    GenerationError,
    GenerationTimeoutError,
    InternalProvider,
    TextGenerator,
    WebProvider,
)
from hybrid_intel.backends.gemini import GeminiGenerator, GeminiIntelligenceBackend
from hybrid_intel.backends.perplexity import PerplexityBackend
from hybrid_intel.models.intent import DetectedIntent


def _gemini_reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _perplexity_reply(text, citations=None):
    data = {"choices": [{"message": {"content": text}}]}
    if citations is not None:
        data["citations"] = citations
    return data


def test_backends_satisfy_protocols():
    assert isinstance(GeminiIntelligenceBackend(api_key="k"), InternalProvider)
    assert isinstance(PerplexityBackend(api_key="k"), WebProvider)
    assert isinstance(GeminiGenerator(api_key="k"), TextGenerator)


# --- GeminiGenerator ---


@pytest.mark.asyncio
async def test_generator_returns_candidate_text():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["key"] = request.headers["x-goog-api-key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_gemini_reply('{"content": "x"}'))

    generator = GeminiGenerator(
        api_key="k", model="gemini-test", transport=httpx.MockTransport(handler)
    )

    text = await generator.generate("synthesize this")

    assert text == '{"content": "x"}'
    assert seen["url"].endswith("/models/gemini-test:generateContent")
    assert seen["key"] == "k"
    assert seen["body"]["contents"][0]["parts"][0]["text"] == "synthesize this"
    assert seen["body"]["generationConfig"]["responseMimeType"] == "application/json"


@pytest.mark.asyncio
async def test_generator_without_key_fails():
    with pytest.raises(GenerationError):
        await GeminiGenerator(api_key="").generate("p")


@pytest.mark.asyncio
async def test_generator_non_2xx_fails():
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="overloaded"))

    with pytest.raises(GenerationError, match="503"):
        await GeminiGenerator(api_key="k", transport=transport).generate("p")


@pytest.mark.asyncio
async def test_generator_empty_reply_fails():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []}))

    with pytest.raises(GenerationError):
        await GeminiGenerator(api_key="k", transport=transport).generate("p")


@pytest.mark.asyncio
async def test_generator_timeout_is_timeout_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    generator = GeminiGenerator(api_key="k", transport=httpx.MockTransport(handler))

    with pytest.raises(GenerationTimeoutError) as exc_info:
        await generator.generate("p")

    assert isinstance(exc_info.value, TimeoutError)


@pytest.mark.asyncio
async def test_generator_network_error_fails():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GenerationError):
        await GeminiGenerator(api_key="k", transport=httpx.MockTransport(handler)).generate("p")


# --- GeminiIntelligenceBackend ---


@pytest.mark.asyncio
async def test_intelligence_backend_parses_structured_reply():
    """
    WHY: The internal provider returns JSON with content and typed sources.
    HOW: Mock a fenced JSON reply and query with history and an intent.
    EXPECTED: Content, raw sources and insight surface; history and intent reach the request.
    """
    reply = {
        "content": "Steel prices rose 4%.",
        "sources": [{"name": "Steel Report", "type": "beroe"}],
        "insight": {"headline": "Up"},
        "widget": "not a dict",
    }
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_gemini_reply(f"```json\n{json.dumps(reply)}\n```"))

    backend = GeminiIntelligenceBackend(api_key="k", transport=httpx.MockTransport(handler))
    intent = DetectedIntent(category="market_context", extracted_entities={"commodity": "steel"})

    response = await backend.query(
        "steel outlook", [ChatTurn(role="assistant", content="earlier")], intent
    )

    assert response.content == "Steel prices rose 4%."
    assert response.sources == [{"name": "Steel Report", "type": "beroe"}]
    assert response.insight == {"headline": "Up"}
    assert response.widget is None
    contents = seen["body"]["contents"]
    assert contents[0] == {"role": "model", "parts": [{"text": "earlier"}]}
    assert contents[-1]["parts"][0]["text"] == (
        "steel outlook\n\n[intent: market_context] [category: steel]"
    )
    assert "systemInstruction" in seen["body"]


@pytest.mark.asyncio
async def test_intelligence_backend_unstructured_reply():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json=_gemini_reply("Just prose."))
    )

    response = await GeminiIntelligenceBackend(api_key="k", transport=transport).query(
        "q", [], None
    )

    assert response.content == "Just prose."
    assert response.sources is None


@pytest.mark.asyncio
async def test_intelligence_backend_http_error_propagates():
    transport = httpx.MockTransport(lambda request: httpx.Response(500))

    with pytest.raises(httpx.HTTPStatusError):
        await GeminiIntelligenceBackend(api_key="k", transport=transport).query("q", [], None)


@pytest.mark.asyncio
async def test_intelligence_backend_without_key_raises():
    with pytest.raises(RuntimeError):
        await GeminiIntelligenceBackend(api_key="").query("q", [], None)


# --- PerplexityBackend ---


def test_perplexity_is_configured():
    assert PerplexityBackend(api_key="k").is_configured()
    assert not PerplexityBackend(api_key="").is_configured()


@pytest.mark.asyncio
async def test_perplexity_parses_sources_and_trims_history():
    reply = json.dumps(
        {
            "content": "Demand from automakers is strong.",
            "sources": [{"name": "Reuters", "url": "https://reuters.com/a"}, "junk"],
        }
    )
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200, json=_perplexity_reply(f"Sure! {reply}", ["https://reuters.com/a"])
        )

    backend = PerplexityBackend(api_key="k", model="sonar", transport=httpx.MockTransport(handler))
    history = [ChatTurn(role="user" if i % 2 == 0 else "assistant", content=str(i)) for i in range(6)]

    response = await backend.query("steel demand", history)

    assert response.content == "Demand from automakers is strong."
    assert response.sources == [{"name": "Reuters", "url": "https://reuters.com/a"}]
    assert response.citations == ["https://reuters.com/a"]
    assert seen["auth"] == "Bearer k"
    messages = seen["body"]["messages"]
    assert messages[0]["role"] == "system"
    assert [m["content"] for m in messages[1:-1]] == ["2", "3", "4", "5"]
    assert messages[-1] == {"role": "user", "content": "steel demand"}


@pytest.mark.asyncio
async def test_perplexity_falls_back_to_citation_urls():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(
            200,
            json=_perplexity_reply(
                "Plain research text.", ["https://ft.com/x", "", None, "https://reuters.com/y"]
            ),
        )
    )

    response = await PerplexityBackend(api_key="k", transport=transport).query("q", [])

    assert response.content == "Plain research text."
    assert response.sources == [{"url": "https://ft.com/x"}, {"url": "https://reuters.com/y"}]


@pytest.mark.asyncio
async def test_perplexity_empty_sources_use_citations():
    reply = json.dumps({"content": "Summary.", "sources": []})
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json=_perplexity_reply(reply, ["https://a.com"]))
    )

    response = await PerplexityBackend(api_key="k", transport=transport).query("q", [])

    assert response.sources == [{"url": "https://a.com"}]
