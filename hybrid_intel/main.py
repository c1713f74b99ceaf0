"""Hybrid Intel — FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from hybrid_intel.backends.base import ChatTurn
from hybrid_intel.backends.gemini import GeminiGenerator, GeminiIntelligenceBackend
from hybrid_intel.backends.perplexity import PerplexityBackend
from hybrid_intel.citations import parser
from hybrid_intel.config import settings
from hybrid_intel.db.database import Database
from hybrid_intel.models.canonical import CanonicalResponse
from hybrid_intel.models.intent import DetectedIntent
from hybrid_intel.models.report import HybridResponse
from hybrid_intel.orchestrator.fetcher import FetchOptions, HybridFetcher
from hybrid_intel.orchestrator.synthesizer import SynthesizeOptions, Synthesizer
from hybrid_intel.validation.validator import (
    default_acknowledgement,
    default_suggestions,
    new_response_id,
    validate_and_repair,
)

logger = logging.getLogger(__name__)

db = Database(settings.database_url)
fetcher = HybridFetcher(GeminiIntelligenceBackend(), PerplexityBackend())
synthesizer = Synthesizer(GeminiGenerator())


def setup_logging() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await db.connect()
    yield
    await db.close()


app = FastAPI(
    title="Hybrid Intel",
    description="Cited procurement intelligence from internal and web evidence",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Request / Response models ---


class Turn(BaseModel):
    role: str
    content: str


class QueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(min_length=1)
    web_enabled: bool = Field(False, alias="webEnabled")
    history: list[Turn] = Field(default_factory=list)
    intent: dict[str, Any] | None = None
    managed_categories: list[str] = Field(default_factory=list, alias="managedCategories")


class QueryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query_id: str = Field(alias="queryId")
    response: dict[str, Any]
    validation: dict[str, Any]
    citations: dict[str, Any]
    segments: list[dict[str, Any]]
    synthesis_metadata: dict[str, Any] = Field(alias="synthesisMetadata")


class ParseRequest(BaseModel):
    content: str
    citations: dict[str, dict[str, Any]] = Field(default_factory=dict)


class ParseResponse(BaseModel):
    segments: list[dict[str, Any]]
    stats: dict[str, Any]


# --- Routes ---


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/api/query", response_model=QueryResponse, response_model_by_alias=True)
async def run_query(req: QueryRequest):
    """Fetch evidence, synthesize a cited narrative and deliver it canonically."""
    intent = DetectedIntent.from_dict(req.intent) if req.intent else None
    data = await fetcher.fetch(
        req.query,
        FetchOptions(
            web_enabled=req.web_enabled,
            intent=intent,
            history=[ChatTurn(role=t.role, content=t.content) for t in req.history],
        ),
    )
    hybrid = await synthesizer.synthesize(
        data, intent, SynthesizeOptions(managed_categories=req.managed_categories)
    )

    outcome = validate_and_repair(to_canonical(hybrid, intent), intent)

    query_id = await db.create_query(
        req.query, req.web_enabled, intent.to_dict() if intent else None
    )
    await db.save_response(
        query_id,
        outcome.response,
        agreement_level=hybrid.synthesis_metadata.agreement_level.value,
        repaired=outcome.validation.repaired,
        citations=list(hybrid.citations.values()),
    )

    return QueryResponse(
        query_id=query_id,
        response=outcome.response,
        validation=outcome.validation.to_dict(),
        citations={k: c.to_dict() for k, c in hybrid.citations.items()},
        segments=[s.to_dict() for s in parser.parse(hybrid.content, hybrid.citations)],
        synthesis_metadata=hybrid.synthesis_metadata.to_dict(),
    )


@app.get("/api/responses/{response_id}")
async def get_response(response_id: str):
    """Fetch a previously delivered response with its citations."""
    record = await db.get_response(response_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Response not found")
    record["citations"] = await db.get_citations(response_id)
    return record


@app.post("/api/citations/parse", response_model=ParseResponse)
async def parse_citations(req: ParseRequest):
    """Split cited content into segments for clients that render elsewhere."""
    return ParseResponse(
        segments=[s.to_dict() for s in parser.parse(req.content, req.citations)],
        stats=parser.citation_stats(req.content).to_dict(),
    )


def to_canonical(hybrid: HybridResponse, intent: DetectedIntent | None) -> CanonicalResponse:
    """Project a synthesized response onto the canonical delivery schema."""
    canonical: CanonicalResponse = {
        "id": new_response_id(),
        "acknowledgement": default_acknowledgement(intent),
        "narrative": hybrid.content,
        "provider": "internal",
        "suggestions": default_suggestions(intent),
    }
    if hybrid.key_insight:
        canonical["headline"] = hybrid.key_insight
    if hybrid.widget is not None:
        canonical["widget"] = hybrid.widget
    if hybrid.insight is not None:
        canonical["insight"] = hybrid.insight
    if hybrid.sources is not None:
        canonical["sources"] = hybrid.sources.to_dict()
    if intent is not None:
        canonical["intent"] = intent.to_dict()
    return canonical


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "hybrid_intel.main:app",
        host=settings.host,
        port=settings.port,
    )
