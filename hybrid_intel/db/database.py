"""SQLite database layer via aiosqlite."""

from __future__ import annotations

import json
import uuid

import aiosqlite

from hybrid_intel.models.citation import Citation

SCHEMA = """
CREATE TABLE IF NOT EXISTS queries (
    id TEXT PRIMARY KEY,
    query TEXT NOT NULL,
    web_enabled INTEGER NOT NULL DEFAULT 0,
    intent_json TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS responses (
    id TEXT PRIMARY KEY,
    query_id TEXT NOT NULL REFERENCES queries(id),
    provider TEXT NOT NULL,
    agreement_level TEXT,
    repaired INTEGER NOT NULL DEFAULT 0,
    response_json TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS citations (
    response_id TEXT NOT NULL REFERENCES responses(id),
    citation_id TEXT NOT NULL,
    type TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT,
    PRIMARY KEY (response_id, citation_id)
);
"""


class Database:
    """Async SQLite database for persisting queries and delivered responses."""

    def __init__(self, path: str = "hybrid_intel.db") -> None:
        self.path = path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self._db = await aiosqlite.connect(self.path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Database not connected — call connect() first")
        return self._db

    # -- Queries --

    async def create_query(
        self, query: str, web_enabled: bool = False, intent: dict | None = None
    ) -> str:
        query_id = str(uuid.uuid4())
        await self.db.execute(
            "INSERT INTO queries (id, query, web_enabled, intent_json) VALUES (?, ?, ?, ?)",
            (query_id, query, int(web_enabled), json.dumps(intent) if intent else None),
        )
        await self.db.commit()
        return query_id

    async def get_query(self, query_id: str) -> dict | None:
        cursor = await self.db.execute("SELECT * FROM queries WHERE id = ?", (query_id,))
        row = await cursor.fetchone()
        return dict(row) if row else None

    # -- Responses --

    async def save_response(
        self,
        query_id: str,
        response: dict,
        agreement_level: str | None = None,
        repaired: bool = False,
        citations: list[Citation] | None = None,
    ) -> str:
        """Store a delivered canonical response and the citations it carries."""
        response_id = response["id"]
        await self.db.execute(
            "INSERT OR REPLACE INTO responses "
            "(id, query_id, provider, agreement_level, repaired, response_json) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                response_id,
                query_id,
                response["provider"],
                agreement_level,
                int(repaired),
                json.dumps(response),
            ),
        )
        for citation in citations or []:
            await self.db.execute(
                "INSERT OR REPLACE INTO citations (response_id, citation_id, type, name, url) "
                "VALUES (?, ?, ?, ?, ?)",
                (response_id, citation.id, citation.type.value, citation.name, citation.url),
            )
        await self.db.commit()
        return response_id

    async def get_response(self, response_id: str) -> dict | None:
        cursor = await self.db.execute(
            "SELECT * FROM responses WHERE id = ?", (response_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        record = dict(row)
        record["response"] = json.loads(record.pop("response_json"))
        return record

    async def get_citations(self, response_id: str) -> list[dict]:
        cursor = await self.db.execute(
            "SELECT citation_id, type, name, url FROM citations WHERE response_id = ? "
            "ORDER BY rowid",
            (response_id,),
        )
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]
