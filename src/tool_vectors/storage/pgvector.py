"""
PostgreSQL + pgvector implementation of the vector repository.

Uses SQLAlchemy's asyncio engine (asyncpg driver) with textual SQL. The
vector column is created unconstrained ("vector"); the reconciler gives it
a concrete width on the first save.
"""

import json
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from ..config import Config
from .repository import TOOL_ENTITY_TYPE, EmbedFn, EmbeddingRow, SimilarityRow

_POSITIONAL_PARAM = re.compile(r"\$(\d+)")


def to_async_url(db_url: str) -> str:
    """Rewrite a postgres URL to use the asyncpg driver."""
    for prefix in ("postgresql+asyncpg://", "postgresql://", "postgres://"):
        if db_url.startswith(prefix):
            return "postgresql+asyncpg://" + db_url[len(prefix):]
    return db_url


def vector_literal(vector: Sequence[float]) -> str:
    """pgvector text representation: "[0.1,0.2,...]"."""
    return "[" + ",".join(repr(float(v)) for v in vector) + "]"


def bind_positional(sql: str, params: Optional[Sequence[Any]]) -> tuple[str, dict[str, Any]]:
    """Translate ``$1``-style placeholders to SQLAlchemy named binds."""
    if not params:
        return sql, {}
    bound = {f"p{i}": value for i, value in enumerate(params, start=1)}
    return _POSITIONAL_PARAM.sub(lambda m: f":p{m.group(1)}", sql), bound


async def _run(conn: AsyncConnection, sql: str, params: Optional[Sequence[Any]]) -> list[dict[str, Any]]:
    statement, bound = bind_positional(sql, params)
    result = await conn.execute(text(statement), bound)
    if not result.returns_rows:
        return []
    return [dict(row) for row in result.mappings().all()]


class ConnectionExecutor:
    """``query()`` bound to one open connection (and its transaction)."""

    def __init__(self, conn: AsyncConnection):
        self._conn = conn

    async def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> list[dict[str, Any]]:
        return await _run(self._conn, sql, params)


class PgVectorRepository:
    """
    Vector embedding storage on PostgreSQL.

    Implements both VectorRepository and ConnectionLifecycle.
    """

    def __init__(
        self,
        db_url: Optional[str] = None,
        table: Optional[str] = None,
        column: Optional[str] = None,
        engine: Optional[AsyncEngine] = None,
    ):
        self.db_url = db_url
        self.table = table or Config.VECTOR_TABLE
        self.column = column or Config.VECTOR_COLUMN
        self._engine = engine
        self._initialized = False

    def is_connected(self) -> bool:
        return self._initialized

    def _get_engine(self) -> AsyncEngine:
        if self._engine is None:
            if not self.db_url:
                raise RuntimeError("DB_URL is required for the vector repository")
            self._engine = create_async_engine(to_async_url(self.db_url), pool_pre_ping=True)
        return self._engine

    async def initialize(self) -> None:
        """Create the pgvector extension and the embeddings table if missing."""
        if self._initialized:
            return

        engine = self._get_engine()
        async with engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            await conn.execute(
                text(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self.table} (
                        id SERIAL PRIMARY KEY,
                        entity_type VARCHAR(100) NOT NULL,
                        entity_key VARCHAR(512) NOT NULL,
                        text_content TEXT NOT NULL,
                        {self.column} vector,
                        metadata TEXT,
                        model VARCHAR(200) NOT NULL,
                        dimensions INTEGER NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                        UNIQUE (entity_type, entity_key)
                    )
                    """
                )
            )
        self._initialized = True
        logger.info("Vector repository initialized (table={})", self.table)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
        self._initialized = False

    async def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> list[dict[str, Any]]:
        async with self._get_engine().begin() as conn:
            return await _run(conn, sql, params)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[ConnectionExecutor]:
        """Run several ``query()`` calls in one transaction, rolled back on error."""
        async with self._get_engine().begin() as conn:
            yield ConnectionExecutor(conn)

    async def save_embedding(
        self,
        entity_type: str,
        entity_key: str,
        text_content: str,
        vector: Sequence[float],
        metadata: dict[str, Any],
        model: str,
    ) -> None:
        sql = text(
            f"""
            INSERT INTO {self.table}
                (entity_type, entity_key, text_content, {self.column}, metadata, model, dimensions)
            VALUES
                (:entity_type, :entity_key, :text_content, cast(:vector AS vector),
                 :metadata, :model, :dimensions)
            ON CONFLICT (entity_type, entity_key) DO UPDATE SET
                text_content = EXCLUDED.text_content,
                {self.column} = EXCLUDED.{self.column},
                metadata = EXCLUDED.metadata,
                model = EXCLUDED.model,
                dimensions = EXCLUDED.dimensions,
                updated_at = now()
            """
        )
        async with self._get_engine().begin() as conn:
            await conn.execute(
                sql,
                {
                    "entity_type": entity_type,
                    "entity_key": entity_key,
                    "text_content": text_content,
                    "vector": vector_literal(vector),
                    "metadata": json.dumps(metadata),
                    "model": model,
                    "dimensions": len(vector),
                },
            )

    async def search_similar(
        self,
        vector: Sequence[float],
        limit: int,
        threshold: float,
        entity_types: Sequence[str],
    ) -> list[SimilarityRow]:
        sql = text(
            f"""
            SELECT entity_type, entity_key, text_content, metadata, model, dimensions,
                   1 - ({self.column} <=> cast(:vector AS vector)) AS similarity
            FROM {self.table}
            WHERE entity_type = ANY(:entity_types)
              AND 1 - ({self.column} <=> cast(:vector AS vector)) >= :threshold
            ORDER BY {self.column} <=> cast(:vector AS vector)
            LIMIT :limit
            """
        )
        async with self._get_engine().connect() as conn:
            result = await conn.execute(
                sql,
                {
                    "vector": vector_literal(vector),
                    "entity_types": list(entity_types),
                    "threshold": threshold,
                    "limit": limit,
                },
            )
            rows = result.mappings().all()

        return [
            SimilarityRow(
                similarity=float(row["similarity"]) if row["similarity"] is not None else 0.0,
                embedding=EmbeddingRow(
                    entity_key=row["entity_key"],
                    text_content=row["text_content"],
                    metadata=row["metadata"],
                    entity_type=row["entity_type"],
                    model=row["model"],
                    dimensions=row["dimensions"],
                ),
            )
            for row in rows
        ]

    async def search_by_text(
        self,
        query: str,
        embed_fn: EmbedFn,
        limit: int,
        threshold: float,
        entity_types: Sequence[str],
    ) -> list[SimilarityRow]:
        vector = await embed_fn(query)
        return await self.search_similar(vector, limit, threshold, entity_types)

    async def delete_by_server_name(self, server_name: str) -> int:
        prefix = f"{server_name}:"
        sql = text(
            f"""
            DELETE FROM {self.table}
            WHERE entity_type = :entity_type
              AND left(entity_key, length(:prefix)) = :prefix
            """
        )
        async with self._get_engine().begin() as conn:
            result = await conn.execute(sql, {"entity_type": TOOL_ENTITY_TYPE, "prefix": prefix})
            return result.rowcount or 0
