"""Unit Tests for the pgvector repository helpers (no database needed)."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.tool_vectors.storage.pgvector import (
    PgVectorRepository,
    bind_positional,
    to_async_url,
    vector_literal,
)


@pytest.mark.parametrize(
    "url,expected",
    [
        ("postgresql://u:p@db:5432/hub", "postgresql+asyncpg://u:p@db:5432/hub"),
        ("postgres://db/hub", "postgresql+asyncpg://db/hub"),
        ("postgresql+asyncpg://db/hub", "postgresql+asyncpg://db/hub"),
    ],
)
def test_to_async_url(url, expected):
    assert to_async_url(url) == expected


def test_vector_literal():
    assert vector_literal([0.5, -1, 0]) == "[0.5,-1.0,0.0]"


def test_bind_positional():
    sql, params = bind_positional("DELETE FROM t WHERE dimensions != $1 AND model = $2", [1536, "m"])
    assert sql == "DELETE FROM t WHERE dimensions != :p1 AND model = :p2"
    assert params == {"p1": 1536, "p2": "m"}


def test_bind_positional_without_params():
    assert bind_positional("SELECT 1", None) == ("SELECT 1", {})


def test_repository_starts_disconnected():
    repository = PgVectorRepository(db_url="postgresql://db/hub")
    assert not repository.is_connected()
    assert repository.table == "vector_embeddings"
    assert repository.column == "embedding"


@pytest.mark.asyncio
async def test_repository_requires_db_url():
    with pytest.raises(RuntimeError, match="DB_URL"):
        await PgVectorRepository().initialize()


@pytest.mark.asyncio
async def test_transaction_runs_statements_on_one_connection():
    conn = MagicMock()
    conn.execute = AsyncMock(return_value=MagicMock(returns_rows=False))
    begun = []

    @asynccontextmanager
    async def begin():
        begun.append(conn)
        yield conn

    engine = MagicMock()
    engine.begin = begin
    repository = PgVectorRepository(engine=engine)

    async with repository.transaction() as executor:
        await executor.query("DELETE FROM t WHERE dimensions != $1", [1536])
        await executor.query("ALTER TABLE t ALTER COLUMN embedding TYPE vector(1536);")

    assert begun == [conn]
    assert conn.execute.await_count == 2
    first_sql, first_params = conn.execute.await_args_list[0].args
    assert str(first_sql) == "DELETE FROM t WHERE dimensions != :p1"
    assert first_params == {"p1": 1536}
