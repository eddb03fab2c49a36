"""
Vector index selection for pgvector.

Index strategy by width:

1. width <= 2000: HNSW on the vector type, IVFFlat (lists=100) if HNSW fails
2. 2000 < width <= 4000: HNSW on a halfvec cast (pgvector >= 0.7.0)
3. width > 4000: no index possible

HNSW is preferred: it needs no existing rows to train on, unlike IVFFlat,
and generally performs better.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from loguru import logger

from ..events import EventSink, IndexCreated, IndexFailed, default_sink

# pgvector index limits (0.7.0+)
VECTOR_MAX_DIMENSIONS = 2000
HALFVEC_MAX_DIMENSIONS = 4000

IVFFLAT_LISTS = 100

HALFVEC_UNSUPPORTED_MARKERS = ("halfvec", "type does not exist", "operator class")


class SqlExecutor(Protocol):
    async def query(self, sql: str, params: Optional[Any] = None) -> Any:
        """Execute a SQL statement."""


@dataclass(frozen=True)
class IndexResult:
    success: bool
    index_kind: Optional[str]  # "hnsw", "ivfflat", "hnsw-halfvec" or None
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "indexType": self.index_kind, "message": self.message}


def index_name(table: str, column: str) -> str:
    return f"idx_{table}_{column}"


def check_identifier(value: str, label: str) -> None:
    if not value or not value.isidentifier():
        raise ValueError(f"{label} must be a plain SQL identifier, got {value!r}")


def _warn_box(title: str, lines: list[str]) -> None:
    rule = "=" * 75
    logger.warning(rule)
    logger.warning("  {}", title)
    logger.warning(rule)
    for line in lines:
        logger.warning("  {}", line)
    logger.warning(rule)


def _is_halfvec_unsupported(message: str) -> bool:
    return any(marker in message for marker in HALFVEC_UNSUPPORTED_MARKERS)


class IndexManager:
    """Drops and recreates the similarity index for one vector column."""

    def __init__(self, sink: Optional[EventSink] = None):
        self.sink = default_sink(sink)

    async def _drop_existing(self, data_source: SqlExecutor, name: str) -> None:
        try:
            await data_source.query(f"DROP INDEX IF EXISTS {name};")
        except Exception as e:
            logger.debug("Ignoring error dropping index {}: {}", name, e)

    def _created(self, kind: str, width: int, message: str) -> IndexResult:
        logger.info("Created {} index for {}-dimensional vectors", kind, width)
        self.sink.emit(IndexCreated(kind=kind, width=width))
        return IndexResult(success=True, index_kind=kind, message=message)

    def _failed(self, width: int, message: str) -> IndexResult:
        self.sink.emit(IndexFailed(width=width, message=message))
        return IndexResult(success=False, index_kind=None, message=message)

    async def create_index(
        self,
        data_source: SqlExecutor,
        width: int,
        table: str = "vector_embeddings",
        column: str = "embedding",
    ) -> IndexResult:
        """
        Create the best index available for the given width.

        Any existing index with the conventional name is dropped first.
        Index creation failures are reported in the result, not raised.

        Args:
            data_source: Object with an async ``query(sql)`` method
            width: Vector width of the column
            table: Table holding the vector column
            column: Vector column name

        Returns:
            IndexResult with the created index kind, or success=False
        """
        check_identifier(table, "table")
        check_identifier(column, "column")

        if width > HALFVEC_MAX_DIMENSIONS:
            _warn_box(
                "EMBEDDING DIMENSIONS EXCEED INDEX LIMITS",
                [
                    f"Your embeddings have {width} dimensions, which exceeds all limits:",
                    f"- vector type: max {VECTOR_MAX_DIMENSIONS} dimensions",
                    f"- halfvec type: max {HALFVEC_MAX_DIMENSIONS} dimensions",
                    "RECOMMENDATIONS:",
                    "1. Use a smaller embedding model: text-embedding-3-small (1536),",
                    "   text-embedding-3-large (3072) with halfvec, or bge-m3 (1024)",
                    "2. Or reduce dimensionality (PCA) before storing",
                    "Vector search will work but will be slow without an index.",
                ],
            )
            return self._failed(
                width,
                f"Dimensions ({width}) exceed maximum indexable limit ({HALFVEC_MAX_DIMENSIONS}); "
                f"vector type max {VECTOR_MAX_DIMENSIONS}, halfvec type max {HALFVEC_MAX_DIMENSIONS}",
            )

        name = index_name(table, column)
        await self._drop_existing(data_source, name)

        if width <= VECTOR_MAX_DIMENSIONS:
            return await self._create_vector_index(data_source, width, table, column, name)
        return await self._create_halfvec_index(data_source, width, table, column, name)

    async def _create_vector_index(
        self, data_source: SqlExecutor, width: int, table: str, column: str, name: str
    ) -> IndexResult:
        try:
            await data_source.query(
                f"CREATE INDEX {name} ON {table} USING hnsw ({column} vector_cosine_ops);"
            )
            return self._created("hnsw", width, f"HNSW index created successfully for {width} dimensions")
        except Exception as e:
            hnsw_error = str(e)
            logger.warning("HNSW index creation failed: {}", hnsw_error)

        # Older pgvector without HNSW
        try:
            await data_source.query(
                f"CREATE INDEX {name} ON {table} USING ivfflat ({column} vector_cosine_ops) "
                f"WITH (lists = {IVFFLAT_LISTS});"
            )
            return self._created(
                "ivfflat", width, f"IVFFlat index created successfully for {width} dimensions"
            )
        except Exception as e:
            logger.warning("IVFFlat index creation also failed: {}", e)
            return self._failed(width, f"No index created: {hnsw_error}")

    async def _create_halfvec_index(
        self, data_source: SqlExecutor, width: int, table: str, column: str, name: str
    ) -> IndexResult:
        try:
            await data_source.query(
                f"CREATE INDEX {name} ON {table} "
                f"USING hnsw (({column}::halfvec({width})) halfvec_cosine_ops);"
            )
            return self._created(
                "hnsw-halfvec", width, f"HNSW index (halfvec) created successfully for {width} dimensions"
            )
        except Exception as e:
            error_message = str(e)

        if _is_halfvec_unsupported(error_message):
            _warn_box(
                "HIGH-DIMENSIONAL EMBEDDING INDEX WARNING",
                [
                    f"Your embeddings have {width} dimensions, which requires halfvec support.",
                    f"- vector type: max {VECTOR_MAX_DIMENSIONS} dimensions",
                    f"- halfvec type: max {HALFVEC_MAX_DIMENSIONS} dimensions (pgvector 0.7.0+)",
                    "RECOMMENDATIONS:",
                    "1. Upgrade pgvector to >= 0.7.0 for halfvec support",
                    "2. Or use a smaller embedding model: text-embedding-3-small (1536)",
                    "   instead of text-embedding-3-large, or bge-m3 (1024)",
                    "Vector search will work but may be slower without an optimized index.",
                ],
            )
        else:
            logger.warning("HNSW halfvec index creation failed: {}", error_message)

        return self._failed(
            width, f"No vector index created for {width} dimensions. {error_message}"
        )


async def create_vector_index(
    data_source: SqlExecutor,
    width: int,
    table: str = "vector_embeddings",
    column: str = "embedding",
    sink: Optional[EventSink] = None,
) -> IndexResult:
    """Module-level convenience wrapper around IndexManager.create_index()."""
    return await IndexManager(sink=sink).create_index(data_source, width, table, column)
