"""
Vector width reconciliation.

Keeps the declared width of the shared vector column, its index and the
stored rows consistent with the width the active embedding model really
produces.

States:
- UNINITIALIZED: no declared width and no rows to infer one from
- CONSISTENT: declared width == required width
- MISMATCHED: declared width != required width, or the column is
  unconstrained but already holds rows

Migration order for MISMATCHED: drop index -> purge rows of other widths
-> alter column width (one transaction) -> recreate index. Purged rows are
lost; vectors of different widths cannot be compared, so they are
regenerated on the next save of their server.
"""

import re
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Optional

from loguru import logger

from ..config import Config
from ..events import DimensionMismatchDetected, EventSink, RecordsPurged, default_sink
from ..exceptions import InvalidDimensionError, ReconciliationError
from .index import IndexManager, IndexResult, SqlExecutor, check_identifier, index_name
from .lock import LocalReconciliationLock, ReconciliationLock

_VECTOR_TYPE = re.compile(r"vector\((\d+)\)")


class ColumnState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONSISTENT = "consistent"
    MISMATCHED = "mismatched"


@dataclass(frozen=True)
class ReconciliationResult:
    state: ColumnState  # state found before any migration
    current_width: int
    required_width: int
    index: Optional[IndexResult] = None

    @property
    def migrated(self) -> bool:
        return self.state is not ColumnState.CONSISTENT


def classify(declared_width: int, required_width: int, inferred_width: int = 0) -> ColumnState:
    """
    Classify the column against the required width.

    Only a declared width counts as consistent; a width inferred from rows
    of an unconstrained column always needs a migration.
    """
    if declared_width == required_width:
        return ColumnState.CONSISTENT
    if declared_width <= 0 and inferred_width <= 0:
        return ColumnState.UNINITIALIZED
    return ColumnState.MISMATCHED


def _first_value(rows: Any, column: str) -> Any:
    if not rows:
        return None
    first = rows[0]
    if isinstance(first, dict):
        return first.get(column)
    return getattr(first, column, None)


class DimensionReconciler:
    """Detects the stored vector width and migrates the store when it drifts."""

    def __init__(
        self,
        data_source: SqlExecutor,
        index_manager: Optional[IndexManager] = None,
        lock: Optional[ReconciliationLock] = None,
        table: Optional[str] = None,
        column: Optional[str] = None,
        sink: Optional[EventSink] = None,
    ):
        self.data_source = data_source
        self.sink = default_sink(sink)
        self.index_manager = index_manager or IndexManager(sink=self.sink)
        self.lock = lock or LocalReconciliationLock()
        self.table = table or Config.VECTOR_TABLE
        self.column = column or Config.VECTOR_COLUMN
        # Both names are interpolated into DDL
        check_identifier(self.table, "table")
        check_identifier(self.column, "column")

    @property
    def lease_key(self) -> str:
        return f"{self.table}.{self.column}"

    # ------------------------------------------------------------------
    # Width detection
    # ------------------------------------------------------------------

    async def _width_from_formatted_type(self) -> int:
        try:
            rows = await self.data_source.query(
                "SELECT format_type(atttypid, atttypmod) AS formatted_type "
                "FROM pg_attribute "
                f"WHERE attrelid = '{self.table}'::regclass AND attname = '{self.column}'"
            )
        except Exception as e:
            logger.warning("Could not read vector type info, falling back to atttypmod: {}", e)
            return 0

        formatted = _first_value(rows, "formatted_type")
        match = _VECTOR_TYPE.search(formatted or "")
        if match:
            width = int(match.group(1))
            logger.debug("Detected vector type in database: vector({})", width)
            return width
        return 0

    async def _width_from_typmod(self) -> int:
        rows = await self.data_source.query(
            "SELECT atttypmod AS dimensions FROM pg_attribute "
            f"WHERE attrelid = '{self.table}'::regclass AND attname = '{self.column}'"
        )
        raw = _first_value(rows, "dimensions")
        if raw is None or int(raw) == -1:
            # No type modifier: unconstrained "vector" column
            return 0
        return int(raw)

    async def _width_from_records(self) -> int:
        try:
            rows = await self.data_source.query(
                f"SELECT dimensions, model, COUNT(*) AS count FROM {self.table} "
                "GROUP BY dimensions, model ORDER BY count DESC LIMIT 5"
            )
        except Exception as e:
            logger.warning("Could not check dimensions from stored records: {}", e)
            return 0

        if not rows:
            logger.info("No existing vector embeddings found in database")
            return 0

        width = int(_first_value(rows, "dimensions") or 0)
        logger.info(
            "Most common vector dimensions in records: {} ({} records, model {})",
            width,
            _first_value(rows, "count"),
            _first_value(rows, "model"),
        )
        return width

    async def detect_current_width(self) -> int:
        """
        Determine the width currently persisted in the store.

        Schema metadata wins; when the column is unconstrained the most
        common width among stored rows is used; 0 means uninitialized.
        """
        width = await self._width_from_formatted_type()
        if width == 0:
            width = await self._width_from_typmod()
        if width == 0:
            width = await self._width_from_records()
        return width

    async def declared_width(self) -> int:
        """Declared column width from schema metadata only (0 if unknown)."""
        width = await self._width_from_formatted_type()
        if width == 0:
            width = await self._width_from_typmod()
        return width

    # ------------------------------------------------------------------
    # Migration steps
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _migration_scope(self) -> AsyncIterator[SqlExecutor]:
        """
        Executor for the destructive steps, inside one transaction when the
        data source offers ``transaction()``.

        A failed ALTER then rolls the purge back instead of leaving the old
        width with its rows gone.
        """
        transaction = getattr(self.data_source, "transaction", None)
        if transaction is None:
            yield self.data_source
            return
        async with transaction() as executor:
            yield executor

    async def _drop_index(self, executor: SqlExecutor) -> None:
        await executor.query(f"DROP INDEX IF EXISTS {index_name(self.table, self.column)};")

    async def _purge_mismatched(self, executor: SqlExecutor, required_width: int) -> None:
        logger.info("Clearing vector embeddings with dimensions different from {}", required_width)
        await executor.query(f"DELETE FROM {self.table} WHERE dimensions != $1", [required_width])

    async def _alter_width(self, executor: SqlExecutor, required_width: int) -> None:
        logger.info("Migrating vector column {} to {} dimensions", self.lease_key, required_width)
        await executor.query(
            f"ALTER TABLE {self.table} ALTER COLUMN {self.column} TYPE vector({required_width});"
        )

    async def _rebuild_index(self, required_width: int) -> IndexResult:
        # Outside the migration transaction: a failed HNSW attempt would
        # abort it before the IVFFlat retry
        result = await self.index_manager.create_index(
            self.data_source, required_width, self.table, self.column
        )
        if not result.success:
            logger.warning(
                "Vector index creation failed ({}), search will still work without the index "
                "(may be slower)",
                result.message,
            )
        return result

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self, required_width: int) -> ReconciliationResult:
        """
        Align the store with required_width.

        Args:
            required_width: Width the active model produces (from a probe)

        Returns:
            ReconciliationResult describing the state found and the index built

        Raises:
            InvalidDimensionError: required_width is not a positive integer
            ReconciliationError: the lease could not be taken, or schema
                inspection, purge, alter or index DDL raised
        """
        if isinstance(required_width, bool) or not isinstance(required_width, int) or required_width <= 0:
            raise InvalidDimensionError(
                f"Invalid dimension value: {required_width}. Must be a positive integer."
            )

        try:
            async with self.lock.hold(self.lease_key):
                return await self._reconcile_locked(required_width)
        except ReconciliationError:
            raise
        except Exception as e:
            logger.error("Could not take vector migration lease {}: {}", self.lease_key, e)
            raise ReconciliationError(
                f"Vector migration lease unavailable: {e}", required_width=required_width
            ) from e

    async def _reconcile_locked(self, required_width: int) -> ReconciliationResult:
        current_width = 0
        try:
            declared = await self.declared_width()
            inferred = 0 if declared > 0 else await self._width_from_records()
            current_width = declared or inferred
            state = classify(declared, required_width, inferred)
            return await self._apply(state, current_width, required_width)
        except Exception as e:
            logger.error("Error checking/updating vector dimensions: {}", e)
            raise ReconciliationError(
                f"Vector dimension check failed: {e}",
                current_width=current_width,
                required_width=required_width,
            ) from e

    async def _apply(
        self, state: ColumnState, current_width: int, required_width: int
    ) -> ReconciliationResult:
        if state is ColumnState.CONSISTENT:
            logger.info("Vector database dimensions are compatible ({} dimensions)", current_width)
            return ReconciliationResult(state, current_width, required_width)

        if state is ColumnState.UNINITIALIZED:
            logger.info("Initializing vector column with {} dimensions", required_width)
            async with self._migration_scope() as executor:
                await self._alter_width(executor, required_width)
            index = await self._rebuild_index(required_width)
            return ReconciliationResult(state, current_width, required_width, index)

        if current_width != required_width:
            logger.warning(
                "Vector dimension mismatch detected: database has {}, model requires {}. "
                "Rebuilding index and clearing mismatched embeddings.",
                current_width,
                required_width,
            )
            self.sink.emit(DimensionMismatchDetected(from_width=current_width, to_width=required_width))
        else:
            logger.warning(
                "Vector column has no declared width; constraining it to {} dimensions "
                "and clearing embeddings of other widths.",
                required_width,
            )

        async with self._migration_scope() as executor:
            await self._drop_index(executor)
            await self._purge_mismatched(executor, required_width)
            await self._alter_width(executor, required_width)
        self.sink.emit(RecordsPurged(kept_width=required_width))

        index = await self._rebuild_index(required_width)
        logger.info(
            "Rebuilt vector store for {} dimensions (cleared rows of other widths)", required_width
        )
        return ReconciliationResult(state, current_width, required_width, index)
