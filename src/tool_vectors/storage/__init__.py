"""Vector storage: persistence contract, pgvector backend, index and width management."""

from .index import (
    HALFVEC_MAX_DIMENSIONS,
    VECTOR_MAX_DIMENSIONS,
    IndexManager,
    IndexResult,
    create_vector_index,
)
from .lock import (
    LocalReconciliationLock,
    RedisReconciliationLock,
    create_reconciliation_lock,
)
from .pgvector import PgVectorRepository
from .reconciler import ColumnState, DimensionReconciler, ReconciliationResult
from .repository import (
    TOOL_ENTITY_TYPE,
    ConnectionLifecycle,
    EmbeddingRow,
    SimilarityRow,
    StoredEmbeddingRecord,
    VectorRepository,
    tool_entity_key,
)

__all__ = [
    "ColumnState",
    "ConnectionLifecycle",
    "DimensionReconciler",
    "EmbeddingRow",
    "HALFVEC_MAX_DIMENSIONS",
    "IndexManager",
    "IndexResult",
    "LocalReconciliationLock",
    "PgVectorRepository",
    "ReconciliationResult",
    "RedisReconciliationLock",
    "SimilarityRow",
    "StoredEmbeddingRecord",
    "TOOL_ENTITY_TYPE",
    "VECTOR_MAX_DIMENSIONS",
    "VectorRepository",
    "create_reconciliation_lock",
    "create_vector_index",
    "tool_entity_key",
]
