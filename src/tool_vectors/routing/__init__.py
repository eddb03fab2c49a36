"""Tool routing index: save/search/list/remove tool vectors."""

from .results import ResultTransformer, ToolMatch, VectorizedTool, filter_by_servers
from .sync import SaveReport, SyncSummary, ToolEmbeddingSync, ToolFailure

__all__ = [
    "ResultTransformer",
    "SaveReport",
    "SyncSummary",
    "ToolEmbeddingSync",
    "ToolFailure",
    "ToolMatch",
    "VectorizedTool",
    "filter_by_servers",
]
