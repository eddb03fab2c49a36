"""Tool Vectors - embedding index for smart tool routing."""

__version__ = "0.1.0"

from .config import Config, RoutingSettings
from .models import ServerSnapshot, Tool
from .routing import ToolEmbeddingSync, ToolMatch, VectorizedTool
from .storage.index import HALFVEC_MAX_DIMENSIONS, VECTOR_MAX_DIMENSIONS, create_vector_index

__all__ = [
    "Config",
    "HALFVEC_MAX_DIMENSIONS",
    "RoutingSettings",
    "ServerSnapshot",
    "Tool",
    "ToolEmbeddingSync",
    "ToolMatch",
    "VECTOR_MAX_DIMENSIONS",
    "VectorizedTool",
    "create_vector_index",
    "__version__",
]
