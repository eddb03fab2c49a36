"""
Persistence contract for stored embeddings.

The vector store itself is provided by a collaborator; this module only
pins down the calls the index relies on and the row shapes it reads back.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence

from ..models import Tool

TOOL_ENTITY_TYPE = "tool"

EmbedFn = Callable[[str], Awaitable[list[float]]]


@dataclass
class EmbeddingRow:
    """Stored embedding as returned inside a similarity row."""

    entity_key: str = ""
    text_content: str = ""
    metadata: Any = None  # JSON string as stored; may be missing or malformed
    entity_type: str = TOOL_ENTITY_TYPE
    model: Optional[str] = None
    dimensions: Optional[int] = None


@dataclass
class SimilarityRow:
    """One similarity search hit."""

    similarity: float
    embedding: EmbeddingRow = field(default_factory=EmbeddingRow)


@dataclass
class StoredEmbeddingRecord:
    """
    One record per (server, tool) pair, keyed by ``"<server>:<tool>"``.

    Invariants:
    - dimensions == len(vector)
    - dimensions equals the declared width of the vector column
    """

    entity_type: str
    entity_key: str
    text_content: str
    vector: list[float]
    metadata: dict[str, Any]
    model: str

    @classmethod
    def for_tool(
        cls,
        server_name: str,
        tool: Tool,
        text_content: str,
        vector: Sequence[float],
        model: str,
    ) -> "StoredEmbeddingRecord":
        return cls(
            entity_type=TOOL_ENTITY_TYPE,
            entity_key=tool_entity_key(server_name, tool.name),
            text_content=text_content,
            vector=list(vector),
            metadata={
                "serverName": server_name,
                "toolName": tool.name,
                "description": tool.description,
                "inputSchema": tool.input_schema,
            },
            model=model,
        )

    @property
    def dimensions(self) -> int:
        return len(self.vector)


def tool_entity_key(server_name: str, tool_name: str) -> str:
    return f"{server_name}:{tool_name}"


class VectorRepository(Protocol):
    """Vector store operations used by the tool index."""

    async def save_embedding(
        self,
        entity_type: str,
        entity_key: str,
        text_content: str,
        vector: Sequence[float],
        metadata: dict[str, Any],
        model: str,
    ) -> None:
        """Insert or overwrite the record for (entity_type, entity_key)."""

    async def search_by_text(
        self,
        query: str,
        embed_fn: EmbedFn,
        limit: int,
        threshold: float,
        entity_types: Sequence[str],
    ) -> list[SimilarityRow]:
        """Embed query with embed_fn and return rows above threshold."""

    async def search_similar(
        self,
        vector: Sequence[float],
        limit: int,
        threshold: float,
        entity_types: Sequence[str],
    ) -> list[SimilarityRow]:
        """Return rows similar to vector above threshold."""

    async def delete_by_server_name(self, server_name: str) -> int:
        """Delete every tool record of a server, returning the count."""

    async def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> list[dict[str, Any]]:
        """Run raw SQL (``$1``-style params) and return rows as dicts."""


class ConnectionLifecycle(Protocol):
    """Lazy connection management for the vector store."""

    def is_connected(self) -> bool:
        """True once initialize() has completed."""

    async def initialize(self) -> None:
        """Connect and prepare the schema. Safe to call repeatedly."""
