"""
Search result transformation.

Turns raw similarity rows back into tool-shaped records. Metadata is
stored as a JSON string; when it is missing or unparseable the tool and
server names are recovered heuristically from the stored text.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from loguru import logger

UNKNOWN = "unknown"

_FIRST_TOKEN = re.compile(r"^(\S+)")
_SERVER_PREFIX = re.compile(r"^([^_]+)_")
_LEADING_TOKEN = re.compile(r"^\S+\s*")


@dataclass
class ToolMatch:
    """Tool returned by a similarity search."""

    server_name: str
    tool_name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=dict)
    similarity: float = 0.0
    searchable_text: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "serverName": self.server_name,
            "toolName": self.tool_name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "similarity": self.similarity,
            "searchableText": self.searchable_text,
        }


@dataclass
class VectorizedTool:
    """Tool listed from the vector store (no similarity)."""

    server_name: str
    tool_name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "serverName": self.server_name,
            "toolName": self.tool_name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


def _embedding_of(row: Any) -> Any:
    if isinstance(row, dict):
        return row.get("embedding")
    return getattr(row, "embedding", None)


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def parse_metadata(raw: Any) -> Optional[dict[str, Any]]:
    """Decode stored metadata; None when missing or not a JSON object."""
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        parsed = json.loads(raw)
    except ValueError as e:
        logger.debug("Error parsing metadata string: {}", e)
        return None
    return parsed if isinstance(parsed, dict) else None


def row_metadata(row: Any) -> Optional[dict[str, Any]]:
    return parse_metadata(_get(_embedding_of(row), "metadata"))


def filter_by_servers(rows: Iterable[Any], server_names: Optional[list[str]]) -> list[Any]:
    """
    Keep rows whose metadata names one of server_names.

    An empty or missing allow-list keeps everything. Rows without
    parseable metadata are dropped when filtering.
    """
    rows = list(rows)
    if not server_names:
        return rows

    allowed = set(server_names)
    kept = []
    for row in rows:
        metadata = row_metadata(row)
        if metadata is not None and metadata.get("serverName") in allowed:
            kept.append(row)
    return kept


class ResultTransformer:
    """Maps similarity rows to ToolMatch / VectorizedTool records."""

    @staticmethod
    def extract_from_text(text_content: str) -> tuple[str, str, str]:
        """
        Recover (server_name, tool_name, description) from searchable text.

        The first whitespace-delimited token is the tool name; the part of
        it before the first underscore is the server name ("unknown" when
        there is no underscore); the rest of the text is the description.
        """
        text_content = text_content or ""
        token_match = _FIRST_TOKEN.match(text_content)
        tool_name = token_match.group(1) if token_match else ""

        server_match = _SERVER_PREFIX.match(tool_name)
        server_name = server_match.group(1) if server_match else UNKNOWN

        description = _LEADING_TOKEN.sub("", text_content, count=1).strip()
        return server_name, tool_name, description

    def to_match(self, row: Any) -> ToolMatch:
        embedding = _embedding_of(row)
        similarity = _get(row, "similarity", 0.0)
        text_content = _get(embedding, "text_content", "") or ""

        metadata = row_metadata(row)
        if metadata and metadata.get("serverName") and metadata.get("toolName"):
            return ToolMatch(
                server_name=metadata["serverName"],
                tool_name=metadata["toolName"],
                description=metadata.get("description") or "",
                input_schema=metadata.get("inputSchema") or {},
                similarity=similarity,
                searchable_text=text_content,
            )

        server_name, tool_name, description = self.extract_from_text(text_content)
        return ToolMatch(
            server_name=server_name,
            tool_name=tool_name,
            description=description,
            input_schema={},
            similarity=similarity,
            searchable_text=text_content,
        )

    def to_vectorized(self, row: Any) -> VectorizedTool:
        metadata = row_metadata(row)
        if metadata is None:
            return VectorizedTool(server_name=UNKNOWN, tool_name=UNKNOWN)
        return VectorizedTool(
            server_name=metadata.get("serverName") or UNKNOWN,
            tool_name=metadata.get("toolName") or UNKNOWN,
            description=metadata.get("description") or "",
            input_schema=metadata.get("inputSchema") or {},
        )

    def transform(self, rows: Iterable[Any]) -> list[ToolMatch]:
        return [self.to_match(row) for row in rows]
