"""
Tool data models.

Defines Tool and ServerSnapshot, the read-only inputs supplied by the
server registry / connection layer.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Tool:
    """
    Tool descriptor as advertised by an MCP server.

    Invariants:
    - name must not be empty
    - input_schema is a JSON-schema-like mapping or None
    """

    name: str
    description: str = ""
    input_schema: dict[str, Any] | None = None

    def searchable_text(self) -> str:
        """
        Build the text that gets embedded for this tool.

        Combines the tool name, its description, top-level schema keys
        (except "type" and "properties") and the property names of the
        schema, joined by single spaces. Empty parts are dropped.
        """
        parts: list[str] = [self.name, self.description]

        schema = self.input_schema
        if isinstance(schema, dict):
            parts.extend(key for key in schema if key not in ("type", "properties"))
            properties = schema.get("properties")
            if isinstance(properties, dict):
                parts.extend(properties.keys())

        return " ".join(str(part) for part in parts if part)


@dataclass
class ServerSnapshot:
    """Connection-layer view of a server used by the full resync sweep."""

    name: str
    status: str  # "connected", "connecting", "disconnected"
    tools: list[Tool] = field(default_factory=list)

    @property
    def is_connected(self) -> bool:
        return self.status == "connected"
