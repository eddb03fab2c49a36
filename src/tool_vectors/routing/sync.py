"""
Tool embedding synchronization for smart routing.

Saves, searches, lists and removes per-tool vectors for MCP servers.

Save pipeline (one batch per server):
1. Probe embedding -> width the API actually produces right now
2. Reconcile the vector store to that width (may purge and migrate)
3. Embed and upsert each tool in order; a failing tool is skipped

Tools are processed sequentially so a batch never interleaves writes of
different widths.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from loguru import logger

from ..config import Config, RoutingSettings
from ..embedding import EmbeddingGenerator, dimensions_for_model
from ..events import EventSink, ToolSkipped, default_sink
from ..exceptions import ProbeError
from ..models import ServerSnapshot, Tool
from ..storage.lock import create_reconciliation_lock
from ..storage.reconciler import DimensionReconciler, ReconciliationResult
from ..storage.repository import (
    TOOL_ENTITY_TYPE,
    ConnectionLifecycle,
    StoredEmbeddingRecord,
    VectorRepository,
)
from .results import ResultTransformer, ToolMatch, VectorizedTool, filter_by_servers

SettingsProvider = Callable[[], RoutingSettings]


@dataclass
class ToolFailure:
    tool_name: str
    reason: str


@dataclass
class SaveReport:
    """Outcome of one save batch."""

    server_name: str
    width: Optional[int] = None
    reconciliation: Optional[ReconciliationResult] = None
    succeeded: list[str] = field(default_factory=list)
    failed: list[ToolFailure] = field(default_factory=list)
    skipped_reason: Optional[str] = None  # "empty", "disabled"

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)


@dataclass
class SyncSummary:
    servers_synced: int = 0
    tools_synced: int = 0
    servers_failed: list[str] = field(default_factory=list)


class ToolEmbeddingSync:
    """
    Orchestrates the tool vector index for a hub.

    Settings are fetched from settings_provider once per public call, so
    toggling smart routing or switching the model applies to the next call
    without a restart.
    """

    def __init__(
        self,
        repository: VectorRepository,
        lifecycle: Optional[ConnectionLifecycle] = None,
        settings_provider: SettingsProvider = RoutingSettings.from_env,
        generator: Optional[EmbeddingGenerator] = None,
        reconciler: Optional[DimensionReconciler] = None,
        transformer: Optional[ResultTransformer] = None,
        sink: Optional[EventSink] = None,
    ):
        self.repository = repository
        self.lifecycle = lifecycle if lifecycle is not None else repository
        self.settings_provider = settings_provider
        self.sink = default_sink(sink)
        self.generator = generator or EmbeddingGenerator(sink=self.sink)
        self.reconciler = reconciler or DimensionReconciler(
            repository, lock=create_reconciliation_lock(), sink=self.sink
        )
        self.transformer = transformer or ResultTransformer()

    async def _ensure_connected(self) -> None:
        if not self.lifecycle.is_connected():
            logger.info("Database not initialized, initializing...")
            await self.lifecycle.initialize()

    async def _probe_width(self, settings: RoutingSettings) -> int:
        logger.info("Generating probe embedding to determine API output dimensions...")
        try:
            probe = await self.generator.generate(Config.PROBE_TEXT, settings)
        except Exception as e:
            raise ProbeError("Cannot determine embedding dimensions from API") from e

        width = len(probe) if probe else 0
        if width == 0:
            raise ProbeError(
                f"API produced invalid embedding dimensions: {width}. "
                "Cannot determine correct vector size for the database."
            )
        logger.info(
            "Probe embedding for model {}: {} dimensions (source of truth for this batch)",
            settings.embedding_model,
            width,
        )
        return width

    async def _save_tool(
        self, server_name: str, tool: Tool, width: int, settings: RoutingSettings
    ) -> Optional[str]:
        """Embed and store one tool. Returns a failure reason, or None on success."""
        searchable_text = tool.searchable_text()
        embedding = await self.generator.generate(searchable_text, settings)

        if not isinstance(embedding, list) or len(embedding) == 0:
            return "invalid embedding: not an array or empty"
        if len(embedding) != width:
            logger.error(
                "Embedding dimension inconsistency for tool {}: expected {} but got {}. "
                "Skipping this tool to keep the vector store consistent.",
                tool.name,
                width,
                len(embedding),
            )
            return f"dimension mismatch: expected {width}, got {len(embedding)}"

        record = StoredEmbeddingRecord.for_tool(
            server_name, tool, searchable_text, embedding, settings.embedding_model
        )
        await self.repository.save_embedding(
            record.entity_type,
            record.entity_key,
            record.text_content,
            record.vector,
            record.metadata,
            record.model,
        )
        return None

    async def save(self, server_name: str, tools: list[Tool]) -> SaveReport:
        """
        Save tool embeddings for a server.

        Args:
            server_name: Server the tools belong to
            tools: Tools to embed and store

        Returns:
            SaveReport with per-tool successes and failures

        Raises:
            ProbeError: The probe embedding produced no usable width
            ReconciliationError: Migrating the vector store failed
        """
        report = SaveReport(server_name=server_name)

        if not tools:
            logger.warning("No tools to save for server: {}", server_name)
            report.skipped_reason = "empty"
            return report

        settings = self.settings_provider()
        if not settings.enabled:
            report.skipped_reason = "disabled"
            return report

        await self._ensure_connected()
        logger.info(
            "Processing {} tools for server {} with embedding model {}",
            len(tools),
            server_name,
            settings.embedding_model,
        )

        report.width = await self._probe_width(settings)
        report.reconciliation = await self.reconciler.reconcile(report.width)

        for tool in tools:
            try:
                reason = await self._save_tool(server_name, tool, report.width, settings)
            except Exception as e:
                logger.error(
                    "Error saving tool embedding (server={}, tool={}): {}", server_name, tool.name, e
                )
                reason = f"error: {e}"

            if reason is None:
                report.succeeded.append(tool.name)
            else:
                report.failed.append(ToolFailure(tool_name=tool.name, reason=reason))
                self.sink.emit(ToolSkipped(server_name=server_name, tool_name=tool.name, reason=reason))

        logger.info(
            "Tool embedding save completed for server {}: {} saved, {} failed",
            server_name,
            report.success_count,
            report.failure_count,
        )
        return report

    async def search(
        self,
        query: str,
        limit: int = 10,
        threshold: float = 0.7,
        server_names: Optional[list[str]] = None,
    ) -> list[ToolMatch]:
        """
        Search tools by vector similarity.

        Args:
            query: Natural-language query
            limit: Maximum number of results
            threshold: Minimum similarity (0-1)
            server_names: Optional allow-list of servers

        Returns:
            Matching tools, or an empty list on any error
        """
        try:
            settings = self.settings_provider()

            async def embed_query(text: str) -> list[float]:
                return await self.generator.generate(text, settings)

            rows = await self.repository.search_by_text(
                query, embed_query, limit, threshold, [TOOL_ENTITY_TYPE]
            )
            return self.transformer.transform(filter_by_servers(rows, server_names))
        except Exception as e:
            logger.error("Error searching tools by vector: {}", e)
            return []

    async def _listing_width(self, settings: RoutingSettings) -> int:
        try:
            width = await self.reconciler.declared_width()
        except Exception as e:
            logger.warning("Could not determine vector dimensions from database: {}", e)
            width = 0
        return width if width > 0 else dimensions_for_model(settings.embedding_model)

    async def get_all_vectorized_tools(
        self, server_names: Optional[list[str]] = None
    ) -> list[VectorizedTool]:
        """
        List every stored tool vector, optionally for some servers only.

        Returns:
            Stored tools, or an empty list on any error
        """
        try:
            settings = self.settings_provider()
            width = await self._listing_width(settings)
            rows = await self.repository.search_similar(
                [0.0] * width, Config.LIST_ALL_LIMIT, -1, [TOOL_ENTITY_TYPE]
            )
            return [self.transformer.to_vectorized(row) for row in filter_by_servers(rows, server_names)]
        except Exception as e:
            logger.error("Error getting all vectorized tools: {}", e)
            return []

    async def remove_server_tool_embeddings(self, server_name: str) -> None:
        """Delete all tool vectors of a server. Errors are logged, never raised."""
        try:
            if not self.lifecycle.is_connected():
                settings = self.settings_provider()
                if not settings.db_url and not os.getenv("DB_URL"):
                    logger.warning(
                        "Skipping embedding cleanup for {}: DB URL not configured", server_name
                    )
                    return
                logger.info("Database not initialized, initializing...")
                await self.lifecycle.initialize()

            removed = await self.repository.delete_by_server_name(server_name)
            logger.info("Removed {} tool embeddings for server: {}", removed, server_name)
        except Exception as e:
            logger.error("Error removing tool embeddings for server {}: {}", server_name, e)

    async def sync_all_servers(self, servers: Iterable[ServerSnapshot]) -> SyncSummary:
        """
        Save embeddings for every connected server with tools.

        Used when smart routing is first enabled. A failing server is
        logged and the sweep continues.
        """
        summary = SyncSummary()
        logger.info("Starting synchronization of all server tools embeddings...")

        for server in servers:
            if not server.is_connected:
                logger.info("Skipping server {} (status: {})", server.name, server.status)
                continue
            if not server.tools:
                logger.info("Server {} is connected but has no tools to sync", server.name)
                continue

            try:
                await self.save(server.name, server.tools)
            except Exception as e:
                logger.error("Failed to sync tools for server {}: {}", server.name, e)
                summary.servers_failed.append(server.name)
                continue
            summary.servers_synced += 1
            summary.tools_synced += len(server.tools)

        logger.info(
            "Smart routing tools sync completed: synced {} tools from {} servers",
            summary.tools_synced,
            summary.servers_synced,
        )
        return summary

    # Short names used by the hub's routing layer
    remove = remove_server_tool_embeddings
    list_all = get_all_vectorized_tools
