"""Pytest fixtures for the tool vector test suite."""

from typing import Any, Callable, Optional

import pytest
from redis import asyncio as aioredis

from src.tool_vectors.config import RoutingSettings
from src.tool_vectors.embedding import EmbeddingClient, EmbeddingGenerator
from src.tool_vectors.events import RecordingEventSink
from src.tool_vectors.routing import ToolEmbeddingSync
from src.tool_vectors.storage import DimensionReconciler, IndexManager, LocalReconciliationLock
from tests.doubles import FakeVectorRepository, StubTransport


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def settings_factory() -> Callable[..., RoutingSettings]:
    """Build RoutingSettings for a self-hosted endpoint by default."""

    def _make(**overrides: Any) -> RoutingSettings:
        values = {
            "enabled": True,
            "api_key": "sk-test-key-123456",
            "api_base_url": "http://localhost:1234/v1",
            "embedding_model": "text-embedding-3-small",
            "db_url": "postgresql://localhost/hub",
        }
        values.update(overrides)
        return RoutingSettings(**values)

    return _make


@pytest.fixture
def settings(settings_factory) -> RoutingSettings:
    return settings_factory()


@pytest.fixture
def sink() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def repository() -> FakeVectorRepository:
    return FakeVectorRepository()


@pytest.fixture
def make_generator(sink):
    """Generator whose API transport returns scripted responses."""

    def _make(responses: Any) -> tuple[EmbeddingGenerator, StubTransport]:
        transport = StubTransport(responses)
        client = EmbeddingClient(sdk_transport=transport, direct_transport=transport)
        return EmbeddingGenerator(client=client, sink=sink), transport

    return _make


@pytest.fixture
def make_sync(repository, sink, make_generator, settings):
    """ToolEmbeddingSync wired to the fake repository and a stub transport."""

    def _make(responses: Any, settings_value: Optional[RoutingSettings] = None):
        generator, transport = make_generator(responses)
        current = settings_value or settings
        reconciler = DimensionReconciler(
            repository,
            index_manager=IndexManager(sink=sink),
            lock=LocalReconciliationLock(),
            sink=sink,
        )
        sync = ToolEmbeddingSync(
            repository,
            settings_provider=lambda: current,
            generator=generator,
            reconciler=reconciler,
            sink=sink,
        )
        return sync, transport

    return _make


# ============================================================================
# REDIS FIXTURES
# ============================================================================


@pytest.fixture
async def redis_client():
    """
    Provide a clean Redis connection, skipping when Redis is unavailable.

    Cleanup:
        Flushes the Redis database after the test
    """
    client = aioredis.from_url(
        "redis://localhost:6379",
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )
    try:
        await client.ping()
    except (aioredis.ConnectionError, aioredis.TimeoutError, OSError):
        await client.aclose()
        pytest.skip("Redis not available")

    try:
        await client.flushdb()
        yield client
    finally:
        await client.flushdb()
        await client.aclose()
