"""
Unit Tests for embedding transports and transport selection

The direct HTTP transport is exercised through httpx.MockTransport, so no
network access is needed.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.tool_vectors.embedding.transport import (
    DirectHTTPTransport,
    EmbeddingClient,
    OpenAISDKTransport,
    extract_embedding,
)
from tests.doubles import StubTransport


def _mock_transport(handler):
    requests = []

    def _record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    return httpx.MockTransport(_record), requests


# ============================================================================
# SELECTION
# ============================================================================


def test_selection_follows_settings_official_api_flag(settings_factory):
    """The client asks the settings, so both views of "official" agree."""
    sdk, direct = StubTransport([None], name="sdk"), StubTransport([None], name="direct")
    client = EmbeddingClient(sdk_transport=sdk, direct_transport=direct)

    for base_url, key in [
        ("https://api.openai.com/v1", "sk-key"),
        ("https://api.openai.com/v1", ""),
        ("http://localhost:1234/v1", "sk-key"),
    ]:
        current = settings_factory(api_base_url=base_url, api_key=key)
        expected = sdk if current.is_official_api else direct
        assert client.select(current) is expected


def test_client_selects_sdk_for_official_endpoint(settings_factory):
    sdk, direct = StubTransport([None], name="sdk"), StubTransport([None], name="direct")
    client = EmbeddingClient(sdk_transport=sdk, direct_transport=direct)

    official = settings_factory(api_base_url="https://api.openai.com/v1")
    local = settings_factory(api_base_url="http://localhost:11434/v1")
    keyless = settings_factory(api_base_url="https://api.openai.com/v1", api_key="")

    assert client.select(official) is sdk
    assert client.select(local) is direct
    assert client.select(keyless) is direct


@pytest.mark.asyncio
async def test_client_swallows_transport_exceptions(settings):
    failing = StubTransport([RuntimeError("boom")])
    client = EmbeddingClient(sdk_transport=failing, direct_transport=failing)
    assert await client.embed("hello", settings) is None


# ============================================================================
# DIRECT HTTP
# ============================================================================


def test_nomic_payload_has_task_type():
    payload = DirectHTTPTransport.build_payload("text", "nomic-embed-text-v1.5")
    assert payload == {"model": "nomic-embed-text-v1.5", "input": "text", "task_type": "search_document"}


def test_plain_payload_has_no_task_type():
    assert DirectHTTPTransport.build_payload("text", "bge-m3") == {"model": "bge-m3", "input": "text"}


@pytest.mark.asyncio
async def test_direct_posts_to_embeddings_endpoint(settings_factory):
    transport, requests = _mock_transport(
        lambda request: httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2, 0.3]}]})
    )
    settings = settings_factory(api_base_url="http://localhost:1234/v1/", embedding_model="bge-m3")

    result = await DirectHTTPTransport(transport=transport).embed("find files", settings)

    assert result == [0.1, 0.2, 0.3]
    assert len(requests) == 1
    request = requests[0]
    assert str(request.url) == "http://localhost:1234/v1/embeddings"
    assert request.headers["Authorization"] == "Bearer sk-test-key-123456"
    assert json.loads(request.content) == {"model": "bge-m3", "input": "find files"}


@pytest.mark.asyncio
async def test_direct_non_2xx_returns_none(settings):
    transport, _ = _mock_transport(lambda request: httpx.Response(500, text="model not loaded"))
    assert await DirectHTTPTransport(transport=transport).embed("x", settings) is None


@pytest.mark.asyncio
async def test_direct_malformed_json_returns_none(settings):
    transport, _ = _mock_transport(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
    assert await DirectHTTPTransport(transport=transport).embed("x", settings) is None


@pytest.mark.asyncio
async def test_direct_missing_data_returns_none(settings):
    transport, _ = _mock_transport(lambda request: httpx.Response(200, json={"data": []}))
    assert await DirectHTTPTransport(transport=transport).embed("x", settings) is None


@pytest.mark.asyncio
async def test_direct_connection_error_returns_none(settings):
    def _refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport, _ = _mock_transport(_refuse)
    assert await DirectHTTPTransport(transport=transport).embed("x", settings) is None


# ============================================================================
# SDK
# ============================================================================


@pytest.mark.asyncio
async def test_sdk_transport_extracts_embedding(settings_factory):
    settings = settings_factory(api_base_url="https://api.openai.com/v1")
    response = {"data": [{"embedding": [0.5, 0.5]}]}

    transport = OpenAISDKTransport()
    with patch.object(transport, "_create_client") as create_client:
        create_client.return_value.embeddings.create = AsyncMock(return_value=response)
        result = await transport.embed("hello", settings)

    assert result == [0.5, 0.5]
    create_client.return_value.embeddings.create.assert_awaited_once_with(
        model="text-embedding-3-small", input="hello"
    )


@pytest.mark.asyncio
async def test_sdk_transport_error_returns_none(settings):
    transport = OpenAISDKTransport()
    with patch.object(transport, "_create_client") as create_client:
        create_client.return_value.embeddings.create = AsyncMock(side_effect=RuntimeError("401"))
        assert await transport.embed("hello", settings) is None


def test_sdk_client_has_no_retries(settings):
    client = OpenAISDKTransport(timeout=5)._create_client(settings)
    assert client.max_retries == 0


# ============================================================================
# RESPONSE PARSING
# ============================================================================


def test_extract_embedding_from_object():
    class Item:
        embedding = [0.1]

    class Response:
        data = [Item()]

    assert extract_embedding(Response(), "sdk") == [0.1]


@pytest.mark.parametrize("raw", [{}, {"data": None}, {"data": [{}]}, {"data": [{"embedding": []}]}])
def test_extract_embedding_missing(raw):
    assert extract_embedding(raw, "direct") is None
