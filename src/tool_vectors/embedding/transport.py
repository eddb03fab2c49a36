"""
Embedding API transports.

Two strategies, chosen per call from the base URL and API key:

- OpenAISDKTransport: official OpenAI endpoint, handled by the ``openai``
  client library.
- DirectHTTPTransport: every other OpenAI-compatible server (LM Studio,
  LocalAI, Ollama, llama.cpp). Raw ``POST <base>/embeddings`` via httpx,
  since the client library has been seen to transform responses from
  these servers into zero-filled vectors of the wrong width.

Both return the raw embedding or None. They never raise.
"""

import copy
import json
from typing import Any, Optional, Protocol

import httpx
from loguru import logger
from openai import AsyncOpenAI

from ..config import Config, RoutingSettings
from ..masking import mask_string

NOMIC_MODEL_MARKER = "nomic-embed-text"
NOMIC_TASK_TYPE = "search_document"


class EmbeddingTransport(Protocol):
    """Strategy interface for calling an embedding API."""

    name: str

    async def embed(self, text: str, settings: RoutingSettings) -> Optional[Any]:
        """Return the raw embedding for text, or None on any failure."""


def extract_embedding(raw_response: Any, strategy_name: str) -> Optional[Any]:
    """
    Pull ``data[0].embedding`` out of an embeddings response.

    Args:
        raw_response: Decoded JSON body (dict) or SDK response object
        strategy_name: Transport name for diagnostics

    Returns:
        The embedding payload, or None if missing or empty
    """
    if isinstance(raw_response, dict):
        data = raw_response.get("data")
    else:
        data = getattr(raw_response, "data", None)

    if not isinstance(data, list) or len(data) == 0:
        logger.error(
            "Invalid response from {}: missing or empty data array. Response: {}",
            strategy_name,
            _describe(raw_response),
        )
        return None

    first = data[0]
    embedding = first.get("embedding") if isinstance(first, dict) else getattr(first, "embedding", None)
    if not embedding:
        logger.error("Invalid response from {}: data[0] has no embedding", strategy_name)
        return None
    return embedding


def _describe(raw_response: Any, limit: int = 500) -> str:
    try:
        text = json.dumps(raw_response)
    except (TypeError, ValueError):
        text = repr(raw_response)
    return text[:limit]


def _preview_response(raw_response: dict) -> dict:
    """Copy of the response with the first vector cut to 5 values, for logging."""
    preview = copy.deepcopy(raw_response)
    data = preview.get("data")
    if isinstance(data, list) and data and isinstance(data[0], dict):
        embedding = data[0].get("embedding")
        data[0]["embedding"] = embedding[:5] if isinstance(embedding, list) else []
    return preview


class OpenAISDKTransport:
    """Embeddings through the official OpenAI client library."""

    name = "OpenAI library"

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = Config.EMBEDDING_TIMEOUT if timeout is None else timeout

    def _create_client(self, settings: RoutingSettings) -> AsyncOpenAI:
        # No retries: a failed call goes straight to the fallback embedder
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.api_base_url,
            timeout=self.timeout,
            max_retries=0,
        )

    async def embed(self, text: str, settings: RoutingSettings) -> Optional[Any]:
        try:
            client = self._create_client(settings)
            response = await client.embeddings.create(
                model=settings.embedding_model,
                input=text,
            )
            return extract_embedding(response, self.name)
        except Exception as e:
            logger.error("Error calling embedding API via {}: {}", self.name, e)
            return None


class DirectHTTPTransport:
    """Embeddings through a plain POST to an OpenAI-compatible endpoint."""

    name = "Direct HTTP API"

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = Config.EMBEDDING_TIMEOUT if timeout is None else timeout
        self._transport = transport

    @staticmethod
    def build_payload(text: str, model: str) -> dict[str, Any]:
        payload: dict[str, Any] = {"model": model, "input": text}
        if NOMIC_MODEL_MARKER in model.lower():
            # nomic-embed-text needs an explicit task type for document embeddings
            payload["task_type"] = NOMIC_TASK_TYPE
        return payload

    async def embed(self, text: str, settings: RoutingSettings) -> Optional[Any]:
        payload = self.build_payload(text, settings.embedding_model)
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {settings.api_key}",
        }
        logger.debug("Direct HTTP API payload: model={}, input_chars={}", payload["model"], len(text))

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                transport=self._transport,
            ) as client:
                response = await client.post(settings.embeddings_url, json=payload, headers=headers)

            if not response.is_success:
                logger.error(
                    "Embedding API returned error status {}: {}",
                    response.status_code,
                    response.text[:500],
                )
                return None

            raw_response = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error calling embedding API via {}: {}", self.name, e)
            return None

        if isinstance(raw_response, dict):
            logger.debug("Raw API response (first 5 values): {}", _preview_response(raw_response))
        return extract_embedding(raw_response, self.name)


class EmbeddingClient:
    """
    Picks a transport per call and returns the raw embedding or None.

    The choice depends only on the settings of the current operation, so
    switching providers takes effect on the next call.
    """

    def __init__(
        self,
        sdk_transport: Optional[EmbeddingTransport] = None,
        direct_transport: Optional[EmbeddingTransport] = None,
    ):
        self.sdk_transport = sdk_transport or OpenAISDKTransport()
        self.direct_transport = direct_transport or DirectHTTPTransport()

    def select(self, settings: RoutingSettings) -> EmbeddingTransport:
        if settings.is_official_api:
            return self.sdk_transport
        return self.direct_transport

    async def embed(self, text: str, settings: RoutingSettings) -> Optional[Any]:
        transport = self.select(settings)
        logger.info(
            "Using {} for embeddings (model={}, url={}, key={}, text_length={})",
            transport.name,
            settings.embedding_model,
            settings.embeddings_url,
            mask_string(settings.api_key),
            len(text),
        )
        try:
            return await transport.embed(text, settings)
        except Exception as e:
            logger.error("Embedding transport {} raised: {}", transport.name, e)
            return None
