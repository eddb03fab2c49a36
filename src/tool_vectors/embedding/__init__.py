"""Embedding generation: transports, validation and offline fallback."""

from .dimensions import FALLBACK_DIMENSIONS, dimensions_for_model
from .fallback import FallbackEmbedder
from .generator import EmbeddingGenerator, GeneratedEmbedding, prepare_text
from .transport import (
    DirectHTTPTransport,
    EmbeddingClient,
    EmbeddingTransport,
    OpenAISDKTransport,
)
from .validator import EmbeddingValidator, ValidationOutcome

__all__ = [
    "DirectHTTPTransport",
    "EmbeddingClient",
    "EmbeddingGenerator",
    "EmbeddingTransport",
    "EmbeddingValidator",
    "FALLBACK_DIMENSIONS",
    "FallbackEmbedder",
    "GeneratedEmbedding",
    "OpenAISDKTransport",
    "ValidationOutcome",
    "dimensions_for_model",
    "prepare_text",
]
