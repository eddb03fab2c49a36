"""
Unit Tests for embedding model width lookup

Tests dimensions_for_model():
- Known model families (including quantized variants)
- Fallback embedder names
- Unknown models default to 1536
"""

import pytest

from src.tool_vectors.embedding.dimensions import (
    DEFAULT_DIMENSIONS,
    FALLBACK_DIMENSIONS,
    dimensions_for_model,
)


@pytest.mark.parametrize(
    "model,expected",
    [
        ("text-embedding-3-small", 1536),
        ("text-embedding-3-large", 3072),
        ("bge-m3", 1024),
        ("BAAI/bge-m3", 1024),
        ("bge-m3-Q5_K_M.gguf", 1024),
        ("nomic-embed-text", 768),
        ("nomic-ai/nomic-embed-text-v1.5", 768),
        ("Text-Embedding-3-LARGE", 3072),
    ],
)
def test_known_models(model, expected):
    """Known model names resolve by case-insensitive substring match."""
    assert dimensions_for_model(model) == expected


@pytest.mark.parametrize("model", ["fallback", "simple-hash", "Fallback"])
def test_fallback_model_names(model):
    assert dimensions_for_model(model) == FALLBACK_DIMENSIONS


@pytest.mark.parametrize("model", ["my-custom-model", "", "fallback-v2"])
def test_unknown_model_defaults(model):
    """Unknown models (and near-misses of fallback names) get the default width."""
    assert dimensions_for_model(model) == DEFAULT_DIMENSIONS == 1536
