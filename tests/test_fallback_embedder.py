"""
Unit Tests for FallbackEmbedder

The offline embedder must be deterministic, unit length and of fixed width.
"""

import math

import pytest

from src.tool_vectors.embedding.fallback import DOMAIN_VOCABULARY, FallbackEmbedder


def _norm(vector):
    return math.sqrt(sum(v * v for v in vector))


def test_default_width_is_100():
    embedder = FallbackEmbedder()
    assert len(embedder.embed("search files on disk")) == 100


def test_deterministic():
    embedder = FallbackEmbedder()
    assert embedder.embed("Send an email") == embedder.embed("Send an email")


def test_unit_length():
    vector = FallbackEmbedder().embed("query the database table for user records")
    assert _norm(vector) == pytest.approx(1.0)


def test_case_insensitive():
    embedder = FallbackEmbedder()
    assert embedder.embed("SEARCH Weather") == embedder.embed("search weather")


def test_empty_text_gives_zero_vector():
    vector = FallbackEmbedder().embed("")
    assert vector == [0.0] * 100


def test_vocabulary_word_sets_its_position():
    """A vocabulary hit dominates its fixed position."""
    vector = FallbackEmbedder().embed("weather")
    position = DOMAIN_VOCABULARY.index("weather")
    assert vector[position] == max(vector)
    assert vector[position] > 0


def test_out_of_vocabulary_word_still_nonzero():
    vector = FallbackEmbedder().embed("zzxq")
    bucket = sum(ord(ch) for ch in "zzxq") % 100
    assert vector[bucket] == pytest.approx(1.0)
    assert _norm(vector) == pytest.approx(1.0)


def test_custom_width():
    vector = FallbackEmbedder(width=16).embed("search find get")
    assert len(vector) == 16
    assert _norm(vector) == pytest.approx(1.0)


def test_invalid_width_rejected():
    with pytest.raises(ValueError):
        FallbackEmbedder(width=0)
