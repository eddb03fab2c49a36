"""Embedding model output widths."""

from loguru import logger

EMBEDDING_DIMENSIONS_SMALL = 1536  # text-embedding-3-small
EMBEDDING_DIMENSIONS_LARGE = 3072  # text-embedding-3-large
BGE_DIMENSIONS = 1024  # BAAI/bge-m3
NOMIC_DIMENSIONS = 768  # nomic-ai/nomic-embed-text
FALLBACK_DIMENSIONS = 100  # offline hashing embedder

DEFAULT_DIMENSIONS = EMBEDDING_DIMENSIONS_SMALL

# Substring -> width, checked in order; quantized variants such as
# "bge-m3-Q5_K_M.gguf" or "nomic-embed-text-v1.5" match by substring.
MODEL_DIMENSIONS: list[tuple[str, int]] = [
    ("bge-m3", BGE_DIMENSIONS),
    ("nomic-embed-text", NOMIC_DIMENSIONS),
    ("text-embedding-3-large", EMBEDDING_DIMENSIONS_LARGE),
    ("text-embedding-3-small", EMBEDDING_DIMENSIONS_SMALL),
]

FALLBACK_MODEL_NAMES = frozenset({"fallback", "simple-hash"})


def dimensions_for_model(model: str) -> int:
    """
    Look up the expected embedding width for a model name.

    Matching is case-insensitive; the first table entry whose key is a
    substring of the model name wins. The fallback embedder names match
    exactly. Unknown models default to 1536 with a warning.

    Args:
        model: Configured embedding model name

    Returns:
        Expected vector width
    """
    lowered = (model or "").lower()

    for needle, width in MODEL_DIMENSIONS:
        if needle in lowered:
            logger.debug("Model {} matched '{}', using {} dimensions", model, needle, width)
            return width

    if lowered in FALLBACK_MODEL_NAMES:
        return FALLBACK_DIMENSIONS

    logger.warning(
        "Unknown embedding model: {}, defaulting to {} dimensions", model, DEFAULT_DIMENSIONS
    )
    return DEFAULT_DIMENSIONS
