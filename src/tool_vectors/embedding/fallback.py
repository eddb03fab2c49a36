"""
Deterministic offline embedder.

Used whenever the embedding API is unreachable or returns something the
validator rejects. Produces a bag-of-words vector over a fixed domain
vocabulary plus a hashed bucket per word, normalized to unit length.
"""

import math

from .dimensions import FALLBACK_DIMENSIONS

# Word -> fixed vector position (position = list index).
DOMAIN_VOCABULARY: tuple[str, ...] = (
    "search", "find", "get", "fetch", "retrieve", "query", "map", "location",
    "weather", "file", "directory", "email", "message", "send", "create",
    "update", "delete", "browser", "web", "page", "click", "navigate",
    "screenshot", "automation", "database", "table", "record", "insert",
    "select", "schema", "data", "image", "photo", "video", "media", "upload",
    "download", "convert", "text", "document", "pdf", "excel", "word",
    "format", "parse", "api", "rest", "http", "request", "response", "json",
    "xml", "time", "date", "calendar", "schedule", "reminder", "clock", "math",
    "calculate", "number", "sum", "average", "statistics", "user", "account",
    "login", "auth", "permission", "role",
)

VOCABULARY_WEIGHT = 1.0
HASH_WEIGHT = 0.1


class FallbackEmbedder:
    """
    Hashing embedder with a fixed output width.

    Same input always yields the same vector. The zero vector is only
    returned for input with no tokens.
    """

    def __init__(self, width: int = FALLBACK_DIMENSIONS):
        if width <= 0:
            raise ValueError(f"width must be > 0, got {width}")
        self.width = width
        self._positions = {word: i for i, word in enumerate(DOMAIN_VOCABULARY)}

    @staticmethod
    def _tokenize(text: str) -> list[str]:
        return text.lower().split()

    @staticmethod
    def _word_hash(word: str) -> int:
        return sum(ord(ch) for ch in word)

    @staticmethod
    def _normalize(vector: list[float]) -> list[float]:
        magnitude = math.sqrt(sum(x * x for x in vector))
        if magnitude == 0:
            return vector
        return [x / magnitude for x in vector]

    def embed(self, text: str) -> list[float]:
        """
        Generate a unit-length vector for text.

        Args:
            text: Input text (any length)

        Returns:
            List of ``width`` floats
        """
        vector = [0.0] * self.width

        for word in self._tokenize(text or ""):
            position = self._positions.get(word)
            if position is not None and position < self.width:
                vector[position] += VOCABULARY_WEIGHT
            vector[self._word_hash(word) % self.width] += HASH_WEIGHT

        return self._normalize(vector)
