"""
Embedding generation with validation and fallback.

EmbeddingGenerator never raises and never returns a rejected vector:
the API attempt is tried first, and the offline fallback embedder is the
last attempt in the chain, which always succeeds.
"""

import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

from loguru import logger

from ..config import Config, RoutingSettings
from ..events import EventSink, FallbackUsed, default_sink
from .fallback import FallbackEmbedder
from .transport import EmbeddingClient
from .validator import EmbeddingValidator

_NEWLINES = re.compile(r"\n+")


@dataclass(frozen=True)
class AttemptResult:
    """Either a usable vector or the reason the attempt gave up."""

    vector: Optional[list[float]] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.vector is not None


@dataclass(frozen=True)
class GeneratedEmbedding:
    """Vector plus where it came from."""

    vector: list[float]
    source: str  # "api" or "fallback"
    fallback_reason: Optional[str] = None

    @property
    def dimensions(self) -> int:
        return len(self.vector)


# (prepared_text, original_text, settings) -> AttemptResult
Attempt = Callable[[str, str, RoutingSettings], Awaitable[AttemptResult]]


def prepare_text(text: str, max_chars: Optional[int] = None) -> str:
    """Collapse newlines to spaces and truncate to the character budget."""
    limit = Config.EMBEDDING_MAX_CHARS if max_chars is None else max_chars
    cleaned = _NEWLINES.sub(" ", text or "")
    return cleaned[:limit] if len(cleaned) > limit else cleaned


class EmbeddingGenerator:
    """
    Composes EmbeddingClient, EmbeddingValidator and FallbackEmbedder.

    Attempts run in order; the first one that produces a vector wins.
    The fallback attempt is always last.
    """

    def __init__(
        self,
        client: Optional[EmbeddingClient] = None,
        validator: Optional[EmbeddingValidator] = None,
        fallback: Optional[FallbackEmbedder] = None,
        sink: Optional[EventSink] = None,
        max_chars: Optional[int] = None,
    ):
        self.sink = default_sink(sink)
        self.client = client or EmbeddingClient()
        self.validator = validator or EmbeddingValidator(sink=self.sink)
        self.fallback = fallback or FallbackEmbedder()
        self.max_chars = max_chars

    @property
    def attempts(self) -> Sequence[tuple[str, Attempt]]:
        return (("api", self._api_attempt),)

    async def _api_attempt(
        self, prepared: str, original: str, settings: RoutingSettings
    ) -> AttemptResult:
        raw = await self.client.embed(prepared, settings)
        if raw is None:
            return AttemptResult(reason="transport")

        outcome = self.validator.validate(
            raw, settings.embedding_model, base_url=settings.api_base_url
        )
        if not outcome.ok:
            return AttemptResult(reason=f"validation:{outcome.reason}")

        return AttemptResult(vector=[float(v) for v in raw])

    def _fallback(self, original: str, reason: str) -> GeneratedEmbedding:
        vector = self.fallback.embed(original)
        self.sink.emit(FallbackUsed(reason=reason, width=len(vector)))
        logger.warning(
            "Using fallback embedding ({} dimensions) after {}", len(vector), reason
        )
        return GeneratedEmbedding(vector=vector, source="fallback", fallback_reason=reason)

    async def generate_detailed(self, text: str, settings: RoutingSettings) -> GeneratedEmbedding:
        """
        Generate an embedding and report its source.

        Args:
            text: Arbitrary input text
            settings: Routing settings for this operation

        Returns:
            GeneratedEmbedding (never raises)
        """
        prepared = prepare_text(text, self.max_chars)
        reason = "no attempts"

        for source, attempt in self.attempts:
            try:
                result = await attempt(prepared, text, settings)
            except Exception as e:
                logger.error(
                    "Error generating embedding for model {}: {}", settings.embedding_model, e
                )
                reason = "error"
                continue

            if result.ok:
                logger.info(
                    "Embedding generated: {} dimensions for model {}",
                    len(result.vector),
                    settings.embedding_model,
                )
                return GeneratedEmbedding(vector=result.vector, source=source)
            reason = result.reason or "unknown"

        return self._fallback(text, reason)

    async def generate(self, text: str, settings: RoutingSettings) -> list[float]:
        """Generate a usable embedding vector for text."""
        return (await self.generate_detailed(text, settings)).vector
