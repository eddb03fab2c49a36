"""
Embedding validation pipeline.

Gates every vector returned by an embedding API before it may be stored.
Checks run in a fixed order and stop at the first failure:

1. shape      - non-empty sequence of numbers
2. zero       - not every element exactly 0
3. range      - every element within [-tolerance, tolerance]
4. dimension  - length equals the width expected for the model
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from loguru import logger

from ..config import Config
from ..events import EventSink, ValidationFailed, default_sink
from .dimensions import dimensions_for_model

PREVIEW_VALUES = 5


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of running the validator on one candidate vector."""

    ok: bool
    reason: Optional[str] = None  # name of the first failing check
    detail: str = ""

    @classmethod
    def passed(cls) -> "ValidationOutcome":
        return cls(ok=True)

    @classmethod
    def failed(cls, reason: str, detail: str) -> "ValidationOutcome":
        return cls(ok=False, reason=reason, detail=detail)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _preview(values: Sequence[Any]) -> list[Any]:
    return list(values[:PREVIEW_VALUES])


class EmbeddingValidator:
    """
    Runs the shape, zero, range and dimension checks on a raw vector.

    Any failure is a hard rejection. Each failure is logged with operator
    diagnostics and emitted as a ValidationFailed event.
    """

    def __init__(
        self,
        range_tolerance: Optional[float] = None,
        dimension_lookup: Callable[[str], int] = dimensions_for_model,
        sink: Optional[EventSink] = None,
    ):
        tolerance = Config.EMBEDDING_RANGE_TOLERANCE if range_tolerance is None else range_tolerance
        self.min_value = -tolerance
        self.max_value = tolerance
        self.dimension_lookup = dimension_lookup
        self.sink = default_sink(sink)

    def check_shape(self, embedding: Any, model: str) -> ValidationOutcome:
        if (
            not isinstance(embedding, (list, tuple))
            or len(embedding) == 0
            or not all(_is_number(v) for v in embedding)
        ):
            length = len(embedding) if hasattr(embedding, "__len__") else "N/A"
            detail = f"type={type(embedding).__name__}, length={length}"
            logger.error(
                "Invalid embedding received for model {}: not a non-empty numeric array ({})",
                model,
                detail,
            )
            return ValidationOutcome.failed("shape", detail)
        return ValidationOutcome.passed()

    def check_not_zero(self, embedding: Sequence[float], model: str) -> ValidationOutcome:
        if all(v == 0 for v in embedding):
            detail = f"dimensions={len(embedding)}, first values={_preview(embedding)}"
            logger.error(
                "CRITICAL: Embedding service returned a vector full of zeros for model {}!\n"
                "  {}\n"
                "  Possible causes:\n"
                "  1. The model is not properly loaded or initialized\n"
                "  2. The API is not responding correctly\n"
                "  3. There's a network/connectivity issue\n"
                "  4. The model path/name doesn't match what's deployed",
                model,
                detail,
            )
            return ValidationOutcome.failed("zero", detail)
        return ValidationOutcome.passed()

    def check_range(self, embedding: Sequence[float], model: str) -> ValidationOutcome:
        if not all(self.min_value <= v <= self.max_value for v in embedding):
            detail = (
                f"range=[{self.min_value}, {self.max_value}], "
                f"dimensions={len(embedding)}, first values={_preview(embedding)}"
            )
            logger.error(
                "CRITICAL: Embedding service returned values out of expected range for model {}: {}",
                model,
                detail,
            )
            return ValidationOutcome.failed("range", detail)
        return ValidationOutcome.passed()

    def check_dimensions(
        self,
        embedding: Sequence[float],
        model: str,
        expected_width: int,
        base_url: str = "",
    ) -> ValidationOutcome:
        actual = len(embedding)
        if actual != expected_width:
            detail = f"expected={expected_width}, actual={actual}"
            logger.error(
                "CRITICAL: Embedding API returned unexpected dimensions!\n"
                "  Model configured: {}\n"
                "  Expected dimensions: {}\n"
                "  Actual dimensions: {}\n"
                "  Base URL: {}\n"
                "  Verify the API output width with:\n"
                "  curl -s {}/embeddings -H \"Content-Type: application/json\" "
                "-d '{{\"model\":\"{}\",\"input\":\"test\"}}' | jq '.data[0].embedding | length'",
                model,
                expected_width,
                actual,
                base_url,
                base_url,
                model,
            )
            return ValidationOutcome.failed("dimension", detail)
        return ValidationOutcome.passed()

    def validate(
        self,
        embedding: Any,
        model: str,
        expected_width: Optional[int] = None,
        base_url: str = "",
    ) -> ValidationOutcome:
        """
        Run all checks in order, stopping at the first failure.

        Args:
            embedding: Candidate vector from the transport
            model: Model name the request was made for
            expected_width: Width to enforce (looked up from model when None)
            base_url: API base URL, used only in diagnostics

        Returns:
            ValidationOutcome describing the first failure, or a pass
        """
        outcome = self.check_shape(embedding, model)
        if outcome.ok:
            outcome = self.check_not_zero(embedding, model)
        if outcome.ok:
            outcome = self.check_range(embedding, model)
        if outcome.ok:
            width = expected_width if expected_width is not None else self.dimension_lookup(model)
            outcome = self.check_dimensions(embedding, model, width, base_url)

        if not outcome.ok:
            self.sink.emit(ValidationFailed(reason=outcome.reason, model=model, detail=outcome.detail))
        return outcome
