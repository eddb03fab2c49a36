"""Error taxonomy for the tool vector index."""

from typing import Optional


class ToolVectorError(Exception):
    """Base class for errors that abort a tool vector operation."""


class ProbeError(ToolVectorError):
    """The probe embedding could not establish the model's output width."""


class InvalidDimensionError(ToolVectorError, ValueError):
    """A vector width that is not a positive integer was requested."""


class ReconciliationError(ToolVectorError):
    """Schema alteration or index rebuild failed while reconciling widths."""

    def __init__(
        self,
        message: str,
        current_width: Optional[int] = None,
        required_width: Optional[int] = None,
    ):
        super().__init__(message)
        self.current_width = current_width
        self.required_width = required_width
