"""
Error types raised by the visualization pipeline.

The ViewController converts these into an in-canvas message; nothing in the
render path is expected to crash the caller.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .validation import ValidationIssue


class VisualizerError(Exception):
    """Base class for all hierviz errors."""


class InvalidShape(VisualizerError, ValueError):
    """Payload matches neither known shape, or breaks a structural invariant."""

    def __init__(self, message: str, issues: "list[ValidationIssue] | None" = None):
        super().__init__(message)
        self.message = message
        self.issues = list(issues or [])

    def __str__(self) -> str:
        return self.message


class EmptyInput(VisualizerError):
    """Nothing to render. Not an error from the user's point of view."""


class ConversionError(VisualizerError):
    """Raised by a converter when source text cannot be decoded.

    The message is shown to the user verbatim.
    """
