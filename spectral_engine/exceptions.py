"""
exceptions.py
-------------
Error taxonomy for the projection engine.

Every error carries the pipeline stage that raised it so callers can tell
a bad neighborhood parameter apart from a failed eigensolve.
"""


class EngineError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, stage: str = "unknown"):
        super().__init__(f"[{stage}] {message}")
        self.stage = stage
        self.message = message


class ValidationError(EngineError, ValueError):
    """Raised for invalid caller input, before any matrix is constructed."""


class ComputationError(EngineError, RuntimeError):
    """Raised when a numerical stage fails on otherwise valid input."""
