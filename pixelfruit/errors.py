"""
Exception hierarchy for the PixelFruit engine.
"""

from typing import Optional


class PixelFruitError(Exception):
    """Base class for all engine errors."""


class InvalidBuffer(PixelFruitError, ValueError):
    """Raised when a pixel buffer does not match its declared dimensions."""

    def __init__(self, message: str, expected: Optional[int] = None,
                 actual: Optional[int] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class UnknownOperation(PixelFruitError, ValueError):
    """Raised when a request names an operation the engine cannot run."""

    def __init__(self, operation: str):
        super().__init__(f"Unknown operation: {operation}")
        self.operation = operation


class WorkerFailure(PixelFruitError):
    """
    Raised when a task handler fails inside the worker.

    The original exception is attached as ``__cause__``.
    """

    def __init__(self, task_id: str, message: str):
        super().__init__(f"Task {task_id} failed: {message}")
        self.task_id = task_id


class CacheMiss(PixelFruitError, KeyError):
    """Raised by the cache layer when a key is absent, disabled or expired."""
