"""Error taxonomy raised by the order engine.

Callers above the engine translate these into transport responses:
NotFoundError -> 404, ValidationError -> 400, anything else -> 500.
"""

from __future__ import annotations

from typing import Sequence


class OrderEngineError(Exception):
    """Base class for all engine errors."""


class ValidationError(OrderEngineError):
    """Required identifying input is missing or invalid."""


class NotFoundError(OrderEngineError):
    """A referenced order or material does not exist in any known population."""


class ConsistencyError(OrderEngineError):
    """A multi-step transactional operation failed partway and was rolled back."""


class DeductionError(OrderEngineError):
    """Auto-deduction could not satisfy one or more material requirements."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__("Automatic material deduction failed: " + "; ".join(self.errors))
