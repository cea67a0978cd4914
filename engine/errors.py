"""Error taxonomy for the simulation engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from models.mystery import AnswerResult


class SimulationError(ValueError):
    """Base class for recoverable simulation errors."""


class OutOfBounds(SimulationError):
    """A tile or entity coordinate lies outside the grid."""

    def __init__(self, x: int, y: int) -> None:
        super().__init__(f"Position ({x}, {y}) is out of bounds")
        self.x = x
        self.y = y


class IllegalIntent(SimulationError):
    """The submitted intent cannot be applied; no turn elapses."""


class AlreadyAnswered(SimulationError):
    """A deduction was answered a second time.

    Carries the result recorded by the first answer.
    """

    def __init__(self, result: AnswerResult) -> None:
        super().__init__(f"Deduction '{result.deduction_id}' has already been answered")
        self.result = result


class InvariantViolation(RuntimeError):
    """A state invariant was broken. Indicates a bug; never caught by the engine."""
