"""Totally ordered fitness categories for emulator states."""

from __future__ import annotations

import enum
import functools
from dataclasses import dataclass


class OutcomeKind(enum.IntEnum):
    """Outcome categories in ascending order of preference."""

    FAILING = 0
    TRANSITIONAL = 1
    PROGRESSING = 2


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Outcome:
    """Fitness category of one emulator state.

    Ordering is ``Failing < Transitional < Progressing``, with ``Progressing``
    values ordered by ``distance``. Failing outcomes compare equal to each
    other whatever their ``terminal`` flag; the flag only selects how far the
    agent rewinds.
    """

    kind: OutcomeKind
    terminal: bool = False
    distance: int = 0

    def __post_init__(self) -> None:
        if self.distance < 0:
            raise ValueError("distance must be non-negative")
        if self.terminal and self.kind != OutcomeKind.FAILING:
            raise ValueError("only failing outcomes can be terminal")

    @classmethod
    def failing(cls, terminal: bool = False) -> "Outcome":
        return cls(kind=OutcomeKind.FAILING, terminal=bool(terminal))

    @classmethod
    def transitional(cls) -> "Outcome":
        return cls(kind=OutcomeKind.TRANSITIONAL)

    @classmethod
    def progressing(cls, distance: int) -> "Outcome":
        return cls(kind=OutcomeKind.PROGRESSING, distance=int(distance))

    @property
    def is_failing(self) -> bool:
        return self.kind == OutcomeKind.FAILING

    @property
    def is_transitional(self) -> bool:
        return self.kind == OutcomeKind.TRANSITIONAL

    @property
    def is_progressing(self) -> bool:
        return self.kind == OutcomeKind.PROGRESSING

    def sort_key(self) -> tuple[int, int]:
        """Return the comparison key; ``terminal`` is deliberately absent."""
        if self.kind == OutcomeKind.PROGRESSING:
            return (int(self.kind), self.distance)
        return (int(self.kind), 0)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Outcome):
            return NotImplemented
        return self.sort_key() == other.sort_key()

    def __lt__(self, other: "Outcome") -> bool:
        if not isinstance(other, Outcome):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __hash__(self) -> int:
        return hash(self.sort_key())

    def __repr__(self) -> str:
        if self.kind == OutcomeKind.FAILING:
            return f"Failing(terminal={self.terminal})"
        if self.kind == OutcomeKind.TRANSITIONAL:
            return "Transitional"
        return f"Progressing({self.distance})"
