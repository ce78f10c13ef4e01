"""Fitness evaluation: map emulator memory to a totally ordered outcome."""

from __future__ import annotations

from dataclasses import dataclass

from core.outcome import Outcome
from environment.base import EmulatorHandle


@dataclass(frozen=True)
class MemoryLayout:
    """RAM addresses and state codes read by the evaluator.

    Defaults follow the classic NES side-scroller RAM map.
    """

    player_state: int = 0x000E
    page: int = 0x006D
    fine_x: int = 0x0086
    vertical_page: int = 0x00B5
    engine_mode: int = 0x0770
    timer_digits: tuple[int, int, int] = (0x07F8, 0x07F9, 0x07FA)

    engine_running: int = 0x01
    transition_states: frozenset[int] = frozenset({0x00, 0x01, 0x02, 0x03, 0x04, 0x05, 0x07})
    dying_states: frozenset[int] = frozenset({0x06, 0x0B})
    max_vertical_page: int = 1


class FitnessEvaluator:
    """Classify an emulator state as failing, transitional, or progressing.

    Evaluation is pure: it only calls ``read`` on the handle.
    """

    def __init__(self, layout: MemoryLayout | None = None) -> None:
        self.layout = layout or MemoryLayout()

    def evaluate(self, state: EmulatorHandle) -> Outcome:
        layout = self.layout
        player_state = state.read(layout.player_state)

        # Transitions win over every loss check.
        if state.read(layout.engine_mode) != layout.engine_running:
            return Outcome.transitional()
        if player_state in layout.transition_states:
            return Outcome.transitional()

        if all(state.read(address) == 0 for address in layout.timer_digits):
            return Outcome.failing(terminal=True)

        if state.read(layout.vertical_page) > layout.max_vertical_page:
            return Outcome.failing(terminal=False)
        if player_state in layout.dying_states:
            return Outcome.failing(terminal=False)

        return Outcome.progressing(self.distance(state))

    def distance(self, state: EmulatorHandle) -> int:
        """Return the page/fine-x composite; any higher page outranks any offset."""
        return (state.read(self.layout.page) << 8) | state.read(self.layout.fine_x)
