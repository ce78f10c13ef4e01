"""Tests for the RAM-to-outcome fitness evaluator."""

from __future__ import annotations

from core.fitness import FitnessEvaluator, MemoryLayout
from core.outcome import Outcome
from environment.base import EmulatorHandle


class _Ram(EmulatorHandle):
    def __init__(self, values: dict[int, int] | None = None) -> None:
        self.values = dict(values or {})
        self.reads: list[int] = []

    def read(self, address: int) -> int:
        self.reads.append(address)
        return self.values.get(address, 0)

    def clone(self) -> "_Ram":
        return _Ram(self.values)

    def set_input_source(self, mask: int) -> None:
        pass

    def step_one_frame(self, applied_input_mask: int | None = None) -> None:
        raise AssertionError("evaluator must not step the emulator")


def _running(**overrides: int) -> _Ram:
    layout = MemoryLayout()
    values = {
        layout.engine_mode: layout.engine_running,
        layout.player_state: 0x08,
        layout.timer_digits[0]: 3,
        layout.timer_digits[1]: 0,
        layout.timer_digits[2]: 0,
    }
    for name, value in overrides.items():
        values[getattr(layout, name)] = value
    return _Ram(values)


def test_progressing_distance_combines_page_and_fine_x() -> None:
    outcome = FitnessEvaluator().evaluate(_running(page=2, fine_x=0x10))
    assert outcome == Outcome.progressing(0x210)


def test_transitions_take_precedence_over_losses() -> None:
    evaluator = FitnessEvaluator()
    layout = MemoryLayout()

    not_running = _running(engine_mode=0, vertical_page=5)
    for address in layout.timer_digits:
        not_running.values[address] = 0
    assert evaluator.evaluate(not_running).is_transitional

    assert evaluator.evaluate(_running(player_state=0x07)).is_transitional
    assert evaluator.evaluate(_running(player_state=0x00)).is_transitional


def test_timer_expiry_is_terminal_failure() -> None:
    state = _running()
    for address in MemoryLayout().timer_digits:
        state.values[address] = 0
    outcome = FitnessEvaluator().evaluate(state)
    assert outcome.is_failing
    assert outcome.terminal is True


def test_falling_and_dying_are_non_terminal_failures() -> None:
    evaluator = FitnessEvaluator()
    fell = evaluator.evaluate(_running(vertical_page=2))
    dying = evaluator.evaluate(_running(player_state=0x0B))
    assert fell.is_failing and not fell.terminal
    assert dying.is_failing and not dying.terminal
    assert evaluator.evaluate(_running(vertical_page=1)).is_progressing


def test_custom_layout_is_honored() -> None:
    layout = MemoryLayout(page=0x10, fine_x=0x11)
    state = _Ram(
        {
            layout.engine_mode: 1,
            layout.player_state: 0x08,
            layout.timer_digits[2]: 1,
            0x10: 1,
            0x11: 4,
        }
    )
    assert FitnessEvaluator(layout).evaluate(state) == Outcome.progressing(0x104)
