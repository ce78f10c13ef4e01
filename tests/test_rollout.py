"""Tests for multi-candidate rollout search."""

from __future__ import annotations

import random

from agents.candidates import Buttons, generate_sequence
from agents.personality import Personality
from core.fitness import FitnessEvaluator
from core.outcome import Outcome
from core.rollout import rollout_search, score_sequence
from environment.base import EmulatorHandle


class _Walker(EmulatorHandle):
    """Moves one unit per frame while RIGHT is held."""

    def __init__(self, x: int = 0) -> None:
        self.x = x
        self.steps = 0

    def read(self, address: int) -> int:
        return self.x

    def clone(self) -> "_Walker":
        return _Walker(self.x)

    def set_input_source(self, mask: int) -> None:
        pass

    def step_one_frame(self, applied_input_mask: int | None = None) -> None:
        self.steps += 1
        if applied_input_mask is not None and applied_input_mask & Buttons.RIGHT:
            self.x += 1


class _DistanceEvaluator(FitnessEvaluator):
    def evaluate(self, state: EmulatorHandle) -> Outcome:
        return Outcome.progressing(state.read(0))


class _FlatEvaluator(FitnessEvaluator):
    def evaluate(self, state: EmulatorHandle) -> Outcome:
        return Outcome.transitional()


def _personality(candidates: int, horizon: int = 12, rate: float = 0.5) -> Personality:
    return Personality(
        patience=3,
        random_duration=3,
        rollout_horizon=horizon,
        mutation_rate=rate,
        candidate_count=candidates,
        checkpoint_interval=30,
    )


def test_frontier_is_never_stepped() -> None:
    frontier = _Walker(x=5)
    rollout_search(frontier, _personality(4), random.Random(1), _DistanceEvaluator())
    assert frontier.steps == 0
    assert frontier.x == 5


def test_best_candidate_wins() -> None:
    personality = _personality(6)
    result = rollout_search(_Walker(), personality, random.Random(9), _DistanceEvaluator())

    replay = random.Random(9)
    candidates = [generate_sequence(0, personality.rollout_horizon, personality, replay) for _ in range(6)]
    scores = [sum(1 for action in seq if action & Buttons.RIGHT) for seq in candidates]
    assert result.sequence == tuple(candidates[scores.index(max(scores))])
    assert result.outcome == Outcome.progressing(max(scores))


def test_ties_keep_the_first_candidate() -> None:
    personality = _personality(5)
    result = rollout_search(_Walker(), personality, random.Random(3), _FlatEvaluator())
    expected = generate_sequence(0, personality.rollout_horizon, personality, random.Random(3))
    assert result.sequence == tuple(expected)


def test_search_is_deterministic_per_seed() -> None:
    personality = _personality(4)
    first = rollout_search(_Walker(), personality, random.Random(21), _DistanceEvaluator(), previous_action=0x80)
    second = rollout_search(_Walker(), personality, random.Random(21), _DistanceEvaluator(), previous_action=0x80)
    assert first == second


def test_score_sequence_runs_on_a_clone() -> None:
    frontier = _Walker(x=2)
    outcome = score_sequence(frontier, [0x80, 0x80, 0x00], _DistanceEvaluator())
    assert outcome == Outcome.progressing(4)
    assert frontier.x == 2
