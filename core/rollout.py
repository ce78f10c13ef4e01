"""Short-horizon multi-candidate rollout search."""

from __future__ import annotations

import random
from dataclasses import dataclass

from agents.candidates import DEFAULT_POLICY, CandidatePolicy, generate_sequence
from agents.personality import Personality
from core.fitness import FitnessEvaluator
from core.outcome import Outcome
from environment.base import EmulatorHandle


@dataclass(frozen=True)
class RolloutResult:
    """Winning candidate sequence and the outcome it reached."""

    sequence: tuple[int, ...]
    outcome: Outcome


def score_sequence(state: EmulatorHandle, sequence: tuple[int, ...] | list[int], evaluator: FitnessEvaluator) -> Outcome:
    """Step a clone of ``state`` through ``sequence`` and evaluate the result."""
    trial = state.clone()
    for action in sequence:
        trial.step_one_frame(action)
    return evaluator.evaluate(trial)


def rollout_search(
    state: EmulatorHandle,
    personality: Personality,
    rng: random.Random,
    evaluator: FitnessEvaluator,
    previous_action: int = 0,
    policy: CandidatePolicy = DEFAULT_POLICY,
) -> RolloutResult:
    """Score ``candidate_count`` candidate sequences and return the best.

    ``state`` is never stepped; every candidate runs on its own clone. Ties
    keep the earliest candidate.
    """
    if personality.candidate_count < 1:
        raise ValueError("candidate_count must be >= 1")

    def _candidate() -> RolloutResult:
        sequence = tuple(
            generate_sequence(previous_action, personality.rollout_horizon, personality, rng, policy)
        )
        return RolloutResult(sequence=sequence, outcome=score_sequence(state, sequence, evaluator))

    best = _candidate()
    for _ in range(personality.candidate_count - 1):
        candidate = _candidate()
        if candidate.outcome > best.outcome:
            best = candidate
    return best
