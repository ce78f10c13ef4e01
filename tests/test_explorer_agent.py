"""Tests for the explorer agent decision loop."""

from __future__ import annotations

import random

import pytest

from agents.candidates import Buttons, CandidatePolicy
from agents.explorer import AgentInvariantError, AgentMode, ExplorerAgent
from agents.personality import Personality
from core.checkpointing import RewindTunables
from core.fitness import FitnessEvaluator, MemoryLayout
from core.outcome import Outcome
from environment.base import EmulatorHandle
from environment.ram_platformer import LevelLayout, RamPlatformer


class _Walker(EmulatorHandle):
    def __init__(self, x: int = 0, frames: int = 0) -> None:
        self.x = x
        self.frames = frames

    def read(self, address: int) -> int:
        return self.x

    def clone(self) -> "_Walker":
        return _Walker(self.x, self.frames)

    def set_input_source(self, mask: int) -> None:
        pass

    def step_one_frame(self, applied_input_mask: int | None = None) -> None:
        self.frames += 1
        if applied_input_mask is not None and applied_input_mask & Buttons.RIGHT:
            self.x += 1


class _DistanceEvaluator(FitnessEvaluator):
    def evaluate(self, state: EmulatorHandle) -> Outcome:
        return Outcome.progressing(state.read(0))


class _AlwaysFailing(FitnessEvaluator):
    def evaluate(self, state: EmulatorHandle) -> Outcome:
        return Outcome.failing(terminal=False)


def _personality(**overrides: float) -> Personality:
    values = {
        "patience": 3,
        "random_duration": 4,
        "rollout_horizon": 1,
        "mutation_rate": 0.0,
        "candidate_count": 1,
        "checkpoint_interval": 1000,
    }
    values.update(overrides)
    return Personality(**values)


def _agent(evaluator: FitnessEvaluator, policy: CandidatePolicy | None = None, **overrides: float) -> ExplorerAgent:
    return ExplorerAgent(
        agent_id="agent_0",
        frontier=_Walker(),
        personality=_personality(**overrides),
        rng=random.Random(0),
        evaluator=evaluator,
        policy=policy or CandidatePolicy(),
    )


def test_stuck_agent_searches_then_random_walks_then_searches_again() -> None:
    agent = _agent(_AlwaysFailing(), patience=3, random_duration=4)

    decisions: list[AgentMode] = []
    for _ in range(8):
        agent.tick()
        decisions.append(agent.last_decision)

    searching, walking = AgentMode.SEARCHING, AgentMode.RANDOM_WALKING
    assert decisions == [searching] * 3 + [walking] * 4 + [searching]
    assert agent.mode == AgentMode.SEARCHING
    assert agent.stuck_counter == 1
    assert agent.reverts == 8


def test_mode_switches_exactly_at_patience() -> None:
    agent = _agent(_AlwaysFailing(), patience=3)
    agent.tick()
    agent.tick()
    assert agent.mode == AgentMode.SEARCHING
    assert agent.stuck_counter == 2
    agent.tick()
    assert agent.mode == AgentMode.RANDOM_WALKING
    assert agent.stuck_counter == 0
    assert agent.random_remaining == agent.personality.random_duration


def test_improving_rollouts_keep_agent_searching() -> None:
    policy = CandidatePolicy(forced=Buttons.B | Buttons.RIGHT)
    agent = _agent(_DistanceEvaluator(), policy=policy, patience=1)
    for _ in range(10):
        agent.tick()
    assert agent.stuck_counter == 0
    assert agent.mode == AgentMode.SEARCHING
    assert agent.progress == 10
    assert agent.frames == 10


def test_non_improving_rollouts_count_toward_patience() -> None:
    agent = _agent(_DistanceEvaluator(), patience=2)
    agent.tick()
    assert agent.stuck_counter == 1
    agent.tick()
    assert agent.mode == AgentMode.RANDOM_WALKING
    assert agent.progress == 0


def test_checkpoint_taken_once_interval_elapses() -> None:
    agent = _agent(_DistanceEvaluator(), checkpoint_interval=2)
    agent.tick()
    agent.tick()
    assert len(agent.history) == 1
    agent.tick()
    assert len(agent.history) == 2
    assert agent.history.newest().inputs_consumed == 2
    assert agent.frames_since_checkpoint == 1


def test_revert_replaces_frontier_with_fresh_clone() -> None:
    agent = ExplorerAgent(
        agent_id="agent_1",
        frontier=_Walker(x=3),
        personality=_personality(rollout_horizon=2),
        rng=random.Random(4),
        evaluator=_AlwaysFailing(),
        rewind=RewindTunables(short_rewind_frames=0, timeout_rewind_frames=0),
    )
    stored = agent.history.newest().snapshot
    agent.tick()
    assert agent.frontier is not stored
    assert agent.frontier.x == 3
    assert stored.x == 3
    assert agent.reverts == 1


def test_queue_drains_one_frame_per_tick() -> None:
    agent = _agent(_DistanceEvaluator(), rollout_horizon=5)
    agent.tick()
    assert len(agent.queue) == 4
    assert agent.decisions == 1
    for _ in range(4):
        agent.tick()
    assert agent.decisions == 1
    assert not agent.queue
    agent.tick()
    assert agent.decisions == 2


def test_applying_with_empty_queue_is_an_invariant_violation() -> None:
    agent = _agent(_DistanceEvaluator())
    with pytest.raises(AgentInvariantError):
        agent._apply_next()


class _AlwaysTransitional(FitnessEvaluator):
    def evaluate(self, state: EmulatorHandle) -> Outcome:
        return Outcome.transitional()


class _ClockEvaluator(FitnessEvaluator):
    def __init__(self, limit: int, terminal: bool) -> None:
        self.limit = limit
        self.terminal = terminal

    def evaluate(self, state: EmulatorHandle) -> Outcome:
        if state.frames >= self.limit:
            return Outcome.failing(terminal=self.terminal)
        return Outcome.progressing(state.read(0))


def test_transitional_rollouts_never_count_toward_patience() -> None:
    agent = _agent(_AlwaysTransitional(), patience=2)
    for _ in range(10):
        agent.tick()
    assert agent.stuck_counter == 0
    assert agent.mode == AgentMode.SEARCHING
    assert agent.decisions == 10


@pytest.mark.parametrize(
    "terminal, frames_after, checkpoints_left",
    [
        (True, 1, 1),
        (False, 7, 4),
    ],
)
def test_terminal_failure_takes_the_long_rewind(terminal: bool, frames_after: int, checkpoints_left: int) -> None:
    agent = ExplorerAgent(
        agent_id="agent_2",
        frontier=_Walker(),
        personality=_personality(patience=1000, checkpoint_interval=2),
        rng=random.Random(1),
        evaluator=_ClockEvaluator(limit=10, terminal=terminal),
        rewind=RewindTunables(short_rewind_frames=2, timeout_rewind_frames=8),
    )
    for _ in range(10):
        agent.tick()
    assert agent.outcome.is_failing
    assert [checkpoint.snapshot.frames for checkpoint in agent.history] == [0, 2, 4, 6, 8]

    agent.tick()
    assert agent.reverts == 1
    assert agent.frontier.frames == frames_after
    assert len(agent.history) == checkpoints_left


def test_timeout_rewind_restores_most_of_the_platformer_clock() -> None:
    level = LevelLayout(intro_frames=0, timer_start=100, frames_per_timer_unit=24)
    agent = ExplorerAgent(
        agent_id="agent_3",
        frontier=RamPlatformer(level=level),
        personality=_personality(patience=100_000, checkpoint_interval=30),
        rng=random.Random(2),
        evaluator=FitnessEvaluator(),
    )
    assert agent.rewind.timeout_rewind_frames == 2400

    for _ in range(3000):
        agent.tick()
        if agent.outcome.terminal:
            break
    assert agent.outcome.terminal
    assert agent.frames == 2400

    agent.tick()
    timer_digits = MemoryLayout().timer_digits
    hundreds, tens, ones = (agent.frontier.read(address) for address in timer_digits)
    assert agent.reverts == 1
    assert hundreds * 100 + tens * 10 + ones == 100
    assert agent.outcome.is_progressing
