"""Rollout-search explorer agent with checkpoint rollback and random walks."""

from __future__ import annotations

import enum
import logging
import random
from collections import deque

from agents.base import Agent
from agents.candidates import DEFAULT_POLICY, CandidatePolicy, generate_sequence
from agents.personality import Personality
from core.checkpointing import (
    DEFAULT_CHECKPOINT_CAP,
    Checkpoint,
    CheckpointHistory,
    RewindTunables,
    revert,
    rewind_frames_for,
)
from core.fitness import FitnessEvaluator
from core.outcome import Outcome
from core.rollout import rollout_search
from environment.base import EmulatorHandle

LOGGER = logging.getLogger(__name__)


class AgentMode(str, enum.Enum):
    """Persisted behavior modes; reverting is a transient action, not a mode."""

    SEARCHING = "searching"
    RANDOM_WALKING = "random_walking"


class AgentInvariantError(RuntimeError):
    """Raised when the decision loop's ordering guarantees are broken."""


class ExplorerAgent(Agent):
    """Drives one emulator toward higher outcomes, one frame per tick.

    Most ticks drain a previously chosen action sequence. When the queue runs
    dry the agent reaches a decision point: it rolls back on failure,
    checkpoints periodically, and refills the queue from either a rollout
    search or an unscored random walk.
    """

    def __init__(
        self,
        agent_id: str,
        frontier: EmulatorHandle,
        personality: Personality,
        rng: random.Random,
        evaluator: FitnessEvaluator,
        rewind: RewindTunables | None = None,
        checkpoint_cap: int = DEFAULT_CHECKPOINT_CAP,
        policy: CandidatePolicy = DEFAULT_POLICY,
    ) -> None:
        self.agent_id = agent_id
        self.frontier = frontier
        self.personality = personality
        self.rng = rng
        self.evaluator = evaluator
        self.rewind = rewind or RewindTunables.for_emulator(frontier)
        self.policy = policy

        self.history = CheckpointHistory(cap=checkpoint_cap)
        self.history.append(Checkpoint(snapshot=frontier.clone(), inputs_consumed=0))
        self.queue: deque[int] = deque()

        self.last_action = 0
        self.stuck_counter = 0
        self.random_remaining: int | None = None
        self.frames_since_checkpoint = 0

        self.frames = 0
        self.decisions = 0
        self.reverts = 0
        self.last_decision: AgentMode | None = None

        self._outcome = evaluator.evaluate(frontier)
        self._progress = self._outcome.distance if self._outcome.is_progressing else 0

    @property
    def mode(self) -> AgentMode:
        if self.random_remaining is not None:
            return AgentMode.RANDOM_WALKING
        return AgentMode.SEARCHING

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def outcome(self) -> Outcome:
        """Outcome of the frontier after the latest frame."""
        return self._outcome

    def get_personality(self) -> Personality:
        return self.personality

    def tick(self) -> None:
        if not self.queue:
            self._decide()
        self._apply_next()

    def _apply_next(self) -> None:
        if not self.queue:
            raise AgentInvariantError(f"Agent '{self.agent_id}' has no queued action to apply.")
        action = self.queue.popleft()
        self.frontier.step_one_frame(action)
        self.last_action = action
        self.frames += 1
        self.frames_since_checkpoint += 1

        self._outcome = self.evaluator.evaluate(self.frontier)
        if self._outcome.is_progressing:
            self._progress = self._outcome.distance

    def _decide(self) -> None:
        self.decisions += 1
        outcome = self._outcome

        if outcome.is_failing:
            self.frontier = revert(self.history, rewind_frames_for(outcome, self.rewind))
            self.frames_since_checkpoint = 0
            self.reverts += 1
            outcome = self.evaluator.evaluate(self.frontier)
            self._outcome = outcome
            LOGGER.debug("Agent %s reverted (%d checkpoints left)", self.agent_id, len(self.history))
        elif self.frames_since_checkpoint >= self.personality.checkpoint_interval:
            self.history.append(
                Checkpoint(snapshot=self.frontier.clone(), inputs_consumed=self.frames_since_checkpoint)
            )
            self.frames_since_checkpoint = 0

        if self.random_remaining is not None:
            self._decide_random_walk()
            return

        result = rollout_search(
            self.frontier,
            self.personality,
            self.rng,
            self.evaluator,
            previous_action=self.last_action,
            policy=self.policy,
        )
        if result.outcome > outcome:
            self.stuck_counter = 0
        elif not result.outcome.is_transitional:
            self.stuck_counter += 1
            if self.stuck_counter >= self.personality.patience:
                self.stuck_counter = 0
                self.random_remaining = self.personality.random_duration
                LOGGER.debug(
                    "Agent %s stuck at %r; random walking for %d decisions",
                    self.agent_id,
                    outcome,
                    self.random_remaining,
                )
        self.queue.extend(result.sequence)
        self.last_decision = AgentMode.SEARCHING

    def _decide_random_walk(self) -> None:
        remaining = int(self.random_remaining or 0) - 1
        self.random_remaining = remaining if remaining > 0 else None
        self.queue.extend(
            generate_sequence(
                self.last_action,
                self.personality.rollout_horizon,
                self.personality,
                self.rng,
                self.policy,
            )
        )
        self.last_decision = AgentMode.RANDOM_WALKING
