"""Immutable per-agent exploration tunables."""

from __future__ import annotations

import random
from dataclasses import asdict, dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class Personality:
    """Search/exploration parameters distinguishing one agent from another.

    Attributes:
        patience: Consecutive non-improving rollouts before random walking.
        random_duration: Decision points spent random walking once triggered.
        rollout_horizon: Frames per candidate sequence.
        mutation_rate: Per-frame probability of flipping a control bit.
        candidate_count: Candidates evaluated per rollout search.
        checkpoint_interval: Frames between history snapshots.
    """

    patience: int
    random_duration: int
    rollout_horizon: int
    mutation_rate: float
    candidate_count: int
    checkpoint_interval: int

    def __post_init__(self) -> None:
        if self.patience < 1:
            raise ValueError("patience must be >= 1")
        if self.random_duration < 1:
            raise ValueError("random_duration must be >= 1")
        if self.rollout_horizon < 1:
            raise ValueError("rollout_horizon must be >= 1")
        if self.candidate_count < 1:
            raise ValueError("candidate_count must be >= 1")
        if self.checkpoint_interval < 0:
            raise ValueError("checkpoint_interval must be >= 0")
        if not 0.0 <= self.mutation_rate <= 1.0:
            raise ValueError("mutation_rate must be in [0.0, 1.0]")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def traits(self) -> dict[str, float]:
        """Return the display trait table published to the rendering layer."""
        return {
            "patient": float(self.patience),
            "bold": float(self.random_duration),
            "twitchy": float(self.mutation_rate),
            "farsighted": float(self.rollout_horizon),
            "curious": float(self.candidate_count),
            "careful": float(self.checkpoint_interval),
        }


@dataclass(frozen=True)
class PersonalityRanges:
    """Inclusive sampling ranges used when spawning a population."""

    patience: tuple[int, int] = (2, 20)
    random_duration: tuple[int, int] = (2, 30)
    rollout_horizon: tuple[int, int] = (8, 24)
    mutation_rate: tuple[float, float] = (0.02, 0.3)
    candidate_count: tuple[int, int] = (2, 6)
    checkpoint_interval: tuple[int, int] = (30, 90)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> "PersonalityRanges":
        if not payload:
            return cls()
        defaults = cls()
        values: dict[str, Any] = {}
        for name in asdict(defaults):
            raw = payload.get(name, getattr(defaults, name))
            if isinstance(raw, (int, float)):
                raw = (raw, raw)
            if not isinstance(raw, (list, tuple)) or len(raw) != 2:
                raise ValueError(f"personality.{name} must be a [low, high] pair")
            low, high = raw
            if low > high:
                raise ValueError(f"personality.{name} low bound exceeds high bound")
            values[name] = (low, high)
        unknown = sorted(set(payload) - set(values))
        if unknown:
            raise ValueError(f"Unknown personality field(s): {unknown}")
        return cls(**values)


def spawn_personality(rng: random.Random, ranges: PersonalityRanges | None = None) -> Personality:
    """Draw one personality from ``ranges`` using ``rng``."""
    r = ranges or PersonalityRanges()
    return Personality(
        patience=rng.randint(*r.patience),
        random_duration=rng.randint(*r.random_duration),
        rollout_horizon=rng.randint(*r.rollout_horizon),
        mutation_rate=rng.uniform(*r.mutation_rate),
        candidate_count=rng.randint(*r.candidate_count),
        checkpoint_interval=rng.randint(*r.checkpoint_interval),
    )
