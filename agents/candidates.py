"""Stochastic candidate action generation by per-frame bit mutation."""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass

from agents.personality import Personality


class Buttons(enum.IntFlag):
    """Standard 8-bit controller mask."""

    NONE = 0
    A = 0x01
    B = 0x02
    SELECT = 0x04
    START = 0x08
    UP = 0x10
    DOWN = 0x20
    LEFT = 0x40
    RIGHT = 0x80

    @classmethod
    def parse(cls, names: list[str] | tuple[str, ...]) -> "Buttons":
        mask = cls.NONE
        for name in names:
            try:
                mask |= cls[str(name).upper()]
            except KeyError as exc:
                raise ValueError(f"Unknown button name: {name}") from exc
        return mask


@dataclass(frozen=True)
class CandidatePolicy:
    """Which bits mutate freely, which are exclusive, and which are forced on."""

    independent: tuple[Buttons, ...] = (Buttons.A, Buttons.B, Buttons.DOWN)
    exclusive_groups: tuple[tuple[Buttons, ...], ...] = ((Buttons.LEFT, Buttons.RIGHT),)
    forced: Buttons = Buttons.B


DEFAULT_POLICY = CandidatePolicy()


def next_action(
    previous_action: int,
    personality: Personality,
    rng: random.Random,
    policy: CandidatePolicy = DEFAULT_POLICY,
) -> int:
    """Return ``previous_action`` with bits flipped at ``mutation_rate``.

    Exclusive groups switch to exactly one member other than the one held.
    """
    action = int(previous_action)
    rate = personality.mutation_rate

    for bit in policy.independent:
        if rng.random() < rate:
            action ^= int(bit)

    for group in policy.exclusive_groups:
        if rng.random() >= rate:
            continue
        held = [bit for bit in group if action & int(bit)]
        choices = [bit for bit in group if bit not in held] or list(group)
        chosen = choices[rng.randrange(len(choices))]
        for bit in group:
            action &= ~int(bit)
        action |= int(chosen)

    return (action | int(policy.forced)) & 0xFF


def generate_sequence(
    previous_action: int,
    horizon: int,
    personality: Personality,
    rng: random.Random,
    policy: CandidatePolicy = DEFAULT_POLICY,
) -> list[int]:
    """Chain ``next_action`` ``horizon`` times, each output feeding the next."""
    sequence: list[int] = []
    action = int(previous_action)
    for _ in range(max(0, int(horizon))):
        action = next_action(action, personality, rng, policy)
        sequence.append(action)
    return sequence
