"""Agent interface definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod

from agents.personality import Personality


class Agent(ABC):
    """Abstract explorer driven one frame at a time by the scheduler.

    Agents own their emulator state outright; the scheduler guarantees a
    single worker touches an agent during a tick.
    """

    agent_id: str

    @abstractmethod
    def tick(self) -> None:
        """Advance the agent's emulator by exactly one frame.

        Invariants:
            - Exactly one ``step_one_frame`` call on the frontier per tick.
            - Adverse outcomes are absorbed internally, never raised.
        """

    @property
    @abstractmethod
    def progress(self) -> int:
        """Return the latest known progress distance.

        Invariants:
            - Keeps the last progressing distance while failing or in a
              transition.
        """

    @property
    @abstractmethod
    def mode(self) -> str:
        """Return the current behavior mode name."""

    @abstractmethod
    def get_personality(self) -> Personality:
        """Return the agent's immutable personality."""
