"""Per-agent progress publication for the rendering/reporting boundary."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Sequence


@dataclass(frozen=True)
class AgentProgress:
    """Published per-agent snapshot."""

    agent_id: str
    progress: int
    mode: str


@dataclass(frozen=True)
class BoardSnapshot:
    """Immutable view of every agent's latest published values."""

    tick_index: int
    agents: list[AgentProgress]
    personalities: dict[str, dict[str, float]] = field(default_factory=dict)
    timestamp: float = 0.0


class _Slot:
    __slots__ = ("lock", "progress", "mode")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.progress = 0
        self.mode = ""


class ProgressBoard:
    """Fixed-size table of per-agent published values.

    Each agent slot has its own lock so workers publishing different agents
    never contend; readers take one slot lock at a time.
    """

    def __init__(self, agent_ids: Sequence[str]) -> None:
        self.agent_ids = tuple(str(agent_id) for agent_id in agent_ids)
        self._index = {agent_id: idx for idx, agent_id in enumerate(self.agent_ids)}
        if len(self._index) != len(self.agent_ids):
            raise ValueError("agent ids must be unique")
        self._slots = [_Slot() for _ in self.agent_ids]
        self._tick_lock = threading.Lock()
        self._tick_index = 0
        self._personalities: dict[str, dict[str, float]] = {}

    def __len__(self) -> int:
        return len(self.agent_ids)

    def publish_personalities(self, traits: dict[str, dict[str, float]]) -> None:
        """Publish display traits once at spawn time."""
        if self._personalities:
            raise RuntimeError("personalities are published once per board")
        unknown = sorted(set(traits) - set(self._index))
        if unknown:
            raise KeyError(f"Unknown agent id(s): {unknown}")
        self._personalities = {agent_id: dict(values) for agent_id, values in traits.items()}

    def personalities(self) -> dict[str, dict[str, float]]:
        return {agent_id: dict(values) for agent_id, values in self._personalities.items()}

    def publish(self, agent_index: int, progress: int, mode: str) -> None:
        slot = self._slots[agent_index]
        with slot.lock:
            slot.progress = int(progress)
            slot.mode = str(mode)

    def complete_tick(self, tick_index: int) -> None:
        """Mark values published so far as valid for ``tick_index``."""
        with self._tick_lock:
            self._tick_index = int(tick_index)

    @property
    def tick_index(self) -> int:
        with self._tick_lock:
            return self._tick_index

    def progress_of(self, agent_id: str) -> int:
        slot = self._slots[self._index[agent_id]]
        with slot.lock:
            return slot.progress

    def snapshot(self, timestamp: float = 0.0) -> BoardSnapshot:
        rows: list[AgentProgress] = []
        for agent_id, slot in zip(self.agent_ids, self._slots):
            with slot.lock:
                rows.append(AgentProgress(agent_id=agent_id, progress=slot.progress, mode=slot.mode))
        return BoardSnapshot(
            tick_index=self.tick_index,
            agents=rows,
            personalities=self.personalities(),
            timestamp=float(timestamp),
        )

    def rankings(self) -> list[dict[str, Any]]:
        """Return leaderboard rows ordered by position (1 = furthest)."""
        snapshot = self.snapshot()
        positions = rank_positions([row.progress for row in snapshot.agents])
        rows = [
            {"position": position, "agent_id": row.agent_id, "progress": row.progress, "mode": row.mode}
            for position, row in zip(positions, snapshot.agents)
        ]
        return sorted(rows, key=lambda row: row["position"])


def rank_positions(values: Sequence[int | float]) -> list[int]:
    """Return 1-based leaderboard positions for ``values``.

    Higher values rank first; equal values keep population order, so every
    position is distinct.
    """
    positions: list[int] = []
    for i, mine in enumerate(values):
        position = 1
        for j, other in enumerate(values):
            if other > mine or (j < i and other == mine):
                position += 1
        positions.append(position)
    return positions
