"""Bounded checkpoint history and the anti-thrash revert policy."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterator

from core.outcome import Outcome
from environment.base import EmulatorHandle

LOGGER = logging.getLogger(__name__)

DEFAULT_CHECKPOINT_CAP = 400


class EmptyHistoryError(IndexError):
    """Raised when a checkpoint is requested from an empty history."""


@dataclass(frozen=True)
class Checkpoint:
    """Immutable emulator snapshot plus inputs consumed since the previous one."""

    snapshot: EmulatorHandle
    inputs_consumed: int


@dataclass(frozen=True)
class RewindTunables:
    """Rewind depths (in frames) selected by failure kind.

    The timeout rewind should cover the emulator's whole clock so a retry
    starts with most of the timer left; ``for_emulator`` derives it. The
    class default only applies to emulators that report no clock.
    """

    short_rewind_frames: int = 90
    timeout_rewind_frames: int = 1200

    def __post_init__(self) -> None:
        if self.short_rewind_frames < 0 or self.timeout_rewind_frames < 0:
            raise ValueError("rewind frame counts must be >= 0")

    @classmethod
    def for_emulator(cls, emulator: EmulatorHandle, short_rewind_frames: int = 90) -> "RewindTunables":
        timeout = emulator.timeout_frames()
        if timeout is None:
            return cls(short_rewind_frames=short_rewind_frames)
        return cls(short_rewind_frames=short_rewind_frames, timeout_rewind_frames=timeout)


class CheckpointHistory:
    """Oldest-to-newest checkpoint log capped at ``cap`` entries.

    Appending past the cap evicts the oldest entry. Each entry carries a
    revert counter kept beside the (frozen) checkpoint.
    """

    def __init__(self, cap: int = DEFAULT_CHECKPOINT_CAP) -> None:
        if cap < 1:
            raise ValueError("cap must be >= 1")
        self.cap = int(cap)
        self._entries: deque[Checkpoint] = deque()
        self._revert_counts: deque[int] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Checkpoint]:
        return iter(list(self._entries))

    def append(self, checkpoint: Checkpoint) -> None:
        self._entries.append(checkpoint)
        self._revert_counts.append(0)
        while len(self._entries) > self.cap:
            self._entries.popleft()
            self._revert_counts.popleft()

    def pop_back(self) -> Checkpoint:
        if not self._entries:
            raise EmptyHistoryError("pop_back from empty checkpoint history")
        self._revert_counts.pop()
        return self._entries.pop()

    def newest(self) -> Checkpoint:
        if not self._entries:
            raise EmptyHistoryError("empty checkpoint history has no newest entry")
        return self._entries[-1]

    def oldest(self) -> Checkpoint:
        if not self._entries:
            raise EmptyHistoryError("empty checkpoint history has no oldest entry")
        return self._entries[0]

    def revert_count(self) -> int:
        """Return how often the newest entry has already been a revert target."""
        if not self._revert_counts:
            raise EmptyHistoryError("empty checkpoint history has no revert counter")
        return self._revert_counts[-1]

    def revert_counts(self) -> list[int]:
        """Return every entry's revert counter, oldest first."""
        return list(self._revert_counts)

    def mark_reverted(self) -> int:
        if not self._revert_counts:
            raise EmptyHistoryError("empty checkpoint history has no revert counter")
        self._revert_counts[-1] += 1
        return self._revert_counts[-1]


def revert(history: CheckpointHistory, frames_to_rewind: int) -> EmulatorHandle:
    """Roll ``history`` back at least ``frames_to_rewind`` frames.

    Never pops the last surviving entry. After the requested rewind, keeps
    popping while the newest entry has already served as a revert target, so
    repeated failures at one point land progressively deeper.

    Returns:
        A fresh clone of the landed checkpoint's snapshot.
    """
    if len(history) == 0:
        raise EmptyHistoryError("cannot revert an empty checkpoint history")

    rewound = 0
    popped = 0
    while len(history) > 1 and rewound < frames_to_rewind:
        rewound += history.pop_back().inputs_consumed
        popped += 1

    while len(history) > 1 and history.revert_count() > 0:
        rewound += history.pop_back().inputs_consumed
        popped += 1

    landed_count = history.mark_reverted()
    LOGGER.debug(
        "Reverted %d checkpoint(s) (%d frames); landed entry revert count %d",
        popped,
        rewound,
        landed_count,
    )
    return history.newest().snapshot.clone()


def rewind_frames_for(outcome: Outcome, tunables: RewindTunables) -> int:
    """Select the rewind depth for a failing ``outcome``."""
    if outcome.terminal:
        return tunables.timeout_rewind_frames
    return tunables.short_rewind_frames
