"""Emulator handle contract consumed by the exploration engine."""

from __future__ import annotations

from abc import ABC, abstractmethod


class SimulatorLoadError(RuntimeError):
    """Raised when an emulator (or its ROM/state) cannot be loaded."""


class EmulatorHandle(ABC):
    """Abstract deterministic, cloneable, steppable emulator state.

    The exploration engine only reads memory from, clones and steps a
    handle. ROM formats, rendering, and audio belong to implementations.
    """

    @abstractmethod
    def read(self, address: int) -> int:
        """Return the byte stored at ``address``.

        Invariants:
            - Must not mutate emulator state.
            - Returned value is in ``range(256)``.
        """

    @abstractmethod
    def clone(self) -> "EmulatorHandle":
        """Return an independently owned deep copy.

        Invariants:
            - Stepping the copy must never be observable through ``self``
              and vice versa.
        """

    @abstractmethod
    def set_input_source(self, mask: int) -> None:
        """Bind the controller mask supplied to the next frame."""

    @abstractmethod
    def step_one_frame(self, applied_input_mask: int | None = None) -> None:
        """Advance exactly one frame.

        Args:
            applied_input_mask: When given, bound via ``set_input_source``
                before the frame runs; otherwise the last bound mask is used.
        """

    def timeout_frames(self) -> int | None:
        """Return how many frames a fresh run lasts before its clock expires.

        ``None`` means the emulator has no countdown clock.
        """
        return None
