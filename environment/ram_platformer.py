"""Deterministic RAM-backed side-scroller implementing ``EmulatorHandle``.

The platformer keeps its entire mutable state in a 2 KiB RAM image laid out
like the classic NES side-scroller map read by ``FitnessEvaluator``, so
cloning is a single array copy and the evaluator needs no special casing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import numpy as np

from agents.candidates import Buttons
from core.fitness import MemoryLayout
from environment.base import EmulatorHandle, SimulatorLoadError

RAM_SIZE = 0x800

# Internal addresses not consumed by the evaluator.
_FRAME_COUNTER = 0x0009
_VELOCITY_Y = 0x009F
_POSITION_Y = 0x00CE
_TIMER_SUBFRAME = 0x0787
_INTRO_REMAINING = 0x07A0

STATE_NORMAL = 0x08
STATE_INTRO = 0x07
STATE_DYING = 0x0B
FALL_LIMIT = 0x200


@dataclass(frozen=True)
class LevelLayout:
    """Static level geometry and physics constants (shared by clones)."""

    length: int = 0x0C00
    ground_y: int = 0xB0
    pits: tuple[tuple[int, int], ...] = ((0x0180, 0x01A8), (0x0340, 0x0368), (0x0600, 0x0640))
    walls: tuple[tuple[int, int, int], ...] = ((0x0260, 0x0270, 16), (0x0480, 0x0490, 18))
    intro_frames: int = 30
    timer_start: int = 400
    frames_per_timer_unit: int = 24
    jump_velocity: int = 8
    walk_speed: int = 1
    run_speed: int = 2
    max_fall_speed: int = 8

    def __post_init__(self) -> None:
        if not 0 < self.length < 0x10000:
            raise ValueError("length must be in (0, 65536)")
        if not 0 < self.timer_start <= 999:
            raise ValueError("timer_start must be in (0, 999]")
        if self.frames_per_timer_unit < 1:
            raise ValueError("frames_per_timer_unit must be >= 1")
        for start, end in self.pits:
            if start >= end:
                raise ValueError(f"pit ({start}, {end}) is empty")
        for start, end, height in self.walls:
            if start >= end or height <= 0:
                raise ValueError(f"wall ({start}, {end}, {height}) is invalid")

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> "LevelLayout":
        data = dict(payload or {})
        if "pits" in data:
            data["pits"] = tuple(tuple(int(v) for v in pit) for pit in data["pits"])
        if "walls" in data:
            data["walls"] = tuple(tuple(int(v) for v in wall) for wall in data["walls"])
        return cls(**data)

    def floor_at(self, x: int) -> int | None:
        """Return the floor height under ``x``; ``None`` over a pit."""
        for start, end in self.pits:
            if start <= x < end:
                return None
        for start, end, height in self.walls:
            if start <= x < end:
                return self.ground_y - height
        return self.ground_y


class RamPlatformer(EmulatorHandle):
    """Reference platformer with pits, walls, an intro, and a countdown timer."""

    def __init__(
        self,
        level: LevelLayout | None = None,
        layout: MemoryLayout | None = None,
        _ram: np.ndarray | None = None,
        _input: int = 0,
    ) -> None:
        self.level = level or LevelLayout()
        self.layout = layout or MemoryLayout()
        self._input = int(_input) & 0xFF
        if _ram is not None:
            self.ram = _ram
        else:
            self.ram = np.zeros(RAM_SIZE, dtype=np.uint8)
            self._power_on()

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None = None) -> "RamPlatformer":
        """Build from config params, reporting bad level data as a load error."""
        try:
            level = LevelLayout.from_mapping(params)
        except (TypeError, ValueError) as exc:
            raise SimulatorLoadError(f"Invalid platformer level data: {exc}") from exc
        return cls(level=level)

    def _power_on(self) -> None:
        self._write(self.layout.engine_mode, self.layout.engine_running)
        self._write(self.layout.player_state, STATE_INTRO if self.level.intro_frames > 0 else STATE_NORMAL)
        self._write(_INTRO_REMAINING, min(self.level.intro_frames, 0xFF))
        self._set_x(0x28)
        self._set_y(self.level.ground_y)
        self._set_timer(self.level.timer_start)

    # -- EmulatorHandle ---------------------------------------------------

    def read(self, address: int) -> int:
        return int(self.ram[address])

    def clone(self) -> "RamPlatformer":
        return RamPlatformer(level=self.level, layout=self.layout, _ram=self.ram.copy(), _input=self._input)

    def set_input_source(self, mask: int) -> None:
        self._input = int(mask) & 0xFF

    def timeout_frames(self) -> int:
        return self.level.timer_start * self.level.frames_per_timer_unit

    def step_one_frame(self, applied_input_mask: int | None = None) -> None:
        if applied_input_mask is not None:
            self.set_input_source(applied_input_mask)
        self._write(_FRAME_COUNTER, (self.read(_FRAME_COUNTER) + 1) & 0xFF)

        state = self.read(self.layout.player_state)
        if state == STATE_INTRO:
            remaining = self.read(_INTRO_REMAINING) - 1
            self._write(_INTRO_REMAINING, max(0, remaining))
            if remaining <= 0:
                self._write(self.layout.player_state, STATE_NORMAL)
            return
        if state != STATE_NORMAL or self._timer() == 0:
            return

        self._tick_timer()
        self._move_horizontal()
        self._move_vertical()

    # -- physics ------------------------------------------------------------

    def _move_horizontal(self) -> None:
        held = Buttons(self._input)
        speed = self.level.run_speed if held & Buttons.B else self.level.walk_speed
        if held & Buttons.RIGHT and not held & Buttons.LEFT:
            dx = speed
        elif held & Buttons.LEFT and not held & Buttons.RIGHT:
            dx = -speed
        else:
            return

        x = self._x()
        target = min(max(0, x + dx), self.level.length - 1)
        floor = self.level.floor_at(target)
        if floor is not None and self._y() > floor:
            return
        self._set_x(target)

    def _move_vertical(self) -> None:
        x = self._x()
        y = self._y()
        vy = self._velocity()
        floor = self.level.floor_at(x)
        grounded = floor is not None and y == floor and vy >= 0

        if grounded and self._input & Buttons.A:
            vy = -self.level.jump_velocity
        elif grounded:
            self._set_velocity(0)
            return

        vy = min(vy + 1, self.level.max_fall_speed)
        new_y = max(0, y + vy)
        if floor is not None and vy >= 0 and y <= floor <= new_y:
            new_y = floor
            vy = 0
        self._set_velocity(vy)
        self._set_y(new_y)
        if new_y >= FALL_LIMIT:
            self._write(self.layout.player_state, STATE_DYING)

    def _tick_timer(self) -> None:
        subframe = self.read(_TIMER_SUBFRAME) + 1
        if subframe >= self.level.frames_per_timer_unit:
            subframe = 0
            self._set_timer(self._timer() - 1)
        self._write(_TIMER_SUBFRAME, subframe)

    # -- RAM accessors --------------------------------------------------------

    def _write(self, address: int, value: int) -> None:
        self.ram[address] = int(value) & 0xFF

    def _x(self) -> int:
        return (self.read(self.layout.page) << 8) | self.read(self.layout.fine_x)

    def _set_x(self, x: int) -> None:
        self._write(self.layout.page, x >> 8)
        self._write(self.layout.fine_x, x)

    def _y(self) -> int:
        return (self.read(self.layout.vertical_page) << 8) | self.read(_POSITION_Y)

    def _set_y(self, y: int) -> None:
        self._write(self.layout.vertical_page, y >> 8)
        self._write(_POSITION_Y, y)

    def _velocity(self) -> int:
        raw = self.read(_VELOCITY_Y)
        return raw - 0x100 if raw >= 0x80 else raw

    def _set_velocity(self, vy: int) -> None:
        self._write(_VELOCITY_Y, vy)

    def _timer(self) -> int:
        hundreds, tens, ones = (self.read(address) for address in self.layout.timer_digits)
        return hundreds * 100 + tens * 10 + ones

    def _set_timer(self, value: int) -> None:
        value = max(0, int(value))
        digits = (value // 100 % 10, value // 10 % 10, value % 10)
        for address, digit in zip(self.layout.timer_digits, digits):
            self._write(address, digit)
