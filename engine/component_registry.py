"""Factory registry for emulator handles."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from environment.base import EmulatorHandle
from environment.ram_platformer import RamPlatformer


SimulatorFactory = Callable[[Mapping[str, Any]], EmulatorHandle]


_SIMULATOR_FACTORIES: dict[str, SimulatorFactory] = {}


def register_simulator_factory(name: str, factory: SimulatorFactory) -> None:
    _SIMULATOR_FACTORIES[str(name)] = factory


def available_simulator_factories() -> list[str]:
    return sorted(_SIMULATOR_FACTORIES)


def create_simulator(name: str, params: Mapping[str, Any] | None = None) -> EmulatorHandle:
    """Build a fresh emulator handle.

    Raises:
        ValueError: ``name`` is not registered.
        SimulatorLoadError: the factory could not load the emulator.
    """
    factory = _SIMULATOR_FACTORIES.get(str(name))
    if factory is None:
        available = ", ".join(available_simulator_factories()) or "<none>"
        raise ValueError(f"Unknown simulator factory '{name}'. Available: {available}")
    return factory(dict(params or {}))


def _register_defaults() -> None:
    if _SIMULATOR_FACTORIES:
        return
    register_simulator_factory("ram_platformer", RamPlatformer.from_params)


_register_defaults()
