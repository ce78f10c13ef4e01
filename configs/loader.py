"""Configuration loading and validation utilities for exploration runs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from agents.candidates import Buttons, CandidatePolicy
from agents.personality import PersonalityRanges
from core.checkpointing import DEFAULT_CHECKPOINT_CAP, RewindTunables
from environment.base import EmulatorHandle


_REQUIRED_KEYS: tuple[str, ...] = (
    "population_size",
    "seed",
    "simulator",
)

_KNOWN_SECTIONS: tuple[str, ...] = (
    "personality",
    "history",
    "scheduler",
    "candidates",
    "simulator_params",
)


@dataclass(frozen=True)
class SchedulerSettings:
    """Worker pool and tick-rate settings."""

    workers: int = 4
    tick_rate: float = 60.0
    log_interval: int = 60

    def __post_init__(self) -> None:
        if self.workers < 1:
            raise ValueError("scheduler.workers must be >= 1")
        if self.tick_rate <= 0:
            raise ValueError("scheduler.tick_rate must be > 0")
        if self.log_interval < 0:
            raise ValueError("scheduler.log_interval must be >= 0")


@dataclass(frozen=True)
class ExperimentConfig:
    """Validated exploration run configuration.

    Provides typed field access for required parameters and dictionary-style
    access for the optional sections.
    """

    population_size: int
    seed: int
    simulator: str
    extras: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Return a configuration value by key.

        Args:
            key: Configuration key name.
            default: Value to return if key does not exist.

        Returns:
            Value associated with ``key`` or ``default``.
        """
        if key in _REQUIRED_KEYS:
            return getattr(self, key)
        return self.extras.get(key, default)

    def section(self, name: str) -> dict[str, Any]:
        value = self.extras.get(name) or {}
        if not isinstance(value, Mapping):
            raise ValueError(f"Section '{name}' must be a mapping.")
        return dict(value)

    def personality_ranges(self) -> PersonalityRanges:
        return PersonalityRanges.from_mapping(self.section("personality"))

    def rewind_tunables(self, emulator: EmulatorHandle | None = None) -> RewindTunables:
        """Return rewind depths; an unset timeout rewind follows ``emulator``'s clock."""
        history = self.section("history")
        short = int(history.get("short_rewind_frames", RewindTunables().short_rewind_frames))
        if "timeout_rewind_frames" in history:
            return RewindTunables(
                short_rewind_frames=short,
                timeout_rewind_frames=int(history["timeout_rewind_frames"]),
            )
        if emulator is not None:
            return RewindTunables.for_emulator(emulator, short_rewind_frames=short)
        return RewindTunables(short_rewind_frames=short)

    def checkpoint_cap(self) -> int:
        cap = int(self.section("history").get("checkpoint_cap", DEFAULT_CHECKPOINT_CAP))
        if cap < 1:
            raise ValueError("history.checkpoint_cap must be >= 1")
        return cap

    def scheduler_settings(self) -> SchedulerSettings:
        section = self.section("scheduler")
        defaults = SchedulerSettings()
        return SchedulerSettings(
            workers=int(section.get("workers", defaults.workers)),
            tick_rate=float(section.get("tick_rate", defaults.tick_rate)),
            log_interval=int(section.get("log_interval", defaults.log_interval)),
        )

    def candidate_policy(self) -> CandidatePolicy:
        section = self.section("candidates")
        if "forced_buttons" not in section:
            return CandidatePolicy()
        forced = section["forced_buttons"] or []
        if not isinstance(forced, (list, tuple)):
            raise ValueError("candidates.forced_buttons must be a list of button names.")
        return CandidatePolicy(forced=Buttons.parse(list(forced)))

    def simulator_params(self) -> dict[str, Any]:
        return self.section("simulator_params")

    def to_dict(self) -> dict[str, Any]:
        """Return a full dictionary view of the configuration."""
        payload = {
            "population_size": self.population_size,
            "seed": self.seed,
            "simulator": self.simulator,
        }
        payload.update(self.extras)
        return payload


class ConfigLoader:
    """Load and validate exploration config files (YAML or JSON)."""

    @staticmethod
    def load(path: str | Path) -> ExperimentConfig:
        """Load a single run config from ``path``.

        Args:
            path: Path to a YAML or JSON config file.

        Returns:
            A validated ``ExperimentConfig`` instance.
        """
        payload = _read_config_payload(path)
        if not isinstance(payload, Mapping):
            raise ValueError("Config file must contain a mapping object.")
        return build_config(payload)


def _read_config_payload(path: str | Path) -> Any:
    """Read raw config payload from JSON or YAML file."""
    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if not config_path.exists():
        raise ValueError(f"Config file not found: {config_path}")
    content = config_path.read_text(encoding="utf-8")

    if suffix == ".json":
        return json.loads(content)

    if suffix in {".yaml", ".yml"}:
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ValueError(f"Failed to parse YAML config '{config_path}': {exc}") from exc

    raise ValueError(f"Unsupported config extension: {suffix}")


def build_config(payload: Mapping[str, Any]) -> ExperimentConfig:
    """Validate a raw mapping and build ``ExperimentConfig``."""
    missing = [key for key in _REQUIRED_KEYS if key not in payload]
    if missing:
        raise ValueError(f"Missing required config keys: {', '.join(missing)}")

    unknown = [key for key in payload if key not in _REQUIRED_KEYS and key not in _KNOWN_SECTIONS]
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    population_size = int(payload["population_size"])
    seed = int(payload["seed"])
    simulator = str(payload["simulator"])

    if population_size <= 0:
        raise ValueError("population_size must be > 0")
    if not simulator:
        raise ValueError("simulator must be non-empty")

    extras = {k: v for k, v in payload.items() if k not in _REQUIRED_KEYS}
    config = ExperimentConfig(
        population_size=population_size,
        seed=seed,
        simulator=simulator,
        extras=extras,
    )

    # Surface section errors at load time rather than at spawn.
    config.personality_ranges()
    config.rewind_tunables()
    config.checkpoint_cap()
    config.scheduler_settings()
    config.candidate_policy()
    return config
