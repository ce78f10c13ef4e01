"""Tests for exploration config loading and validation."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from agents.candidates import Buttons
from configs.loader import ConfigLoader
from engine.component_registry import create_simulator
from environment.ram_platformer import LevelLayout, RamPlatformer


def _write_yaml(tmp_path, body: str):
    path = tmp_path / "config.yaml"
    path.write_text(body.strip() + "\n", encoding="utf-8")
    return path


def test_load_yaml_with_sections(tmp_path) -> None:
    path = _write_yaml(
        tmp_path,
        """
population_size: 4
seed: 11
simulator: ram_platformer
personality:
  patience: [3, 5]
  mutation_rate: 0.1
history:
  checkpoint_cap: 50
  short_rewind_frames: 60
scheduler:
  workers: 2
  tick_rate: 120
candidates:
  forced_buttons: [B, right]
simulator_params:
  timer_start: 200
""",
    )
    config = ConfigLoader.load(path)

    assert config.population_size == 4
    assert config.seed == 11
    assert config.get("simulator") == "ram_platformer"
    assert config.personality_ranges().patience == (3, 5)
    assert config.personality_ranges().mutation_rate == (0.1, 0.1)
    assert config.checkpoint_cap() == 50
    assert config.rewind_tunables().short_rewind_frames == 60
    assert config.rewind_tunables().timeout_rewind_frames == 1200
    assert config.scheduler_settings().workers == 2
    assert config.scheduler_settings().tick_rate == 120.0
    assert config.candidate_policy().forced == Buttons.B | Buttons.RIGHT
    assert config.simulator_params() == {"timer_start": 200}
    assert config.to_dict()["history"]["checkpoint_cap"] == 50


def test_defaults_apply_when_sections_are_absent(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"population_size": 2, "seed": 1, "simulator": "ram_platformer"}), encoding="utf-8")
    config = ConfigLoader.load(path)
    assert config.checkpoint_cap() == 400
    assert config.scheduler_settings().tick_rate == 60.0
    assert config.candidate_policy().forced == Buttons.B
    assert config.get("missing", "fallback") == "fallback"


@pytest.mark.parametrize(
    "body, message",
    [
        ("seed: 1\nsimulator: ram_platformer", "population_size"),
        ("population_size: 0\nseed: 1\nsimulator: ram_platformer", "population_size"),
        ("population_size: 1\nseed: 1\nsimulator: ram_platformer\nbogus: 1", "bogus"),
        ("population_size: 1\nseed: 1\nsimulator: ram_platformer\npersonality:\n  patience: [9, 2]", "patience"),
        ("population_size: 1\nseed: 1\nsimulator: ram_platformer\npersonality:\n  grit: [1, 2]", "grit"),
        ("population_size: 1\nseed: 1\nsimulator: ram_platformer\nscheduler:\n  workers: 0", "workers"),
        ("population_size: 1\nseed: 1\nsimulator: ram_platformer\ncandidates:\n  forced_buttons: [Z]", "Z"),
    ],
)
def test_invalid_configs_raise(tmp_path, body: str, message: str) -> None:
    path = _write_yaml(tmp_path, body)
    with pytest.raises(ValueError, match=message):
        ConfigLoader.load(path)


def test_unsupported_or_missing_files(tmp_path) -> None:
    with pytest.raises(ValueError):
        ConfigLoader.load(tmp_path / "absent.yaml")
    other = tmp_path / "config.toml"
    other.write_text("x = 1\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported"):
        ConfigLoader.load(other)


def test_timeout_rewind_follows_simulator_clock_unless_set(tmp_path) -> None:
    body = "population_size: 1\nseed: 1\nsimulator: ram_platformer\n"
    derived = ConfigLoader.load(_write_yaml(tmp_path, body))
    emulator = RamPlatformer(level=LevelLayout(timer_start=300, frames_per_timer_unit=20))
    assert derived.rewind_tunables(emulator).timeout_rewind_frames == 6000
    assert derived.rewind_tunables(RamPlatformer()).timeout_rewind_frames == 9600

    explicit = ConfigLoader.load(_write_yaml(tmp_path, body + "history:\n  timeout_rewind_frames: 500\n"))
    assert explicit.rewind_tunables(emulator).timeout_rewind_frames == 500


def test_example_config_rewinds_the_full_timer() -> None:
    config = ConfigLoader.load(Path(__file__).resolve().parents[1] / "configs" / "example_experiment.yaml")
    emulator = create_simulator(config.simulator, config.simulator_params())
    assert config.rewind_tunables(emulator).timeout_rewind_frames == emulator.timeout_frames()
