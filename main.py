"""Wiring for a local exploration run."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from agents.explorer import ExplorerAgent
from agents.personality import spawn_personality
from configs.loader import ConfigLoader, ExperimentConfig
from core.deterministic_rng import DeterministicRNG
from core.fitness import FitnessEvaluator
from core.progress import BoardSnapshot, ProgressBoard
from data.logger import RunLogger
from engine.component_registry import create_simulator
from engine.scheduler import Scheduler

LOGGER = logging.getLogger(__name__)


def build_population(config: ExperimentConfig) -> list[ExplorerAgent]:
    """Spawn agents with seed-derived personalities and search streams.

    Every agent starts from its own freshly booted emulator, so agents
    share no mutable state.
    """
    rng = DeterministicRNG(config.seed)
    ranges = config.personality_ranges()
    cap = config.checkpoint_cap()
    policy = config.candidate_policy()
    evaluator = FitnessEvaluator()

    population: list[ExplorerAgent] = []
    for index in range(config.population_size):
        agent_id = f"agent_{index}"
        personality = spawn_personality(rng.personality_stream(agent_id), ranges)
        frontier = create_simulator(config.simulator, config.simulator_params())
        population.append(
            ExplorerAgent(
                agent_id=agent_id,
                frontier=frontier,
                personality=personality,
                rng=rng.search_stream(agent_id),
                evaluator=evaluator,
                rewind=config.rewind_tunables(frontier),
                checkpoint_cap=cap,
                policy=policy,
            )
        )
        LOGGER.debug("Spawned %s with %s", agent_id, personality)
    return population


def build_components(
    config: ExperimentConfig,
    logger: RunLogger | None = None,
    on_tick: Callable[[BoardSnapshot], None] | None = None,
) -> Scheduler:
    """Build a scheduler driving a freshly spawned population."""
    population = build_population(config)
    settings = config.scheduler_settings()
    run_id = None
    if logger is not None:
        run_id = logger.start_run(
            config=config.to_dict(),
            seed=config.seed,
            metadata={"tick_rate": settings.tick_rate, "workers": settings.workers},
        )
    return Scheduler(
        agents=population,
        workers=settings.workers,
        tick_rate=settings.tick_rate,
        board=ProgressBoard([agent.agent_id for agent in population]),
        logger=logger,
        run_id=run_id,
        log_interval=settings.log_interval,
        on_tick=on_tick,
    )


def main(config_path: str = "configs/example_experiment.yaml", ticks: int = 600) -> None:
    """Load config, build components, and run the scheduler."""
    config = ConfigLoader.load(config_path)
    logger = RunLogger(Path("explorer_runs.db"))
    scheduler = build_components(config=config, logger=logger)
    try:
        scheduler.run(ticks)
    finally:
        scheduler.close()
        logger.close()
    for row in scheduler.board.rankings():
        print(f"{row['position']:>3}  {row['agent_id']:<12} {row['progress']:>6}  {row['mode']}")


if __name__ == "__main__":
    main()
