"""Command-line entry points for running, streaming, and ranking exploration runs."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
import sys

# Allow `python cli/main.py ...` execution from IDEs by adding repo root to sys.path.
if __package__ in {None, ""}:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

from configs.loader import ConfigLoader, ExperimentConfig
from core.progress import rank_positions
from data.logger import RunLogger
from main import build_components
from streaming.progress_server import ProgressStreamServer


def _run_single(config: ExperimentConfig, db_path: Path, ticks: int) -> str:
    logger = RunLogger(db_path)
    run_id: str | None = None
    try:
        scheduler = build_components(config=config, logger=logger)
        try:
            scheduler.run(ticks)
            scheduler.record_progress()
        finally:
            scheduler.close()
        run_id = scheduler.run_id
    finally:
        logger.close()
    if run_id is None:
        raise RuntimeError("Expected run id when logger is configured.")
    return run_id


async def _serve(config: ExperimentConfig, host: str, port: int, ticks: int | None, max_fps: int) -> None:
    server = ProgressStreamServer(host=host, port=port, max_fps=max_fps)
    await server.start()
    scheduler = build_components(config=config, on_tick=server.publish_threadsafe)
    try:
        await asyncio.to_thread(scheduler.run, ticks)
    finally:
        scheduler.close()
        await server.stop()


def _print_leaderboard(db_path: Path, run_id: str | None) -> int:
    logger = RunLogger(db_path)
    try:
        run_id = run_id or logger.latest_run_id()
        if run_id is None:
            print("No runs recorded.", file=sys.stderr)
            return 1
        samples = logger.latest_samples(run_id)
    finally:
        logger.close()

    if not samples:
        print(f"No progress samples for run {run_id}.", file=sys.stderr)
        return 1
    print(f"run {run_id} @ tick {samples[0].tick_index}")
    positions = rank_positions([sample.progress for sample in samples])
    for position, sample in sorted(zip(positions, samples), key=lambda pair: pair[0]):
        print(f"{position:>3}  {sample.agent_id:<12} {sample.progress:>6}  {sample.mode}")
    return 0


def run_cli(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="explorer")
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="command", required=True)

    run_cmd = sub.add_parser("run")
    run_cmd.add_argument("--config", default="configs/example_experiment.yaml")
    run_cmd.add_argument("--db", default="explorer_runs.db")
    run_cmd.add_argument("--ticks", type=int, default=600)

    serve_cmd = sub.add_parser("serve")
    serve_cmd.add_argument("--config", default="configs/example_experiment.yaml")
    serve_cmd.add_argument("--ticks", type=int, default=None)
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8765)
    serve_cmd.add_argument("--max-fps", type=int, default=30)

    board_cmd = sub.add_parser("leaderboard")
    board_cmd.add_argument("--db", default="explorer_runs.db")
    board_cmd.add_argument("--run")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=str(args.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "run":
        config = ConfigLoader.load(args.config)
        run_id = _run_single(config, Path(args.db), args.ticks)
        print(run_id)
        return 0

    if args.command == "serve":
        config = ConfigLoader.load(args.config)
        try:
            asyncio.run(_serve(config, args.host, args.port, args.ticks, args.max_fps))
        except KeyboardInterrupt:
            return 130
        return 0

    if args.command == "leaderboard":
        return _print_leaderboard(Path(args.db), args.run)

    return 1


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
