"""Fixed-rate tick driver that steps every agent once per tick on a worker pool."""

from __future__ import annotations

import enum
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Sequence

from agents.base import Agent
from core.progress import BoardSnapshot, ProgressBoard
from data.logger import ProgressSample, RunLogger

LOGGER = logging.getLogger(__name__)


class SchedulerState(str, enum.Enum):
    """Execution control states for the tick loop."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class SchedulerExecutionError(RuntimeError):
    """Raised when an agent fails during a tick."""


def partition_round_robin(count: int, partitions: int) -> list[list[int]]:
    """Split agent indices ``0..count-1`` into ``partitions`` interleaved groups."""
    if partitions < 1:
        raise ValueError("partitions must be >= 1")
    groups: list[list[int]] = [[] for _ in range(min(partitions, max(count, 1)))]
    for index in range(count):
        groups[index % len(groups)].append(index)
    return groups


class Scheduler:
    """Drives the population at ``tick_rate`` ticks per second.

    Agents are assigned to a fixed partition at construction. Each tick
    submits one job per partition and waits for all of them before the tick
    index advances, so every agent steps exactly one frame per tick and no
    two workers ever touch the same agent.
    """

    def __init__(
        self,
        agents: Sequence[Agent],
        workers: int = 4,
        tick_rate: float = 60.0,
        board: ProgressBoard | None = None,
        logger: RunLogger | None = None,
        run_id: str | None = None,
        log_interval: int = 60,
        on_tick: Callable[[BoardSnapshot], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not agents:
            raise ValueError("Scheduler requires at least one agent.")
        if workers < 1:
            raise ValueError("workers must be >= 1")
        if tick_rate <= 0:
            raise ValueError("tick_rate must be > 0")

        self.agents = list(agents)
        self.board = board or ProgressBoard([agent.agent_id for agent in self.agents])
        if len(self.board) != len(self.agents):
            raise ValueError("Progress board size must match the population.")
        self.tick_rate = float(tick_rate)
        self.tick_period = 1.0 / self.tick_rate
        self.logger = logger
        self.run_id = run_id
        self.log_interval = int(log_interval)
        self.on_tick = on_tick
        self._sleep = sleep
        self._clock = clock

        self.partitions = partition_round_robin(len(self.agents), int(workers))
        self._executor = ThreadPoolExecutor(
            max_workers=len(self.partitions),
            thread_name_prefix="explorer-worker",
        )
        self.tick_index = 0

        self._state = SchedulerState.IDLE
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._resume_event = threading.Event()
        self._resume_event.set()
        self._thread: threading.Thread | None = None
        self._error: BaseException | None = None

        self._publish_spawn_state()

    def _publish_spawn_state(self) -> None:
        personalities = {agent.agent_id: agent.get_personality() for agent in self.agents}
        if not self.board.personalities():
            self.board.publish_personalities({aid: p.traits() for aid, p in personalities.items()})
        for index, agent in enumerate(self.agents):
            self.board.publish(index, agent.progress, _mode_name(agent.mode))
        if self.logger is not None and self.run_id is not None:
            self._safe_call(
                "logger.log_personalities",
                self.logger.log_personalities,
                self.run_id,
                {aid: p.to_dict() for aid, p in personalities.items()},
            )

    # -- tick -----------------------------------------------------------------

    def _run_partition(self, indices: Sequence[int]) -> None:
        for index in indices:
            agent = self.agents[index]
            try:
                agent.tick()
            except Exception as exc:
                raise SchedulerExecutionError(f"Agent '{agent.agent_id}' tick failed: {exc}") from exc
            self.board.publish(index, agent.progress, _mode_name(agent.mode))

    def run_tick(self) -> int:
        """Step every agent one frame and publish; returns the new tick index."""
        futures = [self._executor.submit(self._run_partition, part) for part in self.partitions]
        wait(futures)
        for future in futures:
            error = future.exception()
            if error is not None:
                raise error

        self.tick_index += 1
        self.board.complete_tick(self.tick_index)
        self.on_tick_end(self.tick_index)
        return self.tick_index

    def on_tick_end(self, tick_index: int) -> None:
        """Sample progress to the logger and notify the tick callback."""
        wants_log = (
            self.logger is not None
            and self.run_id is not None
            and self.log_interval > 0
            and tick_index % self.log_interval == 0
        )
        if not wants_log and self.on_tick is None:
            return

        snapshot = self.board.snapshot(timestamp=time.time())
        if wants_log:
            self.record_progress(snapshot)
        if self.on_tick is not None:
            self._safe_call("on_tick", self.on_tick, snapshot)

    def record_progress(self, snapshot: BoardSnapshot | None = None) -> None:
        """Write one progress sample per agent for the current tick."""
        if self.logger is None or self.run_id is None:
            return
        snapshot = snapshot or self.board.snapshot(timestamp=time.time())
        samples = [
            ProgressSample(tick_index=snapshot.tick_index, agent_id=row.agent_id, progress=row.progress, mode=row.mode)
            for row in snapshot.agents
        ]
        self._safe_call("logger.log_progress", self.logger.log_progress, self.run_id, samples)
        leader = max(snapshot.agents, key=lambda row: row.progress)
        LOGGER.info("tick %d: leader %s at %d", snapshot.tick_index, leader.agent_id, leader.progress)

    # -- control ----------------------------------------------------------------

    def control_state(self) -> str:
        """Return current execution control state."""
        with self._state_lock:
            return str(self._state.value)

    def run(self, ticks: int | None = None) -> None:
        """Run the rate-limited tick loop; ``None`` runs until ``stop()``."""
        if ticks is not None and ticks < 0:
            raise ValueError("ticks must be non-negative")

        self._stop_event.clear()
        with self._state_lock:
            if self._state != SchedulerState.PAUSED:
                self._state = SchedulerState.RUNNING

        completed = 0
        try:
            while (ticks is None or completed < ticks) and not self._stop_event.is_set():
                if not self._resume_event.is_set():
                    self._resume_event.wait(timeout=self.tick_period)
                    continue

                started = self._clock()
                self.run_tick()
                completed += 1

                remaining = self.tick_period - (self._clock() - started)
                if remaining > 0:
                    self._sleep(remaining)
        except SchedulerExecutionError:
            LOGGER.exception("Scheduler stopped at tick %d", self.tick_index)
            self.stop()
            raise
        finally:
            with self._state_lock:
                if self._state != SchedulerState.STOPPED:
                    self._state = SchedulerState.IDLE

    def start(self, ticks: int | None = None) -> None:
        """Run the tick loop on a background thread."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Scheduler is already running.")
        self._error = None

        def _target() -> None:
            try:
                self.run(ticks)
            except BaseException as exc:
                self._error = exc

        self._thread = threading.Thread(target=_target, name="explorer-scheduler", daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the background loop; re-raises its failure, if any."""
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        if self._error is not None:
            error, self._error = self._error, None
            raise error

    def pause(self) -> None:
        with self._state_lock:
            if self._state in {SchedulerState.RUNNING, SchedulerState.IDLE}:
                self._state = SchedulerState.PAUSED
                self._resume_event.clear()

    def resume(self) -> None:
        with self._state_lock:
            if self._state == SchedulerState.PAUSED:
                self._state = SchedulerState.RUNNING
        self._resume_event.set()

    def stop(self) -> None:
        self._stop_event.set()
        with self._state_lock:
            self._state = SchedulerState.STOPPED
        self._resume_event.set()

    def close(self) -> None:
        """Stop the loop and release worker threads."""
        self.stop()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        self._executor.shutdown(wait=True)

    @staticmethod
    def _safe_call(label: str, fn: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            raise SchedulerExecutionError(f"{label} failed: {exc}") from exc


def _mode_name(mode: Any) -> str:
    return str(getattr(mode, "value", mode))
