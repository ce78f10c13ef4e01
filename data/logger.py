"""SQLite-backed run metadata, agent personalities, and progress sampling."""

from __future__ import annotations

import hashlib
import json
import platform
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping


@dataclass(frozen=True)
class ProgressSample:
    """One agent's published values at a tick."""

    tick_index: int
    agent_id: str
    progress: int
    mode: str


class RunLogger:
    """Persist run metadata, spawn-time personalities, and progress samples."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        # Samples are written from the scheduler thread.
        self.connection = sqlite3.connect(self.db_path, check_same_thread=False)
        self.connection.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    def close(self) -> None:
        with self._lock:
            self.connection.close()

    def _ensure_schema(self) -> None:
        self.connection.executescript(
            """
            CREATE TABLE IF NOT EXISTS run_metadata (
                run_id TEXT PRIMARY KEY,
                config_hash TEXT NOT NULL,
                seed INTEGER NOT NULL,
                config_json TEXT NOT NULL,
                runtime_metadata TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS agent_personalities (
                run_id TEXT NOT NULL,
                agent_id TEXT NOT NULL,
                personality_json TEXT NOT NULL,
                PRIMARY KEY (run_id, agent_id),
                FOREIGN KEY (run_id)
                    REFERENCES run_metadata (run_id)
                    ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS progress_samples (
                run_id TEXT NOT NULL,
                tick_index INTEGER NOT NULL,
                agent_id TEXT NOT NULL,
                progress INTEGER NOT NULL,
                mode TEXT NOT NULL,
                PRIMARY KEY (run_id, tick_index, agent_id),
                FOREIGN KEY (run_id)
                    REFERENCES run_metadata (run_id)
                    ON DELETE CASCADE
            );
            """
        )
        self.connection.commit()

    def start_run(self, config: Mapping[str, Any], seed: int, metadata: Mapping[str, Any] | None = None) -> str:
        config_json = json.dumps(dict(config), sort_keys=True)
        config_hash = hashlib.sha256(config_json.encode("utf-8")).hexdigest()
        runtime_metadata = {"python_version": platform.python_version(), "platform": platform.platform()}
        if metadata:
            runtime_metadata.update(dict(metadata))
        deterministic_key = hashlib.sha256(f"{config_hash}:{seed}".encode("utf-8")).hexdigest()
        runtime_metadata["deterministic_key"] = deterministic_key
        run_id = hashlib.sha256(f"{deterministic_key}:{time.time_ns()}".encode("utf-8")).hexdigest()[:16]

        with self._lock:
            self.connection.execute(
                """
                INSERT OR IGNORE INTO run_metadata (
                    run_id, config_hash, seed, config_json, runtime_metadata
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (run_id, config_hash, int(seed), config_json, json.dumps(runtime_metadata, sort_keys=True)),
            )
            self.connection.commit()
        return run_id

    def log_personalities(self, run_id: str, personalities: Mapping[str, Mapping[str, Any]]) -> None:
        rows = [
            (run_id, str(agent_id), json.dumps(dict(values), sort_keys=True))
            for agent_id, values in personalities.items()
        ]
        with self._lock:
            self.connection.executemany(
                """
                INSERT OR REPLACE INTO agent_personalities (run_id, agent_id, personality_json)
                VALUES (?, ?, ?)
                """,
                rows,
            )
            self.connection.commit()

    def log_progress(self, run_id: str, samples: Iterable[ProgressSample]) -> None:
        rows = [
            (run_id, int(sample.tick_index), sample.agent_id, int(sample.progress), str(sample.mode))
            for sample in samples
        ]
        with self._lock:
            self.connection.executemany(
                """
                INSERT OR REPLACE INTO progress_samples (run_id, tick_index, agent_id, progress, mode)
                VALUES (?, ?, ?, ?, ?)
                """,
                rows,
            )
            self.connection.commit()

    def fetch_personalities(self, run_id: str) -> dict[str, dict[str, Any]]:
        with self._lock:
            rows = self.connection.execute(
                "SELECT agent_id, personality_json FROM agent_personalities WHERE run_id = ? ORDER BY agent_id",
                (run_id,),
            ).fetchall()
        return {str(row["agent_id"]): json.loads(row["personality_json"]) for row in rows}

    def fetch_progress(self, run_id: str, agent_id: str | None = None) -> list[dict[str, Any]]:
        """Return ordered progress samples for analysis."""
        query = "SELECT tick_index, agent_id, progress, mode FROM progress_samples WHERE run_id = ?"
        params: tuple[Any, ...] = (run_id,)
        if agent_id is not None:
            query += " AND agent_id = ?"
            params = (run_id, agent_id)
        query += " ORDER BY tick_index ASC, rowid ASC"
        with self._lock:
            rows = self.connection.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def latest_samples(self, run_id: str) -> list[ProgressSample]:
        """Return every agent's most recent sample, in insertion order."""
        with self._lock:
            rows = self.connection.execute(
                """
                SELECT tick_index, agent_id, progress, mode
                FROM progress_samples
                WHERE run_id = ?
                  AND tick_index = (SELECT MAX(tick_index) FROM progress_samples WHERE run_id = ?)
                ORDER BY rowid ASC
                """,
                (run_id, run_id),
            ).fetchall()
        return [
            ProgressSample(
                tick_index=int(row["tick_index"]),
                agent_id=str(row["agent_id"]),
                progress=int(row["progress"]),
                mode=str(row["mode"]),
            )
            for row in rows
        ]

    def latest_run_id(self) -> str | None:
        """Return most recently created run id, if any."""
        with self._lock:
            row = self.connection.execute(
                """
                SELECT run_id
                FROM run_metadata
                ORDER BY created_at DESC, rowid DESC
                LIMIT 1
                """
            ).fetchone()
        return str(row[0]) if row is not None else None
