"""Websocket broadcaster for live leaderboard snapshots."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import websockets

from core.progress import BoardSnapshot, rank_positions
from streaming.state_serializer import serialize_snapshot

LOGGER = logging.getLogger(__name__)

CLIENT_MODES = ("full", "progress_only")


@dataclass
class _Client:
    websocket: Any
    mode: str = "full"
    queue: asyncio.Queue[bytes] = field(default_factory=lambda: asyncio.Queue(maxsize=1))


class ProgressStreamServer:
    """Broadcast board snapshots to websocket clients with backpressure control.

    Each client owns a one-slot queue; a slow client only ever sees the most
    recent frame.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 8765, max_fps: int = 30) -> None:
        self.host = host
        self.port = port
        self.max_fps = max(1, max_fps)
        self._min_interval = 1.0 / self.max_fps
        self._last_broadcast: float | None = None
        self._clients: list[_Client] = []
        self._server: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def start(self) -> None:
        """Start websocket listener on the running loop."""
        self._loop = asyncio.get_running_loop()

        async def _handler(ws: Any) -> None:
            mode = await self._negotiate_mode(ws)
            client = _Client(websocket=ws, mode=mode)
            self._clients.append(client)
            LOGGER.info("Stream client connected (mode=%s)", mode)
            sender = asyncio.create_task(self._sender_loop(client))
            try:
                await ws.wait_closed()
            finally:
                if client in self._clients:
                    self._clients.remove(client)
                sender.cancel()

        self._server = await websockets.serve(_handler, self.host, self.port)
        if self.port == 0:
            self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        """Stop listener and disconnect clients."""
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    @staticmethod
    async def _negotiate_mode(ws: Any) -> str:
        try:
            first_msg = await asyncio.wait_for(ws.recv(), timeout=1.0)
        except (asyncio.TimeoutError, websockets.ConnectionClosed):
            return "full"
        if not isinstance(first_msg, str):
            return "full"
        try:
            payload = json.loads(first_msg)
        except json.JSONDecodeError:
            return "full"
        mode = payload.get("mode", "full") if isinstance(payload, dict) else "full"
        return mode if mode in CLIENT_MODES else "full"

    def add_client(self, websocket: Any, mode: str = "full") -> _Client:
        """Register an already-connected client, skipping the mode handshake.

        The caller owns delivery: nothing drains the client's queue unless it
        runs ``_sender_loop`` itself.
        """
        client = _Client(websocket=websocket, mode=mode if mode in CLIENT_MODES else "full")
        self._clients.append(client)
        return client

    async def _sender_loop(self, client: _Client) -> None:
        while True:
            frame = await client.queue.get()
            try:
                await client.websocket.send(frame)
            except websockets.ConnectionClosed:
                return

    async def broadcast(self, snapshot: BoardSnapshot) -> bool:
        """Queue ``snapshot`` for every client; returns False when rate-limited."""
        now = time.monotonic()
        if self._last_broadcast is not None and (now - self._last_broadcast) < self._min_interval:
            return False
        self._last_broadcast = now

        frames: dict[str, bytes] = {}
        for client in list(self._clients):
            if client.mode not in frames:
                frames[client.mode] = serialize_snapshot(self._apply_filter(snapshot, client.mode))
            if client.queue.full():
                client.queue.get_nowait()
            client.queue.put_nowait(frames[client.mode])
        return True

    def publish_threadsafe(self, snapshot: BoardSnapshot) -> None:
        """Schedule a broadcast from a non-loop thread (the scheduler's tick callback)."""
        if self._loop is None or self._loop.is_closed():
            return
        future = asyncio.run_coroutine_threadsafe(self.broadcast(snapshot), self._loop)

        def _on_done(done) -> None:
            if done.cancelled():
                return
            try:
                done.result()
            except Exception as exc:
                LOGGER.exception("Snapshot broadcast failed: %s", exc)

        future.add_done_callback(_on_done)

    @staticmethod
    def _apply_filter(snapshot: BoardSnapshot, mode: str) -> Any:
        if mode == "progress_only":
            positions = rank_positions([row.progress for row in snapshot.agents])
            return {
                "tick_index": snapshot.tick_index,
                "agents": [
                    {"id": row.agent_id, "progress": row.progress, "position": position}
                    for row, position in zip(snapshot.agents, positions)
                ],
                "timestamp": snapshot.timestamp,
            }
        return snapshot
