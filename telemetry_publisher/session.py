"""
Per-connection emission scheduler and liveness watchdog.

Every WebSocket connection gets one ConnectionSession holding two periodic
tasks: the scheduler pushes readings every `interval_ms`, the watchdog
pings every `keepalive_interval` seconds and reaps peers that never pong.
Both are cancelled inside stop(), so nothing fires after a session closes.
"""

import asyncio
import enum
import json
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from .negotiation import ConnectionConfig
from .readings import ReadingGenerator

logger = logging.getLogger(__name__)

KEEPALIVE_MS = 15000


class PeriodicTask:
    """Runs an async callback on a fixed cadence until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], Awaitable[None]], name: str = ""):
        self.interval = interval
        self.callback = callback
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        self._task = asyncio.create_task(self._run(), name=self.name or None)

    def cancel(self) -> bool:
        if self._task is None or self._task.done():
            return False
        return self._task.cancel()

    async def _run(self):
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            try:
                await self.callback()
            except Exception:
                logger.exception("[%s] tick failed", self.name)
            next_tick += self.interval
            # fell behind: resync instead of firing a burst of late ticks
            now = loop.time()
            if next_tick < now:
                next_tick = now + self.interval


class Phase(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class ConnectionState:
    is_alive: bool = True
    scheduler: Optional[PeriodicTask] = None
    watchdog: Optional[PeriodicTask] = None
    closed: bool = False


class ConnectionSession:
    def __init__(self, websocket, config: ConnectionConfig, generator: ReadingGenerator,
                 keepalive_interval: float = KEEPALIVE_MS / 1000.0):
        self.websocket = websocket
        self.config = config
        self.generator = generator
        self.keepalive_interval = keepalive_interval
        self.state = ConnectionState()

    def __repr__(self):
        return f"<ConnectionSession {self.remote_address} {self.phase.value}>"

    @property
    def remote_address(self):
        return getattr(self.websocket, "remote_address", None)

    @property
    def phase(self) -> Phase:
        if self.state.closed:
            return Phase.STOPPED
        if self.state.scheduler is None:
            return Phase.IDLE
        return Phase.RUNNING

    async def start(self):
        """Send the hello message, then start the scheduler and the watchdog."""
        if self.phase is not Phase.IDLE:
            return
        await self.websocket.send(json.dumps(self.config.hello_message()))
        if self.state.closed:
            # stopped while the hello was in flight
            return
        self.state.scheduler = PeriodicTask(
            self.config.interval_ms / 1000.0, self._emit_tick, name=f"emit-{self.remote_address}")
        self.state.watchdog = PeriodicTask(
            self.keepalive_interval, self._probe_tick, name=f"keepalive-{self.remote_address}")
        self.state.scheduler.start()
        self.state.watchdog.start()

    def stop(self) -> bool:
        """
        Move to STOPPED and cancel both timers.

        Safe to call any number of times, from close and error paths alike;
        only the first call cancels anything. Returns True if this call did.
        """
        if self.state.closed:
            return False
        self.state.closed = True
        for timer in (self.state.scheduler, self.state.watchdog):
            if timer is not None:
                timer.cancel()
        return True

    def terminate(self):
        """Stop and drop the TCP connection without a closing handshake."""
        self.stop()
        transport = getattr(self.websocket, "transport", None)
        if transport is not None:
            transport.abort()

    @property
    def writable(self) -> bool:
        return self.websocket.state is State.OPEN

    async def _emit_tick(self):
        if self.state.closed or not self.writable:
            return
        readings = self.generator.batch(self.config.asset_id, self.config.keys, self.config.count)
        for reading in readings:
            if self.state.closed:
                return
            try:
                await self.websocket.send(json.dumps(reading.to_message()))
            except ConnectionClosed:
                logger.debug("[WS] send to %s failed, skipping tick", self.remote_address)
                return

    async def _probe_tick(self):
        if self.state.closed:
            return
        if not self.state.is_alive:
            logger.info("[WS] No pong from %s, terminating", self.remote_address)
            self.terminate()
            return
        self.state.is_alive = False
        try:
            pong_waiter = await self.websocket.ping()
        except (ConnectionClosed, OSError):
            # next tick finds is_alive False and reaps the connection
            return
        pong_waiter.add_done_callback(self._on_pong)

    def _on_pong(self, pong_waiter: asyncio.Future):
        if pong_waiter.cancelled() or pong_waiter.exception() is not None:
            return
        if not self.state.closed:
            self.state.is_alive = True
