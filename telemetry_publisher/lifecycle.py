"""
Coordinated shutdown.

On SIGINT/SIGTERM every open session is terminated (best effort, one
failure never blocks the rest), then the listeners are closed.
"""

import asyncio
import logging
import signal

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class LifecycleCoordinator:

    def __init__(self, registry, ws_server=None, http_server=None):
        self.registry = registry
        self.ws_server = ws_server
        self.http_server = http_server
        self._requested = asyncio.Event()
        self._shutting_down = False

    def install_signal_handlers(self, loop=None):
        loop = loop or asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, self.request_shutdown, sig)

    def request_shutdown(self, sig=None):
        if sig is not None:
            logger.info("Received %s, shutting down", signal.Signals(sig).name)
        self._requested.set()

    async def wait(self) -> int:
        """Block until shutdown is requested, then run it. Returns the exit status."""
        await self._requested.wait()
        return await self.shutdown()

    def terminate_all(self) -> int:
        terminated = 0
        for session in self.registry.snapshot():
            try:
                session.terminate()
                terminated += 1
            except Exception:
                logger.exception("Failed to terminate %r", session)
        return terminated

    async def shutdown(self) -> int:
        if self._shutting_down:
            return 0
        self._shutting_down = True

        count = self.terminate_all()
        logger.info("Terminated %d connection(s)", count)

        if self.ws_server is not None:
            self.ws_server.close()
            await self.ws_server.wait_closed()
            logger.info("[WS] Listener closed")

        if self.http_server is not None:
            # werkzeug's shutdown blocks until serve_forever returns
            await asyncio.to_thread(self.http_server.shutdown)
            logger.info("[HTTP] Listener closed")
        return 0
