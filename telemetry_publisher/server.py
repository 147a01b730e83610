#!/usr/bin/env python3
"""
Telemetry WebSocket Server
Streams synthetic sensor readings to every client on its own schedule.

Connect at: ws://<host>:8080/ws?assetId=...&interval=1000&keys=temperature,humidity&count=2
HTTP:       http://<host>:8081/  (usage), /healthz, /version
"""

import asyncio
import logging
import sys
from http import HTTPStatus

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from .config import load_config
from .http_api import HttpServerThread, create_app
from .lifecycle import LifecycleCoordinator
from .log import configure_logging
from .negotiation import negotiate, params_from_path
from .readings import ReadingGenerator
from .registry import ConnectionRegistry
from .session import ConnectionSession

logger = logging.getLogger(__name__)

WS_PATH = "/ws"


class TelemetryPublisher:
    """WebSocket side: request filtering and one session per connection."""

    def __init__(self, config, registry=None, generator=None):
        self.config = config
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.generator = generator if generator is not None else ReadingGenerator()
        self.defaults = config.negotiation_defaults()

    def origins(self):
        """Origins accepted at handshake; None in the list admits clients that send no Origin."""
        if not self.config.allowed_origins:
            return None
        return [*self.config.allowed_origins, None]

    def process_request(self, connection, request):
        """Refuse paths other than /ws before the upgrade."""
        path = request.path.split("?", 1)[0]
        if path != WS_PATH:
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
        return None

    async def telemetry_handler(self, websocket):
        """WebSocket handler - negotiates, then streams until the connection ends."""
        client_addr = websocket.remote_address
        config = negotiate(params_from_path(websocket.request.path), self.defaults)
        session = ConnectionSession(websocket, config, self.generator, self.config.keepalive_interval)
        self.registry.add(session)
        logger.info("[WS] Client connected: %s interval=%dms keys=%s count=%d",
                    client_addr, config.interval_ms, ",".join(config.keys), config.count)
        try:
            await session.start()
            async for _ in websocket:
                # inbound messages carry no meaning here
                pass
        except ConnectionClosedOK:
            pass
        except ConnectionClosed as e:
            logger.warning("[WS] Connection to %s closed with error: %s", client_addr, e)
        finally:
            session.stop()
            self.registry.discard(session)
            logger.info("[WS] Client disconnected: %s", client_addr)

    async def listen(self):
        """Start the WebSocket listener and return the server object."""
        server = await websockets.serve(
            self.telemetry_handler,
            self.config.host,
            self.config.port,
            process_request=self.process_request,
            origins=self.origins(),
            # liveness is handled per session
            ping_interval=None,
        )
        logger.info("[WS] Listening on port %d", self.port_of(server))
        return server

    @staticmethod
    def port_of(server) -> int:
        return server.sockets[0].getsockname()[1]


async def serve(config) -> int:
    registry = ConnectionRegistry()
    publisher = TelemetryPublisher(config, registry)

    http_server = HttpServerThread(create_app(config, registry), config.host, config.http_port)
    http_server.start()

    ws_server = await publisher.listen()
    coordinator = LifecycleCoordinator(registry, ws_server, http_server)
    coordinator.install_signal_handlers()
    return await coordinator.wait()


def main(argv=None) -> int:
    config = load_config(argv)
    configure_logging(config.log_level)

    print("=" * 70)
    print("Telemetry WebSocket Server")
    print("=" * 70)
    print(f"WebSocket:        ws://{config.host}:{config.port}{WS_PATH}")
    print(f"HTTP:             http://{config.host}:{config.http_port}/")
    print(f"Default interval: {config.interval_ms} ms (min {config.min_interval_ms} ms)")
    print(f"Keepalive:        {config.keepalive_ms} ms")
    print(f"Allowed origins:  {', '.join(config.allowed_origins) or 'any'}")
    print("=" * 70)

    return asyncio.run(serve(config))


if __name__ == "__main__":
    sys.exit(main())
