"""
Auxiliary HTTP surface: usage text, health check and version.

Runs on its own port in a daemon thread next to the WebSocket loop.
"""

import logging
import threading

from flask import Flask, Response, jsonify
from flask_cors import CORS
from werkzeug.serving import make_server

from . import __version__
from .readings import CHANNEL_NAMES

logger = logging.getLogger(__name__)

APP_NAME = "telemetry-publisher"


def create_app(config, registry):
    app = Flask(__name__)
    CORS(app, resources={r"/*": {"origins": list(config.allowed_origins) or "*"}},
         send_wildcard=not config.allowed_origins)

    @app.route("/healthz")
    def healthz():
        return Response("ok\n", mimetype="text/plain")

    @app.route("/version")
    def version():
        return jsonify(name=APP_NAME, version=__version__)

    @app.route("/")
    def index():
        usage = (
            f"{APP_NAME} {__version__}\n"
            f"\n"
            f"WebSocket: ws://<host>:{config.port}/ws\n"
            f"  ?assetId=<id>      default {config.asset_id}\n"
            f"  &interval=<ms>     default {config.interval_ms}, minimum {config.min_interval_ms}\n"
            f"  &keys=<a,b,...>    any of {','.join(CHANNEL_NAMES)}\n"
            f"  &count=<1-5>       readings per tick, default 1\n"
            f"\n"
            f"Active connections: {len(registry)}\n"
        )
        return Response(usage, mimetype="text/plain")

    return app


class HttpServerThread(threading.Thread):
    """Serves the Flask app on a werkzeug server until shutdown() is called."""

    def __init__(self, app, host, port):
        super().__init__(name="http-api", daemon=True)
        self.server = make_server(host, port, app, threaded=True)

    @property
    def port(self) -> int:
        return self.server.server_port

    def run(self):
        logger.info("[HTTP] Listening on port %d", self.port)
        self.server.serve_forever()

    def shutdown(self):
        self.server.shutdown()
        self.server.server_close()
