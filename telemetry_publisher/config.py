"""
Server configuration.

Defaults below, overridden by environment variables, overridden in turn by
command-line flags.
"""

import argparse
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional, Sequence, Tuple

from .negotiation import MAX_BATCH, NegotiationDefaults

# Configuration
HOST = "0.0.0.0"
WS_PORT = 8080
HTTP_PORT = 8081
INTERVAL_MS = 15000
MIN_INTERVAL_MS = 100
KEEPALIVE_MS = 15000
ASSET_ID = "02i9K000005B4tcQAC"
LOG_LEVEL = "INFO"

# timer periods; zero or negative would spin the timers
POSITIVE_SETTINGS = ("interval_ms", "min_interval_ms", "keepalive_ms")


@dataclass(frozen=True)
class ServerConfig:
    host: str = HOST
    port: int = WS_PORT
    http_port: int = HTTP_PORT
    interval_ms: int = INTERVAL_MS
    min_interval_ms: int = MIN_INTERVAL_MS
    keepalive_ms: int = KEEPALIVE_MS
    asset_id: str = ASSET_ID
    allowed_origins: Tuple[str, ...] = ()
    log_level: str = LOG_LEVEL

    def __post_init__(self):
        for name in POSITIVE_SETTINGS:
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

    @property
    def keepalive_interval(self) -> float:
        return self.keepalive_ms / 1000.0

    def negotiation_defaults(self) -> NegotiationDefaults:
        return NegotiationDefaults(
            asset_id=self.asset_id,
            interval_ms=max(self.min_interval_ms, self.interval_ms),
            min_interval_ms=self.min_interval_ms,
            max_batch=MAX_BATCH,
        )


def split_origins(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(o.strip() for o in raw.split(",") if o.strip())


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def from_env(env: Optional[Mapping[str, str]] = None) -> ServerConfig:
    env = os.environ if env is None else env
    return ServerConfig(
        host=env.get("HOST") or HOST,
        port=_env_int(env, "PORT", WS_PORT),
        http_port=_env_int(env, "HTTP_PORT", HTTP_PORT),
        interval_ms=_env_int(env, "INTERVAL_MS", INTERVAL_MS),
        min_interval_ms=_env_int(env, "MIN_INTERVAL_MS", MIN_INTERVAL_MS),
        keepalive_ms=_env_int(env, "KEEPALIVE_MS", KEEPALIVE_MS),
        asset_id=env.get("ASSET_ID") or ASSET_ID,
        allowed_origins=split_origins(env.get("ALLOWED_ORIGINS")),
        log_level=(env.get("LOG_LEVEL") or LOG_LEVEL).upper(),
    )


def get_args(argv: Optional[Sequence[str]] = None):
    p = argparse.ArgumentParser(description="Synthetic telemetry WebSocket publisher")
    p.add_argument("--host", help="Bind address for both listeners")
    p.add_argument("--port", type=int, help="WebSocket port (/ws)")
    p.add_argument("--http-port", type=int, help="HTTP port (/, /healthz, /version)")
    p.add_argument("--interval", type=int, dest="interval_ms", help="Default emission interval (ms)")
    p.add_argument("--min-interval", type=int, dest="min_interval_ms", help="Interval floor (ms)")
    p.add_argument("--keepalive", type=int, dest="keepalive_ms", help="Ping interval (ms)")
    p.add_argument("--asset-id", help="Default asset id")
    p.add_argument("--origins", help="Allowed origins (comma-separated, empty = any)")
    p.add_argument("--log-level", help="Logging level")
    return p.parse_args(argv)


def load_config(argv: Optional[Sequence[str]] = None,
                env: Optional[Mapping[str, str]] = None) -> ServerConfig:
    config = from_env(env)
    args = get_args(argv)
    overrides = {
        name: value for name, value in vars(args).items()
        if value is not None and name != "origins"
    }
    if args.origins is not None:
        overrides["allowed_origins"] = split_origins(args.origins)
    if "log_level" in overrides:
        overrides["log_level"] = overrides["log_level"].upper()
    return replace(config, **overrides)
