"""
Per-connection parameter negotiation.

Turns the query string of a WebSocket request into a ConnectionConfig.
Bad input never rejects a connection: it degrades to the defaults.
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from .readings import CHANNEL_NAMES

MAX_BATCH = 5


@dataclass(frozen=True)
class NegotiationDefaults:
    asset_id: str
    interval_ms: int
    min_interval_ms: int
    max_batch: int = MAX_BATCH


@dataclass(frozen=True)
class ConnectionConfig:
    asset_id: str
    interval_ms: int
    keys: Tuple[str, ...]
    count: int

    def hello_message(self) -> dict:
        return {
            "type": "hello",
            "interval": self.interval_ms,
            "assetId": self.asset_id,
            "keys": list(self.keys),
            "count": self.count,
        }


def params_from_path(path: str) -> Dict[str, str]:
    """Flatten a request path's query string, first value wins."""
    query = parse_qs(urlsplit(path).query, keep_blank_values=True)
    return {name: values[0] for name, values in query.items() if values}


def parse_int(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def parse_keys(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return CHANNEL_NAMES
    keys = []
    for name in raw.split(","):
        name = name.strip()
        if name in CHANNEL_NAMES and name not in keys:
            keys.append(name)
    return tuple(keys) or CHANNEL_NAMES


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def negotiate(raw_params: Mapping[str, str], defaults: NegotiationDefaults) -> ConnectionConfig:
    interval = parse_int(raw_params.get("interval"))
    if interval is None:
        interval = defaults.interval_ms

    count = parse_int(raw_params.get("count"))
    if count is None:
        count = 1

    keys = raw_params.get("keys")
    if keys is None:
        keys = raw_params.get("channels")

    return ConnectionConfig(
        asset_id=raw_params.get("assetId") or defaults.asset_id,
        # 0 and negatives clamp to the floor rather than falling back to the default
        interval_ms=max(defaults.min_interval_ms, interval),
        keys=parse_keys(keys),
        count=clamp(count, 1, defaults.max_batch),
    )
