"""
Mock sensor readings.

Each channel maps to a fixed value range and display unit. Replace
ReadingGenerator.generate() with real sensor reads if you have them.
"""

import time
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

# channel -> (low, high, unit); values are drawn from [low, high)
CHANNELS: Dict[str, Tuple[float, float, str]] = {
    "temperature": (20.0, 35.0, "°C"),
    "humidity": (30.0, 80.0, "%"),
    "pressure": (950.0, 1050.0, "hPa"),
    "vibration": (0.0, 10.0, "mm/s"),
    "voltage": (200.0, 220.0, "V"),
    "current": (1.0, 11.0, "A"),
    "speed": (50.0, 150.0, "km/h"),
    "altitude": (100.0, 600.0, "m"),
}

CHANNEL_NAMES: Tuple[str, ...] = tuple(CHANNELS)


def unit_for(channel: str) -> str:
    entry = CHANNELS.get(channel)
    return entry[2] if entry else ""


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Reading:
    asset_id: str
    name: str
    value: float
    type: str
    unit: str
    timestamp: int

    def to_message(self) -> dict:
        """Wire shape of a single telemetry message."""
        return {
            "assetId": self.asset_id,
            "telemetry": [
                {
                    "value": self.value,
                    "name": self.name,
                    "type": self.type,
                    "unit": self.unit,
                    "timestamp": self.timestamp,
                }
            ],
            "keyName": self.name,
        }


class ReadingGenerator:
    """
    Produces readings from a numpy random Generator.

    Pass a seeded ``np.random.default_rng(seed)`` for reproducible output;
    the default source is unseeded.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def value_for(self, channel: str) -> float:
        entry = CHANNELS.get(channel)
        if entry is None:
            return float(self.rng.random())
        low, high, _ = entry
        return round(low + float(self.rng.random()) * (high - low), 2)

    def pick(self, keys: Sequence[str]) -> str:
        return keys[int(self.rng.integers(len(keys)))]

    def generate(self, asset_id: str, channel: str) -> Reading:
        return Reading(
            asset_id=asset_id,
            name=channel,
            value=self.value_for(channel),
            type="number",
            unit=unit_for(channel),
            timestamp=now_ms(),
        )

    def batch(self, asset_id: str, keys: Sequence[str], count: int):
        """`count` independent readings, each on a randomly picked channel."""
        return [self.generate(asset_id, self.pick(keys)) for _ in range(count)]
