import datetime
import logging
import random
from collections import deque

import pandas as pd

from .models import SensorReading

logger = logging.getLogger(__name__)

# (min, max, decimals); decimals=0 means integer
SENSOR_RANGES = {
    "nitrogen": (0, 140, 0),
    "phosphorus": (5, 150, 0),
    "potassium": (5, 210, 0),
    "temperature": (10.0, 40.0, 1),
    "humidity": (30.0, 98.0, 1),
    "ph": (4.0, 9.0, 1),
    "rainfall": (20, 300, 0),
}

OPTIMAL_LEVELS = {"temperature": 25.0, "humidity": 60.0, "ph": 6.5, "rainfall": 150.0}
OPTIMAL_RANGES = {
    "temperature": "20-30°C",
    "humidity": "50-70%",
    "ph": "6.0-7.5",
}

TREND_UP = "up"
TREND_DOWN = "down"
TREND_STEADY = "steady"

SENSOR_LOG_COLUMNS = ['timestamp'] + list(SENSOR_RANGES.keys())


class SensorSource:
    def __init__(self, rng=None):
        self._rng = rng or random.Random()

    def _draw(self, low, high, decimals):
        value = self._rng.uniform(low, high)
        if decimals == 0:
            return int(min(max(round(value), low), high))
        return min(max(round(value, decimals), low), high)

    def generate(self):
        values = {name: self._draw(*bounds) for name, bounds in SENSOR_RANGES.items()}
        reading = SensorReading(**values)
        logger.debug(f"Generated sensor reading: {reading}")
        return reading


def in_range(reading):
    for name, (low, high, _) in SENSOR_RANGES.items():
        value = getattr(reading, name)
        if not low <= value <= high:
            return False
    return True


def trend(value, optimal):
    if value > optimal * 1.1:
        return TREND_UP
    if value < optimal * 0.9:
        return TREND_DOWN
    return TREND_STEADY


def reading_trends(reading):
    return {name: trend(getattr(reading, name), optimal) for name, optimal in OPTIMAL_LEVELS.items()}


class SensorLog:
    """Rolling window of recent readings for the dashboard chart."""

    def __init__(self, max_entries=20):
        self._entries = deque(maxlen=max_entries)

    def record(self, reading, timestamp=None):
        self._entries.append((timestamp or datetime.datetime.now(), reading))

    def __len__(self):
        return len(self._entries)

    @property
    def latest(self):
        return self._entries[-1][1] if self._entries else None

    def to_frame(self):
        if not self._entries:
            return pd.DataFrame(columns=SENSOR_LOG_COLUMNS).set_index('timestamp')
        rows = []
        for timestamp, reading in self._entries:
            row = {'timestamp': timestamp}
            row.update({name: getattr(reading, name) for name in SENSOR_RANGES})
            rows.append(row)
        return pd.DataFrame(rows, columns=SENSOR_LOG_COLUMNS).set_index('timestamp')
