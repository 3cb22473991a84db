"""Latest readings of a sensor observation feed, served as text to clients."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Iterable

TIME_KEY = "Time"
SEPARATOR = ": "
_TIME_PREFIX = TIME_KEY + SEPARATOR


@dataclass
class SensorData:
    """Keeps the last line seen for each sensor, plus the last timestamp."""

    _values: dict[str, str] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def feed_line(self, line: str) -> None:
        """Take one ``Sensor: value`` or ``Time: timestamp`` line; others are ignored."""
        if line.startswith(_TIME_PREFIX):
            with self._lock:
                self._values[TIME_KEY] = line[len(_TIME_PREFIX) :]
            return
        index = line.find(SEPARATOR)
        if index > 0:
            with self._lock:
                self._values[line[:index]] = line

    def feed(self, lines: Iterable[str]) -> None:
        """Take every line of ``lines``, dropping line endings."""
        for raw in lines:
            self.feed_line(raw.removesuffix("\n").removesuffix("\r"))

    def response(self) -> str:
        """The timestamp line followed by one line per sensor."""
        time_str = ""
        readings = []
        with self._lock:
            for key, value in self._values.items():
                if key.startswith(TIME_KEY):
                    time_str = value
                else:
                    readings.append(value + "\n")
        return time_str + "\n" + "".join(readings)