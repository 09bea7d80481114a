"""Thread-safe counters for the ingestion loop."""

import threading
import time
from collections import defaultdict


class Metrics:
    def __init__(self):
        self._lock = threading.Lock()
        self._datagrams = 0
        self._records = 0
        self._dropped = 0
        self._level_counts: dict[str, int] = defaultdict(int)
        self._parse_errors: dict[str, int] = defaultdict(int)
        self._devices: set[str] = set()
        self._start_time = time.monotonic()

    def record_datagram(self):
        with self._lock:
            self._datagrams += 1

    def record_event(self, device_id_safe: str, level_char: str):
        """Count one parsed record."""
        with self._lock:
            self._records += 1
            self._level_counts[level_char] += 1
            self._devices.add(device_id_safe)

    def record_parse_error(self, kind: str):
        with self._lock:
            self._parse_errors[kind] += 1

    def record_dropped(self):
        """Count a parsed record a sink failed to render or store."""
        with self._lock:
            self._dropped += 1

    def snapshot(self) -> dict:
        """Return a point-in-time snapshot of all counters."""
        with self._lock:
            elapsed = time.monotonic() - self._start_time
            records = self._records
            snap = {
                "datagrams_received": self._datagrams,
                "records_received": records,
                "records_dropped": self._dropped,
                "parse_errors": dict(self._parse_errors),
                "level_distribution": dict(self._level_counts),
                "devices_seen": len(self._devices),
            }

        snap["elapsed_seconds"] = round(elapsed, 2)
        snap["records_per_second"] = round(records / elapsed, 2) if elapsed > 0 else 0.0
        return snap
