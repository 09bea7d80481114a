"""In-memory ring of the most recent invalid records."""

import threading
from collections import deque


class ErrorTracker:
    def __init__(self, max_size: int = 100):
        self._errors: deque[dict] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def add(self, raw: str, src: str, kind: str, error: str):
        """Remember an invalid record; the oldest one falls off at capacity."""
        with self._lock:
            self._errors.append({"raw": raw, "src": src, "kind": kind, "error": error})

    def get_recent(self, n: int = 10) -> list[dict]:
        """Return up to *n* most recent errors, oldest first."""
        with self._lock:
            if n <= 0:
                return []
            return list(self._errors)[-n:]

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._errors)
