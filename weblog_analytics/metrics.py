"""Thread-safe operational counters for the ingestion side."""

import threading
import time
from collections import defaultdict

LINES_RECEIVED = "lines_received"
LINES_COUNTED = "lines_counted"
LINES_MALFORMED = "lines_malformed"
LINES_REJECTED = "lines_rejected"
INCREMENTS_DROPPED = "increments_dropped"
HANDLER_ERRORS = "handler_errors"


class PipelineMetrics:
    def __init__(self):
        self._lock = threading.Lock()
        self._counters: dict[str, int] = defaultdict(int)
        self._start_time = time.monotonic()

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def snapshot(self) -> dict:
        """Return a point-in-time snapshot of all counters."""
        with self._lock:
            elapsed = time.monotonic() - self._start_time
            counters = dict(self._counters)

        received = counters.get(LINES_RECEIVED, 0)
        return {
            "counters": counters,
            "uptime_seconds": round(elapsed, 2),
            "lines_per_second": round(received / elapsed, 2) if elapsed > 0 else 0.0,
        }
