import threading
from collections import defaultdict
from datetime import timedelta

from .models import utcnow


class WindowRateLimiter:
    """In-memory sliding window counter keyed by client (use Redis when running several workers)."""

    def __init__(self, max_requests, window):
        self.max_requests = max_requests
        self.window = window if isinstance(window, timedelta) else timedelta(seconds=window)
        self._hits = defaultdict(list)
        self._lock = threading.Lock()
        self._last_sweep = None

    def _sweep(self, window_start):
        # drop clients with no hits left inside the window
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= window_start]:
            del self._hits[key]

    def hit(self, key, now=None):
        """Record a request for `key`. Returns True if it is allowed, False if rate limited."""
        now = now or utcnow()
        window_start = now - self.window
        with self._lock:
            if self._last_sweep is None or now - self._last_sweep >= self.window:
                self._sweep(window_start)
                self._last_sweep = now
            hits = [t for t in self._hits.get(key, ()) if t > window_start]
            if len(hits) >= self.max_requests:
                self._hits[key] = hits
                return False
            hits.append(now)
            self._hits[key] = hits
            return True

    def reset(self):
        with self._lock:
            self._hits.clear()
            self._last_sweep = None
