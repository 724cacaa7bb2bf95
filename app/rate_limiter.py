"""Per-token fixed-window request counter (in-memory)."""
import threading
import time
from dataclasses import dataclass
from datetime import timedelta


@dataclass
class WindowEntry:
    count: int
    reset_at: float  # time.monotonic() value


class TokenLimiter:
    """Allow at most ``max_count`` requests per token in each window.

    A token's window starts on its first request and is replaced wholesale on
    the first request at or after ``reset_at``. Entries are never evicted, so
    memory grows with the number of distinct tokens seen.
    """

    def __init__(self, max_count: int, window: timedelta) -> None:
        if max_count < 1:
            raise ValueError(f"max_count must be >= 1, got {max_count}")
        if window <= timedelta(0):
            raise ValueError(f"window must be positive, got {window}")
        self.max_count = max_count
        self.window = window
        self._window_seconds = window.total_seconds()
        self._windows: dict[str, WindowEntry] = {}
        # Held only around dict lookups and arithmetic, never across I/O
        self._lock = threading.Lock()

    def allow(self, token: str) -> tuple[bool, int]:
        """Count a request for ``token``; return (admitted, current count).

        A denied call leaves the count unchanged.
        """
        with self._lock:
            now = time.monotonic()
            entry = self._windows.get(token)
            if entry is None or now >= entry.reset_at:
                entry = WindowEntry(count=0, reset_at=now + self._window_seconds)
                self._windows[token] = entry

            if entry.count >= self.max_count:
                return False, entry.count

            entry.count += 1
            return True, entry.count
