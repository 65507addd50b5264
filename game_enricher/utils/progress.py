from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field

from ..config import CLI


@dataclass
class Progress:
    label: str
    total: int | None
    every_n: int
    started_s: float = field(default_factory=time.monotonic)
    last_log_s: float = field(default_factory=time.monotonic)
    last_seen: int = 0
    seen: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def advance(self) -> None:
        """Count one finished item (safe to call from worker threads)."""
        with self._lock:
            self.seen += 1
            self.maybe_log(self.seen)

    def maybe_log(self, seen: int) -> None:
        if seen <= 0:
            return

        now = time.monotonic()
        should_log = False

        min_interval = float(getattr(CLI, "progress_min_interval_s", 0.0) or 0.0)
        if self.every_n > 0 and seen % self.every_n == 0:
            should_log = True
        if min_interval > 0 and (now - self.last_log_s) >= min_interval and seen != self.last_seen:
            should_log = True
        if self.total and seen >= self.total and seen != self.last_seen:
            should_log = True

        if not should_log:
            return

        elapsed = now - self.started_s
        self.last_log_s = now
        self.last_seen = seen
        if self.total:
            logging.info(f"[{self.label}] Progress {seen}/{self.total} games ({elapsed:.1f}s)")
        else:
            logging.info(f"[{self.label}] Progress {seen} games ({elapsed:.1f}s)")
