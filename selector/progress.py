"""
Progress Tracking Infrastructure for Image Selector
"""

import time
from typing import TYPE_CHECKING, Callable, Optional

from selector.events import ProgressEvent

if TYPE_CHECKING:
    from selector.logger import AppLogger


class ProgressTracker:
    """
    Tracks and estimates progress for long-running operations.

    Calculates ETA using exponential moving average (EMA) and hands a
    ProgressEvent to the callback, throttled to at most one per
    ``throttle_interval`` seconds unless forced.
    """

    def __init__(self, callback: Optional[Callable[[ProgressEvent], None]], logger: Optional["AppLogger"] = None,
                 stage: str = "", throttle_interval: float = 0.1):
        """
        Initializes the progress tracker.

        Args:
            callback: Receives each ProgressEvent (may be None).
            logger: Application logger.
            stage: Initial stage name.
            throttle_interval: Minimum seconds between unforced updates.
        """
        self.callback = callback
        self.logger = logger
        self.stage = stage or "Working"
        self.total = 1
        self.done = 0
        self._t0 = time.time()
        self._last_ts = self._t0
        self._ema_dt = None
        self._alpha = 0.2
        self._last_update_ts: float = 0.0
        self.throttle_interval = throttle_interval

    @property
    def fraction(self) -> float:
        return self.done / max(1, self.total)

    def start(self, total_items: int, desc: Optional[str] = None):
        """Resets the tracker for a new operation."""
        self.total = max(1, int(total_items))
        self.done = 0
        if desc:
            self.stage = desc
        self._t0 = time.time()
        self._last_ts = self._t0
        self._ema_dt = None
        self._emit(force=True)

    def step(self, n: int = 1, desc: Optional[str] = None):
        """
        Increments progress by 'n' steps.

        Args:
            n: Number of steps completed.
            desc: Optional stage description update.
        """
        now = time.time()
        dt = now - self._last_ts
        self._last_ts = now
        if dt > 0:
            if self._ema_dt is None:
                self._ema_dt = dt / max(1, n)
            else:
                self._ema_dt = self._alpha * (dt / max(1, n)) + (1 - self._alpha) * self._ema_dt
        self.done = min(self.total, self.done + n)
        if desc:
            self.stage = desc
        self._emit()

    def set(self, done: int, desc: Optional[str] = None):
        """Sets the absolute number of completed steps."""
        delta = max(0, done - self.done)
        if delta > 0:
            self.step(delta, desc=desc)

    def done_stage(self, final_text: Optional[str] = None):
        """Marks the current operation as complete."""
        self.done = self.total
        self._emit(force=True)
        if final_text and self.logger:
            self.logger.info(final_text, component="progress")

    def _emit(self, force: bool = False):
        """Emits a progress update if enough time has passed (throttling)."""
        now = time.time()
        if not force and (now - self._last_update_ts < self.throttle_interval):
            return
        self._last_update_ts = now
        if self.callback is None:
            return
        eta_s = self._eta_seconds()
        self.callback(ProgressEvent(
            stage=self.stage,
            done=self.done,
            total=self.total,
            fraction=self.fraction,
            eta_seconds=eta_s,
            eta_formatted=self._fmt_eta(eta_s),
        ))

    def _eta_seconds(self) -> Optional[float]:
        """Calculates estimated seconds remaining based on EMA."""
        if self._ema_dt is None:
            return None
        remaining = max(0, self.total - self.done)
        return self._ema_dt * remaining

    @staticmethod
    def _fmt_eta(eta_s: Optional[float]) -> str:
        """Formats seconds into a human-readable string."""
        if eta_s is None:
            return "—"
        if eta_s < 60:
            return f"{int(eta_s)}s"
        m, s = divmod(int(eta_s), 60)
        if m < 60:
            return f"{m}m {s}s"
        h, m = divmod(m, 60)
        return f"{h}h {m}m"
