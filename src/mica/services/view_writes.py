"""Rate-limited persistence of high-frequency view updates (camera orbiting)."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional

from ..models.graph import ViewState

logger = logging.getLogger(__name__)

ViewWriter = Callable[[str, ViewState], object]


class ViewWriteCoalescer:
    """Coalesce view writes so storage sees at most one write per interval.

    The latest submitted view per space wins. A write that arrives inside the
    interval is held and flushed by a timer when the interval elapses (or by
    an explicit flush()/close()), so the last camera position is never lost.
    """

    def __init__(
        self,
        writer: ViewWriter,
        interval: float = 0.4,
        clock: Callable[[], float] = time.monotonic,
        use_timer: bool = True,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._writer = writer
        self.interval = interval
        self._clock = clock
        self._use_timer = use_timer
        self._lock = threading.RLock()
        self._pending: Dict[str, ViewState] = {}
        self._last_write: Optional[float] = None
        self._timer: Optional[threading.Timer] = None
        self.writes = 0

    @property
    def pending(self) -> Dict[str, ViewState]:
        with self._lock:
            return dict(self._pending)

    def submit(self, space_id: str, view: ViewState) -> bool:
        """Queue a view; returns True if it was written immediately."""
        with self._lock:
            self._pending[space_id] = view
            now = self._clock()
            if self._last_write is None or now - self._last_write >= self.interval:
                self._flush_locked()
                return True
            self._schedule_locked(self._last_write + self.interval - now)
            return False

    def flush(self) -> int:
        """Write every pending view now; returns how many were written."""
        with self._lock:
            return self._flush_locked()

    def discard(self, space_id: str) -> None:
        """Drop a pending write (the space was deleted or replaced)."""
        with self._lock:
            self._pending.pop(space_id, None)

    def close(self) -> None:
        with self._lock:
            self._cancel_timer_locked()
            self._flush_locked()

    def _flush_locked(self) -> int:
        self._cancel_timer_locked()
        pending, self._pending = self._pending, {}
        for space_id, view in pending.items():
            self._writer(space_id, view)
            self.writes += 1
        if pending:
            self._last_write = self._clock()
            logger.debug("Flushed %s coalesced view write(s)", len(pending))
        return len(pending)

    def _schedule_locked(self, delay: float) -> None:
        if not self._use_timer or self._timer is not None:
            return
        self._timer = threading.Timer(max(delay, 0.0), self._on_timer)
        self._timer.daemon = True
        self._timer.start()

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        with self._lock:
            self._timer = None
            try:
                self._flush_locked()
            except Exception:
                logger.exception("Deferred view write failed")


__all__ = ["ViewWriteCoalescer", "ViewWriter"]
