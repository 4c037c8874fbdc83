from __future__ import annotations

import logging
from threading import Lock, Timer
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class RenewalScheduler:
    """Fire a job once shortly after start, then on a fixed period.

    Both triggers run on daemon ``threading.Timer`` threads and are never
    awaited. A failing run is logged and the periodic timer is re-armed
    anyway, so one bad run cannot end the schedule.
    """

    def __init__(
        self,
        job: Callable[[], Any],
        *,
        startup_delay: float = 2.0,
        interval: float = 24 * 60 * 60,
        name: str = "renewal",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.job = job
        self.startup_delay = startup_delay
        self.interval = interval
        self.name = name
        self.runs = 0
        self.failures = 0
        self.last_result: Any = None
        self._lock = Lock()
        self._startup_timer: Optional[Timer] = None
        self._periodic_timer: Optional[Timer] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._startup_timer = self._timer(self.startup_delay, self._fire_startup)
            self._arm_periodic()
        logger.info(
            "%s scheduler started (startup delay %.1fs, interval %.0fs)",
            self.name,
            self.startup_delay,
            self.interval,
        )

    def stop(self) -> None:
        with self._lock:
            self._running = False
            for timer in (self._startup_timer, self._periodic_timer):
                if timer is not None:
                    timer.cancel()
            self._startup_timer = None
            self._periodic_timer = None
        logger.info("%s scheduler stopped", self.name)

    def run_now(self) -> Any:
        """Run the job once on the calling thread, logging instead of raising."""
        self.runs += 1
        try:
            result = self.job()
        except Exception:
            self.failures += 1
            logger.exception("%s run failed", self.name)
            return None
        self.last_result = result
        return result

    # ---- Private --------------------------------------------------------
    def _timer(self, delay: float, fn: Callable[[], None]) -> Timer:
        timer = Timer(delay, fn)
        timer.daemon = True
        timer.name = f"{self.name}-scheduler"
        timer.start()
        return timer

    def _arm_periodic(self) -> None:
        self._periodic_timer = self._timer(self.interval, self._fire_periodic)

    def _fire_startup(self) -> None:
        if self._running:
            self.run_now()

    def _fire_periodic(self) -> None:
        if not self._running:
            return
        try:
            self.run_now()
        finally:
            with self._lock:
                if self._running:
                    self._arm_periodic()
