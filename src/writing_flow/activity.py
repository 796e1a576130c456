"""Inactivity detection for the live writing session."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Optional

from .models import ActivityState
from .signals import Signal, SignalBus

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], Any]


def _daemon_timer(interval: float, function: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


class ActivityMonitor:
    """Signals when no activity has been recorded for ``threshold`` seconds.

    Every recorded activity cancels the armed single-shot timer and arms a new
    one, so the threshold is measured from the latest activity. The monitor
    only publishes :attr:`Signal.INACTIVITY`; what to do about it is up to
    the subscriber.
    """

    def __init__(
        self,
        bus: Optional[SignalBus] = None,
        *,
        threshold: float = 30.0,
        clock: Callable[[], datetime] = datetime.now,
        timer_factory: TimerFactory = _daemon_timer,
    ) -> None:
        self.bus = bus or SignalBus()
        self.threshold = threshold
        self._clock = clock
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._session_id: Optional[str] = None
        self._last_activity: Optional[datetime] = None
        self._timer: Any = None

    @property
    def state(self) -> ActivityState:
        with self._lock:
            return ActivityState(
                session_id=self._session_id,
                last_activity_time=self._last_activity,
                is_monitoring=self._session_id is not None,
            )

    def start(self, session_id: str) -> None:
        with self._lock:
            self._session_id = session_id
            self._last_activity = self._clock()
            self._arm()
        logger.debug("Monitoring activity for session %s.", session_id)

    def record_activity(self) -> None:
        with self._lock:
            if self._session_id is None:
                return
            self._last_activity = self._clock()
            self._arm()

    def stop(self) -> None:
        with self._lock:
            self._disarm()
            if self._session_id is not None:
                logger.debug("Stopped monitoring session %s.", self._session_id)
            self._session_id = None

    def _arm(self) -> None:
        self._disarm()
        timer = None

        def fire() -> None:
            self._on_threshold(timer)

        timer = self._timer_factory(self.threshold, fire)
        self._timer = timer
        timer.start()

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_threshold(self, timer: Any) -> None:
        with self._lock:
            # A re-armed or stopped monitor ignores stale timers.
            if timer is not self._timer or self._session_id is None:
                return
            self._timer = None
            session_id = self._session_id
            last_activity = self._last_activity
        logger.info(
            "No activity in session %s since %s.",
            session_id,
            last_activity.isoformat() if last_activity else "start",
        )
        self.bus.publish(Signal.INACTIVITY, session_id)
