"""Countdown clock for a single writing session."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from .errors import InvalidDuration
from .models import TimerState
from .signals import Signal, SignalBus

logger = logging.getLogger(__name__)

DEFAULT_DURATION = 15 * 60.0


class CountdownTimer:
    """Counts down wall-clock running time and signals expiry once.

    Each tick subtracts the real time elapsed since the previous tick (or
    since ``resume``), so late ticks still converge on the right remaining
    time and paused intervals are never charged. With ``background=True`` a
    daemon thread calls :meth:`tick` every ``tick_interval`` seconds;
    otherwise the owner drives :meth:`tick` directly.
    """

    def __init__(
        self,
        bus: Optional[SignalBus] = None,
        *,
        default_duration: float = DEFAULT_DURATION,
        tick_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        background: bool = True,
    ) -> None:
        self.bus = bus or SignalBus()
        self.default_duration = float(default_duration)
        self.tick_interval = tick_interval
        self._clock = clock
        self._background = background
        self._lock = threading.Lock()
        self._remaining = self.default_duration
        self._running = False
        self._paused = False
        self._expired = False
        self._last_update = clock()
        self._stop_event: Optional[threading.Event] = None

    @property
    def state(self) -> TimerState:
        with self._lock:
            return self._snapshot()

    def start(self, duration: float) -> None:
        if duration <= 0:
            raise InvalidDuration(duration)
        with self._lock:
            self._cancel_ticks()
            self._remaining = float(duration)
            self._running = True
            self._paused = False
            self._expired = False
            self._last_update = self._clock()
            self._schedule_ticks()
            snapshot = self._snapshot()
        logger.info("Timer started for %.0f seconds.", duration)
        self._publish(snapshot)

    def pause(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._cancel_ticks()
            self._running = False
            self._paused = True
            snapshot = self._snapshot()
        logger.debug("Timer paused with %.1f seconds left.", snapshot.remaining_time)
        self._publish(snapshot)

    def resume(self) -> None:
        with self._lock:
            if not self._paused:
                return
            self._running = True
            self._paused = False
            self._last_update = self._clock()
            self._schedule_ticks()
            snapshot = self._snapshot()
        logger.debug("Timer resumed with %.1f seconds left.", snapshot.remaining_time)
        self._publish(snapshot)

    def stop(self) -> None:
        with self._lock:
            self._cancel_ticks()
            self._remaining = self.default_duration
            self._running = False
            self._paused = False
            self._expired = False
            snapshot = self._snapshot()
        self._publish(snapshot)

    def reset(self) -> None:
        self.stop()

    def tick(self) -> None:
        expired = False
        with self._lock:
            if not self._running:
                return
            now = self._clock()
            elapsed = now - self._last_update
            self._last_update = now
            self._remaining = max(0.0, self._remaining - elapsed)
            if self._remaining <= 0:
                self._cancel_ticks()
                self._running = False
                self._paused = False
                self._expired = True
                expired = True
            snapshot = self._snapshot()
        self._publish(snapshot)
        if expired:
            logger.info("Timer expired.")
            self.bus.publish(Signal.TIMER_EXPIRED, snapshot)

    def _snapshot(self) -> TimerState:
        return TimerState(
            remaining_time=self._remaining,
            is_running=self._running,
            is_paused=self._paused,
            is_expired=self._expired,
            last_update_time=self._last_update,
        )

    def _publish(self, snapshot: TimerState) -> None:
        self.bus.publish(Signal.TIMER_CHANGED, snapshot)

    def _schedule_ticks(self) -> None:
        if not self._background:
            return
        stop_event = threading.Event()
        self._stop_event = stop_event
        threading.Thread(
            target=self._run_loop,
            args=(stop_event,),
            name="countdown-timer",
            daemon=True,
        ).start()

    def _cancel_ticks(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
            self._stop_event = None

    def _run_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.tick_interval):
            self.tick()
