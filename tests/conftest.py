from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from writing_flow.activity import ActivityMonitor
from writing_flow.db import SessionStore
from writing_flow.lifecycle import SessionLifecycle
from writing_flow.signals import Signal, SignalBus
from writing_flow.timer import CountdownTimer


class FakeClock:
    """Wall clock and monotonic clock that only move when told to."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 9, 0, 0)) -> None:
        self._now = start
        self._mono = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._mono

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        self._mono += seconds


class FakeTimer:
    def __init__(self, interval: float, function) -> None:
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function()


class FakeTimerFactory:
    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, interval: float, function) -> FakeTimer:
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def latest(self) -> FakeTimer:
        return self.timers[-1]


class Recorder:
    """Collects signal payloads published on a bus, in order."""

    def __init__(self, bus: SignalBus) -> None:
        self.events: list[tuple[Signal, object]] = []
        for signal in Signal:
            bus.subscribe(signal, self._handler(signal))

    def _handler(self, signal: Signal):
        def handle(payload: object) -> None:
            self.events.append((signal, payload))

        return handle

    def of(self, signal: Signal) -> list[object]:
        return [payload for kind, payload in self.events if kind is signal]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bus() -> SignalBus:
    return SignalBus()


@pytest.fixture
def recorder(bus: SignalBus) -> Recorder:
    return Recorder(bus)


@pytest.fixture
def timer_factory() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture
def store(tmp_path) -> SessionStore:
    store = SessionStore.open(tmp_path / "sessions.sqlite3")
    yield store
    store.close()


@pytest.fixture
def make_lifecycle(store, bus, clock, timer_factory):
    def build(**kwargs) -> SessionLifecycle:
        timer = CountdownTimer(bus, clock=clock.monotonic, background=False)
        monitor = ActivityMonitor(bus, clock=clock.now, timer_factory=timer_factory)
        return SessionLifecycle(
            kwargs.pop("store", store),
            bus=bus,
            timer=timer,
            monitor=monitor,
            clock=clock.now,
            **kwargs,
        )

    return build


@pytest.fixture
def lifecycle(make_lifecycle) -> SessionLifecycle:
    lc = make_lifecycle()
    yield lc
    lc.shutdown()
