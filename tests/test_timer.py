import threading

import pytest

from writing_flow.errors import InvalidDuration
from writing_flow.models import TimerPhase
from writing_flow.signals import Signal
from writing_flow.timer import CountdownTimer


@pytest.fixture
def timer(bus, clock):
    return CountdownTimer(bus, clock=clock.monotonic, background=False)


def run_ticks(timer, clock, seconds):
    for _ in range(seconds):
        clock.advance(1)
        timer.tick()


def test_initial_state_is_not_started(timer):
    state = timer.state
    assert state.phase is TimerPhase.NOT_STARTED
    assert state.remaining_time == 900


def test_expires_exactly_once(timer, clock, recorder):
    timer.start(900)
    run_ticks(timer, clock, 901)

    state = timer.state
    assert state.remaining_time == 0
    assert state.is_expired
    assert not state.is_running
    assert len(recorder.of(Signal.TIMER_EXPIRED)) == 1


def test_pause_does_not_charge_paused_time(timer, clock):
    timer.start(900)
    run_ticks(timer, clock, 10)
    timer.pause()
    assert timer.state.phase is TimerPhase.PAUSED

    clock.advance(500)
    timer.tick()
    timer.resume()
    assert timer.state.remaining_time == 890

    run_ticks(timer, clock, 1)
    assert timer.state.remaining_time == 889


def test_late_ticks_converge(timer, clock):
    timer.start(60)
    clock.advance(2.5)
    timer.tick()
    clock.advance(7.5)
    timer.tick()
    assert timer.state.remaining_time == pytest.approx(50)


def test_single_late_tick_past_deadline_expires(timer, clock, recorder):
    timer.start(60)
    clock.advance(75)
    timer.tick()
    assert timer.state.remaining_time == 0
    assert timer.state.is_expired
    assert len(recorder.of(Signal.TIMER_EXPIRED)) == 1


def test_snapshot_published_on_every_change(timer, clock, recorder):
    timer.start(120)
    timer.pause()
    timer.resume()
    clock.advance(1)
    timer.tick()
    timer.stop()

    phases = [state.phase for state in recorder.of(Signal.TIMER_CHANGED)]
    assert phases == [
        TimerPhase.RUNNING,
        TimerPhase.PAUSED,
        TimerPhase.RUNNING,
        TimerPhase.RUNNING,
        TimerPhase.NOT_STARTED,
    ]


def test_stop_resets_to_default_and_is_idempotent(timer, clock):
    timer.start(120)
    run_ticks(timer, clock, 5)
    timer.stop()
    timer.stop()
    timer.reset()
    state = timer.state
    assert state.remaining_time == timer.default_duration
    assert not (state.is_running or state.is_paused or state.is_expired)


def test_resume_only_from_paused(timer, clock):
    timer.resume()
    assert timer.state.phase is TimerPhase.NOT_STARTED
    timer.start(120)
    timer.resume()
    assert timer.state.phase is TimerPhase.RUNNING


def test_restart_allows_a_new_expiry(timer, clock, recorder):
    timer.start(60)
    run_ticks(timer, clock, 60)
    timer.start(60)
    run_ticks(timer, clock, 60)
    assert len(recorder.of(Signal.TIMER_EXPIRED)) == 2


def test_rejects_non_positive_duration(timer):
    with pytest.raises(InvalidDuration):
        timer.start(0)


def test_background_thread_delivers_expiry(bus):
    expired = threading.Event()
    bus.subscribe(Signal.TIMER_EXPIRED, lambda _state: expired.set())
    timer = CountdownTimer(bus, tick_interval=0.01)
    timer.start(0.05)
    assert expired.wait(timeout=5)
    assert timer.state.is_expired
