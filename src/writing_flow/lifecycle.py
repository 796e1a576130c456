"""State machine for the live writing session."""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from datetime import datetime
from typing import Callable, Optional

from . import metrics
from .activity import ActivityMonitor
from .analyzer import AnalysisStrategy, HeuristicAnalyzer
from .config import SessionSettings
from .db import SessionStore
from .errors import AnalysisError, SessionAlreadyActive, SessionNotActive, SessionNotFound
from .guard import BackspaceGuard
from .models import (
    ActivityEvent,
    ActivityKind,
    AnalysisResult,
    SessionState,
    TimerState,
    WritingSession,
)
from .signals import Signal, SignalBus
from .timer import CountdownTimer

logger = logging.getLogger(__name__)


class SessionLifecycle:
    """Owns the live session and is the only writer of session state.

    Transitions::

        not_started -> active <-> paused -> completed
        active | paused -> cancelled

    Every public method runs under one re-entrant lock. Timer expiry and
    inactivity arrive as signals from background threads and are applied
    through :meth:`complete` and :meth:`record_idle`, never by touching the
    session directly.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        analyzer: Optional[AnalysisStrategy] = None,
        bus: Optional[SignalBus] = None,
        timer: Optional[CountdownTimer] = None,
        monitor: Optional[ActivityMonitor] = None,
        guard: Optional[BackspaceGuard] = None,
        settings: Optional[SessionSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.settings = settings or SessionSettings()
        self.bus = bus or SignalBus()
        self.analyzer = analyzer or HeuristicAnalyzer(
            short_text_word_threshold=self.settings.short_text_word_threshold
        )
        self.timer = timer or CountdownTimer(
            self.bus,
            default_duration=self.settings.default_duration.total_seconds(),
            tick_interval=self.settings.tick_interval.total_seconds(),
        )
        self.monitor = monitor or ActivityMonitor(
            self.bus,
            threshold=self.settings.inactivity_threshold.total_seconds(),
            clock=clock,
        )
        self.guard = guard or BackspaceGuard()
        self._clock = clock
        self._lock = threading.RLock()
        self._current: Optional[WritingSession] = None
        # Wall-clock marks for the live session; lost on restart.
        self._segment_start: Optional[datetime] = None
        self._paused_at: Optional[datetime] = None
        self._last_content_at: Optional[datetime] = None
        self._subscriptions = [
            self.bus.subscribe(Signal.TIMER_EXPIRED, self._on_timer_expired),
            self.bus.subscribe(Signal.INACTIVITY, self._on_inactivity),
        ]

    @property
    def timer_state(self) -> TimerState:
        return self.timer.state

    @property
    def guard_engaged(self) -> bool:
        return self.guard.engaged

    def start(
        self,
        target_duration: Optional[float] = None,
        title: Optional[str] = None,
    ) -> WritingSession:
        with self._lock:
            duration = self.settings.clamp_duration(target_duration)
            if self.store.get_active() is not None:
                raise SessionAlreadyActive()

            now = self._clock()
            session = WritingSession(
                id=uuid.uuid4().hex,
                title=title or f"Writing Session {now.strftime('%Y-%m-%d %H:%M')}",
                start_time=now,
                target_duration=duration,
                state=SessionState.ACTIVE,
            )
            self.store.create(session)
            self._current = session
            self._segment_start = now
            self._paused_at = None
            self._last_content_at = now

            self.timer.start(duration)
            self.monitor.start(session.id)
            self.guard.engage()
            logger.info("Started session %s (%.0f seconds).", session.id, duration)
            self._publish_state(session)
            return session

    def pause(self, session_id: str) -> WritingSession:
        with self._lock:
            session = self._load(session_id)
            if session.state is not SessionState.ACTIVE:
                raise SessionNotActive(f"Cannot pause a session that is {session.state.value}")

            now = self._clock()
            session = dataclasses.replace(
                session,
                state=SessionState.PAUSED,
                duration=self._accumulated_duration(session, now),
                pause_count=session.pause_count + 1,
            )
            self._persist(session)
            self._segment_start = None
            self._paused_at = now

            self.timer.pause()
            self.guard.disengage()
            self._record(session.id, ActivityKind.PAUSE, now)
            logger.info("Paused session %s.", session.id)
            self._publish_state(session)
            return session

    def resume(self, session_id: str) -> WritingSession:
        with self._lock:
            session = self._load(session_id)
            if session.state is not SessionState.PAUSED:
                raise SessionNotActive(f"Cannot resume a session that is {session.state.value}")

            now = self._clock()
            session = dataclasses.replace(
                session,
                state=SessionState.ACTIVE,
                total_pause_duration=self._accumulated_pause(session, now),
            )
            self._persist(session)
            self._segment_start = now
            self._paused_at = None

            self.timer.resume()
            self.monitor.record_activity()
            self.guard.engage()
            self._record(session.id, ActivityKind.RESUME, now)
            logger.info("Resumed session %s.", session.id)
            self._publish_state(session)
            return session

    def complete(self, session_id: str) -> WritingSession:
        """Finish the session and attach an analysis of its final text.

        Completing an already finished session returns it unchanged, so a
        timer expiry racing a manual completion is harmless.
        """
        with self._lock:
            session = self._load(session_id)
            if session.state.is_terminal:
                return session

            session = self._finish(session, SessionState.COMPLETED)
            analysis = self._analyze(session)
            if analysis is not None:
                session = dataclasses.replace(session, analysis=analysis)
            return session

    def cancel(self, session_id: str) -> WritingSession:
        with self._lock:
            session = self._load(session_id)
            if not session.state.is_live:
                raise SessionNotActive(f"Cannot cancel a session that is {session.state.value}")
            return self._finish(session, SessionState.CANCELLED)

    def update_content(self, session_id: str, content: str) -> WritingSession:
        with self._lock:
            session = self._load(session_id)
            if session.state.is_terminal:
                raise SessionNotActive(f"Cannot edit a session that is {session.state.value}")

            now = self._clock()
            previous = self._last_content_at or now
            characters = metrics.character_count(content)
            delta = abs(characters - session.character_count)
            session = dataclasses.replace(
                session,
                content=content,
                word_count=metrics.word_count(content),
                character_count=characters,
                average_typing_speed=metrics.typing_speed(
                    delta, (now - previous).total_seconds()
                ),
                duration=self._accumulated_duration(session, now),
            )
            self._persist(session)
            if session.state is SessionState.ACTIVE:
                self._segment_start = now
            self._last_content_at = now
            self.monitor.record_activity()
            return session

    def apply_edit(self, session_id: str, content: str) -> tuple[WritingSession, bool]:
        """Apply an edit if the forward-only rule allows it.

        Returns the resulting session and whether the edit was accepted. A
        rejected edit leaves the session untouched; the caller should revert
        its text to ``session.content``.
        """
        with self._lock:
            session = self._load(session_id)
            if self.guard.check(session.content, content):
                return self.update_content(session_id, content), True

            now = self._clock()
            self._record(
                session.id,
                ActivityKind.BACKSPACE,
                now,
                detail=f"{len(session.content)}->{len(content)}",
            )
            self.monitor.record_activity()
            self.bus.publish(Signal.BACKSPACE_REJECTED, session.id)
            return session, False

    def current_active(self) -> Optional[WritingSession]:
        with self._lock:
            if self._current is not None:
                return self._current
            session = self.store.get_active()
            if session is not None:
                self._adopt(session)
            return session

    def get(self, session_id: str) -> WritingSession:
        with self._lock:
            return self._load(session_id)

    def analysis_for(self, session_id: str) -> Optional[AnalysisResult]:
        return self.store.get_analysis(session_id)

    def record_idle(self, session_id: str) -> None:
        with self._lock:
            if self._current is None or self._current.id != session_id:
                return
            self._record(session_id, ActivityKind.IDLE, self._clock())

    def shutdown(self) -> None:
        """Stop background work; the live session stays live in the store."""
        with self._lock:
            self.timer.stop()
            self.monitor.stop()
            self.guard.disengage()
            for token in self._subscriptions:
                self.bus.unsubscribe(token)
            self._subscriptions = []
            self._current = None

    def _load(self, session_id: str) -> WritingSession:
        if self._current is not None and self._current.id == session_id:
            return self._current
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        if self._current is None and session.state.is_live:
            self._adopt(session)
        return session

    def _adopt(self, session: WritingSession) -> None:
        """Take over a live session left in the store by an earlier process.

        The countdown restarts from the unused part of the target duration.
        Time that passed while no process owned the session is not counted.
        """
        now = self._clock()
        remaining = max(
            session.target_duration - session.duration,
            self.settings.tick_interval.total_seconds(),
        )
        self._current = session
        self._last_content_at = now
        self.timer.start(remaining)
        self.monitor.start(session.id)
        if session.state is SessionState.ACTIVE:
            self._segment_start = now
            self._paused_at = None
            self.guard.engage()
        else:
            self._segment_start = None
            self._paused_at = now
            self.timer.pause()
            self.guard.disengage()
        logger.info(
            "Recovered %s session %s with %.0f seconds left.",
            session.state.value,
            session.id,
            remaining,
        )

    def _persist(self, session: WritingSession) -> None:
        self.store.update(session)
        if session.state.is_live:
            self._current = session
        elif self._current is not None and self._current.id == session.id:
            self._current = None

    def _finish(self, session: WritingSession, state: SessionState) -> WritingSession:
        now = self._clock()
        session = dataclasses.replace(
            session,
            state=state,
            end_time=now,
            duration=self._accumulated_duration(session, now),
            total_pause_duration=self._accumulated_pause(session, now),
        )
        self._persist(session)
        self._segment_start = None
        self._paused_at = None
        self._last_content_at = None

        self.timer.stop()
        self.monitor.stop()
        self.guard.disengage()
        logger.info("Session %s %s after %.0f seconds.", session.id, state.value, session.duration)
        self._publish_state(session)
        return session

    def _analyze(self, session: WritingSession) -> Optional[AnalysisResult]:
        try:
            result = self.analyzer.analyze(session.content)
        except AnalysisError as exc:
            logger.warning("Analysis of session %s failed: %s", session.id, exc)
            self.bus.publish(Signal.ANALYSIS_FAILED, (session.id, exc))
            return None
        self.store.save_analysis(session.id, result, generated_at=self._clock())
        self.bus.publish(Signal.ANALYSIS_READY, (session.id, result))
        return result

    def _accumulated_duration(self, session: WritingSession, now: datetime) -> float:
        if session.state is not SessionState.ACTIVE:
            return session.duration
        # A session reloaded after a restart has no segment mark yet.
        start = self._segment_start or now
        return session.duration + max(0.0, (now - start).total_seconds())

    def _accumulated_pause(self, session: WritingSession, now: datetime) -> float:
        if session.state is not SessionState.PAUSED or self._paused_at is None:
            return session.total_pause_duration
        return session.total_pause_duration + max(0.0, (now - self._paused_at).total_seconds())

    def _record(
        self,
        session_id: str,
        kind: ActivityKind,
        timestamp: datetime,
        detail: Optional[str] = None,
    ) -> None:
        self.store.record_activity(
            ActivityEvent(session_id=session_id, timestamp=timestamp, kind=kind, detail=detail)
        )

    def _publish_state(self, session: WritingSession) -> None:
        self.bus.publish(Signal.SESSION_STATE_CHANGED, session)

    def _on_timer_expired(self, _state: TimerState) -> None:
        with self._lock:
            session = self._current
            if session is None or not session.state.is_live:
                return
            # An expiry published just before a manual finish and a new start
            # belongs to the previous run; the restarted timer is not expired.
            if not self.timer.state.is_expired:
                return
            logger.info("Time is up for session %s.", session.id)
            self.complete(session.id)

    def _on_inactivity(self, session_id: str) -> None:
        self.record_idle(session_id)
