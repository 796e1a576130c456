"""FastAPI application that exposes the writing session engine to a front end."""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .analyzer import build_analyzer
from .config import SessionSettings
from .db import SessionStore
from .errors import (
    SessionAlreadyActive,
    SessionNotActive,
    SessionNotFound,
    StoreUnavailable,
    WritingFlowError,
)
from .lifecycle import SessionLifecycle
from .models import TimerState, WritingSession
from .paths import get_db_path
from .reporting import compute_history_stats
from .signals import Signal, SignalLog

logger = logging.getLogger(__name__)


class StartPayload(BaseModel):
    target_duration: Optional[float] = None
    title: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class ContentPayload(BaseModel):
    content: str

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[SessionSettings] = None,
    use_llm: bool = False,
    lifecycle: Optional[SessionLifecycle] = None,
) -> FastAPI:
    """Instantiate the FastAPI application.

    A prepared ``lifecycle`` may be passed in; otherwise one is built over a
    SQLite store at ``db_path``.
    """
    resolved_settings = settings or SessionSettings()
    if lifecycle is None:
        resolved_db_path = Path(db_path or get_db_path())
        lifecycle = SessionLifecycle(
            SessionStore.open(resolved_db_path),
            analyzer=build_analyzer(use_llm),
            settings=resolved_settings,
        )
    else:
        resolved_db_path = Path(db_path) if db_path else None
        resolved_settings = lifecycle.settings
    signal_log = SignalLog(lifecycle.bus)

    app = FastAPI(title="Writing Flow", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.lifecycle = lifecycle
    app.state.signal_log = signal_log

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        lifecycle.current_active()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        signal_log.close()
        lifecycle.shutdown()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        current = request.app.state.lifecycle.current_active()
        return {
            "active_session_id": current.id if current else None,
            "guard_engaged": request.app.state.lifecycle.guard_engaged,
            "timer": _timer_payload(request.app.state.lifecycle.timer_state),
            "database_path": str(request.app.state.db_path) if request.app.state.db_path else None,
            "default_duration_seconds": resolved_settings.default_duration.total_seconds(),
            "inactivity_seconds": resolved_settings.inactivity_threshold.total_seconds(),
        }

    @app.post("/api/sessions", status_code=201)
    def start_session(payload: StartPayload, request: Request) -> Dict[str, Any]:
        try:
            session = request.app.state.lifecycle.start(
                payload.target_duration, title=payload.title
            )
        except WritingFlowError as exc:
            _raise_http(exc)
        return session.to_dict()

    @app.get("/api/sessions")
    def list_sessions(
        request: Request,
        start: Optional[str] = Query(
            default=None,
            description="Start date in YYYY-MM-DD format (inclusive).",
        ),
        end: Optional[str] = Query(
            default=None,
            description="End date in YYYY-MM-DD format (inclusive).",
        ),
    ) -> Dict[str, Any]:
        start_day = _parse_date(start) if start else None
        end_day = _parse_date(end) if end else None
        if start_day and end_day and end_day < start_day:
            raise HTTPException(
                status_code=400, detail="end date must be on or after start date"
            )
        try:
            sessions = request.app.state.lifecycle.store.list_sessions(
                start_day, end_day + timedelta(days=1) if end_day else None
            )
        except WritingFlowError as exc:
            _raise_http(exc)
        return {"sessions": [_session_summary(session) for session in sessions]}

    @app.get("/api/sessions/search")
    def search_sessions(
        request: Request,
        q: str = Query(..., min_length=1, description="Text to find in title or content."),
    ) -> Dict[str, Any]:
        try:
            sessions = request.app.state.lifecycle.store.search(q)
        except WritingFlowError as exc:
            _raise_http(exc)
        return {"query": q, "sessions": [_session_summary(session) for session in sessions]}

    @app.get("/api/sessions/active")
    def active_session(request: Request) -> Dict[str, Any]:
        session = request.app.state.lifecycle.current_active()
        return {"session": session.to_dict() if session else None}

    @app.get("/api/sessions/{session_id}")
    def get_session(session_id: str, request: Request) -> Dict[str, Any]:
        try:
            session = request.app.state.lifecycle.get(session_id)
        except WritingFlowError as exc:
            _raise_http(exc)
        return session.to_dict()

    @app.delete("/api/sessions/{session_id}")
    def delete_session(session_id: str, request: Request) -> Dict[str, Any]:
        current = request.app.state.lifecycle.current_active()
        if current and current.id == session_id:
            raise HTTPException(
                status_code=409, detail="Finish the live session before deleting it"
            )
        try:
            request.app.state.lifecycle.store.delete(session_id)
        except WritingFlowError as exc:
            _raise_http(exc)
        return {"deleted": session_id}

    @app.post("/api/sessions/{session_id}/{action}")
    def transition(session_id: str, action: str, request: Request) -> Dict[str, Any]:
        lc: SessionLifecycle = request.app.state.lifecycle
        actions = {
            "pause": lc.pause,
            "resume": lc.resume,
            "complete": lc.complete,
            "cancel": lc.cancel,
        }
        handler = actions.get(action)
        if handler is None:
            raise HTTPException(status_code=404, detail=f"Unknown action {action!r}")
        try:
            session = handler(session_id)
        except WritingFlowError as exc:
            _raise_http(exc)
        return session.to_dict()

    @app.put("/api/sessions/{session_id}/content")
    def update_content(
        session_id: str, payload: ContentPayload, request: Request
    ) -> Dict[str, Any]:
        try:
            session, accepted = request.app.state.lifecycle.apply_edit(
                session_id, payload.content
            )
        except WritingFlowError as exc:
            _raise_http(exc)
        return {"accepted": accepted, "session": session.to_dict()}

    @app.get("/api/sessions/{session_id}/analysis")
    def get_analysis(session_id: str, request: Request) -> Dict[str, Any]:
        lc: SessionLifecycle = request.app.state.lifecycle
        try:
            lc.get(session_id)
            analysis = lc.analysis_for(session_id)
        except WritingFlowError as exc:
            _raise_http(exc)
        if analysis is None:
            raise HTTPException(status_code=404, detail="No analysis for this session")
        return analysis.to_dict()

    @app.get("/api/sessions/{session_id}/activity")
    def get_activity(session_id: str, request: Request) -> Dict[str, Any]:
        lc: SessionLifecycle = request.app.state.lifecycle
        try:
            lc.get(session_id)
            events = lc.store.fetch_activity(session_id)
        except WritingFlowError as exc:
            _raise_http(exc)
        return {
            "session_id": session_id,
            "events": [
                {
                    "timestamp": event.timestamp.isoformat(),
                    "kind": event.kind.value,
                    "detail": event.detail,
                }
                for event in events
            ],
        }

    @app.get("/api/timer")
    def timer(request: Request) -> Dict[str, Any]:
        return _timer_payload(request.app.state.lifecycle.timer_state)

    @app.get("/api/signals")
    def signals(
        request: Request,
        after: int = Query(default=0, ge=0, description="Last sequence number seen."),
    ) -> Dict[str, Any]:
        records = request.app.state.signal_log.since(after)
        return {
            "last_sequence": request.app.state.signal_log.last_sequence,
            "signals": [
                {
                    "sequence": record.sequence,
                    "signal": record.signal.value,
                    "payload": _signal_payload(record.signal, record.payload),
                }
                for record in records
            ],
        }

    @app.get("/api/stats")
    def stats(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format. Defaults to all sessions.",
        ),
    ) -> Dict[str, Any]:
        day = _parse_date(date) if date else None
        try:
            sessions = request.app.state.lifecycle.store.list_sessions(
                day, day + timedelta(days=1) if day else None
            )
        except WritingFlowError as exc:
            _raise_http(exc)
        return dataclasses.asdict(compute_history_stats(sessions))

    return app


def _raise_http(exc: WritingFlowError) -> NoReturn:
    if isinstance(exc, SessionNotFound):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, (SessionAlreadyActive, SessionNotActive)):
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if isinstance(exc, StoreUnavailable):
        logger.error("Session store unavailable: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    raise HTTPException(status_code=400, detail=str(exc)) from exc


def _parse_date(value: str) -> datetime:
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc
    return parsed


def _session_summary(session: WritingSession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "title": session.title,
        "state": session.state.value,
        "start_time": session.start_time.isoformat(),
        "end_time": session.end_time.isoformat() if session.end_time else None,
        "duration": session.duration,
        "formatted_duration": session.formatted_duration,
        "word_count": session.word_count,
    }


def _timer_payload(state: TimerState) -> Dict[str, Any]:
    return {
        "remaining_time": state.remaining_time,
        "is_running": state.is_running,
        "is_paused": state.is_paused,
        "is_expired": state.is_expired,
        "phase": state.phase.value,
    }


def _signal_payload(signal: Signal, payload: Any) -> Any:
    if isinstance(payload, TimerState):
        return _timer_payload(payload)
    if isinstance(payload, WritingSession):
        return _session_summary(payload)
    if signal is Signal.ANALYSIS_READY:
        session_id, result = payload
        return {"session_id": session_id, "analysis": result.to_dict()}
    if signal is Signal.ANALYSIS_FAILED:
        session_id, error = payload
        return {"session_id": session_id, "error": str(error)}
    return {"session_id": payload}
