"""SQLite storage for writing sessions, their analyses and activity."""

from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from .errors import SessionNotFound, StoreUnavailable
from .models import (
    ActivityEvent,
    ActivityKind,
    AnalysisResult,
    SessionState,
    WritingSession,
)


DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"

_LIVE_STATES = (SessionState.ACTIVE.value, SessionState.PAUSED.value)

_SESSION_COLUMNS = """
    id,
    title,
    content,
    start_time,
    end_time,
    duration,
    target_duration,
    state,
    word_count,
    character_count,
    average_typing_speed,
    pause_count,
    total_pause_duration
"""


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    register_functions(conn)
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


def register_functions(conn: sqlite3.Connection) -> None:
    # SQLite's lower() folds ASCII only.
    conn.create_function("casefold", 1, _casefold, deterministic=True)


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS writing_sessions (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            content TEXT NOT NULL DEFAULT '',
            start_time TEXT NOT NULL,
            end_time TEXT,
            duration REAL NOT NULL DEFAULT 0,
            target_duration REAL NOT NULL,
            state TEXT NOT NULL,
            word_count INTEGER NOT NULL DEFAULT 0,
            character_count INTEGER NOT NULL DEFAULT 0,
            average_typing_speed REAL NOT NULL DEFAULT 0,
            pause_count INTEGER NOT NULL DEFAULT 0,
            total_pause_duration REAL NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS session_analyses (
            session_id TEXT PRIMARY KEY
                REFERENCES writing_sessions(id) ON DELETE CASCADE,
            payload TEXT NOT NULL,
            generated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS session_activity (
            id INTEGER PRIMARY KEY,
            session_id TEXT NOT NULL
                REFERENCES writing_sessions(id) ON DELETE CASCADE,
            timestamp TEXT NOT NULL,
            kind TEXT NOT NULL,
            detail TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_sessions_start_time
            ON writing_sessions(start_time);

        CREATE INDEX IF NOT EXISTS idx_sessions_state
            ON writing_sessions(state);

        CREATE INDEX IF NOT EXISTS idx_activity_session
            ON session_activity(session_id, timestamp);
        """
    )


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.strftime(DATETIME_FMT) if value is not None else None


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.strptime(value, DATETIME_FMT) if value else None


def _session_params(session: WritingSession) -> tuple:
    return (
        session.title,
        session.content,
        _format_time(session.start_time),
        _format_time(session.end_time),
        session.duration,
        session.target_duration,
        session.state.value,
        session.word_count,
        session.character_count,
        session.average_typing_speed,
        session.pause_count,
        session.total_pause_duration,
    )


def _row_to_session(row: sqlite3.Row) -> WritingSession:
    return WritingSession(
        id=row["id"],
        title=row["title"],
        content=row["content"],
        start_time=_parse_time(row["start_time"]),
        end_time=_parse_time(row["end_time"]),
        duration=row["duration"],
        target_duration=row["target_duration"],
        state=SessionState(row["state"]),
        word_count=row["word_count"],
        character_count=row["character_count"],
        average_typing_speed=row["average_typing_speed"],
        pause_count=row["pause_count"],
        total_pause_duration=row["total_pause_duration"],
    )


class SessionStore:
    """Record store for writing sessions, one row per session id.

    The connection is shared between the caller's thread and timer threads,
    so every statement runs under a lock. SQLite failures surface as
    :class:`StoreUnavailable`.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()

    @classmethod
    def open(cls, path: Path) -> "SessionStore":
        try:
            conn = open_database(Path(path), check_same_thread=False)
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Cannot open session store at {path}: {exc}") from exc
        return cls(conn)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as exc:
                raise StoreUnavailable(str(exc)) from exc

    def create(self, session: WritingSession) -> None:
        with self._cursor() as conn:
            conn.execute(
                f"""
                INSERT INTO writing_sessions ({_SESSION_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (session.id, *_session_params(session)),
            )

    def get(self, session_id: str) -> Optional[WritingSession]:
        with self._cursor() as conn:
            row = conn.execute(
                f"SELECT {_SESSION_COLUMNS} FROM writing_sessions WHERE id = ?",
                (session_id,),
            ).fetchone()
            if row is None:
                return None
            session = _row_to_session(row)
            session.analysis = self.get_analysis(session_id)
            return session

    def get_active(self) -> Optional[WritingSession]:
        """Return the live (active or paused) session, if any."""
        with self._cursor() as conn:
            row = conn.execute(
                f"""
                SELECT {_SESSION_COLUMNS} FROM writing_sessions
                WHERE state IN (?, ?)
                ORDER BY start_time DESC
                LIMIT 1
                """,
                _LIVE_STATES,
            ).fetchone()
        return _row_to_session(row) if row is not None else None

    def update(self, session: WritingSession) -> None:
        with self._cursor() as conn:
            cur = conn.execute(
                """
                UPDATE writing_sessions SET
                    title = ?,
                    content = ?,
                    start_time = ?,
                    end_time = ?,
                    duration = ?,
                    target_duration = ?,
                    state = ?,
                    word_count = ?,
                    character_count = ?,
                    average_typing_speed = ?,
                    pause_count = ?,
                    total_pause_duration = ?
                WHERE id = ?
                """,
                (*_session_params(session), session.id),
            )
            if cur.rowcount == 0:
                raise SessionNotFound(session.id)

    def delete(self, session_id: str) -> None:
        with self._cursor() as conn:
            cur = conn.execute("DELETE FROM writing_sessions WHERE id = ?", (session_id,))
            if cur.rowcount == 0:
                raise SessionNotFound(session_id)

    def list_sessions(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[WritingSession]:
        """Sessions started in ``[start, end)``, newest first."""
        clauses: list[str] = []
        params: list[object] = []
        if start is not None:
            clauses.append("start_time >= ?")
            params.append(_format_time(start))
        if end is not None:
            clauses.append("start_time < ?")
            params.append(_format_time(end))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._cursor() as conn:
            rows = conn.execute(
                f"""
                SELECT {_SESSION_COLUMNS} FROM writing_sessions
                {where}
                ORDER BY start_time DESC
                """,
                params,
            ).fetchall()
        return [_row_to_session(row) for row in rows]

    def search(self, query: str) -> list[WritingSession]:
        """Case-insensitive substring match over title and content."""
        needle = query.strip().casefold()
        if not needle:
            return []
        pattern = "%" + needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        with self._cursor() as conn:
            rows = conn.execute(
                f"""
                SELECT {_SESSION_COLUMNS} FROM writing_sessions
                WHERE casefold(title) LIKE ? ESCAPE '\\'
                   OR casefold(content) LIKE ? ESCAPE '\\'
                ORDER BY start_time DESC
                """,
                (pattern, pattern),
            ).fetchall()
        return [_row_to_session(row) for row in rows]

    def save_analysis(
        self,
        session_id: str,
        result: AnalysisResult,
        generated_at: Optional[datetime] = None,
    ) -> None:
        with self._cursor() as conn:
            exists = conn.execute(
                "SELECT 1 FROM writing_sessions WHERE id = ?", (session_id,)
            ).fetchone()
            if exists is None:
                raise SessionNotFound(session_id)
            conn.execute(
                """
                INSERT INTO session_analyses (session_id, payload, generated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                    payload = excluded.payload,
                    generated_at = excluded.generated_at
                """,
                (
                    session_id,
                    json.dumps(result.to_dict()),
                    _format_time(generated_at or datetime.now()),
                ),
            )

    def get_analysis(self, session_id: str) -> Optional[AnalysisResult]:
        with self._cursor() as conn:
            row = conn.execute(
                "SELECT payload FROM session_analyses WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        if row is None:
            return None
        return AnalysisResult.from_dict(json.loads(row["payload"]))

    def record_activity(self, event: ActivityEvent) -> None:
        with self._cursor() as conn:
            conn.execute(
                """
                INSERT INTO session_activity (session_id, timestamp, kind, detail)
                VALUES (?, ?, ?, ?)
                """,
                (
                    event.session_id,
                    _format_time(event.timestamp),
                    event.kind.value,
                    event.detail,
                ),
            )

    def fetch_activity(self, session_id: str) -> list[ActivityEvent]:
        with self._cursor() as conn:
            rows = conn.execute(
                """
                SELECT session_id, timestamp, kind, detail
                FROM session_activity
                WHERE session_id = ?
                ORDER BY timestamp, id
                """,
                (session_id,),
            ).fetchall()
        return [
            ActivityEvent(
                session_id=row["session_id"],
                timestamp=_parse_time(row["timestamp"]),
                kind=ActivityKind(row["kind"]),
                detail=row["detail"],
            )
            for row in rows
        ]
