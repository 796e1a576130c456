import sqlite3
from datetime import datetime, timedelta

import pytest

from writing_flow.analyzer import HeuristicAnalyzer
from writing_flow.db import SessionStore
from writing_flow.errors import SessionNotFound, StoreUnavailable
from writing_flow.models import ActivityEvent, ActivityKind, SessionState, WritingSession


def make_session(session_id, start, state=SessionState.COMPLETED, **fields):
    return WritingSession(
        id=session_id,
        title=fields.pop("title", f"Session {session_id}"),
        start_time=start,
        target_duration=900,
        state=state,
        **fields,
    )


START = datetime(2024, 5, 1, 9, 0, 0)


def test_create_and_get_round_trip(store):
    session = make_session(
        "s1",
        START,
        content="Hello there.",
        end_time=START + timedelta(minutes=15),
        duration=880.5,
        word_count=2,
        character_count=12,
        average_typing_speed=42.0,
        pause_count=1,
        total_pause_duration=19.5,
    )
    store.create(session)
    assert store.get("s1") == session


def test_get_unknown_returns_none(store):
    assert store.get("missing") is None


def test_get_active_returns_live_sessions_only(store):
    store.create(make_session("done", START))
    assert store.get_active() is None

    store.create(make_session("paused", START + timedelta(hours=1), SessionState.PAUSED))
    assert store.get_active().id == "paused"


def test_update_and_missing_update(store):
    session = make_session("s1", START, SessionState.ACTIVE)
    store.create(session)
    session.content = "More words here"
    session.state = SessionState.PAUSED
    store.update(session)
    assert store.get("s1").content == "More words here"
    assert store.get("s1").state is SessionState.PAUSED

    with pytest.raises(SessionNotFound):
        store.update(make_session("ghost", START))


def test_delete_removes_session_and_analysis(store):
    store.create(make_session("s1", START, content="Some text."))
    store.save_analysis("s1", HeuristicAnalyzer().analyze("Some text."))
    store.delete("s1")
    assert store.get("s1") is None
    assert store.get_analysis("s1") is None
    with pytest.raises(SessionNotFound):
        store.delete("s1")


def test_list_sessions_by_date_range(store):
    for index in range(3):
        store.create(make_session(f"s{index}", START + timedelta(days=index)))

    assert [s.id for s in store.list_sessions()] == ["s2", "s1", "s0"]
    window = store.list_sessions(START + timedelta(days=1), START + timedelta(days=2))
    assert [s.id for s in window] == ["s1"]


def test_search_matches_title_or_content(store):
    store.create(make_session("a", START, title="Morning pages", content="coffee"))
    store.create(make_session("b", START + timedelta(hours=1), content="Evening MORNING notes"))
    store.create(make_session("c", START + timedelta(hours=2), content="unrelated"))

    assert [s.id for s in store.search("morning")] == ["b", "a"]
    assert store.search("   ") == []
    assert store.search("100%") == []


def test_search_folds_non_ascii_case(store):
    store.create(make_session("de", START, title="Über Ideen", content="Die STRASSE am Morgen"))
    store.create(make_session("en", START + timedelta(hours=1), title="Plain notes"))

    assert [s.id for s in store.search("Über")] == ["de"]
    assert [s.id for s in store.search("über")] == ["de"]
    assert [s.id for s in store.search("ÜBER IDEEN")] == ["de"]
    assert [s.id for s in store.search("straße")] == ["de"]


def test_analysis_is_replaced(store):
    store.create(make_session("s1", START))
    first = HeuristicAnalyzer().analyze("First text.")
    second = HeuristicAnalyzer().analyze("An amazing second text!")
    store.save_analysis("s1", first)
    store.save_analysis("s1", second)
    assert store.get_analysis("s1") == second
    assert store.get("s1").analysis == second


def test_analysis_requires_session(store):
    with pytest.raises(SessionNotFound):
        store.save_analysis("missing", HeuristicAnalyzer().analyze("Text."))


def test_activity_events_in_order(store):
    store.create(make_session("s1", START))
    store.record_activity(ActivityEvent("s1", START + timedelta(seconds=5), ActivityKind.PAUSE))
    store.record_activity(
        ActivityEvent("s1", START + timedelta(seconds=1), ActivityKind.BACKSPACE, "10->8")
    )
    events = store.fetch_activity("s1")
    assert [e.kind for e in events] == [ActivityKind.BACKSPACE, ActivityKind.PAUSE]
    assert events[0].detail == "10->8"


def test_sqlite_errors_become_store_unavailable(tmp_path):
    conn = sqlite3.connect(tmp_path / "broken.sqlite3", check_same_thread=False)
    conn.row_factory = sqlite3.Row
    store = SessionStore(conn)
    with pytest.raises(StoreUnavailable):
        store.get("s1")
    conn.close()


def test_open_unreachable_path(tmp_path):
    with pytest.raises(StoreUnavailable):
        SessionStore.open(tmp_path / "missing-dir" / "sessions.sqlite3")
