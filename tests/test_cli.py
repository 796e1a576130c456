from datetime import datetime, timedelta

import pytest
from typer.testing import CliRunner

from writing_flow.analyzer import HeuristicAnalyzer
from writing_flow.cli import app
from writing_flow.db import SessionStore
from writing_flow.models import SessionState, WritingSession

runner = CliRunner()

START = datetime(2024, 5, 1, 9, 0, 0)


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("WRITING_FLOW_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "sessions.sqlite3"
    store = SessionStore.open(path)
    store.create(
        WritingSession(
            id="aaaa1111",
            title="Morning pages",
            start_time=START,
            target_duration=900,
            state=SessionState.COMPLETED,
            content="I think about my goals every morning.",
            end_time=START + timedelta(minutes=15),
            duration=900,
            word_count=7,
        )
    )
    store.save_analysis("aaaa1111", HeuristicAnalyzer().analyze("I think about my goals every morning."))
    store.create(
        WritingSession(
            id="bbbb2222",
            title="Evening notes",
            start_time=START + timedelta(days=1),
            target_duration=600,
            state=SessionState.CANCELLED,
            content="Short one.",
            duration=120,
            word_count=2,
        )
    )
    store.close()
    return path


def test_history_lists_newest_first(db_path):
    result = runner.invoke(app, ["history", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert lines[0].startswith("bbbb2222")
    assert lines[1].startswith("aaaa1111")


def test_history_date_filter(db_path):
    result = runner.invoke(
        app, ["history", "--start", "2024-05-01", "--end", "2024-05-01", "--db", str(db_path)]
    )
    assert result.exit_code == 0, result.output
    assert "aaaa1111" in result.output
    assert "bbbb2222" not in result.output


def test_history_rejects_bad_date(db_path):
    result = runner.invoke(app, ["history", "--start", "yesterday", "--db", str(db_path)])
    assert result.exit_code != 0


def test_show_includes_analysis(db_path):
    result = runner.invoke(app, ["show", "aaaa1111", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "Morning pages" in result.output
    assert "Mood:        reflective" in result.output


def test_show_missing(db_path):
    result = runner.invoke(app, ["show", "zzzz", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_search(db_path):
    result = runner.invoke(app, ["search", "EVENING", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "bbbb2222" in result.output
    assert "aaaa1111" not in result.output


def test_stats(db_path):
    result = runner.invoke(app, ["stats", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "Sessions:   2 (1 completed)" in result.output
    assert "Words:      9" in result.output


def test_delete(db_path):
    result = runner.invoke(app, ["delete", "bbbb2222", "--yes", "--db", str(db_path)])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["delete", "bbbb2222", "--yes", "--db", str(db_path)])
    assert result.exit_code == 1


def test_analyze_file(tmp_path):
    source = tmp_path / "draft.txt"
    source.write_text("I am so excited to create new ideas today.", encoding="utf-8")
    result = runner.invoke(app, ["analyze", str(source)])
    assert result.exit_code == 0, result.output
    assert "Mood:        enthusiastic" in result.output
    assert "ideas" in result.output


def test_analyze_empty_file(tmp_path):
    source = tmp_path / "empty.txt"
    source.write_text("   \n", encoding="utf-8")
    result = runner.invoke(app, ["analyze", str(source)])
    assert result.exit_code == 1


def test_write_session_until_input_ends(tmp_path):
    db_path = tmp_path / "write.sqlite3"
    result = runner.invoke(
        app,
        ["write", "--minutes", "1", "--title", "Quick draft", "--db", str(db_path)],
        input="Hello world\nMore text\n",
    )
    assert result.exit_code == 0, result.output
    assert "started" in result.output
    assert "State:     completed" in result.output
    assert "Words:     4" in result.output

    store = SessionStore.open(db_path)
    try:
        (listed,) = store.list_sessions()
        session = store.get(listed.id)
    finally:
        store.close()
    assert session.title == "Quick draft"
    assert session.content == "Hello world\nMore text"
    assert session.analysis is not None


def test_write_refuses_second_live_session(tmp_path):
    db_path = tmp_path / "write.sqlite3"
    store = SessionStore.open(db_path)
    store.create(
        WritingSession(
            id="live",
            title="Still going",
            start_time=START,
            target_duration=900,
            state=SessionState.PAUSED,
        )
    )
    store.close()

    result = runner.invoke(app, ["write", "--db", str(db_path)], input="")
    assert result.exit_code == 1
    assert "already active" in result.output
