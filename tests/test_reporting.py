from datetime import datetime, timedelta

import pytest

from writing_flow.analyzer import HeuristicAnalyzer
from writing_flow.models import SessionState, WritingSession
from writing_flow.reporting import (
    SummaryPrinter,
    compute_history_stats,
    format_duration,
    words_per_minute,
)

START = datetime(2024, 5, 1, 9, 0, 0)


def session(session_id, state, words, seconds, **fields):
    return WritingSession(
        id=session_id,
        title=fields.pop("title", "Morning pages"),
        start_time=START,
        target_duration=900,
        state=state,
        word_count=words,
        duration=seconds,
        **fields,
    )


def test_format_duration():
    assert format_duration(0) == "00:00:00"
    assert format_duration(59.6) == "00:01:00"
    assert format_duration(3725) == "01:02:05"


def test_words_per_minute():
    assert words_per_minute(300, 600) == pytest.approx(30.0)
    assert words_per_minute(300, 0) == 0.0


def test_history_stats():
    stats = compute_history_stats(
        [
            session("a", SessionState.COMPLETED, 200, 600),
            session("b", SessionState.CANCELLED, 40, 120),
            session("c", SessionState.COMPLETED, 160, 480),
        ]
    )
    assert stats.session_count == 3
    assert stats.completed_count == 2
    assert stats.total_words == 400
    assert stats.total_seconds == 1200
    assert stats.average_words_per_minute == pytest.approx(20.0)


def test_history_stats_empty():
    stats = compute_history_stats([])
    assert stats.session_count == 0
    assert stats.average_words_per_minute == 0.0


def test_print_sessions():
    lines = []
    SummaryPrinter(echo=lines.append).print_sessions([])
    assert lines == ["No sessions recorded."]

    lines.clear()
    SummaryPrinter(echo=lines.append).print_sessions(
        [session("abcdef123456", SessionState.COMPLETED, 12, 65)]
    )
    assert len(lines) == 1
    assert lines[0].startswith("abcdef12  2024-05-01 09:00  completed")
    assert "12 words" in lines[0]
    assert "00:01:05" in lines[0]


def test_print_session_with_analysis():
    text = "I feel amazing about my writing goals today."
    lines = []
    SummaryPrinter(echo=lambda line="": lines.append(line)).print_session(
        session(
            "abc",
            SessionState.COMPLETED,
            8,
            300,
            end_time=START + timedelta(minutes=5),
            analysis=HeuristicAnalyzer().analyze(text),
        )
    )
    output = "\n".join(lines)
    assert "Ended:     2024-05-01 09:05:00" in output
    assert "Mood:        enthusiastic" in output
    assert "Insights:" in output
    assert "[productivity] Session output" in output
    assert "Suggestions:" in output
