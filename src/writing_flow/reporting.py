"""Session history summaries for CLI output."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .models import AnalysisResult, SessionState, WritingSession


@dataclass(slots=True)
class HistoryStats:
    session_count: int = 0
    completed_count: int = 0
    total_words: int = 0
    total_seconds: float = 0.0
    average_words_per_minute: float = 0.0


def words_per_minute(words: int, seconds: float) -> float:
    if seconds <= 0:
        return 0.0
    return words / (seconds / 60.0)


def compute_history_stats(sessions: Iterable[WritingSession]) -> HistoryStats:
    stats = HistoryStats()
    for session in sessions:
        stats.session_count += 1
        if session.state is SessionState.COMPLETED:
            stats.completed_count += 1
        stats.total_words += session.word_count
        stats.total_seconds += session.duration
    stats.average_words_per_minute = words_per_minute(stats.total_words, stats.total_seconds)
    return stats


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class SummaryPrinter:
    """Render human-readable session summaries in the console."""

    def __init__(self, echo=print) -> None:
        self._echo = echo

    def print_sessions(self, sessions: list[WritingSession]) -> None:
        if not sessions:
            self._echo("No sessions recorded.")
            return
        for session in sessions:
            self._echo(
                f"{session.id[:8]}  {session.start_time.strftime('%Y-%m-%d %H:%M')}  "
                f"{session.state.value:<10} {session.word_count:>6} words  "
                f"{format_duration(session.duration)}  {session.title[:40]}"
            )

    def print_session(self, session: WritingSession) -> None:
        self._echo(session.title)
        self._echo("-" * 40)
        self._echo(f"ID:        {session.id}")
        self._echo(f"State:     {session.state.value}")
        self._echo(f"Started:   {session.start_time.strftime('%Y-%m-%d %H:%M:%S')}")
        if session.end_time:
            self._echo(f"Ended:     {session.end_time.strftime('%Y-%m-%d %H:%M:%S')}")
        self._echo(f"Duration:  {format_duration(session.duration)}")
        self._echo(f"Paused:    {session.pause_count}x, {format_duration(session.total_pause_duration)}")
        self._echo(f"Words:     {session.word_count}")
        self._echo(f"Chars:     {session.character_count}")
        if session.analysis:
            self._echo()
            self.print_analysis(session.analysis)

    def print_analysis(self, analysis: AnalysisResult) -> None:
        self._echo(f"Mood:        {analysis.mood.value}")
        self._echo(f"Themes:      {', '.join(analysis.themes)}")
        self._echo(f"Style:       {', '.join(analysis.style)}")
        self._echo(
            f"Readability: {analysis.readability_score:.0f}/100 "
            f"({analysis.average_sentence_length:.1f} words per sentence)"
        )
        if analysis.summary:
            self._echo(f"Summary:     {analysis.summary}")
        if analysis.insights:
            self._echo()
            self._echo("Insights:")
            for insight in analysis.insights:
                self._echo(f"  [{insight.kind.value}] {insight.title}: {insight.description}")
        if analysis.suggestions:
            self._echo()
            self._echo("Suggestions:")
            for suggestion in analysis.suggestions:
                self._echo(f"  - {suggestion}")

    def print_stats(self, stats: HistoryStats, label: Optional[str] = None) -> None:
        self._echo(f"Summary{' for ' + label if label else ''}")
        self._echo("-" * 40)
        self._echo(f"Sessions:   {stats.session_count} ({stats.completed_count} completed)")
        self._echo(f"Words:      {stats.total_words}")
        self._echo(f"Time:       {format_duration(stats.total_seconds)}")
        self._echo(f"Pace:       {stats.average_words_per_minute:.1f} words/min")
