"""Domain models for writing sessions and their analysis."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_live(self) -> bool:
        return self in (SessionState.ACTIVE, SessionState.PAUSED)

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.CANCELLED)


class Mood(str, Enum):
    ENTHUSIASTIC = "enthusiastic"
    FOCUSED = "focused"
    REFLECTIVE = "reflective"
    CREATIVE = "creative"
    ANALYTICAL = "analytical"
    NEUTRAL = "neutral"
    TIRED = "tired"
    STRESSED = "stressed"


class InsightKind(str, Enum):
    PRODUCTIVITY = "productivity"
    CONSISTENCY = "consistency"
    CREATIVITY = "creativity"
    STRUCTURE = "structure"
    VOCABULARY = "vocabulary"
    FLOW = "flow"
    MOOD = "mood"


class ActivityKind(str, Enum):
    TYPING = "typing"
    PAUSE = "pause"
    RESUME = "resume"
    BACKSPACE = "backspace"
    IDLE = "idle"


@dataclass(slots=True, frozen=True)
class Insight:
    """A single observation about a piece of writing."""

    kind: InsightKind
    title: str
    description: str
    confidence: float
    actionable: bool = False
    suggestions: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "title": self.title,
            "description": self.description,
            "confidence": self.confidence,
            "actionable": self.actionable,
            "suggestions": list(self.suggestions),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Insight":
        return cls(
            kind=InsightKind(data["kind"]),
            title=data["title"],
            description=data["description"],
            confidence=float(data["confidence"]),
            actionable=bool(data.get("actionable", False)),
            suggestions=tuple(data.get("suggestions", ())),
        )


@dataclass(slots=True, frozen=True)
class AnalysisResult:
    """Outcome of analyzing the final text of a session.

    Results are immutable once produced. ``themes`` keeps the order in which
    themes were detected and never contains duplicates.
    """

    mood: Mood
    themes: tuple[str, ...]
    insights: tuple[Insight, ...]
    style: tuple[str, ...]
    suggestions: tuple[str, ...]
    word_count: int
    readability_score: float
    average_sentence_length: float
    summary: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "mood": self.mood.value,
            "themes": list(self.themes),
            "insights": [insight.to_dict() for insight in self.insights],
            "style": list(self.style),
            "suggestions": list(self.suggestions),
            "word_count": self.word_count,
            "readability_score": self.readability_score,
            "average_sentence_length": self.average_sentence_length,
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisResult":
        return cls(
            mood=Mood(data["mood"]),
            themes=tuple(data.get("themes", ())),
            insights=tuple(Insight.from_dict(item) for item in data.get("insights", ())),
            style=tuple(data.get("style", ())),
            suggestions=tuple(data.get("suggestions", ())),
            word_count=int(data["word_count"]),
            readability_score=float(data["readability_score"]),
            average_sentence_length=float(data["average_sentence_length"]),
            summary=data.get("summary", ""),
        )


@dataclass(slots=True)
class WritingSession:
    """One bounded writing attempt with a target duration."""

    id: str
    title: str
    start_time: datetime
    target_duration: float
    state: SessionState = SessionState.NOT_STARTED
    content: str = ""
    end_time: Optional[datetime] = None
    duration: float = 0.0
    word_count: int = 0
    character_count: int = 0
    average_typing_speed: float = 0.0
    pause_count: int = 0
    total_pause_duration: float = 0.0
    analysis: Optional[AnalysisResult] = field(default=None, compare=False)

    @property
    def formatted_duration(self) -> str:
        minutes, seconds = divmod(int(self.duration), 60)
        return f"{minutes}m {seconds}s"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration,
            "target_duration": self.target_duration,
            "state": self.state.value,
            "word_count": self.word_count,
            "character_count": self.character_count,
            "average_typing_speed": self.average_typing_speed,
            "pause_count": self.pause_count,
            "total_pause_duration": self.total_pause_duration,
            "analysis": self.analysis.to_dict() if self.analysis else None,
        }


class TimerPhase(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    PAUSED = "paused"
    EXPIRED = "expired"


@dataclass(slots=True, frozen=True)
class TimerState:
    """Snapshot of the countdown clock."""

    remaining_time: float
    is_running: bool = False
    is_paused: bool = False
    is_expired: bool = False
    last_update_time: float = 0.0

    @property
    def phase(self) -> TimerPhase:
        if self.is_expired:
            return TimerPhase.EXPIRED
        if self.is_running:
            return TimerPhase.RUNNING
        if self.is_paused:
            return TimerPhase.PAUSED
        return TimerPhase.NOT_STARTED


@dataclass(slots=True, frozen=True)
class ActivityState:
    session_id: Optional[str]
    last_activity_time: Optional[datetime]
    is_monitoring: bool


@dataclass(slots=True)
class ActivityEvent:
    """Something the writer did (or stopped doing) during a session."""

    session_id: str
    timestamp: datetime
    kind: ActivityKind
    detail: Optional[str] = None
