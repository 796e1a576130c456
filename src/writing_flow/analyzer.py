"""Heuristic text analysis and the pluggable analyzer interface."""

from __future__ import annotations

import logging
import re
from typing import Optional, Protocol

from . import metrics
from .errors import AnalysisUnavailable, TextTooShort
from .models import AnalysisResult, Insight, InsightKind, Mood

logger = logging.getLogger(__name__)

# Checked in order; the first mood with any keyword present wins.
MOOD_KEYWORDS: tuple[tuple[Mood, tuple[str, ...]], ...] = (
    (Mood.ENTHUSIASTIC, ("excited", "amazing")),
    (Mood.FOCUSED, ("focus", "concentrate")),
    (Mood.REFLECTIVE, ("think", "reflect")),
    (Mood.CREATIVE, ("create", "imagine")),
    (Mood.ANALYTICAL, ("analyze", "examine")),
    (Mood.TIRED, ("tired", "exhausted")),
    (Mood.STRESSED, ("stress", "worry")),
)

THEME_VOCABULARY: tuple[str, ...] = (
    "creativity",
    "productivity",
    "mindfulness",
    "reflection",
    "planning",
    "goals",
    "ideas",
    "inspiration",
    "motivation",
    "focus",
    "routine",
    "habits",
    "growth",
    "learning",
)

DEFAULT_THEMES: tuple[str, ...] = ("writing", "practice")

DEFAULT_STYLE = "balanced style"

MOOD_SUGGESTIONS: dict[Mood, tuple[str, ...]] = {
    Mood.TIRED: (
        "Consider taking a short break to refresh your mind",
        "Try writing in a different environment",
    ),
    Mood.STRESSED: (
        "Consider taking a short break to refresh your mind",
        "Try writing in a different environment",
    ),
    Mood.NEUTRAL: (
        "Try adding more descriptive details to engage readers",
        "Consider varying sentence structure for better flow",
    ),
    Mood.CREATIVE: ("Great creative flow! Consider organizing ideas into sections",),
    Mood.FOCUSED: ("Excellent focus! Maintain this momentum",),
}

DEFAULT_SUGGESTIONS: tuple[str, ...] = ("Continue developing your unique voice",)

WRITE_MORE_SUGGESTION = "Try writing a little longer next time to let your ideas develop"

_PERSONAL_PRONOUNS = re.compile(
    r"\b(i|me|my|mine|myself|we|us|our|ours|you|your|yours)\b", re.IGNORECASE
)


class AnalysisStrategy(Protocol):
    def analyze(self, text: str) -> AnalysisResult:
        ...


class HeuristicAnalyzer:
    """Keyword and statistics based analysis.

    Output depends only on the input text, which keeps it usable as the
    fallback for model-backed analyzers and straightforward to test.
    """

    def __init__(self, short_text_word_threshold: int = 50) -> None:
        self.short_text_word_threshold = short_text_word_threshold

    def analyze(self, text: str) -> AnalysisResult:
        if not text.strip():
            raise TextTooShort()

        words = metrics.word_count(text)
        avg_sentence = metrics.average_sentence_length(text)
        lowered = text.lower()

        mood = detect_mood(lowered)
        themes = extract_themes(lowered)
        style = describe_style(text, avg_sentence)
        return AnalysisResult(
            mood=mood,
            themes=themes,
            insights=self._insights(words, themes, style),
            style=style,
            suggestions=self._suggestions(mood, words),
            word_count=words,
            readability_score=metrics.readability_score(avg_sentence),
            average_sentence_length=avg_sentence,
            summary=_summary_line(words, mood, themes),
        )

    def _insights(
        self, words: int, themes: tuple[str, ...], style: tuple[str, ...]
    ) -> tuple[Insight, ...]:
        insights = [
            Insight(
                kind=InsightKind.PRODUCTIVITY,
                title="Session output",
                description=f"You wrote {words} {'word' if words == 1 else 'words'} in this session.",
                confidence=0.95,
            )
        ]
        if themes != DEFAULT_THEMES:
            theme = themes[0]
            insights.append(
                Insight(
                    kind=InsightKind.CREATIVITY,
                    title=f"Recurring theme: {theme}",
                    description=f"Your writing keeps coming back to {theme}.",
                    confidence=0.7,
                    actionable=True,
                    suggestions=(f"Consider developing your thoughts on {theme} further",),
                )
            )
        if style != (DEFAULT_STYLE,):
            insights.append(
                Insight(
                    kind=_style_kind(style),
                    title="Writing style",
                    description="Your writing shows " + ", ".join(style) + ".",
                    confidence=0.6,
                )
            )
        return tuple(insights)

    def _suggestions(self, mood: Mood, words: int) -> tuple[str, ...]:
        suggestions = MOOD_SUGGESTIONS.get(mood, DEFAULT_SUGGESTIONS)
        if words < self.short_text_word_threshold:
            suggestions = suggestions + (WRITE_MORE_SUGGESTION,)
        return suggestions


class FallbackAnalyzer:
    """Use ``primary`` when it works and ``fallback`` when it is unavailable."""

    def __init__(
        self,
        primary: AnalysisStrategy,
        fallback: Optional[AnalysisStrategy] = None,
    ) -> None:
        self.primary = primary
        self.fallback = fallback or HeuristicAnalyzer()

    def analyze(self, text: str) -> AnalysisResult:
        if not text.strip():
            raise TextTooShort()
        try:
            return self.primary.analyze(text)
        except AnalysisUnavailable as exc:
            logger.warning("Primary analyzer unavailable (%s); using heuristics.", exc)
            return self.fallback.analyze(text)


def build_analyzer(use_llm: bool = False, api_key: Optional[str] = None) -> AnalysisStrategy:
    if not use_llm:
        return HeuristicAnalyzer()
    from .llm_analyzer import ClaudeAnalyzer

    return FallbackAnalyzer(ClaudeAnalyzer(api_key=api_key))


def detect_mood(lowered: str) -> Mood:
    for mood, keywords in MOOD_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return mood
    return Mood.NEUTRAL


def extract_themes(lowered: str) -> tuple[str, ...]:
    found = tuple(theme for theme in THEME_VOCABULARY if theme in lowered)
    return found or DEFAULT_THEMES


def describe_style(text: str, avg_sentence_length: float) -> tuple[str, ...]:
    style: list[str] = []
    avg_word = metrics.average_word_length(text)
    if avg_word > 6:
        style.append("sophisticated vocabulary")
    elif avg_word < 4:
        style.append("concise wording")
    if avg_sentence_length > 20:
        style.append("complex sentence structure")
    elif avg_sentence_length < 10:
        style.append("short, direct sentences")
    if _PERSONAL_PRONOUNS.search(text):
        style.append("personal tone")
    return tuple(style) or (DEFAULT_STYLE,)


def _style_kind(style: tuple[str, ...]) -> InsightKind:
    if "sophisticated vocabulary" in style or "concise wording" in style:
        return InsightKind.VOCABULARY
    if "complex sentence structure" in style or "short, direct sentences" in style:
        return InsightKind.STRUCTURE
    return InsightKind.FLOW


def _summary_line(words: int, mood: Mood, themes: tuple[str, ...]) -> str:
    return f"{words} words with a {mood.value} mood, touching on {', '.join(themes)}."
