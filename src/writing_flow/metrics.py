"""Pure text statistics used by sessions and the analyzers.

Character counts are Unicode code points (``len(text)``), which can differ
from a grapheme-cluster count for text with combining marks or
multi-codepoint emoji.
"""

from __future__ import annotations

import re

_SENTENCE_BREAK = re.compile(r"[.!?]")

IDEAL_SENTENCE_LENGTH = 15.0


def word_count(text: str) -> int:
    return len(text.split())


def character_count(text: str) -> int:
    return len(text)


def typing_speed(characters_delta: float, seconds_elapsed: float) -> float:
    """Characters per minute over the given interval."""
    if seconds_elapsed <= 0:
        return 0.0
    return characters_delta / seconds_elapsed * 60.0


def sentences(text: str) -> list[str]:
    return [part for part in _SENTENCE_BREAK.split(text) if part.strip()]


def average_sentence_length(text: str) -> float:
    """Average number of words per sentence, 0 when there are no sentences."""
    parts = sentences(text)
    if not parts:
        return 0.0
    return word_count(text) / len(parts)


def readability_score(avg_sentence_length: float) -> float:
    """Score in [0, 100] penalizing distance from a 15-word sentence."""
    if avg_sentence_length <= 0:
        return 0.0
    score = 100.0 - 2.0 * abs(avg_sentence_length - IDEAL_SENTENCE_LENGTH)
    return max(0.0, min(100.0, score))


def average_word_length(text: str) -> float:
    words = text.split()
    if not words:
        return 0.0
    return sum(len(word) for word in words) / len(words)
