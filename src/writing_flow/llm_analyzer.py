"""Model-backed analysis using Claude."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional

from anthropic import Anthropic, AnthropicError

from . import metrics
from .errors import AnalysisUnavailable, TextTooShort
from .models import AnalysisResult, Insight, InsightKind, Mood

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-opus-4-5-20251101"

MAX_TEXT_CHARS = 40000

ANALYSIS_PROMPT = """Analyze this piece of free writing produced during a timed focus session.

Word count: {word_count}

Provide a structured analysis with:
- summary: 1-2 sentence overview of what was written
- mood: the writer's mood (one of: {moods})
- themes: array of 1-5 short lowercase themes
- style: array of 1-4 short descriptors of the writing style
- suggestions: array of 1-3 concrete suggestions for the writer
- insights: array of objects with "kind" (one of: {kinds}), "title", "description",
  "confidence" (0.0-1.0), "actionable" (true/false) and "suggestions" (array)

Return ONLY a valid JSON object with these fields, no other text.

<writing>
{text}
</writing>"""


class ClaudeAnalyzer:
    """Analyze text with the Anthropic Messages API.

    Word count, sentence length and readability are always computed locally;
    the model only supplies the interpretive fields. Any failure to reach the
    model or to parse its answer raises :class:`AnalysisUnavailable`.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        *,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 1024,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self.model = model
        self.max_tokens = max_tokens

    def _get_client(self) -> Any:
        if self._client is None:
            api_key = self._api_key or os.environ.get("ANTHROPIC_API_KEY")
            if not api_key:
                raise AnalysisUnavailable("ANTHROPIC_API_KEY environment variable not set")
            self._client = Anthropic(api_key=api_key)
        return self._client

    def analyze(self, text: str) -> AnalysisResult:
        if not text.strip():
            raise TextTooShort()

        words = metrics.word_count(text)
        avg_sentence = metrics.average_sentence_length(text)
        if len(text) > MAX_TEXT_CHARS:
            text = text[:MAX_TEXT_CHARS] + "\n[TRUNCATED]"

        prompt = ANALYSIS_PROMPT.format(
            word_count=words,
            moods=", ".join(f'"{mood.value}"' for mood in Mood),
            kinds=", ".join(f'"{kind.value}"' for kind in InsightKind),
            text=text,
        )
        client = self._get_client()
        try:
            response = client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
            content = response.content[0].text
        except AnthropicError as exc:
            raise AnalysisUnavailable(f"API error: {exc}") from exc
        except (AttributeError, IndexError) as exc:
            raise AnalysisUnavailable("Unexpected response shape from model") from exc

        try:
            data = parse_json_object(content)
            return AnalysisResult(
                mood=_parse_mood(data.get("mood")),
                themes=_unique_strings(data.get("themes", ())),
                insights=tuple(_parse_insight(item) for item in data.get("insights", ())),
                style=_unique_strings(data.get("style", ())),
                suggestions=_unique_strings(data.get("suggestions", ())),
                word_count=words,
                readability_score=metrics.readability_score(avg_sentence),
                average_sentence_length=avg_sentence,
                summary=str(data.get("summary", "")),
            )
        except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as exc:
            raise AnalysisUnavailable(f"Failed to parse model response: {exc}") from exc


def parse_json_object(content: str) -> dict[str, Any]:
    """Extract a JSON object from a model reply, tolerating code fences."""
    content = content.strip()

    if "```" in content:
        parts = content.split("```")
        if len(parts) >= 2:
            content = parts[1]
            if content.startswith("json"):
                content = content[4:]
            content = content.strip()

    start = content.find("{")
    end = content.rfind("}")
    if start != -1 and end != -1 and end > start:
        content = content[start : end + 1]

    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def _parse_mood(value: Any) -> Mood:
    try:
        return Mood(str(value).strip().lower())
    except ValueError:
        logger.debug("Model returned unknown mood %r; using neutral.", value)
        return Mood.NEUTRAL


def _parse_insight(item: dict[str, Any]) -> Insight:
    try:
        kind = InsightKind(str(item.get("kind", "")).strip().lower())
    except ValueError:
        kind = InsightKind.FLOW
    confidence = min(1.0, max(0.0, float(item.get("confidence", 0.5))))
    return Insight(
        kind=kind,
        title=str(item["title"]),
        description=str(item.get("description", "")),
        confidence=confidence,
        actionable=bool(item.get("actionable", False)),
        suggestions=tuple(str(s) for s in item.get("suggestions", ())),
    )


def _unique_strings(values: Any) -> tuple[str, ...]:
    if isinstance(values, str):
        values = [values]
    seen: list[str] = []
    for value in values:
        text = str(value).strip()
        if text and text not in seen:
            seen.append(text)
    return tuple(seen)
