"""Error types raised by the writing session engine."""

from __future__ import annotations


class WritingFlowError(Exception):
    """Base class for all engine errors."""


class SessionNotFound(WritingFlowError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session with ID {session_id} not found")
        self.session_id = session_id


class SessionAlreadyActive(WritingFlowError):
    def __init__(self) -> None:
        super().__init__("A session is already active")


class SessionNotActive(WritingFlowError):
    """The session is not in the state the requested transition needs."""

    def __init__(self, message: str = "Session is not active") -> None:
        super().__init__(message)


class InvalidDuration(WritingFlowError):
    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid session duration: {value!r}")
        self.value = value


class StoreUnavailable(WritingFlowError):
    """The session store could not complete an operation."""


class AnalysisError(WritingFlowError):
    """Base class for text analysis failures."""


class TextTooShort(AnalysisError):
    def __init__(self) -> None:
        super().__init__("Text is empty; nothing to analyze")


class AnalysisUnavailable(AnalysisError):
    """A model-backed analyzer could not produce a result."""
