"""Forward-only writing policy."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def validate_edit(old_text: str, new_text: str, enabled: bool) -> bool:
    """Return True if replacing ``old_text`` with ``new_text`` is allowed.

    While guarding is enabled an edit is allowed only if it does not shrink
    the text. This is a length check, not a diff: a same-length replacement
    passes. Rejected edits must be reverted by the caller.
    """
    if not enabled:
        return True
    return len(new_text) >= len(old_text)


class BackspaceGuard:
    """Tracks whether the forward-only rule is currently engaged."""

    def __init__(self) -> None:
        self._engaged = False

    @property
    def engaged(self) -> bool:
        return self._engaged

    def engage(self) -> None:
        if not self._engaged:
            self._engaged = True
            logger.debug("Backspace guard engaged.")

    def disengage(self) -> None:
        if self._engaged:
            self._engaged = False
            logger.debug("Backspace guard disengaged.")

    def check(self, old_text: str, new_text: str) -> bool:
        allowed = validate_edit(old_text, new_text, self._engaged)
        if not allowed:
            logger.debug(
                "Rejected backward edit (%d -> %d chars).", len(old_text), len(new_text)
            )
        return allowed
