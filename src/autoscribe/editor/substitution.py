"""Substitutes generated text for a trigger and computes the new cursor."""

from __future__ import annotations

import logging

from .context_window import ContextWindow
from .document_model import CursorPosition
from .trigger import TriggerMatch

__all__ = ["apply_replacement", "offset_to_position", "replace_match"]

LOGGER = logging.getLogger(__name__)


def offset_to_position(text: str, offset: int) -> CursorPosition:
    """Convert a character offset into a zero-based line/column position."""

    offset = min(max(offset, 0), len(text))
    line = text.count("\n", 0, offset)
    line_start = text.rfind("\n", 0, offset) + 1
    return CursorPosition(line=line, ch=offset - line_start)


def apply_replacement(
    text: str, match_full_text: str, replacement: str
) -> tuple[str, CursorPosition | None]:
    """Replace the first literal occurrence of ``match_full_text``.

    Returns the new text and the cursor position right after the inserted
    replacement. The cursor is derived from the insertion offset, not from a
    search for the replacement string, so it stays correct when the same text
    already appears earlier in the document. When the trigger text is no longer present the document is
    returned unchanged with a ``None`` cursor.
    """

    index = text.find(match_full_text) if match_full_text else -1
    if index < 0:
        LOGGER.info("Trigger text %r no longer present; nothing replaced", match_full_text)
        return text, None
    return _splice(text, index, index + len(match_full_text), replacement)


def replace_match(
    text: str,
    match: TriggerMatch,
    replacement: str,
    *,
    window: ContextWindow | None = None,
) -> tuple[str, CursorPosition | None]:
    """Replace ``match`` at its recorded offsets when they are still valid.

    The offsets are trusted only if the span still holds the trigger text and,
    when ``window`` is given, the surrounding window is unchanged. Otherwise
    the literal first-occurrence search of :func:`apply_replacement` is used.
    """

    start, end = match.start_offset, match.end_offset
    still_there = 0 <= start <= end <= len(text) and text[start:end] == match.full_text
    if still_there and (window is None or window.matches(text)):
        return _splice(text, start, end, replacement)
    LOGGER.debug("Recorded offsets for %r are stale; searching literally", match.full_text)
    return apply_replacement(text, match.full_text, replacement)


def _splice(text: str, start: int, end: int, replacement: str) -> tuple[str, CursorPosition]:
    new_text = text[:start] + replacement + text[end:]
    return new_text, offset_to_position(new_text, start + len(replacement))
