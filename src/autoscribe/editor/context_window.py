"""Bounded excerpt of the document around a trigger."""

from __future__ import annotations

from dataclasses import dataclass

from ..utils.file_io import compute_text_digest
from .trigger import TriggerMatch

__all__ = ["DEFAULT_WINDOW_SIZE", "ContextWindow", "build_window"]

DEFAULT_WINDOW_SIZE = 8000


@dataclass(slots=True, frozen=True)
class ContextWindow:
    """Document slice ``[start, end)`` sent to the backend as context."""

    text: str
    match_full_text: str
    start: int
    end: int
    digest: str

    def __len__(self) -> int:
        return self.end - self.start

    def matches(self, document_text: str) -> bool:
        """Return ``True`` if ``document_text`` still holds this window unchanged."""

        return compute_text_digest(document_text[self.start : self.end]) == self.digest


def build_window(text: str, match: TriggerMatch, window_size: int) -> ContextWindow:
    """Take about ``window_size / 2`` characters either side of ``match``.

    The window is clamped to the document, so near either edge it is simply
    shorter and asymmetric. ``window_size`` counts characters, not tokens.
    """

    half = max(window_size, 0) // 2
    start = max(match.start_offset - half, 0)
    end = min(match.end_offset + half, len(text))
    start = min(start, end)
    excerpt = text[start:end]
    return ContextWindow(
        text=excerpt,
        match_full_text=match.full_text,
        start=start,
        end=end,
        digest=compute_text_digest(excerpt),
    )
