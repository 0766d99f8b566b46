"""Document host interface and an in-memory implementation."""

from __future__ import annotations

import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, runtime_checkable

LOGGER = logging.getLogger(__name__)

ChangeListener = Callable[["DocumentHost", Any], None]


def _hash_text(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


@dataclass(slots=True, frozen=True)
class CursorPosition:
    """Zero-based line/column cursor location."""

    line: int = 0
    ch: int = 0


@runtime_checkable
class DocumentHost(Protocol):
    """Editor surface the trigger pipeline reads from and writes to."""

    def get_value(self) -> str: ...

    def set_value(self, text: str) -> None: ...

    def get_line(self, line: int) -> str: ...

    def get_cursor(self) -> CursorPosition: ...

    def set_cursor(self, position: CursorPosition) -> None: ...

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]: ...


@dataclass(slots=True)
class TextDocument:
    """Plain-text document that notifies subscribers on every edit."""

    text: str = ""
    cursor: CursorPosition = field(default_factory=CursorPosition)
    path: Optional[Path] = None
    view: Any = None
    document_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    version_id: int = 1
    content_hash: str = field(default_factory=str)
    _listeners: list[ChangeListener] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        if not self.content_hash:
            self.content_hash = _hash_text(self.text)

    def get_value(self) -> str:
        return self.text

    def set_value(self, text: str) -> None:
        """Replace the full document text and notify listeners."""

        self.text = text
        self.version_id += 1
        self.content_hash = _hash_text(text)
        self._notify()

    def get_line(self, line: int) -> str:
        lines = self.text.split("\n")
        if line < 0 or line >= len(lines):
            return ""
        return lines[line]

    def line_count(self) -> int:
        return self.text.count("\n") + 1

    def get_cursor(self) -> CursorPosition:
        return self.cursor

    def set_cursor(self, position: CursorPosition) -> None:
        line = min(max(position.line, 0), self.line_count() - 1)
        ch = min(max(position.ch, 0), len(self.get_line(line)))
        self.cursor = CursorPosition(line=line, ch=ch)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register ``listener``; the returned callable removes it again."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self, self.view)
            except Exception:  # pragma: no cover - listeners must not break edits
                LOGGER.exception("Document change listener %s failed", listener)
