"""Detects trigger spans such as ``@[summarize the above]`` inside a document."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ..ai.errors import ConfigurationError, ErrorCode
from ..services.telemetry import emit
from .document_model import DocumentHost

__all__ = [
    "DEFAULT_TRIGGER_REGEX",
    "TriggerMatch",
    "compile_trigger_pattern",
    "resolve_trigger_pattern",
    "find_trigger",
    "find_trigger_in_line",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_TRIGGER_REGEX = r"@\[(.*?)\]"


@dataclass(slots=True, frozen=True)
class TriggerMatch:
    """A detected trigger; offsets index the document at detection time."""

    full_text: str
    payload: str
    start_offset: int
    end_offset: int


def compile_trigger_pattern(source: str) -> re.Pattern[str]:
    """Compile ``source``, requiring exactly one capture group for the payload."""

    try:
        pattern = re.compile(source)
    except (re.error, TypeError) as exc:
        raise ConfigurationError(
            error_code=ErrorCode.INVALID_PATTERN,
            message=f"Trigger pattern {source!r} is not a valid regular expression: {exc}",
            details={"pattern": source},
            suggestion="Fix the trigger regex in the settings",
        ) from exc
    if pattern.groups != 1:
        raise ConfigurationError(
            error_code=ErrorCode.INVALID_PATTERN,
            message=f"Trigger pattern {source!r} must have exactly one capture group (found {pattern.groups})",
            details={"pattern": source},
            suggestion="Wrap the payload part of the pattern in a single (...) group",
        )
    return pattern


def resolve_trigger_pattern(source: str | None) -> re.Pattern[str]:
    """Compile ``source`` or fall back to the default pattern."""

    if not source:
        return re.compile(DEFAULT_TRIGGER_REGEX)
    try:
        return compile_trigger_pattern(source)
    except ConfigurationError as exc:
        LOGGER.warning("%s; falling back to %s", exc.message, DEFAULT_TRIGGER_REGEX)
        emit("trigger.pattern_invalid", {"pattern": source})
        return re.compile(DEFAULT_TRIGGER_REGEX)


def find_trigger(text: str, pattern: str | re.Pattern[str], *, offset: int = 0) -> TriggerMatch | None:
    """Return the first trigger in ``text`` in document order, or ``None``.

    A malformed ``pattern`` is logged and treated as no match. ``offset`` is
    added to the reported offsets when ``text`` is a slice of a larger document.
    """

    if isinstance(pattern, str):
        try:
            pattern = re.compile(pattern)
        except re.error as exc:
            LOGGER.warning("Ignoring malformed trigger pattern %r: %s", pattern, exc)
            emit("trigger.pattern_invalid", {"pattern": pattern})
            return None

    found = pattern.search(text)
    if found is None:
        return None
    full_text = found.group(0)
    payload = found.group(1) if pattern.groups else full_text
    return TriggerMatch(
        full_text=full_text,
        payload=(payload or "").strip(),
        start_offset=offset + found.start(),
        end_offset=offset + found.end(),
    )


def find_trigger_in_line(
    document: DocumentHost, pattern: str | re.Pattern[str], line: int | None = None
) -> TriggerMatch | None:
    """Search only one line (the cursor line by default)."""

    if line is None:
        line = document.get_cursor().line
    content = document.get_line(line)
    text = document.get_value()
    line_start = 0
    for _ in range(line):
        newline = text.find("\n", line_start)
        if newline < 0:
            return None
        line_start = newline + 1
    return find_trigger(content, pattern, offset=line_start)
