"""Tests for trigger detection."""

from __future__ import annotations

import re

import pytest

from autoscribe.ai.errors import ConfigurationError, ErrorCode
from autoscribe.editor.document_model import CursorPosition, TextDocument
from autoscribe.editor.trigger import (
    DEFAULT_TRIGGER_REGEX,
    compile_trigger_pattern,
    find_trigger,
    find_trigger_in_line,
    resolve_trigger_pattern,
)


def test_find_trigger_returns_first_match_with_offsets() -> None:
    text = "Intro @[first idea] then @[second idea]"

    match = find_trigger(text, DEFAULT_TRIGGER_REGEX)

    assert match is not None
    assert match.full_text == "@[first idea]"
    assert match.payload == "first idea"
    assert text[match.start_offset : match.end_offset] == match.full_text


@pytest.mark.parametrize("text", ["", "no trigger here", "@ [spaced] and @[unclosed"])
def test_find_trigger_returns_none_without_occurrences(text: str) -> None:
    assert find_trigger(text, DEFAULT_TRIGGER_REGEX) is None


def test_payload_is_stripped_but_full_text_is_verbatim() -> None:
    match = find_trigger("x @[  padded  ] y", re.compile(DEFAULT_TRIGGER_REGEX))

    assert match is not None
    assert match.payload == "padded"
    assert match.full_text == "@[  padded  ]"


def test_find_trigger_spans_multiple_lines_in_document_order() -> None:
    text = "line one\nline two @[expand]\n@[later]"

    match = find_trigger(text, DEFAULT_TRIGGER_REGEX)

    assert match is not None
    assert match.payload == "expand"
    assert match.start_offset == text.index("@[expand]")


def test_malformed_pattern_is_treated_as_no_match(recorded_events: list[dict]) -> None:
    assert find_trigger("@[x]", "@\\[(.*?") is None
    assert recorded_events[-1]["event"] == "trigger.pattern_invalid"


def test_custom_pattern_uses_first_group_as_payload() -> None:
    match = find_trigger("Please {{write a haiku}} now", r"\{\{(.+?)\}\}")

    assert match is not None
    assert match.payload == "write a haiku"
    assert match.full_text == "{{write a haiku}}"


def test_compile_trigger_pattern_rejects_invalid_regex() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        compile_trigger_pattern("@\\[(")

    assert excinfo.value.error_code == ErrorCode.INVALID_PATTERN


@pytest.mark.parametrize("source", [r"@\[.*?\]", r"@\[(a)(b)\]"])
def test_compile_trigger_pattern_requires_one_capture_group(source: str) -> None:
    with pytest.raises(ConfigurationError):
        compile_trigger_pattern(source)


def test_resolve_trigger_pattern_falls_back_to_default() -> None:
    assert resolve_trigger_pattern("(unclosed").pattern == DEFAULT_TRIGGER_REGEX
    assert resolve_trigger_pattern("").pattern == DEFAULT_TRIGGER_REGEX
    assert resolve_trigger_pattern(r"<<(.*?)>>").pattern == r"<<(.*?)>>"


def test_find_trigger_in_line_reports_document_offsets() -> None:
    document = TextDocument(text="@[ignored]\nsecond @[wanted]\nthird")
    document.set_cursor(CursorPosition(line=1, ch=0))

    match = find_trigger_in_line(document, DEFAULT_TRIGGER_REGEX)

    assert match is not None
    assert match.payload == "wanted"
    assert document.get_value()[match.start_offset : match.end_offset] == "@[wanted]"


def test_find_trigger_in_line_ignores_other_lines() -> None:
    document = TextDocument(text="@[elsewhere]\nplain line")

    assert find_trigger_in_line(document, DEFAULT_TRIGGER_REGEX, line=1) is None
