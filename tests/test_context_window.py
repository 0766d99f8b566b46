"""Tests for context window selection."""

from __future__ import annotations

import pytest

from autoscribe.editor.context_window import build_window
from autoscribe.editor.trigger import DEFAULT_TRIGGER_REGEX, TriggerMatch, find_trigger


def _match_at(text: str, token: str) -> TriggerMatch:
    start = text.index(token)
    return TriggerMatch(full_text=token, payload=token[2:-1], start_offset=start, end_offset=start + len(token))


@pytest.mark.parametrize(
    ("prefix", "suffix", "window_size"),
    [
        (1000, 1000, 100),
        (10, 1000, 100),
        (1000, 10, 100),
        (3, 4, 100),
        (0, 0, 8000),
        (500, 500, 0),
    ],
)
def test_window_length_matches_clamped_bounds(prefix: int, suffix: int, window_size: int) -> None:
    token = "@[go]"
    text = "a" * prefix + token + "b" * suffix
    match = _match_at(text, token)
    half = window_size // 2

    window = build_window(text, match, window_size)

    expected = min(match.end_offset + half, len(text)) - max(match.start_offset - half, 0)
    assert len(window.text) == expected == len(window)
    assert len(window.text) <= window_size + len(token)
    assert 0 <= window.start <= window.end <= len(text)
    assert token in window.text


def test_window_is_centered_when_document_is_large() -> None:
    token = "@[center]"
    text = "x" * 5000 + token + "y" * 5000
    match = _match_at(text, token)

    window = build_window(text, match, 200)

    assert window.text == "x" * 100 + token + "y" * 100
    assert window.match_full_text == token


def test_window_covers_short_document_entirely() -> None:
    text = "Summary: @[summarize the above]"
    match = find_trigger(text, DEFAULT_TRIGGER_REGEX)
    assert match is not None

    window = build_window(text, match, 100)

    assert window.text == text
    assert (window.start, window.end) == (0, len(text))


def test_negative_window_size_yields_only_the_trigger() -> None:
    text = "before @[x] after"
    match = _match_at(text, "@[x]")

    window = build_window(text, match, -50)

    assert window.text == "@[x]"


def test_window_digest_detects_divergence() -> None:
    text = "alpha @[x] omega"
    window = build_window(text, _match_at(text, "@[x]"), 8)

    assert window.matches(text)
    assert not window.matches(text.replace("alpha", "ALPHA"))
