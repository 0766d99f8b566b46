"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Any, Iterator

import pytest

from autoscribe.services import telemetry


@pytest.fixture(autouse=True)
def _isolate_telemetry() -> Iterator[None]:
    telemetry.clear_event_listeners()
    yield
    telemetry.clear_event_listeners()


@pytest.fixture
def recorded_events() -> Iterator[list[dict[str, Any]]]:
    events: list[dict[str, Any]] = []
    names = (
        "trigger.detected",
        "trigger.declined",
        "trigger.pattern_invalid",
        "generation.completed",
        "generation.failed",
        "replacement.applied",
        "replacement.cancelled",
    )
    for name in names:
        telemetry.register_event_listener(name, events.append)
    yield events


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory) -> None:
    for name in (
        "AUTOSCRIBE_API_KEY",
        "AUTOSCRIBE_BASE_URL",
        "AUTOSCRIBE_MODEL",
        "AUTOSCRIBE_TRIGGER_REGEX",
        "AUTOSCRIBE_WINDOW_SIZE",
        "AUTOSCRIBE_DEBOUNCE_MS",
        "AUTOSCRIBE_REQUEST_TIMEOUT",
        "AUTOSCRIBE_DEBUG_LOGGING",
        "AUTOSCRIBE_DEBUG",
        "AUTOSCRIBE_SETTINGS_PATH",
        "AUTOSCRIBE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AUTOSCRIBE_LOG_DIR", str(tmp_path_factory.mktemp("logs")))
