"""Tests for the command line host."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from autoscribe import app
from autoscribe.ai.ai_types import Replacement
from autoscribe.services.settings import Settings, SettingsStore
from autoscribe.ui.trigger_controller import CycleOutcome
from autoscribe.utils import file_io

from tests.helpers import RecordingPrompt, StubGenerator


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / "config" / "settings.json"


@pytest.fixture
def stub_client(monkeypatch: pytest.MonkeyPatch) -> StubGenerator:
    generator = StubGenerator(Replacement("generated text"))

    class _Client:
        def __init__(self, settings: Any) -> None:
            self.settings = settings

        async def generate(self, request: Any) -> Any:
            return await generator.generate(request)

        async def aclose(self) -> None:
            return None

    monkeypatch.setattr(app, "GenerationClient", _Client)
    return generator


@pytest.mark.asyncio
async def test_run_document_saves_replacement_preserving_newlines(tmp_path: Path, stub_client: StubGenerator) -> None:
    path = tmp_path / "note.md"
    path.write_bytes(b"# Title\r\n\r\nIntro @[write an intro]\r\n")
    prompt = RecordingPrompt()

    outcome = await app.run_document(path, Settings(api_key="k"), prompt=prompt)

    assert outcome is CycleOutcome.APPLIED
    assert prompt.payloads == ["write an intro"]
    assert path.read_bytes() == b"# Title\r\n\r\nIntro generated text\r\n"
    assert stub_client.requests[0].context_window == "# Title\n\nIntro @[write an intro]\n"


@pytest.mark.asyncio
async def test_run_document_leaves_file_alone_when_cancelled(tmp_path: Path, stub_client: StubGenerator) -> None:
    path = tmp_path / "note.md"
    path.write_text("Intro @[x]\n", encoding="utf-8")

    outcome = await app.run_document(path, Settings(), prompt=RecordingPrompt(accept_replacement=False))

    assert outcome is CycleOutcome.CANCELLED
    assert path.read_text(encoding="utf-8") == "Intro @[x]\n"


@pytest.mark.asyncio
async def test_run_document_line_option_limits_search(tmp_path: Path, stub_client: StubGenerator) -> None:
    path = tmp_path / "note.md"
    path.write_text("@[first]\nplain\n", encoding="utf-8")

    outcome = await app.run_document(path, Settings(), prompt=RecordingPrompt(), line=1)

    assert outcome is CycleOutcome.NO_MATCH
    assert stub_client.requests == []


@pytest.mark.asyncio
async def test_run_document_refuses_to_clobber_external_edit(tmp_path: Path, stub_client: StubGenerator) -> None:
    path = tmp_path / "note.md"
    path.write_text("Intro @[x]\n", encoding="utf-8")

    class _EditingPrompt(RecordingPrompt):
        async def confirm_replacement(self, candidate: str) -> bool:
            path.write_text("someone else typed here\n", encoding="utf-8")
            return await super().confirm_replacement(candidate)

    with pytest.raises(file_io.FileChangedError):
        await app.run_document(path, Settings(), prompt=_EditingPrompt())

    assert path.read_text(encoding="utf-8") == "someone else typed here\n"


def test_main_dump_settings_redacts_key(settings_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    SettingsStore(settings_path).save(Settings(api_key="sk-very-secret"))

    app.main(["--settings-path", str(settings_path), "--dump-settings", "--set", "window_size=64"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["settings"]["api_key"] == "sk**********et"
    assert payload["settings"]["window_size"] == 64
    assert payload["meta"]["cli_overrides"] == ["window_size"]
    assert payload["meta"]["path"] == str(settings_path)


def test_main_configure_persists_valid_setting(settings_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    app.main(["--settings-path", str(settings_path), "--configure", "debounce_ms=750"])

    assert "Settings saved" in capsys.readouterr().out
    assert SettingsStore(settings_path).load().debounce_ms == 750


def test_main_configure_rejects_malformed_regex(settings_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        app.main(["--settings-path", str(settings_path), "--configure", "trigger_regex=@[("])

    assert excinfo.value.code == 2
    assert "Invalid setting" in capsys.readouterr().err
    assert not settings_path.exists()


def test_main_rejects_unknown_override(settings_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        app.main(["--settings-path", str(settings_path), "--set", "colour=blue", "--dump-settings"])

    assert excinfo.value.code == 2


def test_main_requires_path(settings_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        app.main(["--settings-path", str(settings_path)])

    assert excinfo.value.code == 2


def test_main_reports_missing_file(settings_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        app.main(["--settings-path", str(settings_path), str(tmp_path / "missing.md")])

    assert excinfo.value.code == 1
    assert "No such file" in capsys.readouterr().err


def test_main_runs_cycle_with_assume_yes(
    settings_path: Path,
    tmp_path: Path,
    stub_client: StubGenerator,
    capsys: pytest.CaptureFixture[str],
) -> None:
    document = tmp_path / "draft.txt"
    document.write_text("Hello @[greet the reader]", encoding="utf-8")

    app.main(["--settings-path", str(settings_path), "--yes", str(document)])

    assert document.read_text(encoding="utf-8") == "Hello generated text"
    out = capsys.readouterr().out
    assert "greet the reader" in out
    assert "generated text" in out


def test_main_reports_no_trigger(
    settings_path: Path,
    tmp_path: Path,
    stub_client: StubGenerator,
    capsys: pytest.CaptureFixture[str],
) -> None:
    document = tmp_path / "draft.txt"
    document.write_text("Nothing to do", encoding="utf-8")

    app.main(["--settings-path", str(settings_path), "--yes", str(document)])

    assert "No trigger found." in capsys.readouterr().out


@pytest.mark.parametrize(
    ("entry", "expected"),
    [
        ("window_size=42", {"window_size": 42}),
        ("debug_logging=on", {"debug_logging": True}),
        ("base_url=none", {"base_url": None}),
        ("temperature=0.2", {"temperature": 0.2}),
        ("model= gpt-4o ", {"model": "gpt-4o"}),
    ],
)
def test_coerce_cli_overrides(entry: str, expected: dict) -> None:
    assert app._coerce_cli_overrides([entry]) == expected


def test_coerce_cli_overrides_rejects_bad_syntax() -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides(["window_size"])
    with pytest.raises(ValueError):
        app._coerce_cli_overrides(["debug_logging=maybe"])
