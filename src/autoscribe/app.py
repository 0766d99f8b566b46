"""Command line host: run one trigger cycle against a text file."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.client import ClientSettings, GenerationClient
from .ai.errors import ConfigurationError
from .editor.document_model import CursorPosition, TextDocument
from .services.settings import Settings, SettingsStore, redact_secret
from .ui.console_prompt import ConsolePrompt
from .ui.trigger_controller import ConfirmationPrompt, CycleOutcome, TriggerController
from .utils import file_io
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the command line host."""

    level = logging.DEBUG if debug else logging_utils.resolve_level(None)
    logging_utils.setup_logging(level, console=debug, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


async def run_document(
    path: Path,
    settings: Settings,
    *,
    prompt: ConfirmationPrompt,
    line: int | None = None,
) -> CycleOutcome:
    """Run one explicit trigger cycle on ``path`` and save it if text was replaced."""

    loaded = file_io.load_text(path)
    document = TextDocument(text=loaded.text, path=path)
    if line is not None:
        settings = replace(settings, trigger_scope="line")
        document.set_cursor(CursorPosition(line=line, ch=0))

    client = GenerationClient(ClientSettings.from_settings(settings))
    controller = TriggerController(document, settings=settings, client=client, prompt=prompt)
    try:
        outcome = await controller.invoke_now()
    finally:
        await controller.aclose()
        await client.aclose()

    if outcome is CycleOutcome.APPLIED:
        file_io.write_back(loaded, document.get_value())
        _LOGGER.info("Saved %s (cursor at %s:%s)", path, document.cursor.line + 1, document.cursor.ch)
    return outcome


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `autoscribe` console script."""

    args = _parse_cli_args(argv)

    debug = _env_flag("AUTOSCRIBE_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("AUTOSCRIBE_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
        changes = _coerce_cli_overrides(args.changes or [])
    except ValueError as exc:
        print(f"Invalid setting: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    if changes:
        try:
            settings_store.update(load_settings(store=settings_store), **changes)
        except ConfigurationError as exc:
            print(f"Invalid setting: {exc.message}", file=sys.stderr)
            raise SystemExit(2) from exc
        _LOGGER.info("Saved settings (%s) to %s", ", ".join(sorted(changes)), settings_store.path)
        if not args.path and not args.dump_settings:
            print(f"Settings saved to {settings_store.path}")
            return

    settings = load_settings(store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    if not args.path:
        print("A document path is required.", file=sys.stderr)
        raise SystemExit(2)

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    prompt = ConsolePrompt(assume_yes=args.assume_yes)
    try:
        outcome = asyncio.run(run_document(Path(args.path), settings, prompt=prompt, line=args.line))
    except FileNotFoundError as exc:
        print(f"No such file: {args.path}", file=sys.stderr)
        raise SystemExit(1) from exc
    except file_io.FileChangedError as exc:
        print(f"Not saved: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Interrupted by user.")
        raise SystemExit(130)

    if outcome is CycleOutcome.NO_MATCH:
        print("No trigger found.")
    elif outcome is CycleOutcome.FAILED:
        raise SystemExit(1)


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="autoscribe",
        description="Replace the first trigger span in a document with generated text.",
    )
    parser.add_argument("path", nargs="?", help="Document to process.")
    parser.add_argument(
        "--line",
        type=int,
        metavar="N",
        help="Only look for a trigger on line N (zero-based).",
    )
    parser.add_argument(
        "-y",
        "--yes",
        dest="assume_yes",
        action="store_true",
        help="Accept the trigger and the generated replacement without asking.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.autoscribe/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override a setting for this run only (repeatable).",
    )
    parser.add_argument(
        "--configure",
        dest="changes",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Validate and persist a setting (repeatable).",
    )
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if normalized.lower() in {"none", "null"} and _is_optional(annotation):
        return None
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0] if isinstance(args[0], type) else str


def _is_optional(annotation: Any) -> bool:
    return type(None) in get_args(annotation)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("AUTOSCRIBE_"))
