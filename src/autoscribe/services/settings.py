"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, get_args, get_origin, get_type_hints

from cryptography.fernet import Fernet, InvalidToken

from ..ai.errors import ConfigurationError
from ..ai.prompts import DEFAULT_SYSTEM_PROMPT
from ..editor.trigger import DEFAULT_TRIGGER_REGEX, compile_trigger_pattern

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "TRIGGER_SCOPES",
    "validate_settings",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".autoscribe"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_API_KEY_FIELD = "api_key_ciphertext"
# Key names used by the flat settings record of earlier releases.
_LEGACY_ALIASES: Mapping[str, str] = {
    "openaiApiKey": "api_key",
    "customURL": "base_url",
    "triggerRegex": "trigger_regex",
    "windowSize": "window_size",
    "systemPrompt": "system_prompt",
    "debounceMs": "debounce_ms",
}
_ENV_OVERRIDES: Mapping[str, str] = {
    "AUTOSCRIBE_API_KEY": "api_key",
    "AUTOSCRIBE_BASE_URL": "base_url",
    "AUTOSCRIBE_MODEL": "model",
    "AUTOSCRIBE_TRIGGER_REGEX": "trigger_regex",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "AUTOSCRIBE_DEBUG_LOGGING": "debug_logging",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "AUTOSCRIBE_WINDOW_SIZE": "window_size",
    "AUTOSCRIBE_DEBOUNCE_MS": "debounce_ms",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "AUTOSCRIBE_REQUEST_TIMEOUT": "request_timeout",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}
TRIGGER_SCOPES: tuple[str, ...] = ("document", "line")
TriggerScope = Literal["document", "line"]


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    api_key: str = ""
    base_url: str | None = None
    model: str = "gpt-3.5-turbo"
    trigger_regex: str = DEFAULT_TRIGGER_REGEX
    window_size: int = 8000
    debounce_ms: int = 2000
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    trigger_scope: TriggerScope = "document"
    request_timeout: float | None = 90.0
    max_retries: int = 1
    temperature: float | None = None
    offer_failures_as_candidates: bool = True
    debug_logging: bool = False

    @property
    def debounce_seconds(self) -> float:
        return max(self.debounce_ms, 0) / 1000.0


def validate_settings(settings: Settings) -> None:
    """Raise :class:`ConfigurationError` if ``settings`` cannot be used."""

    compile_trigger_pattern(settings.trigger_regex)
    if settings.window_size < 0:
        raise ConfigurationError(
            message=f"Window size must be zero or positive (got {settings.window_size})",
            details={"field": "window_size"},
        )
    if settings.debounce_ms < 0:
        raise ConfigurationError(
            message=f"Debounce delay must be zero or positive (got {settings.debounce_ms})",
            details={"field": "debounce_ms"},
        )
    if settings.trigger_scope not in TRIGGER_SCOPES:
        raise ConfigurationError(
            message=f"Trigger scope must be one of {', '.join(TRIGGER_SCOPES)}",
            details={"field": "trigger_scope"},
        )


class SecretVault:
    """Encrypts the API key with a symmetric Fernet key stored next to the settings."""

    name = "fernet"

    def __init__(self, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._fernet: Fernet | None = None

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._get_fernet().encrypt(secret.encode("utf-8"))
        return f"{self.name}:{token.decode('ascii')}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, _, payload = token.partition(":")
        if prefix != self.name or not payload:
            raise ValueError(f"Unknown secret token prefix {prefix!r}")
        try:
            raw = self._get_fernet().decrypt(payload.encode("ascii"))
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc
        return raw.decode("utf-8")

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings merged over defaults, then apply CLI and environment overrides."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            api_key = self._decrypt_api_key(payload.pop(_API_KEY_FIELD, None))
            data = _coerce_field_types(_filter_fields(_apply_aliases(payload)))
            legacy_key = data.pop("api_key", None)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            key = api_key or legacy_key
            if key:
                settings = replace(settings, api_key=str(key))
            LOGGER.debug("Settings loaded from %s: %s", self._path, sorted(data))

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        settings = self._apply_env_overrides(settings)
        return _ensure_usable_pattern(settings)

    def save(self, settings: Settings) -> Path:
        """Validate and persist the full settings record with an atomic write."""

        validate_settings(settings)
        payload = self._serialize(settings)
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def update(self, settings: Settings, **changes: Any) -> Settings:
        """Apply ``changes`` to ``settings``, validate, save, and return the result.

        Nothing is written when validation fails.
        """

        unknown = set(changes) - {item.name for item in fields(Settings)}
        if unknown:
            raise ConfigurationError(
                message=f"Unknown setting(s): {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )
        updated = replace(settings, **changes)
        self.save(updated)
        return updated

    def _serialize(self, settings: Settings) -> Dict[str, Any]:
        data = asdict(settings)
        api_key = data.pop("api_key", "") or ""
        if api_key:
            data[_API_KEY_FIELD] = self._vault.encrypt(api_key)
        data["version"] = _SETTINGS_VERSION
        return data

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not hold an object", self._path)
            return {}
        return payload

    def _decrypt_api_key(self, ciphertext: str | None) -> str:
        if not ciphertext:
            return ""
        try:
            return self._vault.decrypt(ciphertext)
        except ValueError as exc:
            LOGGER.warning("Unable to decrypt API key: %s", exc)
            return ""

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _apply_aliases(payload: Mapping[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in payload.items():
        target = _LEGACY_ALIASES.get(key, key)
        if key in _LEGACY_ALIASES and target in payload:
            continue
        result[target] = value
    return result


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _coerce_field_types(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop stored values that do not fit their field so the default applies.

    Earlier releases persisted unparsable numbers as ``null`` and wrote numbers
    as strings, so numeric and boolean strings are converted where possible.
    """

    hints = get_type_hints(Settings)
    result: Dict[str, Any] = {}
    for key, value in payload.items():
        try:
            result[key] = _coerce_field(hints[key], value)
        except (TypeError, ValueError):
            LOGGER.warning("Ignoring stored setting %s=%r; using the default", key, value)
    return result


def _coerce_field(annotation: Any, value: Any) -> Any:
    args = get_args(annotation)
    if value is None:
        if type(None) in args:
            return None
        raise TypeError("value is required")
    if get_origin(annotation) is Literal:
        if value not in args:
            raise ValueError(f"expected one of {args}")
        return value
    target = next((arg for arg in args if arg is not type(None)), annotation)
    if target is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE_VALUES | _FALSE_VALUES:
            return value.strip().lower() in _TRUE_VALUES
        raise TypeError("expected a boolean")
    if isinstance(value, bool):
        raise TypeError("booleans are not numbers")
    if target is int:
        if isinstance(value, float) and not value.is_integer():
            raise ValueError("expected a whole number")
        return int(value) if isinstance(value, (int, float)) else int(str(value).strip(), 10)
    if target is float:
        return float(value) if isinstance(value, (int, float)) else float(str(value).strip())
    if target is str and not isinstance(value, str):
        raise TypeError("expected a string")
    return value


def _ensure_usable_pattern(settings: Settings) -> Settings:
    try:
        compile_trigger_pattern(settings.trigger_regex)
    except ConfigurationError as exc:
        LOGGER.warning("%s; using the default trigger pattern", exc.message)
        return replace(settings, trigger_regex=DEFAULT_TRIGGER_REGEX)
    return settings


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
