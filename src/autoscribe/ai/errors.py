"""Error hierarchy shared by the trigger pipeline.

Errors carry a machine-readable code plus a message that is safe to show to
the user. None of them are fatal to the host: each is scoped to a single
generation cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ErrorCode:
    """Constants for error codes."""

    INVALID_PATTERN = "invalid_pattern"
    INVALID_SETTING = "invalid_setting"
    MISSING_CREDENTIALS = "missing_credentials"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    INVALID_RESPONSE = "invalid_response"
    EMPTY_RESPONSE = "empty_response"


@dataclass
class AutoscribeError(Exception):
    """Base exception for pipeline errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
        suggestion: Actionable guidance for recovery.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class ConfigurationError(AutoscribeError):
    """Raised for malformed trigger patterns, bad settings, or missing credentials."""

    error_code: str = field(default=ErrorCode.INVALID_SETTING)
    message: str = field(default="Invalid configuration")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Review the settings and try again")


@dataclass
class TransportError(AutoscribeError):
    """The backend was unreachable, rejected the credentials, or rate-limited us."""

    error_code: str = field(default=ErrorCode.BACKEND_UNAVAILABLE)
    message: str = field(default="The generation backend could not be reached")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Check the network connection and API key, then trigger again")


@dataclass
class ProtocolError(AutoscribeError):
    """The backend answered, but not through the required structured call."""

    error_code: str = field(default=ErrorCode.INVALID_RESPONSE)
    message: str = field(default="The backend response did not contain a replacement")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Trigger the generation again")
