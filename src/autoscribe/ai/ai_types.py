"""Request and result types exchanged with the generation backend."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias


class FailureKind(str, Enum):
    """Reasons a generation attempt can fail."""

    NO_BACKEND_CONFIGURED = "no_backend_configured"
    EMPTY_RESPONSE = "empty_response"
    MALFORMED_RESPONSE = "malformed_response"
    TRANSPORT_ERROR = "transport_error"


@dataclass(slots=True, frozen=True)
class GenerationRequest:
    """Everything the backend needs to produce one replacement."""

    system_prompt: str
    context_window: str
    target_span: str
    model_id: str


@dataclass(slots=True, frozen=True)
class Replacement:
    text: str

    @property
    def display_text(self) -> str:
        return self.text


@dataclass(slots=True, frozen=True)
class Failure:
    """A failed generation, with a message that is safe to show the user."""

    kind: FailureKind
    message: str

    @property
    def display_text(self) -> str:
        return self.message


GenerationResult: TypeAlias = Replacement | Failure
