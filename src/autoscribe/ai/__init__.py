"""Generation client, prompts, and result types."""

from .ai_types import Failure, FailureKind, GenerationRequest, GenerationResult, Replacement
from .client import ClientSettings, GenerationClient

__all__ = [
    "ClientSettings",
    "Failure",
    "FailureKind",
    "GenerationClient",
    "GenerationRequest",
    "GenerationResult",
    "Replacement",
]
