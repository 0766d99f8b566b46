"""Trigger controller and the user-facing prompts it drives."""

from .console_prompt import ConsolePrompt
from .debounce import DebounceTimer
from .trigger_controller import ConfirmationPrompt, CycleOutcome, TriggerController, TriggerState

__all__ = [
    "ConfirmationPrompt",
    "ConsolePrompt",
    "CycleOutcome",
    "DebounceTimer",
    "TriggerController",
    "TriggerState",
]
