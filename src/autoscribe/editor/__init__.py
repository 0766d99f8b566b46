"""Document model and the text-level stages of the trigger pipeline."""

from .context_window import ContextWindow, build_window
from .document_model import CursorPosition, DocumentHost, TextDocument
from .substitution import apply_replacement, offset_to_position, replace_match
from .trigger import TriggerMatch, compile_trigger_pattern, find_trigger, resolve_trigger_pattern

__all__ = [
    "ContextWindow",
    "CursorPosition",
    "DocumentHost",
    "TextDocument",
    "TriggerMatch",
    "apply_replacement",
    "build_window",
    "compile_trigger_pattern",
    "find_trigger",
    "offset_to_position",
    "replace_match",
    "resolve_trigger_pattern",
]
