"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from typing import Any, Iterable

from autoscribe.ai.ai_types import GenerationRequest, GenerationResult, Replacement


def make_completion(arguments: Any = None, *, with_tool_call: bool = True, choices: bool = True) -> SimpleNamespace:
    """Build an object shaped like ``ChatCompletion`` for the replace_text call."""

    if not choices:
        return SimpleNamespace(choices=[])
    tool_calls = None
    if with_tool_call:
        raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
        function = SimpleNamespace(name="replace_text", arguments=raw)
        tool_calls = [SimpleNamespace(id="call_1", type="function", function=function)]
    message = SimpleNamespace(role="assistant", content=None, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(index=0, message=message, finish_reason="tool_calls")])


class FakeCompletions:
    """Replays queued responses; exceptions in the queue are raised instead."""

    def __init__(self, outcomes: Iterable[Any]):
        self._outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def make_openai(*outcomes: Any) -> SimpleNamespace:
    completions = FakeCompletions(outcomes)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


class RecordingPrompt:
    """Confirmation prompt that answers from presets and records what it was shown."""

    def __init__(self, *, accept_trigger: bool = True, accept_replacement: bool = True) -> None:
        self.accept_trigger = accept_trigger
        self.accept_replacement = accept_replacement
        self.payloads: list[str] = []
        self.candidates: list[str] = []
        self.errors: list[str] = []

    async def confirm_trigger(self, payload: str) -> bool:
        self.payloads.append(payload)
        return self.accept_trigger

    async def confirm_replacement(self, candidate: str) -> bool:
        self.candidates.append(candidate)
        return self.accept_replacement

    async def show_error(self, message: str) -> None:
        self.errors.append(message)


class StubGenerator:
    """Generation client stand-in; optionally blocks until ``release`` is set."""

    def __init__(self, result: GenerationResult | None = None, *, hold: bool = False) -> None:
        self.result = result if result is not None else Replacement("generated")
        self.requests: list[GenerationRequest] = []
        self.release = asyncio.Event()
        self.started = asyncio.Event()
        if not hold:
            self.release.set()

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        self.requests.append(request)
        self.started.set()
        await self.release.wait()
        return self.result
