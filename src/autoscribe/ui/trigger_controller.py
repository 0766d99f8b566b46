"""Drives one trigger → generate → confirm → replace cycle per document."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Any, Callable, Protocol

from ..ai.ai_types import Failure, GenerationRequest, GenerationResult
from ..ai.client import ClientSettings
from ..editor.context_window import ContextWindow, build_window
from ..editor.document_model import DocumentHost
from ..editor.substitution import replace_match
from ..editor.trigger import TriggerMatch, find_trigger, find_trigger_in_line, resolve_trigger_pattern
from ..services.settings import Settings
from ..services.telemetry import emit
from .debounce import DebounceTimer

__all__ = ["TriggerState", "CycleOutcome", "ConfirmationPrompt", "SupportsGenerate", "TriggerController"]

LOGGER = logging.getLogger(__name__)


class TriggerState(str, Enum):
    IDLE = "idle"
    PENDING_TRIGGER = "pending_trigger"
    DETECTING = "detecting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    GENERATING = "generating"
    AWAITING_USER_DECISION = "awaiting_user_decision"
    APPLYING = "applying"


class CycleOutcome(str, Enum):
    """How a cycle ended."""

    NO_MATCH = "no_match"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    APPLIED = "applied"
    STALE = "stale"
    FAILED = "failed"
    BUSY = "busy"


class ConfirmationPrompt(Protocol):
    """Two-stage dialog shown to the user during a cycle."""

    async def confirm_trigger(self, payload: str) -> bool:
        """Show the trigger payload and ask whether to generate."""

    async def confirm_replacement(self, candidate: str) -> bool:
        """Show the candidate text and ask whether to apply it."""

    async def show_error(self, message: str) -> None:
        """Report a failed generation without offering it as a replacement."""


class SupportsGenerate(Protocol):
    async def generate(self, request: GenerationRequest) -> GenerationResult: ...


_IDLE_STATES = (TriggerState.IDLE, TriggerState.PENDING_TRIGGER)


class TriggerController:
    """State machine for a single document.

    Edits restart a debounce timer; when it elapses the current document text
    is scanned for a trigger. :meth:`invoke_now` skips the debounce. Only one
    cycle runs at a time and edits made while a cycle is past detection are
    ignored. A running backend call is never cancelled by edits, so its
    result may be stale by the time it is shown.
    """

    def __init__(
        self,
        document: DocumentHost,
        *,
        settings: Settings,
        client: SupportsGenerate,
        prompt: ConfirmationPrompt,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._document = document
        self._settings = settings
        self._client = client
        self._prompt = prompt
        self._loop = loop
        self._pattern = resolve_trigger_pattern(settings.trigger_regex)
        self._debounce = DebounceTimer(self._on_debounce_elapsed, settings.debounce_seconds, loop=loop)
        self._state = TriggerState.IDLE
        self._cycle_task: asyncio.Task[CycleOutcome] | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._last_outcome: CycleOutcome | None = None
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def state(self) -> TriggerState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state not in _IDLE_STATES

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def last_outcome(self) -> CycleOutcome | None:
        return self._last_outcome

    def attach(self) -> None:
        """Start listening to document change notifications."""

        if self._unsubscribe is None:
            self._unsubscribe = self._document.subscribe(self.handle_document_changed)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def handle_document_changed(self, document: Any = None, view: Any = None) -> None:
        """Restart the debounce timer after an edit."""

        del document, view
        if self._closed:
            return
        if self.busy:
            LOGGER.debug("Ignoring document change while %s", self._state.value)
            return
        self._state = TriggerState.PENDING_TRIGGER
        self._debounce.schedule()

    async def invoke_now(self) -> CycleOutcome:
        """Run a cycle immediately, bypassing the debounce."""

        if self._closed or self.busy:
            return CycleOutcome.BUSY
        self._debounce.cancel()
        return await self._run_cycle()

    async def wait_for_cycle(self) -> CycleOutcome | None:
        """Wait for the cycle started by the debounce timer, if any."""

        task = self._cycle_task
        if task is None:
            return None
        return await task

    def update_settings(self, settings: Settings) -> None:
        """Adopt new settings; takes effect from the next cycle."""

        previous = self._settings
        self._settings = settings
        self._pattern = resolve_trigger_pattern(settings.trigger_regex)
        self._debounce.delay = settings.debounce_seconds
        client_settings = ClientSettings.from_settings(settings)
        reinitialize = getattr(self._client, "reinitialize", None)
        if reinitialize is not None and client_settings != ClientSettings.from_settings(previous):
            reinitialize(client_settings)

    async def aclose(self) -> None:
        self._closed = True
        self._debounce.cancel()
        self.detach()
        task = self._cycle_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._state = TriggerState.IDLE

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------
    def _on_debounce_elapsed(self) -> None:
        if self._closed or self._state is not TriggerState.PENDING_TRIGGER:
            return
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(self._run_cycle())
        task.add_done_callback(self._log_task_failure)
        self._cycle_task = task

    async def _run_cycle(self) -> CycleOutcome:
        self._state = TriggerState.DETECTING
        try:
            outcome = await self._cycle()
        finally:
            self._state = TriggerState.IDLE
        self._last_outcome = outcome
        LOGGER.debug("Trigger cycle finished: %s", outcome.value)
        return outcome

    async def _cycle(self) -> CycleOutcome:
        settings = self._settings
        text = self._document.get_value()
        match = self._detect(text, settings)
        if match is None:
            return CycleOutcome.NO_MATCH

        emit("trigger.detected", {"payload_chars": len(match.payload)})
        self._state = TriggerState.AWAITING_CONFIRMATION
        if not await self._prompt.confirm_trigger(match.payload):
            emit("trigger.declined")
            return CycleOutcome.DECLINED

        self._state = TriggerState.GENERATING
        window = build_window(text, match, settings.window_size)
        request = GenerationRequest(
            system_prompt=settings.system_prompt,
            context_window=window.text,
            target_span=match.full_text,
            model_id=settings.model,
        )
        result = await self._client.generate(request)

        self._state = TriggerState.AWAITING_USER_DECISION
        if isinstance(result, Failure) and not settings.offer_failures_as_candidates:
            await self._prompt.show_error(result.message)
            return CycleOutcome.FAILED
        candidate = result.display_text
        if not await self._prompt.confirm_replacement(candidate):
            emit("replacement.cancelled")
            return CycleOutcome.CANCELLED

        self._state = TriggerState.APPLYING
        return self._apply(match, window, candidate)

    def _detect(self, text: str, settings: Settings) -> TriggerMatch | None:
        if settings.trigger_scope == "line":
            return find_trigger_in_line(self._document, self._pattern)
        return find_trigger(text, self._pattern)

    def _apply(self, match: TriggerMatch, window: ContextWindow, replacement: str) -> CycleOutcome:
        current = self._document.get_value()
        new_text, cursor = replace_match(current, match, replacement, window=window)
        if cursor is None:
            LOGGER.warning("Trigger %r disappeared before the replacement was applied", match.full_text)
            return CycleOutcome.STALE
        self._document.set_value(new_text)
        self._document.set_cursor(cursor)
        emit("replacement.applied", {"chars": len(replacement)})
        return CycleOutcome.APPLIED

    @staticmethod
    def _log_task_failure(task: asyncio.Task[CycleOutcome]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Trigger cycle failed", exc_info=exc)
