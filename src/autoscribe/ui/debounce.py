"""Single-slot trailing-edge debounce on an asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

LOGGER = logging.getLogger(__name__)


class DebounceTimer:
    """Runs ``callback`` once ``delay`` seconds after the most recent :meth:`schedule`.

    Only one call is ever pending: scheduling again cancels the previous
    handle before the new one is registered.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        delay: float,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._callback = callback
        self._delay = max(0.0, float(delay))
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @delay.setter
    def delay(self, value: float) -> None:
        self._delay = max(0.0, float(value))

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        """(Re)start the countdown."""

        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        try:
            self._callback()
        except Exception:  # pragma: no cover - never let a timer kill the loop
            LOGGER.exception("Debounced callback failed")
