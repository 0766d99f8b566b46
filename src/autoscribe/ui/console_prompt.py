"""Terminal version of the two-stage confirmation dialog."""

from __future__ import annotations

import asyncio
import sys
from typing import Callable, TextIO

_YES = {"y", "yes"}


class ConsolePrompt:
    """Asks yes/no questions on a terminal without blocking the event loop."""

    def __init__(
        self,
        *,
        assume_yes: bool = False,
        stream: TextIO | None = None,
        reader: Callable[[str], str] = input,
    ) -> None:
        self._assume_yes = assume_yes
        self._stream = stream or sys.stdout
        self._reader = reader

    async def confirm_trigger(self, payload: str) -> bool:
        return await self._ask(f"Generate a replacement for: {payload}")

    async def confirm_replacement(self, candidate: str) -> bool:
        self._write("Replace selection with:\n")
        self._write(f"{candidate}\n\n")
        return await self._ask("Confirm")

    async def show_error(self, message: str) -> None:
        self._write(f"{message}\n")

    async def _ask(self, question: str) -> bool:
        if self._assume_yes:
            self._write(f"{question} [y/N] y\n")
            return True
        try:
            answer = await asyncio.to_thread(self._reader, f"{question} [y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in _YES

    def _write(self, text: str) -> None:
        self._stream.write(text)
        self._stream.flush()
