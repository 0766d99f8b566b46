"""Async generation client built around OpenAI-compatible endpoints."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping

import httpx
from openai import (
    APIConnectionError,
    AsyncOpenAI,
    InternalServerError,
    OpenAIError,
    RateLimitError,
)
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..services.telemetry import emit
from .ai_types import Failure, FailureKind, GenerationRequest, GenerationResult, Replacement
from .errors import ErrorCode, ProtocolError, TransportError
from .prompts import REPLACE_TEXT_TOOL, REPLACE_TEXT_TOOL_CHOICE, REPLACEMENT_FIELD, build_messages

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..services.settings import Settings

__all__ = ["ClientSettings", "GenerationClient", "FAILURE_MESSAGES"]

LOGGER = logging.getLogger(__name__)

FAILURE_MESSAGES: Mapping[FailureKind, str] = {
    FailureKind.NO_BACKEND_CONFIGURED: (
        "Error: OpenAI client not initialized. Please make sure there is an API key set in the settings."
    ),
    FailureKind.EMPTY_RESPONSE: "Error: No response from OpenAI",
    FailureKind.MALFORMED_RESPONSE: "Error: Invalid response from OpenAI",
    FailureKind.TRANSPORT_ERROR: "Error: Error generating replacement text",
}

_RETRYABLE_ERRORS = (
    APIConnectionError,
    RateLimitError,
    InternalServerError,
    httpx.TimeoutException,
)


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the generation client."""

    api_key: str
    model: str
    base_url: str | None = None
    request_timeout: float | None = 90.0
    max_retries: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    temperature: float | None = None
    debug_logging: bool = False

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ClientSettings":
        return cls(
            api_key=settings.api_key,
            model=settings.model,
            base_url=settings.base_url or None,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            temperature=settings.temperature,
            debug_logging=settings.debug_logging,
        )


class GenerationClient:
    """Produces one replacement per request through a forced ``replace_text`` call.

    ``generate`` never raises: every problem is reported as a :class:`Failure`
    whose message can be shown to the user as-is.
    """

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client if client is not None else self._build_client(settings)
        self._retired: List[Any] = []

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def configured(self) -> bool:
        return self._client is not None

    def reinitialize(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        """Swap in new credentials, rebuilding the backend client."""

        if self._client is not None:
            self._retired.append(self._client)
        self._settings = settings
        self._client = client if client is not None else self._build_client(settings)
        LOGGER.debug("Generation client reinitialized (configured=%s)", self.configured)

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Return the replacement for ``request.target_span`` or a failure."""

        if self._client is None:
            LOGGER.error("OpenAI client not initialized")
            return self._failure(FailureKind.NO_BACKEND_CONFIGURED)

        payload = self._build_payload(request)
        LOGGER.debug(
            "Requesting replacement via %s (window=%s chars, target=%r)",
            payload["model"],
            len(request.context_window),
            request.target_span,
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        try:
            response = await self._request(payload)
            replacement = self._extract_replacement(response)
        except TransportError as exc:
            LOGGER.error("Error generating replacement text: %s", exc.details.get("cause", exc.message))
            return self._failure(FailureKind.TRANSPORT_ERROR)
        except ProtocolError as exc:
            LOGGER.error("Backend returned an unusable response: %s", exc)
            if exc.error_code == ErrorCode.EMPTY_RESPONSE:
                return self._failure(FailureKind.EMPTY_RESPONSE)
            return self._failure(FailureKind.MALFORMED_RESPONSE)

        emit("generation.completed", {"model": payload["model"], "chars": len(replacement)})
        return Replacement(replacement)

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI | None:
        if not (settings.api_key or "").strip():
            return None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url or None,
            timeout=settings.request_timeout,
            max_retries=0,
        )

    def _build_payload(self, request: GenerationRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model_id or self._settings.model,
            "messages": build_messages(request),
            "tools": [REPLACE_TEXT_TOOL],
            "tool_choice": REPLACE_TEXT_TOOL_CHOICE,
        }
        if self._settings.temperature is not None:
            payload["temperature"] = self._settings.temperature
        return payload

    async def _request(self, payload: Mapping[str, Any]) -> Any:
        assert self._client is not None
        try:
            async for attempt in self._retrying():
                with attempt:
                    return await self._client.chat.completions.create(**payload)
        except (OpenAIError, httpx.HTTPError) as exc:
            raise TransportError(details={"cause": repr(exc)}) from exc
        raise TransportError(details={"cause": "no attempt was made"})  # pragma: no cover

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(_RETRYABLE_ERRORS),
        )

    @staticmethod
    def _extract_replacement(response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise ProtocolError(error_code=ErrorCode.EMPTY_RESPONSE, message="No choices returned")

        message = getattr(choices[0], "message", None)
        tool_calls = getattr(message, "tool_calls", None) or []
        if not tool_calls:
            raise ProtocolError(message="Response did not include the replace_text call")
        function = getattr(tool_calls[0], "function", None)
        arguments = getattr(function, "arguments", None)
        try:
            parsed = json.loads(arguments)
        except (TypeError, ValueError) as exc:
            raise ProtocolError(message=f"Tool arguments are not valid JSON: {arguments!r}") from exc

        replacement = parsed.get(REPLACEMENT_FIELD) if isinstance(parsed, dict) else None
        if not isinstance(replacement, str):
            raise ProtocolError(message=f"Tool arguments lack a string {REPLACEMENT_FIELD!r} field")
        return replacement

    @staticmethod
    def _failure(kind: FailureKind) -> Failure:
        emit("generation.failed", {"kind": kind.value})
        return Failure(kind=kind, message=FAILURE_MESSAGES[kind])

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("Generation payload (unserializable): %s", payload)
        else:
            LOGGER.debug("Generation payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI clients to release network resources."""

        clients = [*self._retired, self._client]
        self._retired = []
        for client in clients:
            close = getattr(client, "close", None)
            if close is None:
                continue
            try:
                result = close()
            except Exception as exc:  # pragma: no cover - defensive guard
                LOGGER.debug("Generation client close failed to start: %s", exc)
                continue
            if inspect.isawaitable(result):
                await result
