"""
LiteLLM Client Adapter for ChatCommerce

Implements ChatModelPort using the LiteLLM library, which gives the
orchestrator one interface over every hosted chat model with function
calling.
"""

import json
import logging
import warnings
from typing import Any

# Suppress Pydantic serialization warnings from litellm's ModelResponse when
# providers inject dynamic fields. These warnings are harmless.
warnings.filterwarnings(
    "ignore",
    message=r"Pydantic serializer warnings",
    category=UserWarning,
)

from src.configuration.config import Settings  # noqa: E402
from src.domain.exceptions import ConnectionError  # noqa: E402

logger = logging.getLogger(__name__)


def _get_attr(obj: Any, key: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


class LiteLLMChatClient:
    """
    LiteLLM-based implementation of ChatModelPort.

    Usage:
        client = LiteLLMChatClient(model="gpt-4o-mini", api_key="sk-...")
        response = await client.generate(messages, tools=tool_schemas)
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        api_base: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 1024,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._api_key = api_key
        self._api_base = api_base

    @classmethod
    def from_settings(cls, settings: Settings) -> "LiteLLMChatClient":
        return cls(
            model=settings.llm_model,
            api_key=settings.llm_api_key,
            api_base=settings.llm_api_base,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    @staticmethod
    def _convert_message(m: dict[str, Any]) -> dict[str, Any]:
        """Convert a message to LiteLLM dict format, preserving tool-related fields."""
        msg: dict[str, Any] = {
            "role": m.get("role", "user"),
            "content": m.get("content", ""),
        }
        for key in ("tool_calls", "tool_call_id", "name"):
            if key in m:
                msg[key] = m[key]
        return msg

    def _build_completion_kwargs(
        self,
        messages: list[dict[str, Any]],
        max_tokens: int | None,
        temperature: float | None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
        }
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._api_base:
            kwargs["api_base"] = self._api_base
        return kwargs

    @staticmethod
    def _normalize_tool_calls(raw_calls: Any) -> list[dict[str, Any]]:
        """Flatten provider tool calls to ``{"id", "name", "arguments"}`` dicts."""
        calls: list[dict[str, Any]] = []
        for index, call in enumerate(raw_calls or []):
            function = _get_attr(call, "function", {})
            name = _get_attr(function, "name")
            if not name:
                continue
            arguments = _get_attr(function, "arguments", "{}")
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            calls.append(
                {
                    "id": _get_attr(call, "id") or f"call_{index}",
                    "name": name,
                    "arguments": arguments or "{}",
                }
            )
        return calls

    async def generate(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """
        Generate a non-streaming response with optional tool calling support.

        Args:
            messages: List of message dicts
            tools: Optional tool definitions for function calling
            temperature: Sampling temperature (defaults to client temperature)
            max_tokens: Maximum tokens to generate

        Returns:
            Dict with content, tool_calls, and finish_reason

        Raises:
            ConnectionError: The provider call failed or returned no choices
        """
        import litellm

        completion_kwargs = self._build_completion_kwargs(
            [self._convert_message(m) for m in messages], max_tokens, temperature
        )
        if tools:
            completion_kwargs["tools"] = tools

        try:
            response = await litellm.acompletion(**completion_kwargs)
        except Exception as e:
            logger.warning(f"[LiteLLM] Completion failed for {self.model}: {e}")
            raise ConnectionError(
                service="llm", reason=str(e), endpoint=self.model, original_error=e
            ) from e

        if not response.choices:
            raise ConnectionError(service="llm", reason="No choices in response", endpoint=self.model)

        choice = response.choices[0]
        message = _get_attr(choice, "message", {})

        return {
            "content": _get_attr(message, "content", "") or "",
            "tool_calls": self._normalize_tool_calls(_get_attr(message, "tool_calls", None)),
            "finish_reason": _get_attr(choice, "finish_reason", None),
        }
