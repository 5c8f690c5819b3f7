"""ChatModelPort - the language model as seen by the orchestrator."""

from abc import abstractmethod
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ChatModelPort(Protocol):
    @abstractmethod
    async def generate(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """
        Run one non-streaming completion.

        Returns:
            Dict with ``content`` (str), ``tool_calls`` (list of
            ``{"id", "name", "arguments"}`` with arguments as a JSON string)
            and ``finish_reason``.

        Raises:
            ConnectionError: The model could not be reached or errored.
        """
        ...
