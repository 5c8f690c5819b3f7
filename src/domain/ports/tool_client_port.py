"""
ToolClientPort - contract for the merchant tool-call protocol client.
"""

from abc import abstractmethod
from typing import Any, Protocol, runtime_checkable

from src.domain.model.agent import ToolResult, ToolSpec


@runtime_checkable
class ToolClientPort(Protocol):
    """
    Lists and invokes remote tools on a merchant endpoint.

    Every call is a single round trip; implementations never retry.
    """

    @abstractmethod
    async def list_tools(self, endpoint: str) -> list[ToolSpec]:
        """
        List the tools the endpoint advertises.

        Raises:
            ConnectionError: Network failure or timeout.
            ToolCallError: Non-2xx response or JSON-RPC error.
        """
        ...

    @abstractmethod
    async def call_tool(self, endpoint: str, name: str, arguments: dict[str, Any]) -> ToolResult:
        """
        Invoke one tool and return its concatenated text content.

        Raises:
            ConnectionError: Network failure or timeout.
            ToolCallError: Non-2xx response or JSON-RPC error.
        """
        ...
