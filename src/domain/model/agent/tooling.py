"""Ephemeral value objects for one AI turn. None of these are persisted."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from src.domain.shared_kernel import ValueObject

EMPTY_INPUT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}, "required": []}


class Intent(str, Enum):
    PRODUCT_SEARCH = "product_search"
    POLICY_QUESTION = "policy_question"
    CART_ACTION = "cart_action"
    GENERAL = "general"


@dataclass(frozen=True)
class IntentClassification(ValueObject):
    intent: Intent
    confidence: float
    source: str = "model"  # model or keywords


@dataclass(frozen=True)
class ToolSpec(ValueObject):
    """A remote tool as advertised by ``tools/list``."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=lambda: dict(EMPTY_INPUT_SCHEMA))

    def to_function_schema(self) -> dict[str, Any]:
        """Render in the chat model's function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }


@dataclass(frozen=True)
class ToolCall(ValueObject):
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    call_id: str | None = None


@dataclass(frozen=True)
class ToolResult(ValueObject):
    name: str
    raw_text: str
    is_error: bool = False


@dataclass(frozen=True)
class AgentTurnResult(ValueObject):
    """Outcome of one orchestrated AI turn."""

    response_text: str
    used_tools: bool = False
    tools_executed: tuple[str, ...] = ()
    intent: IntentClassification | None = None
    fallback: str | None = None  # which degraded path produced the text, if any
