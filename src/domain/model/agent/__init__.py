"""Agent turn model: tool specs, calls, results and turn outcomes."""

from src.domain.model.agent.tooling import (
    AgentTurnResult,
    Intent,
    IntentClassification,
    ToolCall,
    ToolResult,
    ToolSpec,
)

__all__ = [
    "AgentTurnResult",
    "Intent",
    "IntentClassification",
    "ToolCall",
    "ToolResult",
    "ToolSpec",
]
