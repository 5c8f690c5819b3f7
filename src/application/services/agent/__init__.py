"""Agent application services: intent, context, tools and the AI turn."""

from src.application.services.agent.ai_orchestrator import AIOrchestrator
from src.application.services.agent.context_loader import ContextLoader, ContextLoadResult
from src.application.services.agent.intent_classifier import IntentClassifier
from src.application.services.agent.tool_discovery import ToolDiscoveryService, tool_endpoint

__all__ = [
    "AIOrchestrator",
    "ContextLoader",
    "ContextLoadResult",
    "IntentClassifier",
    "ToolDiscoveryService",
    "tool_endpoint",
]
