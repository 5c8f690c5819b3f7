"""
Domain ports (interfaces) for ChatCommerce.

Adapters in the infrastructure layer implement these protocols; application
services depend only on them.
"""

from src.domain.ports.chat_model_port import ChatModelPort
from src.domain.ports.conversation_store_port import ConversationStorePort
from src.domain.ports.message_provider_port import MessageProviderPort
from src.domain.ports.tool_client_port import ToolClientPort
from src.domain.ports.webhook_verifier_port import WebhookVerifierPort

__all__ = [
    "ChatModelPort",
    "ConversationStorePort",
    "MessageProviderPort",
    "ToolClientPort",
    "WebhookVerifierPort",
]
