"""Conversation application services."""

from src.application.services.conversations.conversation_actor import (
    ConversationActor,
    InboundOutcome,
    OutboundRequest,
)
from src.application.services.conversations.conversation_service import ConversationService
from src.application.services.conversations.keyed_serializer import KeyedSerializer
from src.application.services.conversations.status_buffer import EarlyStatusBuffer

__all__ = [
    "ConversationActor",
    "ConversationService",
    "EarlyStatusBuffer",
    "InboundOutcome",
    "KeyedSerializer",
    "OutboundRequest",
]
