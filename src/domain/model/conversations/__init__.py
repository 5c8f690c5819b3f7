from src.domain.model.conversations.conversation import (
    Conversation,
    ConversationEvent,
    ConversationSummary,
    StoreConnection,
)
from src.domain.model.conversations.message import (
    Message,
    can_transition,
    statuses_allowing,
    timestamp_field_for,
)

__all__ = [
    "Conversation",
    "ConversationEvent",
    "ConversationSummary",
    "StoreConnection",
    "Message",
    "can_transition",
    "statuses_allowing",
    "timestamp_field_for",
]
