"""Enumerations shared across the conversation and messaging models."""

from enum import Enum


class Channel(str, Enum):
    """Messaging transports a conversation can run on."""

    SMS = "sms"
    WHATSAPP = "whatsapp"


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    RESOLVED = "resolved"
    ARCHIVED = "archived"


class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class MessageStatus(str, Enum):
    """Canonical delivery status.

    Progresses pending -> sent -> delivered -> read; failed can be entered
    from any non-terminal status. read and failed are terminal.
    """

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class ConversationEventType(str, Enum):
    CONVERSATION_CREATED = "conversation_created"
    STATUS_CHANGED = "status_changed"
    MESSAGE_RECEIVED = "message_received"
    MESSAGE_SENT = "message_sent"
    MESSAGE_FAILED = "message_failed"
    MESSAGE_STATUS_CHANGED = "message_status_changed"
