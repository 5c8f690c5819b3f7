"""Conversation aggregate and related records."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.domain.model.conversations.message import Message
from src.domain.model.enums import Channel, ConversationEventType, ConversationStatus
from src.domain.shared_kernel import Entity, ValueObject, utcnow


@dataclass(kw_only=True)
class Conversation(Entity):
    """The durable thread between one customer and one store number of a tenant.

    Unique per (tenant_id, customer_phone, store_phone). Never deleted;
    archived instead.
    """

    tenant_id: str
    customer_phone: str
    store_phone: str
    channel: Channel = Channel.SMS
    campaign_id: str | None = None
    status: ConversationStatus = ConversationStatus.ACTIVE
    last_message_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def shop_domain(self) -> str | None:
        return self.metadata.get("shop_domain")

    @property
    def natural_key(self) -> tuple[str, str, str]:
        return (self.tenant_id, self.customer_phone, self.store_phone)


@dataclass(kw_only=True)
class ConversationEvent(Entity):
    """Audit record of something that happened to a conversation."""

    conversation_id: str
    event_type: ConversationEventType
    data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)


@dataclass(kw_only=True)
class StoreConnection(Entity):
    """Binds a receiving store number on a channel to a tenant and its shop."""

    tenant_id: str
    channel: Channel
    store_phone: str
    shop_domain: str | None = None
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class ConversationSummary(ValueObject):
    conversation: Conversation
    message_count: int
    unread_count: int
    last_message: Message | None = None
