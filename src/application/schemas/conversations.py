"""Operator API schemas.

Request/response models for the conversation endpoints.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from src.domain.model.conversations import (
    Conversation,
    ConversationEvent,
    ConversationSummary,
    Message,
    StoreConnection,
)
from src.domain.model.enums import Channel, ConversationStatus, MessageStatus


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# === Conversation Schemas ===


class StartConversationRequest(BaseModel):
    """Start (or resume) the conversation for a campaign contact."""

    tenant_id: str = Field(..., min_length=1)
    customer_phone: str = Field(..., min_length=1)
    store_phone: str = Field(..., min_length=1)
    channel: Channel = Channel.SMS
    campaign_id: str | None = None
    shop_domain: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class UpdateConversationRequest(BaseModel):
    status: ConversationStatus


class ConversationResponse(BaseModel):
    id: str
    tenant_id: str
    customer_phone: str
    store_phone: str
    channel: str
    campaign_id: str | None = None
    status: str
    last_message_at: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str

    @classmethod
    def from_domain(cls, conversation: Conversation) -> "ConversationResponse":
        """Create response from domain entity."""
        return cls(
            id=conversation.id,
            tenant_id=conversation.tenant_id,
            customer_phone=conversation.customer_phone,
            store_phone=conversation.store_phone,
            channel=conversation.channel.value,
            campaign_id=conversation.campaign_id,
            status=conversation.status.value,
            last_message_at=_iso(conversation.last_message_at),
            metadata=conversation.metadata,
            created_at=conversation.created_at.isoformat(),
        )


class StartConversationResponse(BaseModel):
    conversation: ConversationResponse
    created: bool


class ConversationListResponse(BaseModel):
    items: list[ConversationResponse]
    offset: int
    limit: int


# === Message Schemas ===


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    direction: str
    content: str
    status: str
    message_type: str
    channel_message_id: str | None = None
    provider_id: str | None = None
    sent_at: str | None = None
    delivered_at: str | None = None
    read_at: str | None = None
    failed_at: str | None = None
    failure_reason: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str

    @classmethod
    def from_domain(cls, message: Message) -> "MessageResponse":
        return cls(
            id=message.id,
            conversation_id=message.conversation_id,
            direction=message.direction.value,
            content=message.content,
            status=message.status.value,
            message_type=message.message_type,
            channel_message_id=message.channel_message_id,
            provider_id=message.provider_id,
            sent_at=_iso(message.sent_at),
            delivered_at=_iso(message.delivered_at),
            read_at=_iso(message.read_at),
            failed_at=_iso(message.failed_at),
            failure_reason=message.failure_reason,
            metadata=message.metadata,
            created_at=message.created_at.isoformat(),
        )


class MessageListResponse(BaseModel):
    items: list[MessageResponse]
    # Id of the oldest message on this page; pass as ``cursor`` for the next one
    next_cursor: str | None = None


class SendMessageRequest(BaseModel):
    """Operator message; either free text or a pre-approved template."""

    content: str = ""
    template_name: str | None = None
    template_params: list[str] = Field(default_factory=list)
    template_language: str | None = None

    @model_validator(mode="after")
    def check_content_or_template(self) -> "SendMessageRequest":
        if not self.template_name and not self.content.strip():
            raise ValueError("Either content or template_name is required")
        return self


class ConversationSummaryResponse(BaseModel):
    conversation: ConversationResponse
    message_count: int
    unread_count: int
    last_message: MessageResponse | None = None

    @classmethod
    def from_domain(cls, summary: ConversationSummary) -> "ConversationSummaryResponse":
        return cls(
            conversation=ConversationResponse.from_domain(summary.conversation),
            message_count=summary.message_count,
            unread_count=summary.unread_count,
            last_message=(
                MessageResponse.from_domain(summary.last_message) if summary.last_message else None
            ),
        )


class MessageStatusResponse(BaseModel):
    channel: str
    channel_message_id: str
    status: MessageStatus | None = None
    available: bool


# === Event Schemas ===


class ConversationEventResponse(BaseModel):
    id: str
    conversation_id: str
    event_type: str
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: str

    @classmethod
    def from_domain(cls, event: ConversationEvent) -> "ConversationEventResponse":
        return cls(
            id=event.id,
            conversation_id=event.conversation_id,
            event_type=event.event_type.value,
            data=event.data,
            created_at=event.created_at.isoformat(),
        )


# === Store Connection Schemas ===


class StoreConnectionRequest(BaseModel):
    tenant_id: str = Field(..., min_length=1)
    channel: Channel
    store_phone: str = Field(..., min_length=1)
    shop_domain: str | None = None


class StoreConnectionResponse(BaseModel):
    id: str
    tenant_id: str
    channel: str
    store_phone: str
    shop_domain: str | None = None
    is_active: bool

    @classmethod
    def from_domain(cls, connection: StoreConnection) -> "StoreConnectionResponse":
        return cls(
            id=connection.id,
            tenant_id=connection.tenant_id,
            channel=connection.channel.value,
            store_phone=connection.store_phone,
            shop_domain=connection.shop_domain,
            is_active=connection.is_active,
        )
