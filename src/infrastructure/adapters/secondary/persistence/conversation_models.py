"""Conversation database models."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.domain.shared_kernel import utcnow
from src.infrastructure.adapters.secondary.persistence.models import Base, IdGeneratorMixin


class ConversationModel(IdGeneratorMixin, Base):
    """One row per (tenant, customer number, store number)."""

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    campaign_id: Mapped[Optional[str]] = mapped_column(String, index=True, nullable=True)
    customer_phone: Mapped[str] = mapped_column(String, nullable=False)
    store_phone: Mapped[str] = mapped_column(String, nullable=False)
    channel: Mapped[str] = mapped_column(
        String, nullable=False, default="sms", comment="Channel: sms or whatsapp"
    )
    status: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default="active",
        comment="Status: active, paused, resolved, archived",
    )
    last_message_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "customer_phone", "store_phone", name="uq_conversations_natural_key"
        ),
        Index("ix_conversations_tenant_status", "tenant_id", "status"),
    )


class ConversationMessageModel(IdGeneratorMixin, Base):
    """Append-only message log; ``channel_message_id`` is the provider idempotency key."""

    __tablename__ = "conversation_messages"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    conversation_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("conversations.id"),
        index=True,
        nullable=False,
    )
    direction: Mapped[str] = mapped_column(String, nullable=False, comment="inbound or outbound")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    message_type: Mapped[str] = mapped_column(String, nullable=False, default="text")
    channel_message_id: Mapped[Optional[str]] = mapped_column(
        String, unique=True, nullable=True, comment="Message ID assigned by the channel provider"
    )
    provider_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("ix_conversation_messages_conv_created", "conversation_id", "created_at"),
    )


class ConversationEventModel(IdGeneratorMixin, Base):
    __tablename__ = "conversation_events"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    conversation_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("conversations.id"),
        index=True,
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class StoreConnectionModel(IdGeneratorMixin, Base):
    """Maps a receiving number on a channel to its tenant and shop."""

    __tablename__ = "store_connections"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    channel: Mapped[str] = mapped_column(String, nullable=False)
    store_phone: Mapped[str] = mapped_column(String, nullable=False)
    shop_domain: Mapped[Optional[str]] = mapped_column(String, index=True, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("channel", "store_phone", name="uq_store_connections_channel_phone"),
    )
