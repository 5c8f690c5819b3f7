"""Conversation, message, event and store-connection repositories.

Repositories take an ``AsyncSession`` and only ``flush``; committing is the
caller's decision.
"""

from datetime import datetime
from typing import Any, cast

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.model.conversations import (
    Conversation,
    ConversationEvent,
    Message,
    StoreConnection,
    statuses_allowing,
    timestamp_field_for,
)
from src.domain.model.enums import (
    Channel,
    ConversationEventType,
    ConversationStatus,
    MessageDirection,
    MessageStatus,
)
from src.domain.shared_kernel import ensure_utc, utcnow
from src.infrastructure.adapters.secondary.persistence.conversation_models import (
    ConversationEventModel,
    ConversationMessageModel,
    ConversationModel,
    StoreConnectionModel,
)


def conversation_to_domain(row: ConversationModel) -> Conversation:
    return Conversation(
        id=row.id,
        tenant_id=row.tenant_id,
        campaign_id=row.campaign_id,
        customer_phone=row.customer_phone,
        store_phone=row.store_phone,
        channel=Channel(row.channel),
        status=ConversationStatus(row.status),
        last_message_at=ensure_utc(row.last_message_at),
        metadata=dict(row.meta or {}),
        created_at=ensure_utc(row.created_at),
    )


def message_to_domain(row: ConversationMessageModel) -> Message:
    return Message(
        id=row.id,
        conversation_id=row.conversation_id,
        direction=MessageDirection(row.direction),
        content=row.content,
        status=MessageStatus(row.status),
        message_type=row.message_type,
        channel_message_id=row.channel_message_id,
        provider_id=row.provider_id,
        sent_at=ensure_utc(row.sent_at),
        delivered_at=ensure_utc(row.delivered_at),
        read_at=ensure_utc(row.read_at),
        failed_at=ensure_utc(row.failed_at),
        failure_reason=row.failure_reason,
        metadata=dict(row.meta or {}),
        created_at=ensure_utc(row.created_at),
    )


def event_to_domain(row: ConversationEventModel) -> ConversationEvent:
    return ConversationEvent(
        id=row.id,
        conversation_id=row.conversation_id,
        event_type=ConversationEventType(row.event_type),
        data=dict(row.data or {}),
        created_at=ensure_utc(row.created_at),
    )


def store_connection_to_domain(row: StoreConnectionModel) -> StoreConnection:
    return StoreConnection(
        id=row.id,
        tenant_id=row.tenant_id,
        channel=Channel(row.channel),
        store_phone=row.store_phone,
        shop_domain=row.shop_domain,
        is_active=row.is_active,
        created_at=ensure_utc(row.created_at),
    )


class SqlConversationRepository:
    """Repository for conversation rows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, conversation: Conversation) -> ConversationModel:
        row = ConversationModel(
            id=conversation.id or ConversationModel.generate_id(),
            tenant_id=conversation.tenant_id,
            campaign_id=conversation.campaign_id,
            customer_phone=conversation.customer_phone,
            store_phone=conversation.store_phone,
            channel=conversation.channel.value,
            status=conversation.status.value,
            last_message_at=conversation.last_message_at,
            meta=conversation.metadata or None,
            created_at=conversation.created_at,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get_by_id(self, conversation_id: str) -> ConversationModel | None:
        result = await self._session.execute(
            select(ConversationModel).where(ConversationModel.id == conversation_id)
        )
        return result.scalar_one_or_none()

    async def get_by_natural_key(
        self, tenant_id: str, customer_phone: str, store_phone: str
    ) -> ConversationModel | None:
        result = await self._session.execute(
            select(ConversationModel).where(
                ConversationModel.tenant_id == tenant_id,
                ConversationModel.customer_phone == customer_phone,
                ConversationModel.store_phone == store_phone,
            )
        )
        return result.scalar_one_or_none()

    async def set_status(self, conversation_id: str, status: ConversationStatus) -> bool:
        """Returns True if the stored status changed."""
        result = await self._session.execute(
            update(ConversationModel)
            .where(
                ConversationModel.id == conversation_id,
                ConversationModel.status != status.value,
            )
            .values(status=status.value)
        )
        await self._session.flush()
        return cast(CursorResult[Any], result).rowcount > 0

    async def advance_last_message_at(self, conversation_id: str, at: datetime) -> None:
        """Move ``last_message_at`` forward to ``at``; never backwards."""
        column = ConversationModel.last_message_at
        await self._session.execute(
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(
                last_message_at=case(
                    (or_(column.is_(None), column < at), at),
                    else_=column,
                )
            )
        )
        await self._session.flush()

    async def list_by_tenant(
        self,
        tenant_id: str,
        status: ConversationStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ConversationModel]:
        query = select(ConversationModel).where(ConversationModel.tenant_id == tenant_id)
        if status:
            query = query.where(ConversationModel.status == status.value)
        query = (
            query.order_by(
                ConversationModel.last_message_at.desc().nulls_last(),
                ConversationModel.created_at.desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def list_by_campaign(
        self, campaign_id: str, limit: int = 50, offset: int = 0
    ) -> list[ConversationModel]:
        result = await self._session.execute(
            select(ConversationModel)
            .where(ConversationModel.campaign_id == campaign_id)
            .order_by(ConversationModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def list_open_for_customer(self, customer_phone: str) -> list[ConversationModel]:
        """Every non-archived conversation with ``customer_phone`` across tenants."""
        result = await self._session.execute(
            select(ConversationModel).where(
                ConversationModel.customer_phone == customer_phone,
                ConversationModel.status != ConversationStatus.ARCHIVED.value,
            )
        )
        return list(result.scalars().all())


class SqlMessageRepository:
    """Repository for the conversation message log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, conversation_id: str, message: Message) -> ConversationMessageModel:
        row = ConversationMessageModel(
            id=message.id or ConversationMessageModel.generate_id(),
            conversation_id=conversation_id,
            direction=message.direction.value,
            content=message.content,
            status=message.status.value,
            message_type=message.message_type,
            channel_message_id=message.channel_message_id,
            provider_id=message.provider_id,
            sent_at=message.sent_at,
            delivered_at=message.delivered_at,
            read_at=message.read_at,
            failed_at=message.failed_at,
            failure_reason=message.failure_reason,
            meta=message.metadata or None,
            created_at=message.created_at,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get_by_id(self, message_id: str) -> ConversationMessageModel | None:
        result = await self._session.execute(
            select(ConversationMessageModel).where(ConversationMessageModel.id == message_id)
        )
        return result.scalar_one_or_none()

    async def get_by_channel_message_id(
        self, channel_message_id: str
    ) -> ConversationMessageModel | None:
        result = await self._session.execute(
            select(ConversationMessageModel).where(
                ConversationMessageModel.channel_message_id == channel_message_id
            )
        )
        return result.scalar_one_or_none()

    async def advance_status(
        self,
        channel_message_id: str,
        status: MessageStatus,
        at: datetime | None = None,
        failure_reason: str | None = None,
    ) -> bool:
        """Guarded update: only rows whose current status may move to ``status`` change."""
        allowed = [s.value for s in statuses_allowing(status)]
        if not allowed:
            return False

        values: dict[str, Any] = {"status": status.value}
        ts_field = timestamp_field_for(status)
        if ts_field:
            values[ts_field] = at or utcnow()
        if status == MessageStatus.FAILED:
            values["failure_reason"] = failure_reason

        result = await self._session.execute(
            update(ConversationMessageModel)
            .where(
                ConversationMessageModel.channel_message_id == channel_message_id,
                ConversationMessageModel.status.in_(allowed),
            )
            .values(**values)
        )
        await self._session.flush()
        return cast(CursorResult[Any], result).rowcount > 0

    async def list_page(
        self,
        conversation_id: str,
        limit: int = 50,
        cursor: str | None = None,
        direction: MessageDirection | None = None,
    ) -> list[ConversationMessageModel]:
        query = select(ConversationMessageModel).where(
            ConversationMessageModel.conversation_id == conversation_id
        )
        if direction:
            query = query.where(ConversationMessageModel.direction == direction.value)
        if cursor:
            anchor = await self.get_by_id(cursor)
            if anchor is not None:
                query = query.where(
                    or_(
                        ConversationMessageModel.created_at < anchor.created_at,
                        and_(
                            ConversationMessageModel.created_at == anchor.created_at,
                            ConversationMessageModel.id < anchor.id,
                        ),
                    )
                )
        query = query.order_by(
            ConversationMessageModel.created_at.desc(), ConversationMessageModel.id.desc()
        ).limit(limit)
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def recent(self, conversation_id: str, limit: int) -> list[ConversationMessageModel]:
        """Last ``limit`` messages, oldest first."""
        if limit <= 0:
            return []
        rows = await self.list_page(conversation_id, limit=limit)
        return list(reversed(rows))

    async def count(self, conversation_id: str) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(ConversationMessageModel)
            .where(ConversationMessageModel.conversation_id == conversation_id)
        )
        return int(result.scalar_one())

    async def count_unread(self, conversation_id: str) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(ConversationMessageModel)
            .where(
                ConversationMessageModel.conversation_id == conversation_id,
                ConversationMessageModel.direction == MessageDirection.INBOUND.value,
                ConversationMessageModel.read_at.is_(None),
            )
        )
        return int(result.scalar_one())


class SqlConversationEventRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        conversation_id: str,
        event_type: ConversationEventType,
        data: dict[str, Any] | None = None,
    ) -> ConversationEventModel:
        row = ConversationEventModel(
            id=ConversationEventModel.generate_id(),
            conversation_id=conversation_id,
            event_type=event_type.value,
            data=data or None,
            created_at=utcnow(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def list_by_conversation(self, conversation_id: str) -> list[ConversationEventModel]:
        result = await self._session.execute(
            select(ConversationEventModel)
            .where(ConversationEventModel.conversation_id == conversation_id)
            .order_by(ConversationEventModel.created_at.asc())
        )
        return list(result.scalars().all())


class SqlStoreConnectionRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_active(self, channel: Channel, store_phone: str) -> StoreConnectionModel | None:
        result = await self._session.execute(
            select(StoreConnectionModel).where(
                StoreConnectionModel.channel == channel.value,
                StoreConnectionModel.store_phone == store_phone,
                StoreConnectionModel.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def get_by_channel_phone(
        self, channel: Channel, store_phone: str
    ) -> StoreConnectionModel | None:
        result = await self._session.execute(
            select(StoreConnectionModel).where(
                StoreConnectionModel.channel == channel.value,
                StoreConnectionModel.store_phone == store_phone,
            )
        )
        return result.scalar_one_or_none()

    async def upsert(self, connection: StoreConnection) -> StoreConnectionModel:
        existing = await self.get_by_channel_phone(connection.channel, connection.store_phone)
        if existing:
            existing.tenant_id = connection.tenant_id
            existing.shop_domain = connection.shop_domain
            existing.is_active = connection.is_active
            await self._session.flush()
            return existing

        row = StoreConnectionModel(
            id=connection.id or StoreConnectionModel.generate_id(),
            tenant_id=connection.tenant_id,
            channel=connection.channel.value,
            store_phone=connection.store_phone,
            shop_domain=connection.shop_domain,
            is_active=connection.is_active,
            created_at=connection.created_at,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def deactivate_shop(self, shop_domain: str) -> int:
        result = await self._session.execute(
            update(StoreConnectionModel)
            .where(
                StoreConnectionModel.shop_domain == shop_domain,
                StoreConnectionModel.is_active.is_(True),
            )
            .values(is_active=False)
        )
        await self._session.flush()
        return cast(CursorResult[Any], result).rowcount

    async def tenant_ids_for_shop(self, shop_domain: str) -> list[str]:
        result = await self._session.execute(
            select(StoreConnectionModel.tenant_id)
            .where(StoreConnectionModel.shop_domain == shop_domain)
            .distinct()
        )
        return list(result.scalars().all())
