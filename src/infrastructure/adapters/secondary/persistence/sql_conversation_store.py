"""
SQLAlchemy implementation of ConversationStorePort.

Each operation opens its own session and commits before returning, so no
session is ever held across a model, tool or provider call. Concurrency
safety comes from unique constraints rather than locks: a losing insert
rolls back and re-reads the winner.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.domain.exceptions import ConversationNotFoundError, MessageNotFoundError
from src.domain.model.conversations import (
    Conversation,
    ConversationEvent,
    ConversationSummary,
    Message,
    StoreConnection,
    timestamp_field_for,
)
from src.domain.model.enums import (
    Channel,
    ConversationEventType,
    ConversationStatus,
    MessageDirection,
    MessageStatus,
)
from src.domain.shared_kernel import utcnow
from src.infrastructure.adapters.secondary.persistence.conversation_repository import (
    SqlConversationEventRepository,
    SqlConversationRepository,
    SqlMessageRepository,
    SqlStoreConnectionRepository,
    conversation_to_domain,
    event_to_domain,
    message_to_domain,
    store_connection_to_domain,
)

logger = logging.getLogger(__name__)


class SqlConversationStore:
    """Durable conversation state backed by an async session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def get(self, conversation_id: str) -> Conversation:
        async with self._session() as session:
            row = await SqlConversationRepository(session).get_by_id(conversation_id)
            if row is None:
                raise ConversationNotFoundError(conversation_id)
            return conversation_to_domain(row)

    async def resolve_or_create(self, conversation: Conversation) -> tuple[Conversation, bool]:
        tenant_id, customer_phone, store_phone = conversation.natural_key
        async with self._session() as session:
            conversations = SqlConversationRepository(session)
            row = await conversations.get_by_natural_key(tenant_id, customer_phone, store_phone)
            if row is not None:
                return conversation_to_domain(row), False

            try:
                row = await conversations.add(conversation)
                await SqlConversationEventRepository(session).add(
                    row.id,
                    ConversationEventType.CONVERSATION_CREATED,
                    {"channel": row.channel, "campaign_id": row.campaign_id},
                )
                await session.commit()
            except IntegrityError:
                await session.rollback()
                row = await conversations.get_by_natural_key(
                    tenant_id, customer_phone, store_phone
                )
                if row is None:
                    raise
                logger.debug(
                    f"[ConversationStore] Lost create race for {tenant_id}/{customer_phone}; "
                    f"using {row.id}"
                )
                return conversation_to_domain(row), False

            logger.info(
                f"[ConversationStore] Created conversation {row.id} "
                f"tenant={tenant_id} channel={row.channel}"
            )
            return conversation_to_domain(row), True

    async def create(self, conversation: Conversation) -> Conversation:
        created, _ = await self.resolve_or_create(conversation)
        return created

    async def update_status(
        self, conversation_id: str, status: ConversationStatus
    ) -> Conversation:
        async with self._session() as session:
            conversations = SqlConversationRepository(session)
            row = await conversations.get_by_id(conversation_id)
            if row is None:
                raise ConversationNotFoundError(conversation_id)
            previous = row.status
            if await conversations.set_status(conversation_id, status):
                await SqlConversationEventRepository(session).add(
                    conversation_id,
                    ConversationEventType.STATUS_CHANGED,
                    {"from": previous, "to": status.value},
                )
            await session.commit()
            await session.refresh(row)
            return conversation_to_domain(row)

    async def list_by_tenant(
        self,
        tenant_id: str,
        status: ConversationStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Conversation]:
        async with self._session() as session:
            rows = await SqlConversationRepository(session).list_by_tenant(
                tenant_id, status=status, limit=limit, offset=offset
            )
            return [conversation_to_domain(row) for row in rows]

    async def list_by_campaign(
        self, campaign_id: str, limit: int = 50, offset: int = 0
    ) -> list[Conversation]:
        async with self._session() as session:
            rows = await SqlConversationRepository(session).list_by_campaign(
                campaign_id, limit=limit, offset=offset
            )
            return [conversation_to_domain(row) for row in rows]

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def append_message(self, conversation_id: str, message: Message) -> tuple[Message, bool]:
        async with self._session() as session:
            conversations = SqlConversationRepository(session)
            messages = SqlMessageRepository(session)

            if await conversations.get_by_id(conversation_id) is None:
                raise ConversationNotFoundError(conversation_id)

            if message.channel_message_id:
                existing = await messages.get_by_channel_message_id(message.channel_message_id)
                if existing is not None:
                    return message_to_domain(existing), False

            try:
                row = await messages.add(conversation_id, message)
                await conversations.advance_last_message_at(conversation_id, row.created_at)
                if message.direction == MessageDirection.INBOUND:
                    await SqlConversationEventRepository(session).add(
                        conversation_id,
                        ConversationEventType.MESSAGE_RECEIVED,
                        {"message_id": row.id, "channel_message_id": row.channel_message_id},
                    )
                await session.commit()
            except IntegrityError:
                await session.rollback()
                if not message.channel_message_id:
                    raise
                existing = await messages.get_by_channel_message_id(message.channel_message_id)
                if existing is None:
                    raise
                logger.debug(
                    f"[ConversationStore] Duplicate message {message.channel_message_id} absorbed"
                )
                return message_to_domain(existing), False

            return message_to_domain(row), True

    async def record_send_result(
        self,
        message_id: str,
        status: MessageStatus,
        channel_message_id: str | None = None,
        provider_id: str | None = None,
        failure_reason: str | None = None,
    ) -> Message:
        async with self._session() as session:
            messages = SqlMessageRepository(session)
            row = await messages.get_by_id(message_id)
            if row is None:
                raise MessageNotFoundError(message_id)

            if channel_message_id:
                row.channel_message_id = channel_message_id
            if provider_id:
                row.provider_id = provider_id

            message = message_to_domain(row)
            if message.apply_status(status, utcnow(), failure_reason):
                row.status = message.status.value
                ts_field = timestamp_field_for(message.status)
                if ts_field:
                    setattr(row, ts_field, getattr(message, ts_field))
                row.failure_reason = message.failure_reason
                event_type = (
                    ConversationEventType.MESSAGE_FAILED
                    if message.status == MessageStatus.FAILED
                    else ConversationEventType.MESSAGE_SENT
                )
                await SqlConversationEventRepository(session).add(
                    row.conversation_id,
                    event_type,
                    {
                        "message_id": row.id,
                        "channel_message_id": row.channel_message_id,
                        "provider_id": row.provider_id,
                        "failure_reason": row.failure_reason,
                    },
                )

            await session.commit()
            return message_to_domain(row)

    async def update_message_status(
        self,
        channel_message_id: str,
        status: MessageStatus,
        at: datetime | None = None,
        failure_reason: str | None = None,
    ) -> bool:
        async with self._session() as session:
            messages = SqlMessageRepository(session)
            row = await messages.get_by_channel_message_id(channel_message_id)
            if row is None:
                raise MessageNotFoundError(channel_message_id)

            previous = row.status
            changed = await messages.advance_status(
                channel_message_id, status, at=at, failure_reason=failure_reason
            )
            if changed:
                await SqlConversationEventRepository(session).add(
                    row.conversation_id,
                    ConversationEventType.MESSAGE_STATUS_CHANGED,
                    {
                        "message_id": row.id,
                        "channel_message_id": channel_message_id,
                        "from": previous,
                        "to": status.value,
                    },
                )
            await session.commit()

        if not changed:
            logger.debug(
                f"[ConversationStore] Ignored status {status.value} for {channel_message_id} "
                f"(current: {previous})"
            )
        return changed

    async def list_messages(
        self,
        conversation_id: str,
        limit: int = 50,
        cursor: str | None = None,
        direction: MessageDirection | None = None,
    ) -> list[Message]:
        async with self._session() as session:
            rows = await SqlMessageRepository(session).list_page(
                conversation_id, limit=limit, cursor=cursor, direction=direction
            )
            return [message_to_domain(row) for row in rows]

    async def recent_messages(self, conversation_id: str, limit: int) -> list[Message]:
        async with self._session() as session:
            rows = await SqlMessageRepository(session).recent(conversation_id, limit)
            return [message_to_domain(row) for row in rows]

    async def get_summary(self, conversation_id: str) -> ConversationSummary:
        async with self._session() as session:
            row = await SqlConversationRepository(session).get_by_id(conversation_id)
            if row is None:
                raise ConversationNotFoundError(conversation_id)
            messages = SqlMessageRepository(session)
            latest = await messages.list_page(conversation_id, limit=1)
            return ConversationSummary(
                conversation=conversation_to_domain(row),
                message_count=await messages.count(conversation_id),
                unread_count=await messages.count_unread(conversation_id),
                last_message=message_to_domain(latest[0]) if latest else None,
            )

    async def list_events(self, conversation_id: str) -> list[ConversationEvent]:
        async with self._session() as session:
            rows = await SqlConversationEventRepository(session).list_by_conversation(
                conversation_id
            )
            return [event_to_domain(row) for row in rows]

    # ------------------------------------------------------------------
    # Store connections
    # ------------------------------------------------------------------

    async def resolve_store(self, channel: Channel, store_phone: str) -> StoreConnection | None:
        async with self._session() as session:
            row = await SqlStoreConnectionRepository(session).get_active(channel, store_phone)
            return store_connection_to_domain(row) if row else None

    async def save_store_connection(self, connection: StoreConnection) -> StoreConnection:
        async with self._session() as session:
            repo = SqlStoreConnectionRepository(session)
            try:
                row = await repo.upsert(connection)
                await session.commit()
            except IntegrityError:
                await session.rollback()
                row = await repo.upsert(connection)
                await session.commit()
            return store_connection_to_domain(row)

    async def deactivate_shop(self, shop_domain: str) -> int:
        async with self._session() as session:
            count = await SqlStoreConnectionRepository(session).deactivate_shop(shop_domain)
            await session.commit()
        logger.info(f"[ConversationStore] Deactivated {count} store connection(s) for {shop_domain}")
        return count

    async def archive_customer_conversations(self, shop_domain: str, customer_phone: str) -> int:
        """Archive every open conversation between ``customer_phone`` and the shop."""
        async with self._session() as session:
            tenant_ids = set(
                await SqlStoreConnectionRepository(session).tenant_ids_for_shop(shop_domain)
            )
            conversations = SqlConversationRepository(session)
            events = SqlConversationEventRepository(session)
            archived = 0
            for row in await conversations.list_open_for_customer(customer_phone):
                bound_shop = (row.meta or {}).get("shop_domain")
                if row.tenant_id not in tenant_ids and bound_shop != shop_domain:
                    continue
                previous = row.status
                if await conversations.set_status(row.id, ConversationStatus.ARCHIVED):
                    await events.add(
                        row.id,
                        ConversationEventType.STATUS_CHANGED,
                        {"from": previous, "to": ConversationStatus.ARCHIVED.value},
                    )
                    archived += 1
            await session.commit()
        return archived
