"""
Unit tests for SqlConversationStore against SQLite.

The database is a file under ``tmp_path`` so that concurrent sessions
share committed state the way they would on PostgreSQL.
"""

import asyncio

import pytest

from src.domain.exceptions import ConversationNotFoundError, MessageNotFoundError
from src.domain.model.conversations import Conversation, Message, StoreConnection
from src.domain.model.enums import (
    Channel,
    ConversationEventType,
    ConversationStatus,
    MessageDirection,
    MessageStatus,
)
from src.infrastructure.adapters.secondary.persistence.conversation_repository import (
    SqlMessageRepository,
)
from src.tests.conftest import TEST_TENANT_ID
from src.tests.unit.fixtures.commerce_fixtures import CUSTOMER_PHONE, SHOP_DOMAIN, STORE_PHONE


def _conversation(customer_phone: str = CUSTOMER_PHONE, **kwargs) -> Conversation:
    return Conversation(
        tenant_id=kwargs.pop("tenant_id", TEST_TENANT_ID),
        customer_phone=customer_phone,
        store_phone=kwargs.pop("store_phone", STORE_PHONE),
        **kwargs,
    )


def _inbound(conversation_id: str, content: str = "Hello", sid: str | None = None) -> Message:
    return Message(
        conversation_id=conversation_id,
        direction=MessageDirection.INBOUND,
        content=content,
        status=MessageStatus.DELIVERED,
        channel_message_id=sid,
    )


def _outbound(conversation_id: str, content: str = "Hi! How can I help?") -> Message:
    return Message(
        conversation_id=conversation_id,
        direction=MessageDirection.OUTBOUND,
        content=content,
        status=MessageStatus.PENDING,
    )


@pytest.mark.unit
class TestResolveOrCreate:
    async def test_creates_then_resolves(self, store):
        created, was_created = await store.resolve_or_create(_conversation())
        resolved, was_created_again = await store.resolve_or_create(_conversation())

        assert was_created is True
        assert was_created_again is False
        assert resolved.id == created.id
        assert resolved.status == ConversationStatus.ACTIVE

    async def test_concurrent_resolution_yields_one_conversation(self, store):
        results = await asyncio.gather(*(store.resolve_or_create(_conversation()) for _ in range(8)))

        ids = {conversation.id for conversation, _ in results}
        assert len(ids) == 1
        assert sum(1 for _, created in results if created) == 1
        assert len(await store.list_by_tenant(TEST_TENANT_ID)) == 1

    async def test_natural_key_includes_store_phone(self, store):
        first, _ = await store.resolve_or_create(_conversation())
        second, created = await store.resolve_or_create(_conversation(store_phone="+15558887777"))

        assert created is True
        assert first.id != second.id

    async def test_creation_recorded_as_event(self, store, conversation):
        events = await store.list_events(conversation.id)

        assert [event.event_type for event in events] == [
            ConversationEventType.CONVERSATION_CREATED
        ]

    async def test_get_unknown_raises(self, store):
        with pytest.raises(ConversationNotFoundError):
            await store.get("missing")


@pytest.mark.unit
class TestAppendMessage:
    async def test_append_advances_last_message_at(self, store, conversation):
        message, created = await store.append_message(conversation.id, _inbound(conversation.id))

        assert created is True
        refreshed = await store.get(conversation.id)
        assert refreshed.last_message_at == message.created_at

    async def test_duplicate_provider_id_is_absorbed(self, store, conversation):
        first, created = await store.append_message(
            conversation.id, _inbound(conversation.id, sid="SM-dup")
        )
        second, created_again = await store.append_message(
            conversation.id, _inbound(conversation.id, content="retry", sid="SM-dup")
        )

        assert created is True
        assert created_again is False
        assert second.id == first.id
        assert second.content == "Hello"
        assert len(await store.list_messages(conversation.id)) == 1

    async def test_concurrent_duplicates_store_one_row(self, store, conversation):
        results = await asyncio.gather(
            *(
                store.append_message(conversation.id, _inbound(conversation.id, sid="SM-race"))
                for _ in range(5)
            )
        )

        assert sum(1 for _, created in results if created) == 1
        assert len({message.id for message, _ in results}) == 1

    async def test_unknown_conversation_rejected(self, store):
        with pytest.raises(ConversationNotFoundError):
            await store.append_message("missing", _inbound("missing"))

    async def test_inbound_recorded_as_event(self, store, conversation):
        await store.append_message(conversation.id, _inbound(conversation.id, sid="SM-1"))
        await store.append_message(conversation.id, _outbound(conversation.id))

        types = [event.event_type for event in await store.list_events(conversation.id)]
        assert types.count(ConversationEventType.MESSAGE_RECEIVED) == 1


@pytest.mark.unit
class TestSendResultAndStatus:
    async def test_record_send_result(self, store, conversation):
        pending, _ = await store.append_message(conversation.id, _outbound(conversation.id))

        sent = await store.record_send_result(
            pending.id, MessageStatus.SENT, channel_message_id="SM-out", provider_id="twilio"
        )

        assert sent.status == MessageStatus.SENT
        assert sent.channel_message_id == "SM-out"
        assert sent.provider_id == "twilio"
        assert sent.sent_at is not None

    async def test_record_failed_send(self, store, conversation):
        pending, _ = await store.append_message(conversation.id, _outbound(conversation.id))

        failed = await store.record_send_result(
            pending.id, MessageStatus.FAILED, failure_reason="Send via twilio failed: busy"
        )

        assert failed.status == MessageStatus.FAILED
        assert failed.failure_reason == "Send via twilio failed: busy"
        types = [event.event_type for event in await store.list_events(conversation.id)]
        assert ConversationEventType.MESSAGE_FAILED in types

    async def test_status_never_regresses(self, store, conversation):
        pending, _ = await store.append_message(conversation.id, _outbound(conversation.id))
        await store.record_send_result(pending.id, MessageStatus.SENT, channel_message_id="SM-out")

        assert await store.update_message_status("SM-out", MessageStatus.DELIVERED) is True
        assert await store.update_message_status("SM-out", MessageStatus.SENT) is False
        assert await store.update_message_status("SM-out", MessageStatus.DELIVERED) is False
        assert await store.update_message_status("SM-out", MessageStatus.READ) is True
        assert await store.update_message_status("SM-out", MessageStatus.FAILED) is False

        [message] = [m for m in await store.list_messages(conversation.id) if m.id == pending.id]
        assert message.status == MessageStatus.READ
        assert message.delivered_at is not None
        assert message.read_at is not None

    async def test_failed_from_delivered_keeps_reason(self, store, conversation):
        pending, _ = await store.append_message(conversation.id, _outbound(conversation.id))
        await store.record_send_result(pending.id, MessageStatus.SENT, channel_message_id="SM-out")
        await store.update_message_status("SM-out", MessageStatus.DELIVERED)

        changed = await store.update_message_status(
            "SM-out", MessageStatus.FAILED, failure_reason="carrier violation (code 30007)"
        )

        assert changed is True
        [message] = await store.list_messages(conversation.id)
        assert message.failure_reason == "carrier violation (code 30007)"

    async def test_unknown_provider_id_raises(self, store):
        with pytest.raises(MessageNotFoundError):
            await store.update_message_status("SM-nope", MessageStatus.DELIVERED)


@pytest.mark.unit
class TestListing:
    async def test_messages_newest_first_with_cursor(self, store, conversation):
        stored = []
        for index in range(5):
            message, _ = await store.append_message(
                conversation.id, _inbound(conversation.id, content=f"m{index}", sid=f"SM-{index}")
            )
            stored.append(message)

        first_page = await store.list_messages(conversation.id, limit=2)
        second_page = await store.list_messages(conversation.id, limit=2, cursor=first_page[-1].id)

        assert [m.content for m in first_page] == ["m4", "m3"]
        assert [m.content for m in second_page] == ["m2", "m1"]

    async def test_direction_filter(self, store, conversation):
        await store.append_message(conversation.id, _inbound(conversation.id, sid="SM-1"))
        await store.append_message(conversation.id, _outbound(conversation.id))

        outbound = await store.list_messages(conversation.id, direction=MessageDirection.OUTBOUND)

        assert [m.direction for m in outbound] == [MessageDirection.OUTBOUND]

    async def test_recent_messages_oldest_first(self, store, conversation):
        for index in range(4):
            await store.append_message(
                conversation.id, _inbound(conversation.id, content=f"m{index}", sid=f"SM-{index}")
            )

        recent = await store.recent_messages(conversation.id, 3)

        assert [m.content for m in recent] == ["m1", "m2", "m3"]

    async def test_summary(self, store, conversation):
        await store.append_message(conversation.id, _inbound(conversation.id, sid="SM-1"))
        await store.append_message(conversation.id, _inbound(conversation.id, sid="SM-2"))
        reply, _ = await store.append_message(conversation.id, _outbound(conversation.id))

        summary = await store.get_summary(conversation.id)

        assert summary.message_count == 3
        assert summary.unread_count == 2
        assert summary.last_message.id == reply.id

    async def test_list_by_tenant_with_status(self, store):
        first, _ = await store.resolve_or_create(_conversation("+15550000001"))
        await store.resolve_or_create(_conversation("+15550000002"))
        await store.update_status(first.id, ConversationStatus.PAUSED)

        paused = await store.list_by_tenant(TEST_TENANT_ID, status=ConversationStatus.PAUSED)

        assert [c.id for c in paused] == [first.id]

    async def test_list_by_campaign(self, store):
        await store.resolve_or_create(_conversation("+15550000001", campaign_id="spring"))
        await store.resolve_or_create(_conversation("+15550000002"))

        assert len(await store.list_by_campaign("spring")) == 1

    async def test_update_status_records_transition(self, store, conversation):
        updated = await store.update_status(conversation.id, ConversationStatus.RESOLVED)

        assert updated.status == ConversationStatus.RESOLVED
        events = await store.list_events(conversation.id)
        assert events[-1].event_type == ConversationEventType.STATUS_CHANGED
        assert events[-1].data == {"from": "active", "to": "resolved"}


@pytest.mark.unit
class TestStoreConnections:
    async def test_resolve_store(self, store):
        await store.save_store_connection(
            StoreConnection(
                tenant_id="tenant-b",
                channel=Channel.SMS,
                store_phone=STORE_PHONE,
                shop_domain=SHOP_DOMAIN,
            )
        )

        connection = await store.resolve_store(Channel.SMS, STORE_PHONE)

        assert connection.tenant_id == "tenant-b"
        assert connection.shop_domain == SHOP_DOMAIN
        assert await store.resolve_store(Channel.WHATSAPP, STORE_PHONE) is None

    async def test_save_rebinds_existing_number(self, store):
        await store.save_store_connection(
            StoreConnection(tenant_id="tenant-a", channel=Channel.SMS, store_phone=STORE_PHONE)
        )
        await store.save_store_connection(
            StoreConnection(tenant_id="tenant-b", channel=Channel.SMS, store_phone=STORE_PHONE)
        )

        assert (await store.resolve_store(Channel.SMS, STORE_PHONE)).tenant_id == "tenant-b"

    async def test_deactivate_shop(self, store):
        await store.save_store_connection(
            StoreConnection(
                tenant_id="tenant-a",
                channel=Channel.SMS,
                store_phone=STORE_PHONE,
                shop_domain=SHOP_DOMAIN,
            )
        )

        assert await store.deactivate_shop(SHOP_DOMAIN) == 1
        assert await store.resolve_store(Channel.SMS, STORE_PHONE) is None

    async def test_archive_customer_conversations(self, store, conversation):
        other, _ = await store.resolve_or_create(
            _conversation(tenant_id="tenant-other", metadata={"shop_domain": "other.example.com"})
        )

        archived = await store.archive_customer_conversations(SHOP_DOMAIN, CUSTOMER_PHONE)

        assert archived == 1
        assert (await store.get(conversation.id)).status == ConversationStatus.ARCHIVED
        assert (await store.get(other.id)).status == ConversationStatus.ACTIVE


@pytest.mark.unit
class TestSqlMessageRepository:
    async def test_page_and_recent_share_ordering(self, store, session_factory, conversation):
        for index in range(4):
            await store.append_message(
                conversation.id, _inbound(conversation.id, content=f"m{index}", sid=f"SM-{index}")
            )

        async with session_factory() as session:
            messages = SqlMessageRepository(session)
            page = await messages.list_page(conversation.id, limit=2)
            older = await messages.list_page(conversation.id, limit=5, cursor=page[-1].id)
            recent = await messages.recent(conversation.id, 2)

        assert [row.content for row in page] == ["m3", "m2"]
        assert [row.content for row in older] == ["m1", "m0"]
        assert [row.content for row in recent] == ["m2", "m3"]

    async def test_recent_with_zero_limit(self, session_factory, conversation):
        async with session_factory() as session:
            assert await SqlMessageRepository(session).recent(conversation.id, 0) == []
