"""
ConversationStorePort - durable state for conversations and their messages.

All writes are safe under concurrent callers without external locking:
conversation creation is resolve-or-create on the natural key and message
appends are idempotent on ``channel_message_id``.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Protocol, runtime_checkable

from src.domain.model.conversations import (
    Conversation,
    ConversationEvent,
    ConversationSummary,
    Message,
    StoreConnection,
)
from src.domain.model.enums import Channel, ConversationStatus, MessageDirection, MessageStatus


@runtime_checkable
class ConversationStorePort(Protocol):
    @abstractmethod
    async def get(self, conversation_id: str) -> Conversation:
        """Raises ConversationNotFoundError on a miss."""
        ...

    @abstractmethod
    async def resolve_or_create(self, conversation: Conversation) -> tuple[Conversation, bool]:
        """
        Return the conversation for ``conversation.natural_key``, creating it
        from ``conversation`` when absent. The flag is True only for the
        caller whose insert won.
        """
        ...

    @abstractmethod
    async def create(self, conversation: Conversation) -> Conversation: ...

    @abstractmethod
    async def update_status(
        self, conversation_id: str, status: ConversationStatus
    ) -> Conversation: ...

    @abstractmethod
    async def append_message(self, conversation_id: str, message: Message) -> tuple[Message, bool]:
        """
        Append ``message`` and advance ``last_message_at``. When the message
        carries a ``channel_message_id`` that already exists, the stored
        message is returned with False and nothing is written.
        """
        ...

    @abstractmethod
    async def record_send_result(
        self,
        message_id: str,
        status: MessageStatus,
        channel_message_id: str | None = None,
        provider_id: str | None = None,
        failure_reason: str | None = None,
    ) -> Message: ...

    @abstractmethod
    async def update_message_status(
        self,
        channel_message_id: str,
        status: MessageStatus,
        at: datetime | None = None,
        failure_reason: str | None = None,
    ) -> bool:
        """
        Apply a forward-only status change. Returns False when the change
        would regress or repeat the stored status.

        Raises:
            MessageNotFoundError: No message carries ``channel_message_id``.
        """
        ...

    @abstractmethod
    async def list_by_tenant(
        self,
        tenant_id: str,
        status: ConversationStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Conversation]: ...

    @abstractmethod
    async def list_by_campaign(
        self, campaign_id: str, limit: int = 50, offset: int = 0
    ) -> list[Conversation]: ...

    @abstractmethod
    async def list_messages(
        self,
        conversation_id: str,
        limit: int = 50,
        cursor: str | None = None,
        direction: MessageDirection | None = None,
    ) -> list[Message]:
        """Newest first. ``cursor`` is a message id; only older messages follow it."""
        ...

    @abstractmethod
    async def recent_messages(self, conversation_id: str, limit: int) -> list[Message]:
        """The last ``limit`` messages in chronological order."""
        ...

    @abstractmethod
    async def get_summary(self, conversation_id: str) -> ConversationSummary: ...

    @abstractmethod
    async def list_events(self, conversation_id: str) -> list[ConversationEvent]: ...

    @abstractmethod
    async def resolve_store(self, channel: Channel, store_phone: str) -> StoreConnection | None: ...

    @abstractmethod
    async def save_store_connection(self, connection: StoreConnection) -> StoreConnection: ...

    @abstractmethod
    async def deactivate_shop(self, shop_domain: str) -> int: ...

    @abstractmethod
    async def archive_customer_conversations(self, shop_domain: str, customer_phone: str) -> int: ...
