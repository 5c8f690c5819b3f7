"""Conversation service: the operator-facing operations on conversations."""

import logging
from typing import Any

from src.application.services.conversations.conversation_actor import (
    ConversationActor,
    OutboundRequest,
)
from src.domain.exceptions import MessageNotFoundError, ValidationError
from src.domain.model.conversations import (
    Conversation,
    ConversationEvent,
    ConversationSummary,
    Message,
    StoreConnection,
)
from src.domain.model.enums import Channel, ConversationStatus, MessageDirection, MessageStatus
from src.domain.model.messaging import MessageKind, StatusCallback
from src.domain.ports import ConversationStorePort
from src.infrastructure.adapters.secondary.channels.provider_gateway import (
    MessageProviderGateway,
)

logger = logging.getLogger(__name__)


class ConversationService:
    """Service for managing conversations outside the webhook path."""

    def __init__(
        self,
        store: ConversationStorePort,
        actor: ConversationActor,
        gateway: MessageProviderGateway,
    ) -> None:
        self._store = store
        self._actor = actor
        self._gateway = gateway

    async def start_conversation(
        self,
        tenant_id: str,
        customer_phone: str,
        store_phone: str,
        channel: Channel = Channel.SMS,
        campaign_id: str | None = None,
        shop_domain: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> tuple[Conversation, bool]:
        """
        Resolve or create the conversation for a campaign contact.

        Raises:
            ValidationError: The channel provider rejects the customer address
        """
        if not await self._gateway.validate_address(channel, customer_phone):
            raise ValidationError(
                f"Invalid {channel.value} address: {customer_phone}", field="customer_phone"
            )

        data = dict(metadata or {})
        if shop_domain:
            data["shop_domain"] = shop_domain
        conversation, created = await self._store.resolve_or_create(
            Conversation(
                tenant_id=tenant_id,
                customer_phone=customer_phone,
                store_phone=store_phone,
                channel=channel,
                campaign_id=campaign_id,
                metadata=data,
            )
        )
        if created:
            logger.info(f"Started conversation {conversation.id} for tenant {tenant_id}")
        return conversation, created

    async def get_conversation(self, conversation_id: str) -> Conversation:
        return await self._store.get(conversation_id)

    async def get_summary(self, conversation_id: str) -> ConversationSummary:
        return await self._store.get_summary(conversation_id)

    async def list_conversations(
        self,
        tenant_id: str,
        status: ConversationStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Conversation]:
        return await self._store.list_by_tenant(tenant_id, status=status, limit=limit, offset=offset)

    async def list_campaign_conversations(
        self, campaign_id: str, limit: int = 50, offset: int = 0
    ) -> list[Conversation]:
        return await self._store.list_by_campaign(campaign_id, limit=limit, offset=offset)

    async def list_messages(
        self,
        conversation_id: str,
        limit: int = 50,
        cursor: str | None = None,
        direction: MessageDirection | None = None,
    ) -> list[Message]:
        # Raises ConversationNotFoundError for unknown ids instead of an empty page
        await self._store.get(conversation_id)
        return await self._store.list_messages(
            conversation_id, limit=limit, cursor=cursor, direction=direction
        )

    async def list_events(self, conversation_id: str) -> list[ConversationEvent]:
        await self._store.get(conversation_id)
        return await self._store.list_events(conversation_id)

    async def update_status(
        self, conversation_id: str, status: ConversationStatus
    ) -> Conversation:
        return await self._store.update_status(conversation_id, status)

    async def send_message(
        self,
        conversation_id: str,
        content: str = "",
        template_name: str | None = None,
        template_params: list[str] | None = None,
        template_language: str | None = None,
    ) -> Message:
        """Operator-initiated send; recorded exactly like an AI reply."""
        kind = MessageKind.TEMPLATE if template_name else MessageKind.TEXT
        if kind == MessageKind.TEXT and not content.strip():
            raise ValidationError("Message content is required", field="content")
        return await self._actor.send_outbound(
            conversation_id,
            OutboundRequest(
                content=content,
                kind=kind,
                template_name=template_name,
                template_params=tuple(template_params or ()),
                template_language=template_language,
                origin="operator",
            ),
        )

    async def poll_message_status(
        self, channel: Channel, channel_message_id: str
    ) -> MessageStatus | None:
        """
        Ask the provider for a message's status and apply it.

        Returns None when the provider has no status API or does not know the
        message; that is expected for webhook-only providers.
        """
        try:
            status = await self._gateway.get_message_status(channel, channel_message_id)
        except MessageNotFoundError:
            logger.info(f"Status for {channel_message_id} not available from {channel.value}")
            return None

        await self._actor.handle_status_callback(
            StatusCallback(
                channel=channel,
                channel_message_id=channel_message_id,
                status=status,
                channel_status=status.value,
            )
        )
        return status

    async def register_store_connection(
        self,
        tenant_id: str,
        channel: Channel,
        store_phone: str,
        shop_domain: str | None = None,
    ) -> StoreConnection:
        return await self._store.save_store_connection(
            StoreConnection(
                tenant_id=tenant_id,
                channel=channel,
                store_phone=store_phone,
                shop_domain=shop_domain,
            )
        )
