"""Operator API for conversations, messages and store connections."""

import logging

from fastapi import APIRouter, Depends, Query, status

from src.application.schemas.conversations import (
    ConversationEventResponse,
    ConversationListResponse,
    ConversationResponse,
    ConversationSummaryResponse,
    MessageListResponse,
    MessageResponse,
    MessageStatusResponse,
    SendMessageRequest,
    StartConversationRequest,
    StartConversationResponse,
    StoreConnectionRequest,
    StoreConnectionResponse,
    UpdateConversationRequest,
)
from src.application.services.conversations import ConversationService
from src.domain.model.enums import Channel, ConversationStatus, MessageDirection
from src.infrastructure.adapters.primary.web.dependencies import (
    get_conversation_service,
    require_api_key,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1",
    tags=["conversations"],
    dependencies=[Depends(require_api_key)],
)


@router.post(
    "/conversations",
    response_model=StartConversationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_conversation(
    data: StartConversationRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> StartConversationResponse:
    """Resolve or create the conversation for a campaign contact."""
    conversation, created = await service.start_conversation(
        tenant_id=data.tenant_id,
        customer_phone=data.customer_phone,
        store_phone=data.store_phone,
        channel=data.channel,
        campaign_id=data.campaign_id,
        shop_domain=data.shop_domain,
        metadata=data.metadata,
    )
    return StartConversationResponse(
        conversation=ConversationResponse.from_domain(conversation), created=created
    )


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    tenant_id: str = Query(..., min_length=1),
    status_filter: ConversationStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationListResponse:
    conversations = await service.list_conversations(
        tenant_id, status=status_filter, limit=limit, offset=offset
    )
    return ConversationListResponse(
        items=[ConversationResponse.from_domain(c) for c in conversations],
        offset=offset,
        limit=limit,
    )


@router.get("/campaigns/{campaign_id}/conversations", response_model=ConversationListResponse)
async def list_campaign_conversations(
    campaign_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationListResponse:
    conversations = await service.list_campaign_conversations(
        campaign_id, limit=limit, offset=offset
    )
    return ConversationListResponse(
        items=[ConversationResponse.from_domain(c) for c in conversations],
        offset=offset,
        limit=limit,
    )


@router.get("/conversations/{conversation_id}", response_model=ConversationSummaryResponse)
async def get_conversation(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationSummaryResponse:
    """Conversation with message count, unread count and last message."""
    summary = await service.get_summary(conversation_id)
    return ConversationSummaryResponse.from_domain(summary)


@router.patch("/conversations/{conversation_id}", response_model=ConversationResponse)
async def update_conversation(
    conversation_id: str,
    data: UpdateConversationRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationResponse:
    conversation = await service.update_status(conversation_id, data.status)
    logger.info(f"Conversation {conversation_id} set to {data.status.value}")
    return ConversationResponse.from_domain(conversation)


@router.get("/conversations/{conversation_id}/messages", response_model=MessageListResponse)
async def list_messages(
    conversation_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    cursor: str | None = Query(default=None),
    direction: MessageDirection | None = Query(default=None),
    service: ConversationService = Depends(get_conversation_service),
) -> MessageListResponse:
    """Newest first; ``cursor`` is a message id and returns older messages."""
    messages = await service.list_messages(
        conversation_id, limit=limit, cursor=cursor, direction=direction
    )
    next_cursor = messages[-1].id if len(messages) == limit else None
    return MessageListResponse(
        items=[MessageResponse.from_domain(m) for m in messages], next_cursor=next_cursor
    )


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: str,
    data: SendMessageRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> MessageResponse:
    """Operator send. A provider failure is recorded on the message, not raised."""
    message = await service.send_message(
        conversation_id,
        content=data.content,
        template_name=data.template_name,
        template_params=data.template_params,
        template_language=data.template_language,
    )
    return MessageResponse.from_domain(message)


@router.get(
    "/conversations/{conversation_id}/events",
    response_model=list[ConversationEventResponse],
)
async def list_events(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> list[ConversationEventResponse]:
    events = await service.list_events(conversation_id)
    return [ConversationEventResponse.from_domain(e) for e in events]


@router.post(
    "/channels/{channel}/messages/{channel_message_id}/status",
    response_model=MessageStatusResponse,
)
async def poll_message_status(
    channel: Channel,
    channel_message_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> MessageStatusResponse:
    """Fetch a delivery status from the provider and apply it."""
    result = await service.poll_message_status(channel, channel_message_id)
    return MessageStatusResponse(
        channel=channel.value,
        channel_message_id=channel_message_id,
        status=result,
        available=result is not None,
    )


@router.post(
    "/store-connections",
    response_model=StoreConnectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_store_connection(
    data: StoreConnectionRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> StoreConnectionResponse:
    """Bind a receiving number to a tenant and its shop."""
    connection = await service.register_store_connection(
        tenant_id=data.tenant_id,
        channel=data.channel,
        store_phone=data.store_phone,
        shop_domain=data.shop_domain,
    )
    return StoreConnectionResponse.from_domain(connection)
