"""
Conversation Actor - the single writer for each conversation.

Every operation that reads and then mutates one conversation (append the
inbound message, run the AI turn, send and record the reply) runs in that
conversation's lane of a KeyedSerializer, so two webhooks for the same
customer never interleave. Status callbacks use their own lane keyed by the
provider message id and never wait behind an AI turn.
"""

import asyncio
import logging
from dataclasses import dataclass

from src.application.services.agent.ai_orchestrator import AIOrchestrator
from src.application.services.agent.prompts import ACKNOWLEDGEMENT_REPLY
from src.application.services.conversations.keyed_serializer import KeyedSerializer
from src.application.services.conversations.status_buffer import EarlyStatusBuffer
from src.domain.exceptions import (
    CommerceError,
    ConnectionError,
    MessageNotFoundError,
    ProviderSendError,
)
from src.domain.model.agent import AgentTurnResult
from src.domain.model.conversations import Conversation, Message
from src.domain.model.enums import (
    Channel,
    ConversationStatus,
    MessageDirection,
    MessageStatus,
)
from src.domain.model.messaging import (
    MessageKind,
    NormalizedInbound,
    ProviderSendResult,
    SendRequest,
    StatusCallback,
)
from src.domain.ports import ConversationStorePort
from src.domain.shared_kernel import utcnow
from src.infrastructure.adapters.secondary.channels.provider_gateway import (
    MessageProviderGateway,
)
from src.infrastructure.logging_context import bind_conversation

logger = logging.getLogger(__name__)


@dataclass
class InboundOutcome:
    """What happened to one inbound message."""

    conversation_id: str
    inbound_message: Message
    duplicate: bool = False
    turn: AgentTurnResult | None = None
    outbound_message: Message | None = None

    @property
    def response_text(self) -> str | None:
        return self.turn.response_text if self.turn else None

    @property
    def delivered_to_provider(self) -> bool:
        return (
            self.outbound_message is not None
            and self.outbound_message.status != MessageStatus.FAILED
        )


@dataclass
class OutboundRequest:
    """An outbound message for a conversation, from the AI or an operator."""

    content: str = ""
    kind: MessageKind = MessageKind.TEXT
    template_name: str | None = None
    template_params: tuple[str, ...] = ()
    template_language: str | None = None
    origin: str = "ai"
    # None sends on the channel the conversation was opened on
    channel: Channel | None = None

    @property
    def stored_content(self) -> str:
        if self.kind == MessageKind.TEMPLATE:
            params = ", ".join(self.template_params)
            return self.content or f"[Template: {self.template_name}]" + (
                f" ({params})" if params else ""
            )
        return self.content


class ConversationActor:
    """Owns the read-modify-write cycle for each conversation."""

    def __init__(
        self,
        store: ConversationStorePort,
        orchestrator: AIOrchestrator,
        gateway: MessageProviderGateway,
        serializer: KeyedSerializer | None = None,
        status_buffer: EarlyStatusBuffer | None = None,
        retry_backoff_seconds: float = 1.0,
        status_callback_url: str | None = None,
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._gateway = gateway
        self._serializer = serializer if serializer is not None else KeyedSerializer()
        self._status_buffer = status_buffer if status_buffer is not None else EarlyStatusBuffer()
        self._retry_backoff_seconds = retry_backoff_seconds
        self._status_callback_url = status_callback_url

    @property
    def serializer(self) -> KeyedSerializer:
        return self._serializer

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def handle_inbound(self, conversation_id: str, inbound: NormalizedInbound) -> InboundOutcome:
        """Record ``inbound``, run the AI turn and send the reply, in arrival order."""
        return await self._serializer.run(
            conversation_id, lambda: self._process_inbound(conversation_id, inbound)
        )

    async def _process_inbound(
        self, conversation_id: str, inbound: NormalizedInbound
    ) -> InboundOutcome:
        with bind_conversation(conversation_id):
            conversation = await self._store.get(conversation_id)
            message = Message(
                conversation_id=conversation_id,
                direction=MessageDirection.INBOUND,
                content=inbound.body,
                status=MessageStatus.DELIVERED,
                message_type=inbound.message_type,
                channel_message_id=inbound.channel_message_id,
                sent_at=inbound.timestamp,
                delivered_at=utcnow(),
                metadata={"channel": inbound.channel.value, "from": inbound.sender},
            )
            stored, created = await self._store.append_message(conversation_id, message)
            if not created:
                logger.info(
                    f"[ConversationActor] Duplicate inbound {inbound.channel_message_id} ignored"
                )
                return InboundOutcome(conversation_id, stored, duplicate=True)

            logger.info(
                f"[ConversationActor] Inbound {stored.id} on {inbound.channel.value} "
                f"({len(inbound.body)} chars)"
            )

            if conversation.status == ConversationStatus.PAUSED:
                logger.info("[ConversationActor] Conversation paused, skipping AI reply")
                return InboundOutcome(conversation_id, stored)
            if conversation.status in (ConversationStatus.RESOLVED, ConversationStatus.ARCHIVED):
                conversation = await self._store.update_status(
                    conversation_id, ConversationStatus.ACTIVE
                )

            turn = await self._run_turn(conversation, inbound.body, stored.id)
            outbound = await self._deliver(
                conversation,
                OutboundRequest(content=turn.response_text, channel=inbound.channel),
                metadata={
                    "used_tools": turn.used_tools,
                    "tools_executed": list(turn.tools_executed),
                    "intent": turn.intent.intent.value if turn.intent else None,
                    "fallback": turn.fallback,
                },
            )
            return InboundOutcome(conversation_id, stored, turn=turn, outbound_message=outbound)

    async def _run_turn(
        self, conversation: Conversation, text: str, message_id: str
    ) -> AgentTurnResult:
        try:
            return await self._orchestrator.run_turn(conversation, text, current_message_id=message_id)
        except Exception:
            # Turn boundary: the customer still gets a reply
            logger.exception("[ConversationActor] AI turn failed, sending acknowledgement")
            return AgentTurnResult(response_text=ACKNOWLEDGEMENT_REPLY, fallback="acknowledgement")

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send_outbound(self, conversation_id: str, request: OutboundRequest) -> Message:
        """Send an operator message through the conversation's lane."""

        async def work() -> Message:
            with bind_conversation(conversation_id):
                conversation = await self._store.get(conversation_id)
                return await self._deliver(conversation, request, metadata={"origin": request.origin})

        return await self._serializer.run(conversation_id, work)

    async def _deliver(
        self,
        conversation: Conversation,
        request: OutboundRequest,
        metadata: dict | None = None,
    ) -> Message:
        """Record the outbound message, send it, then record the provider's answer.

        The message is stored as pending before the send so the text survives
        a failed send; the send result fills in its provider id and status.
        """
        channel = request.channel or conversation.channel
        pending = Message(
            conversation_id=conversation.id,
            direction=MessageDirection.OUTBOUND,
            content=request.stored_content,
            status=MessageStatus.PENDING,
            message_type=request.kind.value,
            metadata={"origin": request.origin, "channel": channel.value, **(metadata or {})},
        )
        stored, _ = await self._store.append_message(conversation.id, pending)

        try:
            send_request = SendRequest(
                to=conversation.customer_phone,
                from_=conversation.store_phone,
                content=request.content,
                kind=request.kind,
                template_name=request.template_name,
                template_params=request.template_params,
                template_language=request.template_language,
                status_callback_url=self._status_callback_url,
            )
            result = await self._send_with_retry(channel, send_request)
        except CommerceError as e:
            logger.error(f"[ConversationActor] Send failed for message {stored.id}: {e}")
            return await self._store.record_send_result(
                stored.id, MessageStatus.FAILED, failure_reason=str(e)
            )

        recorded = await self._store.record_send_result(
            stored.id,
            MessageStatus.SENT,
            channel_message_id=result.channel_message_id,
            provider_id=result.provider_id,
        )
        logger.info(
            f"[ConversationActor] Sent message {stored.id} via {result.provider_id} "
            f"as {result.channel_message_id}"
        )
        await self._replay_buffered(result.channel_message_id)
        return recorded

    async def _send_with_retry(self, channel: Channel, request: SendRequest) -> ProviderSendResult:
        """Send, retrying once after a backoff on transient failures."""
        try:
            return await self._gateway.send(channel, request)
        except (ConnectionError, ProviderSendError) as e:
            if isinstance(e, ProviderSendError) and not e.retryable:
                raise
            logger.warning(
                f"[ConversationActor] Send attempt failed ({e}); retrying in "
                f"{self._retry_backoff_seconds}s"
            )
        await asyncio.sleep(self._retry_backoff_seconds)
        return await self._gateway.send(channel, request)

    # ------------------------------------------------------------------
    # Status callbacks
    # ------------------------------------------------------------------

    async def handle_status_callback(self, callback: StatusCallback) -> bool:
        """Apply a delivery status. Never touches the AI path.

        Returns True if the stored status changed.
        """
        return await self._serializer.run(
            f"status:{callback.channel_message_id}", lambda: self._apply_status(callback)
        )

    async def _apply_status(self, callback: StatusCallback) -> bool:
        failure_reason = None
        if callback.status == MessageStatus.FAILED:
            failure_reason = callback.error_message or callback.channel_status
            if callback.error_code:
                failure_reason = f"{failure_reason} (code {callback.error_code})"

        try:
            return await self._store.update_message_status(
                callback.channel_message_id,
                callback.status,
                at=callback.timestamp,
                failure_reason=failure_reason,
            )
        except MessageNotFoundError:
            self._status_buffer.add(callback)

        # The send result may have been recorded while the lookup was in flight
        try:
            changed = await self._store.update_message_status(
                callback.channel_message_id,
                callback.status,
                at=callback.timestamp,
                failure_reason=failure_reason,
            )
        except MessageNotFoundError:
            logger.info(
                f"[ConversationActor] Buffered early {callback.status.value} status for "
                f"{callback.channel_message_id}"
            )
            return False
        self._status_buffer.discard(callback)
        return changed

    async def _replay_buffered(self, channel_message_id: str) -> None:
        for callback in self._status_buffer.pop(channel_message_id):
            logger.info(
                f"[ConversationActor] Replaying buffered {callback.status.value} for "
                f"{channel_message_id}"
            )
            await self.handle_status_callback(callback)
