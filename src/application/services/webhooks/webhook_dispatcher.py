"""Webhook dispatcher - routes provider webhooks to the conversation actor.

For every delivery the dispatcher authenticates the raw bytes, decodes them
with the channel codec and then routes each item: status callbacks go to
the actor's status lane keyed by provider message id, inbound messages are
resolved to their conversation and handed to that conversation's lane.

Authentication and validation failures are raised before any state is
touched. Failures after that point are counted, logged and absorbed, so
the caller can always answer the provider with a success document.
"""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qsl

from src.application.services.conversations.conversation_actor import (
    ConversationActor,
    InboundOutcome,
)
from src.domain.exceptions import AuthenticationError, ValidationError
from src.domain.model.conversations import Conversation
from src.domain.model.enums import Channel
from src.domain.model.messaging import NormalizedInbound
from src.domain.ports import ConversationStorePort, WebhookVerifierPort
from src.infrastructure.adapters.secondary.channels.codec import ChannelCodec, DecodedWebhook

logger = logging.getLogger(__name__)

PLATFORM_SHOP_HEADER = "X-Shopify-Shop-Domain"

PLATFORM_TOPIC_UNINSTALLED = "app/uninstalled"
PLATFORM_TOPIC_CUSTOMERS_REDACT = "customers/redact"
PLATFORM_COMPLIANCE_TOPICS = frozenset(
    {"customers/data_request", PLATFORM_TOPIC_CUSTOMERS_REDACT, "shop/redact"}
)


@dataclass
class DispatchResult:
    """Counts for one webhook delivery."""

    channel: Channel
    processed_messages: int = 0
    processed_statuses: int = 0
    duplicates: int = 0
    errors: int = 0
    outcomes: list[InboundOutcome] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.processed_messages + self.processed_statuses

    @property
    def ok(self) -> bool:
        return self.errors == 0


@dataclass
class ChannelBinding:
    """What the dispatcher needs to accept webhooks for one channel."""

    codec: ChannelCodec
    verifier: WebhookVerifierPort
    secret: str | None


class WebhookDispatcher:
    def __init__(
        self,
        store: ConversationStorePort,
        actor: ConversationActor,
        channels: dict[Channel, ChannelBinding],
        platform_verifier: WebhookVerifierPort | None = None,
        platform_secret: str | None = None,
        default_tenant_id: str = "default",
        default_shop_domain: str | None = None,
        whatsapp_verify_token: str | None = None,
    ) -> None:
        self._store = store
        self._actor = actor
        self._channels = channels
        self._platform_verifier = platform_verifier
        self._platform_secret = platform_secret
        self._default_tenant_id = default_tenant_id
        self._default_shop_domain = default_shop_domain
        self._whatsapp_verify_token = whatsapp_verify_token

    # ------------------------------------------------------------------
    # Channel webhooks
    # ------------------------------------------------------------------

    def authenticate(
        self,
        channel: Channel,
        raw_body: bytes,
        headers: Mapping[str, str],
        url: str | None = None,
        client: str | None = None,
    ) -> None:
        """
        Raises:
            AuthenticationError: The signature does not match the raw body
        """
        binding = self._binding(channel)
        if not binding.verifier.verify(raw_body, headers, binding.secret or "", url=url):
            logger.warning(
                f"[WebhookDispatcher] Security event: rejected {channel.value} webhook "
                f"from {client or 'unknown'}"
            )
            raise AuthenticationError(channel.value, "signature verification failed")

    def decode(self, channel: Channel, raw_body: bytes) -> DecodedWebhook:
        """
        Raises:
            ValidationError: The body is not a well-formed payload for the channel
        """
        binding = self._binding(channel)
        if channel == Channel.SMS:
            try:
                payload: Any = dict(parse_qsl(raw_body.decode("utf-8"), keep_blank_values=True))
            except UnicodeDecodeError as e:
                raise ValidationError("Form body is not UTF-8") from e
        else:
            try:
                payload = json.loads(raw_body or b"null")
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise ValidationError("Body is not valid JSON") from e
        return binding.codec.decode(payload)

    async def dispatch(
        self,
        channel: Channel,
        raw_body: bytes,
        headers: Mapping[str, str],
        url: str | None = None,
        client: str | None = None,
    ) -> DispatchResult:
        """Authenticate, decode and route one delivery.

        Raises:
            AuthenticationError: Before anything is decoded
            ValidationError: The payload is malformed; nothing was routed
        """
        self.authenticate(channel, raw_body, headers, url=url, client=client)
        decoded = self.decode(channel, raw_body)
        return await self.route(decoded)

    async def route(self, decoded: DecodedWebhook) -> DispatchResult:
        result = DispatchResult(channel=decoded.channel)

        for callback in decoded.statuses:
            try:
                await self._actor.handle_status_callback(callback)
                result.processed_statuses += 1
            except Exception:
                result.errors += 1
                logger.exception(
                    f"[WebhookDispatcher] Status callback {callback.channel_message_id} failed"
                )

        for inbound in decoded.messages:
            try:
                outcome = await self.route_inbound(inbound)
            except Exception:
                result.errors += 1
                logger.exception(
                    f"[WebhookDispatcher] Inbound {inbound.channel_message_id} "
                    f"on {inbound.channel.value} failed"
                )
                continue
            result.outcomes.append(outcome)
            if outcome.duplicate:
                result.duplicates += 1
            else:
                result.processed_messages += 1

        if decoded.is_empty:
            logger.debug(f"[WebhookDispatcher] Empty {decoded.channel.value} delivery")
        return result

    async def route_inbound(self, inbound: NormalizedInbound) -> InboundOutcome:
        """Resolve the conversation for ``inbound`` and hand it to its lane."""
        tenant_id, shop_domain = await self._resolve_tenant(inbound.channel, inbound.recipient)
        conversation, created = await self._store.resolve_or_create(
            Conversation(
                tenant_id=tenant_id,
                customer_phone=inbound.sender,
                store_phone=inbound.recipient,
                channel=inbound.channel,
                metadata={"shop_domain": shop_domain} if shop_domain else {},
            )
        )
        if created:
            logger.info(
                f"[WebhookDispatcher] New conversation {conversation.id} for tenant {tenant_id}"
            )
        return await self._actor.handle_inbound(conversation.id, inbound)

    async def _resolve_tenant(self, channel: Channel, store_phone: str) -> tuple[str, str | None]:
        connection = await self._store.resolve_store(channel, store_phone)
        if connection is not None:
            return connection.tenant_id, connection.shop_domain
        logger.debug(
            f"[WebhookDispatcher] No store connection for {channel.value} {store_phone}, "
            f"using default tenant"
        )
        return self._default_tenant_id, self._default_shop_domain

    def verify_subscription(self, mode: str | None, token: str | None, challenge: str | None) -> str:
        """WhatsApp subscription handshake.

        Raises:
            AuthenticationError: Wrong mode, wrong token or no token configured
        """
        if (
            mode == "subscribe"
            and self._whatsapp_verify_token
            and token == self._whatsapp_verify_token
        ):
            logger.info("[WebhookDispatcher] WhatsApp webhook subscription verified")
            return challenge or ""
        logger.warning("[WebhookDispatcher] Security event: WhatsApp verification rejected")
        raise AuthenticationError(Channel.WHATSAPP.value, "verification token mismatch")

    def _binding(self, channel: Channel) -> ChannelBinding:
        binding = self._channels.get(channel)
        if binding is None:
            raise ValidationError(f"Channel '{channel.value}' is not enabled", field="channel")
        return binding

    # ------------------------------------------------------------------
    # Merchant platform webhooks
    # ------------------------------------------------------------------

    async def handle_platform_event(
        self,
        topic: str,
        raw_body: bytes,
        headers: Mapping[str, str],
        client: str | None = None,
    ) -> dict[str, Any]:
        """Verify and apply a merchant-platform webhook.

        Raises:
            AuthenticationError: Platform signature mismatch
            ValidationError: Body is not JSON or lacks the shop domain
        """
        if self._platform_verifier is None or not self._platform_verifier.verify(
            raw_body, headers, self._platform_secret or ""
        ):
            logger.warning(
                f"[WebhookDispatcher] Security event: rejected platform webhook {topic} "
                f"from {client or 'unknown'}"
            )
            raise AuthenticationError("platform", "signature verification failed")

        try:
            payload = json.loads(raw_body or b"{}")
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError("Body is not valid JSON") from e
        if not isinstance(payload, dict):
            raise ValidationError("Body must be a JSON object")

        shop_domain = (
            _header(headers, PLATFORM_SHOP_HEADER)
            or payload.get("shop_domain")
            or payload.get("myshopify_domain")
            or payload.get("domain")
        )
        if not shop_domain:
            raise ValidationError("Missing shop domain", field="shop_domain")

        if topic == PLATFORM_TOPIC_UNINSTALLED:
            count = await self._store.deactivate_shop(shop_domain)
            logger.info(f"[WebhookDispatcher] App uninstalled from {shop_domain}")
            return {"topic": topic, "action": "deactivated", "affected": count}

        if topic == PLATFORM_TOPIC_CUSTOMERS_REDACT:
            phone = (payload.get("customer") or {}).get("phone")
            count = 0
            if phone:
                count = await self._store.archive_customer_conversations(shop_domain, phone)
            logger.info(
                f"[WebhookDispatcher] Redaction request for {shop_domain}: "
                f"archived {count} conversation(s)"
            )
            return {"topic": topic, "action": "archived", "affected": count}

        if topic in PLATFORM_COMPLIANCE_TOPICS:
            logger.info(f"[WebhookDispatcher] Compliance webhook {topic} for {shop_domain}")
            return {"topic": topic, "action": "acknowledged", "affected": 0}

        logger.info(f"[WebhookDispatcher] Ignoring platform topic {topic} for {shop_domain}")
        return {"topic": topic, "action": "ignored", "affected": 0}


def _header(headers: Mapping[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None
