"""Dependency Injection Container for ChatCommerce.

Builds the adapters from settings once and wires the application services on
top of them. Every collaborator can be overridden, which is how tests swap in
fakes for the model, the tool server and the channel providers.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.application.services.agent import AIOrchestrator, IntentClassifier
from src.application.services.conversations import (
    ConversationActor,
    ConversationService,
    EarlyStatusBuffer,
    KeyedSerializer,
)
from src.application.services.webhooks import ChannelBinding, WebhookDispatcher
from src.configuration.config import Settings, get_settings
from src.domain.model.enums import Channel
from src.domain.ports import ChatModelPort, ConversationStorePort, ToolClientPort
from src.infrastructure.adapters.secondary.channels.provider_gateway import (
    MessageProviderGateway,
)
from src.infrastructure.adapters.secondary.channels.twilio.codec import TwilioCodec
from src.infrastructure.adapters.secondary.channels.twilio.provider import (
    TwilioMessageProvider,
)
from src.infrastructure.adapters.secondary.channels.whatsapp.codec import WhatsAppCodec
from src.infrastructure.adapters.secondary.channels.whatsapp.provider import (
    WhatsAppMessageProvider,
)
from src.infrastructure.adapters.secondary.persistence.database import (
    build_engine,
    build_session_factory,
)
from src.infrastructure.adapters.secondary.persistence.sql_conversation_store import (
    SqlConversationStore,
)
from src.infrastructure.llm import LiteLLMChatClient
from src.infrastructure.mcp.clients.tool_client import MCPToolClient
from src.infrastructure.security.webhook_verifier import (
    MetaSignatureVerifier,
    PlatformWebhookVerifier,
    TwilioSignatureVerifier,
)

logger = logging.getLogger(__name__)


class DIContainer:
    """Owns the process-wide adapters and the services built on them."""

    def __init__(
        self,
        settings: Settings | None = None,
        engine: AsyncEngine | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        store: ConversationStorePort | None = None,
        chat_model: ChatModelPort | None = None,
        tool_client: ToolClientPort | None = None,
        gateway: MessageProviderGateway | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        s = self._settings

        if store is None:
            if session_factory is None:
                engine = engine or build_engine(s)
                session_factory = build_session_factory(engine)
            store = SqlConversationStore(session_factory)
        self._engine = engine
        self._session_factory = session_factory
        self._store = store

        self._chat_model = chat_model or LiteLLMChatClient.from_settings(s)
        self._tool_client = tool_client or self._build_tool_client(s)
        self._gateway = gateway or self._build_gateway(s)

        self._serializer = KeyedSerializer()
        self._status_buffer = EarlyStatusBuffer(
            max_entries=s.status_buffer_max_entries,
            ttl_seconds=s.status_buffer_ttl_seconds,
        )
        self._orchestrator = AIOrchestrator(
            chat_model=self._chat_model,
            tool_client=self._tool_client,
            store=self._store,
            endpoint_path=s.mcp_endpoint_path,
            llm_timeout=s.llm_timeout,
            tool_timeout=s.mcp_tool_timeout,
            history_window=s.conversation_history_window,
            default_shop_domain=s.default_shop_domain,
            intent_classifier=IntentClassifier(self._chat_model, timeout=s.llm_timeout),
        )
        self._actor = ConversationActor(
            store=self._store,
            orchestrator=self._orchestrator,
            gateway=self._gateway,
            serializer=self._serializer,
            status_buffer=self._status_buffer,
            retry_backoff_seconds=s.send_retry_backoff_seconds,
            status_callback_url=s.twilio_status_callback_url,
        )
        self._dispatcher = WebhookDispatcher(
            store=self._store,
            actor=self._actor,
            channels={
                Channel.SMS: ChannelBinding(
                    codec=TwilioCodec(),
                    verifier=TwilioSignatureVerifier(),
                    secret=s.twilio_auth_token,
                ),
                Channel.WHATSAPP: ChannelBinding(
                    codec=WhatsAppCodec(),
                    verifier=MetaSignatureVerifier(),
                    secret=s.whatsapp_app_secret,
                ),
            },
            platform_verifier=PlatformWebhookVerifier(),
            platform_secret=s.shopify_webhook_secret,
            default_tenant_id=s.default_tenant_id,
            default_shop_domain=s.default_shop_domain,
            whatsapp_verify_token=s.whatsapp_verify_token,
        )
        self._conversation_service = ConversationService(
            store=self._store, actor=self._actor, gateway=self._gateway
        )

    @staticmethod
    def _build_tool_client(settings: Settings) -> MCPToolClient:
        headers = {}
        if settings.mcp_access_token:
            headers["Authorization"] = f"Bearer {settings.mcp_access_token}"
        return MCPToolClient(timeout=settings.mcp_tool_timeout, headers=headers)

    @staticmethod
    def _build_gateway(settings: Settings) -> MessageProviderGateway:
        return MessageProviderGateway(
            [
                TwilioMessageProvider(
                    account_sid=settings.twilio_account_sid,
                    auth_token=settings.twilio_auth_token,
                    from_number=settings.twilio_phone_number,
                    status_callback_url=settings.twilio_status_callback_url,
                    lookup_enabled=settings.twilio_lookup_enabled,
                ),
                WhatsAppMessageProvider(
                    access_token=settings.whatsapp_access_token,
                    phone_number_id=settings.whatsapp_phone_number_id,
                    api_version=settings.whatsapp_api_version,
                    template_only=settings.whatsapp_template_only,
                    template_language=settings.whatsapp_template_language,
                ),
            ]
        )

    # === Accessors ===

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def engine(self) -> AsyncEngine | None:
        return self._engine

    @property
    def store(self) -> ConversationStorePort:
        return self._store

    @property
    def gateway(self) -> MessageProviderGateway:
        return self._gateway

    @property
    def tool_client(self) -> ToolClientPort:
        return self._tool_client

    @property
    def orchestrator(self) -> AIOrchestrator:
        return self._orchestrator

    @property
    def actor(self) -> ConversationActor:
        return self._actor

    def webhook_dispatcher(self) -> WebhookDispatcher:
        return self._dispatcher

    def conversation_service(self) -> ConversationService:
        return self._conversation_service

    async def close(self) -> None:
        """Release HTTP clients and the database pool."""
        close_tools = getattr(self._tool_client, "close", None)
        if close_tools is not None:
            await close_tools()
        await self._gateway.close()
        if self._engine is not None:
            await self._engine.dispose()
        logger.info("DI container closed")
