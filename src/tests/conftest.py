"""Pytest configuration and shared fixtures for testing."""

from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.application.services.agent import AIOrchestrator, IntentClassifier
from src.application.services.conversations import (
    ConversationActor,
    ConversationService,
    EarlyStatusBuffer,
    KeyedSerializer,
)
from src.configuration.config import Settings
from src.domain.model.conversations import Conversation
from src.domain.model.enums import Channel
from src.infrastructure.adapters.secondary.channels.provider_gateway import (
    MessageProviderGateway,
)
from src.infrastructure.adapters.secondary.persistence.database import initialize_database
from src.infrastructure.adapters.secondary.persistence.sql_conversation_store import (
    SqlConversationStore,
)
from src.tests.unit.fixtures.commerce_fixtures import (
    CUSTOMER_PHONE,
    SHOP_DOMAIN,
    STORE_PHONE,
    FakeChatModel,
    FakeProvider,
    FakeToolClient,
    commerce_tools,
)

# Constants
TEST_TENANT_ID = "tenant-candles"
TWILIO_AUTH_TOKEN = "twilio-test-token"
WHATSAPP_APP_SECRET = "meta-app-secret"
SHOPIFY_SECRET = "shopify-secret"
WHATSAPP_VERIFY_TOKEN = "verify-me"


# --- Settings ---


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'commerce.db'}",
        twilio_auth_token=TWILIO_AUTH_TOKEN,
        twilio_webhook_url="https://api.example.com/webhooks/twilio",
        whatsapp_app_secret=WHATSAPP_APP_SECRET,
        whatsapp_verify_token=WHATSAPP_VERIFY_TOKEN,
        shopify_webhook_secret=SHOPIFY_SECRET,
        default_tenant_id=TEST_TENANT_ID,
        send_retry_backoff_seconds=0,
        llm_timeout=2.0,
        mcp_tool_timeout=2.0,
    )


# --- Database Fixtures ---


@pytest.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite so concurrent sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}", echo=False)
    await initialize_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory) -> SqlConversationStore:
    return SqlConversationStore(session_factory)


@pytest.fixture
async def conversation(store) -> Conversation:
    """An active SMS conversation bound to the candle shop."""
    created, _ = await store.resolve_or_create(
        Conversation(
            tenant_id=TEST_TENANT_ID,
            customer_phone=CUSTOMER_PHONE,
            store_phone=STORE_PHONE,
            channel=Channel.SMS,
            metadata={"shop_domain": SHOP_DOMAIN},
        )
    )
    return created


# --- Conversation pipeline ---


@pytest.fixture
def chat_model() -> FakeChatModel:
    return FakeChatModel()


@pytest.fixture
def tool_client() -> FakeToolClient:
    return FakeToolClient(tools=commerce_tools())


@pytest.fixture
def sms_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def gateway(sms_provider) -> MessageProviderGateway:
    return MessageProviderGateway(
        [sms_provider, FakeProvider(channel=Channel.WHATSAPP, provider_id="fake-whatsapp")]
    )


@pytest.fixture
def orchestrator(chat_model, tool_client, store) -> AIOrchestrator:
    return AIOrchestrator(
        chat_model=chat_model,
        tool_client=tool_client,
        store=store,
        llm_timeout=2.0,
        tool_timeout=2.0,
        intent_classifier=IntentClassifier(None),
    )


@pytest.fixture
def status_buffer() -> EarlyStatusBuffer:
    return EarlyStatusBuffer(max_entries=100, ttl_seconds=0)


@pytest.fixture
def actor(store, orchestrator, gateway, status_buffer) -> ConversationActor:
    return ConversationActor(
        store=store,
        orchestrator=orchestrator,
        gateway=gateway,
        serializer=KeyedSerializer(),
        status_buffer=status_buffer,
        retry_backoff_seconds=0,
    )


@pytest.fixture
def conversation_service(store, actor, gateway) -> ConversationService:
    return ConversationService(store=store, actor=actor, gateway=gateway)
