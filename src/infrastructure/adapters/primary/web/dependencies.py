import hmac

from fastapi import Header, Request

from src.application.services.conversations import ConversationService
from src.application.services.webhooks import WebhookDispatcher
from src.configuration.config import Settings
from src.configuration.di_container import DIContainer
from src.domain.exceptions import AuthenticationError


def get_container(request: Request) -> DIContainer:
    """Get DI container from app state."""
    return request.app.state.container


def get_settings_from_app(request: Request) -> Settings:
    return get_container(request).settings


def get_webhook_dispatcher(request: Request) -> WebhookDispatcher:
    return get_container(request).webhook_dispatcher()


def get_conversation_service(request: Request) -> ConversationService:
    return get_container(request).conversation_service()


async def require_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    """Guard the operator API when ADMIN_API_KEY is configured."""
    expected = get_container(request).settings.admin_api_key
    if expected and not hmac.compare_digest((x_api_key or "").encode(), expected.encode()):
        raise AuthenticationError("api", "invalid or missing API key")
