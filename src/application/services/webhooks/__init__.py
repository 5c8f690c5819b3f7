"""Webhook application services."""

from src.application.services.webhooks.webhook_dispatcher import (
    ChannelBinding,
    DispatchResult,
    WebhookDispatcher,
)

__all__ = ["ChannelBinding", "DispatchResult", "WebhookDispatcher"]
