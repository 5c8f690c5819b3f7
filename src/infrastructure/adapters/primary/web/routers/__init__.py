"""FastAPI routers for the ChatCommerce API."""

from src.infrastructure.adapters.primary.web.routers import conversations, webhooks

__all__ = ["conversations", "webhooks"]
