"""
Domain exceptions for ChatCommerce.

A single hierarchy shared by codecs, the tool client, providers, the store
and the orchestrator.
"""

from src.domain.exceptions.commerce import (
    AuthenticationError,
    CommerceError,
    ConnectionError,
    ConversationNotFoundError,
    MessageNotFoundError,
    NotFoundError,
    ParseError,
    ProviderSendError,
    ToolCallError,
    ValidationError,
)

__all__ = [
    "CommerceError",
    "ValidationError",
    "ParseError",
    "AuthenticationError",
    "ConnectionError",
    "ToolCallError",
    "ProviderSendError",
    "NotFoundError",
    "ConversationNotFoundError",
    "MessageNotFoundError",
]
