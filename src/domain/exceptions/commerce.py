"""
Conversational commerce domain exceptions.

Every component raises from this one taxonomy so that callers can dispatch
on the kind of failure instead of its origin.

Exception Hierarchy:
    CommerceError (base)
    ├── ValidationError                 - malformed or missing input, reject with 4xx
    │   └── ParseError                  - channel payload could not be decoded
    ├── AuthenticationError             - webhook signature/verification failure
    ├── ConnectionError                 - network failure to model, tool server or provider
    ├── ToolCallError                   - tool server reachable but the call failed
    ├── ProviderSendError               - outbound send rejected by the provider
    └── NotFoundError                   - expected, recoverable lookup miss
        ├── ConversationNotFoundError
        └── MessageNotFoundError
"""

from typing import Any

from src.domain.shared_kernel import DomainException


class CommerceError(DomainException):
    """Base exception for all conversational commerce errors."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message} (caused by: {self.original_error})"
        return self.message


class ValidationError(CommerceError):
    """Raised when input is malformed or a required field is missing."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message, details={"field": field} if field else None)


class ParseError(ValidationError):
    """Raised when a channel payload cannot be decoded into a canonical shape."""

    def __init__(self, channel: str, message: str, field: str | None = None) -> None:
        self.channel = channel
        super().__init__(f"[{channel}] {message}", field=field)


class AuthenticationError(CommerceError):
    """Raised when a webhook fails signature or token verification."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(
            f"Webhook authentication failed for {source}: {reason}",
            details={"source": source},
        )


class ConnectionError(CommerceError):
    """Raised when a remote service cannot be reached or times out."""

    def __init__(
        self,
        service: str,
        reason: str,
        endpoint: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.service = service
        self.reason = reason
        self.endpoint = endpoint
        super().__init__(
            f"Could not reach {service}: {reason}",
            original_error=original_error,
            details={"service": service, "endpoint": endpoint},
        )


class ToolCallError(CommerceError):
    """Raised when the tool server answers but the tool call did not succeed."""

    def __init__(
        self,
        tool_name: str,
        reason: str,
        code: int | None = None,
        data: Any = None,
    ) -> None:
        self.tool_name = tool_name
        self.reason = reason
        self.code = code
        self.data = data
        super().__init__(
            f"Tool '{tool_name}' failed: {reason}",
            details={"tool_name": tool_name, "code": code},
        )


class ProviderSendError(CommerceError):
    """Raised when a channel provider rejects or fails an outbound send."""

    def __init__(
        self,
        provider_id: str,
        reason: str,
        status_code: int | None = None,
        error_code: str | None = None,
        retryable: bool = True,
    ) -> None:
        self.provider_id = provider_id
        self.reason = reason
        self.status_code = status_code
        self.error_code = error_code
        self.retryable = retryable
        super().__init__(
            f"Send via {provider_id} failed: {reason}",
            details={
                "provider_id": provider_id,
                "status_code": status_code,
                "error_code": error_code,
            },
        )


class NotFoundError(CommerceError):
    """Raised on a lookup miss that callers are expected to handle."""

    def __init__(self, entity_type: str, entity_id: str, message: str | None = None) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            message or f"{entity_type} '{entity_id}' not found",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )


class ConversationNotFoundError(NotFoundError):
    def __init__(self, conversation_id: str) -> None:
        super().__init__("Conversation", conversation_id)


class MessageNotFoundError(NotFoundError):
    def __init__(self, message_id: str, message: str | None = None) -> None:
        super().__init__("Message", message_id, message)
