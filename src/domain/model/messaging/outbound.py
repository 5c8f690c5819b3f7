"""Outbound send request/result value objects and content rules."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from src.domain.exceptions import ValidationError
from src.domain.model.enums import MessageStatus
from src.domain.shared_kernel import ValueObject

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")

TRUNCATION_MARKER = "... [message truncated]"


def is_e164(address: str | None) -> bool:
    return bool(address) and E164_PATTERN.match(address) is not None


def fit_to_length(content: str, limit: int, marker: str = TRUNCATION_MARKER) -> str:
    """Truncate ``content`` to ``limit`` characters, ending with ``marker``."""
    if len(content) <= limit:
        return content
    if limit <= len(marker):
        return marker[:limit]
    return content[: limit - len(marker)].rstrip() + marker


class MessageKind(str, Enum):
    TEXT = "text"
    TEMPLATE = "template"


@dataclass(frozen=True)
class SendRequest(ValueObject):
    """What to send, independent of the provider carrying it."""

    to: str
    from_: str
    content: str = ""
    kind: MessageKind = MessageKind.TEXT
    template_name: str | None = None
    template_params: tuple[str, ...] = ()
    template_language: str | None = None
    status_callback_url: str | None = None

    def __post_init__(self) -> None:
        if self.kind == MessageKind.TEXT:
            if not self.content or not self.content.strip():
                raise ValidationError("Text messages require non-empty content", field="content")
            if self.template_name:
                raise ValidationError(
                    "Text messages cannot carry a template name", field="template_name"
                )
        elif not self.template_name:
            raise ValidationError("Template messages require a template name", field="template_name")


@dataclass(frozen=True)
class ProviderSendResult(ValueObject):
    """Normalized provider answer to a send call."""

    channel_message_id: str
    status: MessageStatus
    provider_id: str
    raw: dict[str, Any] | None = field(default=None, repr=False, compare=False)
