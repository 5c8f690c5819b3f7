"""Shared codec types for channel webhook payloads."""

from dataclasses import dataclass, field
from typing import Any, Protocol

from src.domain.model.enums import Channel, MessageStatus
from src.domain.model.messaging import NormalizedInbound, StatusCallback


@dataclass
class DecodedWebhook:
    """Everything one webhook delivery carried, already in canonical shape."""

    channel: Channel
    messages: list[NormalizedInbound] = field(default_factory=list)
    statuses: list[StatusCallback] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.messages and not self.statuses


class ChannelCodec(Protocol):
    channel: Channel

    def decode(self, payload: Any) -> DecodedWebhook: ...

    def map_status(self, channel_status: str | None) -> MessageStatus: ...


def normalize_phone(value: Any) -> str:
    """Return ``+<digits>`` for provider addresses given with or without a plus."""
    if not value:
        return ""
    value = str(value).strip()
    if value.startswith("whatsapp:"):
        value = value[len("whatsapp:") :]
    digits = "".join(ch for ch in value if ch.isdigit())
    return f"+{digits}" if digits else ""
