"""Canonical inbound shapes produced by every channel codec."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.domain.model.enums import Channel, MessageStatus
from src.domain.shared_kernel import ValueObject, utcnow


@dataclass(frozen=True)
class NormalizedInbound(ValueObject):
    """A customer message after channel decoding.

    ``sender`` is the customer address and ``recipient`` the store address,
    both E.164 where the channel provides it.
    """

    channel: Channel
    sender: str
    recipient: str
    body: str
    channel_message_id: str | None = None
    timestamp: datetime = field(default_factory=utcnow)
    message_type: str = "text"
    raw: dict[str, Any] | None = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class StatusCallback(ValueObject):
    """A delivery status report for a previously sent message."""

    channel: Channel
    channel_message_id: str
    status: MessageStatus
    channel_status: str
    timestamp: datetime = field(default_factory=utcnow)
    recipient: str | None = None
    error_code: str | None = None
    error_message: str | None = None
