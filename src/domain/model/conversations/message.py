"""Message entity and delivery status transition rules."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.domain.model.enums import MessageDirection, MessageStatus
from src.domain.shared_kernel import Entity, utcnow

_STATUS_RANK: dict[MessageStatus, int] = {
    MessageStatus.PENDING: 0,
    MessageStatus.SENT: 1,
    MessageStatus.DELIVERED: 2,
    MessageStatus.READ: 3,
}

TERMINAL_STATUSES = frozenset({MessageStatus.READ, MessageStatus.FAILED})


def can_transition(current: MessageStatus, new: MessageStatus) -> bool:
    """Return True if moving from ``current`` to ``new`` is a forward step.

    Equal statuses are not a transition, so replays are no-ops.
    """
    if current in TERMINAL_STATUSES or current == new:
        return False
    if new == MessageStatus.FAILED:
        return True
    return _STATUS_RANK[new] > _STATUS_RANK[current]


def statuses_allowing(new: MessageStatus) -> list[MessageStatus]:
    """All statuses from which ``new`` may be entered."""
    return [status for status in MessageStatus if can_transition(status, new)]


def timestamp_field_for(status: MessageStatus) -> str | None:
    return {
        MessageStatus.SENT: "sent_at",
        MessageStatus.DELIVERED: "delivered_at",
        MessageStatus.READ: "read_at",
        MessageStatus.FAILED: "failed_at",
    }.get(status)


@dataclass(kw_only=True)
class Message(Entity):
    """A single message in a conversation's append-only log."""

    conversation_id: str
    direction: MessageDirection
    content: str
    status: MessageStatus = MessageStatus.PENDING
    message_type: str = "text"
    channel_message_id: str | None = None
    provider_id: str | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    read_at: datetime | None = None
    failed_at: datetime | None = None
    failure_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_inbound(self) -> bool:
        return self.direction == MessageDirection.INBOUND

    @property
    def is_unread(self) -> bool:
        return self.is_inbound and self.read_at is None

    def apply_status(
        self,
        status: MessageStatus,
        at: datetime | None = None,
        failure_reason: str | None = None,
    ) -> bool:
        """Advance the in-memory status. Returns False when the change would regress."""
        if not can_transition(self.status, status):
            return False
        self.status = status
        ts_field = timestamp_field_for(status)
        if ts_field:
            setattr(self, ts_field, at or utcnow())
        if status == MessageStatus.FAILED:
            self.failure_reason = failure_reason
        return True
