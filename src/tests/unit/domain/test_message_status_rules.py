"""
Unit tests for message delivery status transitions.
"""

from datetime import UTC, datetime

import pytest

from src.domain.model.conversations import Message, can_transition, statuses_allowing
from src.domain.model.enums import MessageDirection, MessageStatus


def _outbound(status: MessageStatus = MessageStatus.PENDING) -> Message:
    return Message(
        conversation_id="conv-1",
        direction=MessageDirection.OUTBOUND,
        content="Hi there",
        status=status,
    )


@pytest.mark.unit
class TestStatusTransitions:
    """Status only moves forward; failed is reachable from any non-terminal status."""

    @pytest.mark.parametrize(
        "current,new",
        [
            (MessageStatus.PENDING, MessageStatus.SENT),
            (MessageStatus.PENDING, MessageStatus.DELIVERED),
            (MessageStatus.SENT, MessageStatus.DELIVERED),
            (MessageStatus.DELIVERED, MessageStatus.READ),
            (MessageStatus.SENT, MessageStatus.FAILED),
            (MessageStatus.DELIVERED, MessageStatus.FAILED),
        ],
    )
    def test_forward_transitions_allowed(self, current, new):
        assert can_transition(current, new) is True

    @pytest.mark.parametrize(
        "current,new",
        [
            (MessageStatus.DELIVERED, MessageStatus.SENT),
            (MessageStatus.READ, MessageStatus.DELIVERED),
            (MessageStatus.READ, MessageStatus.FAILED),
            (MessageStatus.FAILED, MessageStatus.SENT),
            (MessageStatus.SENT, MessageStatus.PENDING),
        ],
    )
    def test_regressions_rejected(self, current, new):
        assert can_transition(current, new) is False

    def test_equal_status_is_not_a_transition(self):
        for status in MessageStatus:
            assert can_transition(status, status) is False

    def test_statuses_allowing_delivered(self):
        assert set(statuses_allowing(MessageStatus.DELIVERED)) == {
            MessageStatus.PENDING,
            MessageStatus.SENT,
        }


@pytest.mark.unit
class TestMessageApplyStatus:
    def test_apply_sets_timestamp(self):
        message = _outbound()
        at = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

        assert message.apply_status(MessageStatus.SENT, at) is True

        assert message.status == MessageStatus.SENT
        assert message.sent_at == at

    def test_apply_failed_records_reason(self):
        message = _outbound(MessageStatus.SENT)

        assert message.apply_status(MessageStatus.FAILED, failure_reason="carrier rejected")

        assert message.status == MessageStatus.FAILED
        assert message.failure_reason == "carrier rejected"
        assert message.failed_at is not None

    def test_late_sent_after_delivered_is_ignored(self):
        message = _outbound(MessageStatus.DELIVERED)

        assert message.apply_status(MessageStatus.SENT) is False
        assert message.status == MessageStatus.DELIVERED
        assert message.sent_at is None

    def test_inbound_without_read_at_is_unread(self):
        message = Message(
            conversation_id="conv-1",
            direction=MessageDirection.INBOUND,
            content="Hello",
            status=MessageStatus.DELIVERED,
        )
        assert message.is_unread is True
