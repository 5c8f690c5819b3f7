"""
Unit tests for the WhatsApp Business webhook codec.
"""

from datetime import UTC, datetime

import pytest

from src.domain.exceptions import ParseError
from src.domain.model.enums import Channel, MessageStatus
from src.infrastructure.adapters.secondary.channels.whatsapp.codec import WhatsAppCodec


def _envelope(messages=None, statuses=None, display_phone="15559990000"):
    value = {
        "messaging_product": "whatsapp",
        "metadata": {"display_phone_number": display_phone, "phone_number_id": "1234"},
    }
    if messages is not None:
        value["messages"] = messages
    if statuses is not None:
        value["statuses"] = statuses
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "WABA", "changes": [{"field": "messages", "value": value}]}],
    }


@pytest.fixture
def codec() -> WhatsAppCodec:
    return WhatsAppCodec()


@pytest.mark.unit
class TestWhatsAppCodec:
    def test_text_message(self, codec):
        decoded = codec.decode(
            _envelope(
                messages=[
                    {
                        "from": "15550001111",
                        "id": "wamid.1",
                        "timestamp": "1714564800",
                        "type": "text",
                        "text": {"body": "Hi, what candles do you have?"},
                    }
                ]
            )
        )

        message = decoded.messages[0]
        assert message.channel == Channel.WHATSAPP
        assert message.sender == "+15550001111"
        assert message.recipient == "+15559990000"
        assert message.body == "Hi, what candles do you have?"
        assert message.channel_message_id == "wamid.1"
        assert message.timestamp == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    @pytest.mark.parametrize(
        "message,expected",
        [
            ({"type": "image", "image": {"caption": "this one"}}, "this one"),
            ({"type": "image", "image": {"filename": "photo.jpg"}}, "[Image: photo.jpg]"),
            ({"type": "document", "document": {"filename": "order.pdf"}}, "[Document: order.pdf]"),
            ({"type": "sticker", "sticker": {}}, "[STICKER message]"),
        ],
    )
    def test_media_descriptions(self, codec, message, expected):
        decoded = codec.decode(_envelope(messages=[{"from": "15550001111", "id": "wamid.2", **message}]))
        assert decoded.messages[0].body == expected

    def test_statuses_and_messages_in_one_delivery(self, codec):
        decoded = codec.decode(
            _envelope(
                messages=[{"from": "15550001111", "id": "wamid.3", "type": "text", "text": {"body": "hey"}}],
                statuses=[{"id": "wamid.out", "status": "read", "timestamp": "1714564800"}],
            )
        )

        assert len(decoded.messages) == 1
        assert decoded.statuses[0].status == MessageStatus.READ

    def test_failed_status_error_details(self, codec):
        decoded = codec.decode(
            _envelope(
                statuses=[
                    {
                        "id": "wamid.out",
                        "status": "failed",
                        "errors": [{"code": 131047, "title": "Re-engagement message"}],
                    }
                ]
            )
        )

        status = decoded.statuses[0]
        assert status.status == MessageStatus.FAILED
        assert status.error_code == "131047"
        assert status.error_message == "Re-engagement message"

    def test_bad_items_skipped_not_fatal(self, codec):
        decoded = codec.decode(
            _envelope(
                messages=[{"id": "wamid.4", "type": "text", "text": {"body": "no sender"}}],
                statuses=[{"status": "sent"}],
            )
        )
        assert decoded.is_empty

    def test_non_object_items_skipped(self, codec):
        payload = _envelope(
            messages=[
                "wamid.bogus",
                {"from": "15551230000", "id": "wamid.5", "type": "text", "text": {"body": "Hi"}},
            ],
            statuses=[42],
        )
        payload["entry"].extend([None, "entry", {"changes": ["change", {"value": []}]}])

        decoded = codec.decode(payload)

        assert [m.channel_message_id for m in decoded.messages] == ["wamid.5"]
        assert decoded.statuses == []

    def test_wrong_object_rejected(self, codec):
        with pytest.raises(ParseError):
            codec.decode({"object": "page", "entry": []})

    def test_non_object_payload_rejected(self, codec):
        with pytest.raises(ParseError):
            codec.decode(["not", "an", "object"])

    def test_unknown_status_maps_to_pending(self, codec):
        assert codec.map_status("warning") == MessageStatus.PENDING
