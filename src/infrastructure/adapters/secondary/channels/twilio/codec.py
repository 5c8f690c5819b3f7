"""Twilio SMS webhook codec.

Twilio posts form-encoded fields. Inbound messages carry ``Body``; status
callbacks carry ``MessageStatus`` and no ``Body``.
"""

import logging
from collections.abc import Mapping

from src.domain.exceptions import ParseError
from src.domain.model.enums import Channel, MessageStatus
from src.domain.model.messaging import NormalizedInbound, StatusCallback
from src.infrastructure.adapters.secondary.channels.codec import DecodedWebhook, normalize_phone

logger = logging.getLogger(__name__)

MAX_INBOUND_LENGTH = 1600

TWILIO_STATUS_MAP: dict[str, MessageStatus] = {
    "queued": MessageStatus.PENDING,
    "accepted": MessageStatus.PENDING,
    "scheduled": MessageStatus.PENDING,
    "sending": MessageStatus.PENDING,
    "sent": MessageStatus.SENT,
    "delivered": MessageStatus.DELIVERED,
    "read": MessageStatus.READ,
    "failed": MessageStatus.FAILED,
    "undelivered": MessageStatus.FAILED,
    "canceled": MessageStatus.FAILED,
}


class TwilioCodec:
    channel = Channel.SMS

    @staticmethod
    def is_status_callback(form: Mapping[str, str]) -> bool:
        return "MessageStatus" in form and "Body" not in form

    def map_status(self, channel_status: str | None) -> MessageStatus:
        """Total mapping; unknown statuses become pending."""
        if not channel_status:
            return MessageStatus.PENDING
        return TWILIO_STATUS_MAP.get(channel_status.strip().lower(), MessageStatus.PENDING)

    def decode(self, payload: Mapping[str, str]) -> DecodedWebhook:
        if self.is_status_callback(payload):
            return DecodedWebhook(channel=self.channel, statuses=[self.parse_status(payload)])
        return DecodedWebhook(channel=self.channel, messages=[self.parse(payload)])

    def parse(self, form: Mapping[str, str]) -> NormalizedInbound:
        sender = normalize_phone(form.get("From"))
        recipient = normalize_phone(form.get("To"))
        if not sender:
            raise ParseError(self.channel.value, "Missing From", field="From")
        if not recipient:
            raise ParseError(self.channel.value, "Missing To", field="To")

        body = (form.get("Body") or "").strip()
        message_type = "text"
        if not body:
            num_media = _safe_int(form.get("NumMedia"))
            if num_media <= 0:
                raise ParseError(self.channel.value, "Missing Body", field="Body")
            body = f"[Media message: {num_media} attachment(s)]"
            message_type = "media"

        if len(body) > MAX_INBOUND_LENGTH:
            logger.warning(
                f"[TwilioCodec] Inbound body of {len(body)} chars clipped to {MAX_INBOUND_LENGTH}"
            )
            body = body[:MAX_INBOUND_LENGTH]

        return NormalizedInbound(
            channel=self.channel,
            sender=sender,
            recipient=recipient,
            body=body,
            channel_message_id=form.get("MessageSid") or form.get("SmsSid") or None,
            message_type=message_type,
            raw=dict(form),
        )

    def parse_status(self, form: Mapping[str, str]) -> StatusCallback:
        message_sid = form.get("MessageSid") or form.get("SmsSid")
        channel_status = form.get("MessageStatus")
        if not message_sid:
            raise ParseError(self.channel.value, "Missing MessageSid", field="MessageSid")
        if not channel_status:
            raise ParseError(self.channel.value, "Missing MessageStatus", field="MessageStatus")

        return StatusCallback(
            channel=self.channel,
            channel_message_id=message_sid,
            status=self.map_status(channel_status),
            channel_status=channel_status,
            recipient=normalize_phone(form.get("To")) or None,
            error_code=form.get("ErrorCode") or None,
            error_message=form.get("ErrorMessage") or None,
        )


def _safe_int(value: str | None) -> int:
    try:
        return int(value or 0)
    except ValueError:
        return 0
