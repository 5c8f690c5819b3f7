"""WhatsApp Business Cloud API webhook codec.

Payload shape::

    {"object": "whatsapp_business_account",
     "entry": [{"id": ..., "changes": [{"field": "messages", "value": {
         "metadata": {"display_phone_number": ..., "phone_number_id": ...},
         "messages": [...], "statuses": [...]}}]}]}
"""

import logging
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import Any

from src.domain.exceptions import ParseError
from src.domain.model.enums import Channel, MessageStatus
from src.domain.model.messaging import NormalizedInbound, StatusCallback
from src.domain.shared_kernel import utcnow
from src.infrastructure.adapters.secondary.channels.codec import DecodedWebhook, normalize_phone

logger = logging.getLogger(__name__)

WHATSAPP_OBJECT = "whatsapp_business_account"

WHATSAPP_STATUS_MAP: dict[str, MessageStatus] = {
    "sent": MessageStatus.SENT,
    "delivered": MessageStatus.DELIVERED,
    "read": MessageStatus.READ,
    "failed": MessageStatus.FAILED,
}


class WhatsAppCodec:
    channel = Channel.WHATSAPP

    def map_status(self, channel_status: str | None) -> MessageStatus:
        """Total mapping; unknown statuses become pending."""
        if not channel_status:
            return MessageStatus.PENDING
        return WHATSAPP_STATUS_MAP.get(channel_status.strip().lower(), MessageStatus.PENDING)

    def decode(self, payload: Any) -> DecodedWebhook:
        if not isinstance(payload, dict):
            raise ParseError(self.channel.value, "Payload must be a JSON object")
        if payload.get("object") != WHATSAPP_OBJECT:
            raise ParseError(
                self.channel.value, f"Unexpected object '{payload.get('object')}'", field="object"
            )
        entries = payload.get("entry")
        if not isinstance(entries, list):
            raise ParseError(self.channel.value, "Missing entry list", field="entry")

        decoded = DecodedWebhook(channel=self.channel)
        for entry in _objects(entries):
            for change in _objects(entry.get("changes")):
                value = _object(change.get("value"))
                metadata = _object(value.get("metadata"))
                store_phone = normalize_phone(metadata.get("display_phone_number"))

                for raw_message in _objects(value.get("messages")):
                    try:
                        decoded.messages.append(self.parse(raw_message, store_phone))
                    except ParseError as e:
                        logger.warning(f"[WhatsAppCodec] Skipping message: {e}")

                for raw_status in _objects(value.get("statuses")):
                    try:
                        decoded.statuses.append(self.parse_status(raw_status))
                    except ParseError as e:
                        logger.warning(f"[WhatsAppCodec] Skipping status: {e}")
        return decoded

    def parse(self, message: dict[str, Any], store_phone: str) -> NormalizedInbound:
        sender = normalize_phone(message.get("from"))
        if not sender:
            raise ParseError(self.channel.value, "Message without sender", field="from")
        if not store_phone:
            raise ParseError(
                self.channel.value, "Missing display_phone_number", field="display_phone_number"
            )

        message_type = str(message.get("type") or "text")
        body = describe_content(message)
        if not body:
            raise ParseError(self.channel.value, "Empty message body", field="text")

        return NormalizedInbound(
            channel=self.channel,
            sender=sender,
            recipient=store_phone,
            body=body,
            channel_message_id=str(message["id"]) if message.get("id") else None,
            timestamp=_parse_timestamp(message.get("timestamp")),
            message_type=message_type,
            raw=message,
        )

    def parse_status(self, status: dict[str, Any]) -> StatusCallback:
        message_id = status.get("id")
        channel_status = status.get("status")
        if not message_id:
            raise ParseError(self.channel.value, "Status without id", field="id")
        if not channel_status:
            raise ParseError(self.channel.value, "Status without status", field="status")

        error_code = None
        error_message = None
        errors = list(_objects(status.get("errors")))
        if errors:
            first = errors[0]
            error_code = str(first.get("code")) if first.get("code") is not None else None
            error_message = first.get("title") or first.get("message")

        return StatusCallback(
            channel=self.channel,
            channel_message_id=str(message_id),
            status=self.map_status(str(channel_status)),
            channel_status=str(channel_status),
            timestamp=_parse_timestamp(status.get("timestamp")),
            recipient=normalize_phone(status.get("recipient_id")) or None,
            error_code=error_code,
            error_message=error_message,
        )


def describe_content(message: dict[str, Any]) -> str:
    """Text for a message; media types get a short description."""
    message_type = str(message.get("type") or "text")
    if message_type == "text":
        return str(_object(message.get("text")).get("body") or "").strip()
    if message_type == "image":
        image = _object(message.get("image"))
        return image.get("caption") or f"[Image: {image.get('filename') or image.get('id') or 'image'}]"
    if message_type == "document":
        document = _object(message.get("document"))
        return document.get("caption") or f"[Document: {document.get('filename') or 'document'}]"
    if message_type == "button":
        return _object(message.get("button")).get("text") or "[BUTTON message]"
    if message_type == "interactive":
        interactive = _object(message.get("interactive"))
        reply = _object(interactive.get("button_reply") or interactive.get("list_reply"))
        return reply.get("title") or "[INTERACTIVE message]"
    return f"[{message_type.upper()} message]"


def _parse_timestamp(value: Any) -> datetime:
    try:
        return datetime.fromtimestamp(int(value), tz=UTC)
    except (TypeError, ValueError, OverflowError, OSError):
        return utcnow()


def _object(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _objects(value: Any) -> Iterator[dict[str, Any]]:
    """The dict items of a list; anything else in the envelope is skipped."""
    if not isinstance(value, list):
        return
    for item in value:
        if isinstance(item, dict):
            yield item
        else:
            logger.warning(f"[WhatsAppCodec] Skipping non-object item: {type(item).__name__}")
