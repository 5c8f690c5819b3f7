"""WhatsApp Business Cloud API provider."""

import logging
from typing import Any

import httpx

from src.domain.exceptions import MessageNotFoundError, ValidationError
from src.domain.model.enums import Channel, MessageStatus
from src.domain.model.messaging import (
    MessageKind,
    ProviderSendResult,
    SendRequest,
    fit_to_length,
    is_e164,
)
from src.infrastructure.adapters.secondary.channels.http_provider import (
    DEFAULT_TIMEOUT,
    HttpProviderBase,
    safe_json,
)

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.facebook.com"


class WhatsAppMessageProvider(HttpProviderBase):
    """Sends text and template messages through the Graph API.

    There is no status polling API: delivery status only arrives through the
    webhook, so ``get_message_status`` always raises MessageNotFoundError.
    """

    channel = Channel.WHATSAPP
    provider_id = "whatsapp-business"
    max_content_length = 4096

    def __init__(
        self,
        access_token: str | None,
        phone_number_id: str | None,
        api_version: str = "v22.0",
        template_only: bool = False,
        template_language: str = "en_US",
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(timeout=timeout, client=client)
        self._access_token = access_token or ""
        self._phone_number_id = phone_number_id or ""
        self._api_version = api_version
        self._template_only = template_only
        self._template_language = template_language

    @property
    def _messages_url(self) -> str:
        return f"{GRAPH_API_BASE}/{self._api_version}/{self._phone_number_id}/messages"

    def build_payload(self, request: SendRequest) -> dict[str, Any]:
        to = request.to.lstrip("+")
        if request.kind == MessageKind.TEMPLATE:
            template: dict[str, Any] = {
                "name": request.template_name,
                "language": {"code": request.template_language or self._template_language},
            }
            if request.template_params:
                template["components"] = [
                    {
                        "type": "body",
                        "parameters": [
                            {"type": "text", "text": param} for param in request.template_params
                        ],
                    }
                ]
            return {
                "messaging_product": "whatsapp",
                "to": to,
                "type": "template",
                "template": template,
            }

        return {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": fit_to_length(request.content, self.max_content_length)},
        }

    async def send(self, request: SendRequest) -> ProviderSendResult:
        if self._template_only and request.kind == MessageKind.TEXT:
            raise ValidationError(
                "This WhatsApp number only accepts template messages", field="kind"
            )
        if not is_e164(request.to):
            raise ValidationError(f"Invalid destination number: {request.to}", field="to")

        response = await self._request(
            "POST",
            self._messages_url,
            json=self.build_payload(request),
            headers={"Authorization": f"Bearer {self._access_token}"},
        )
        payload = safe_json(response)
        if response.status_code >= 400 or "error" in payload:
            error = payload.get("error") or {}
            code = error.get("code")
            raise self._send_error(
                response,
                error.get("message") or response.text[:200],
                error_code=str(code) if code is not None else None,
            )

        messages = payload.get("messages") or []
        message_id = messages[0].get("id") if messages else None
        if not message_id:
            raise self._send_error(response, "Response did not include a message id")

        logger.info(f"[WhatsAppMessageProvider] Sent {message_id} to {request.to}")
        return ProviderSendResult(
            channel_message_id=message_id,
            status=MessageStatus.PENDING,
            provider_id=self.provider_id,
            raw=payload,
        )

    async def validate_address(self, address: str) -> bool:
        return is_e164(address)

    async def get_message_status(self, channel_message_id: str) -> MessageStatus:
        raise MessageNotFoundError(
            channel_message_id,
            "WhatsApp Business reports message status only through webhooks",
        )

    async def health(self) -> bool:
        return bool(self._access_token and self._phone_number_id)
