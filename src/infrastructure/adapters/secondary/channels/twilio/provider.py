"""Twilio Programmable Messaging provider (SMS)."""

import logging

import httpx

from src.domain.exceptions import ConnectionError, MessageNotFoundError, ValidationError
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
from src.infrastructure.adapters.secondary.channels.twilio.codec import TwilioCodec

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
TWILIO_LOOKUP_BASE = "https://lookups.twilio.com/v1/PhoneNumbers"


class TwilioMessageProvider(HttpProviderBase):
    """Sends SMS through the Messages API; status arrives by callback or polling."""

    channel = Channel.SMS
    provider_id = "twilio"
    max_content_length = 1600

    def __init__(
        self,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None = None,
        status_callback_url: str | None = None,
        lookup_enabled: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(timeout=timeout, client=client)
        self._account_sid = account_sid or ""
        self._auth_token = auth_token or ""
        self._from_number = from_number
        self._status_callback_url = status_callback_url
        self._lookup_enabled = lookup_enabled
        self._codec = TwilioCodec()

    @property
    def _auth(self) -> tuple[str, str]:
        return (self._account_sid, self._auth_token)

    @property
    def _account_url(self) -> str:
        return f"{TWILIO_API_BASE}/Accounts/{self._account_sid}"

    async def send(self, request: SendRequest) -> ProviderSendResult:
        if request.kind != MessageKind.TEXT:
            raise ValidationError("SMS does not support template messages", field="kind")
        if not is_e164(request.to):
            raise ValidationError(f"Invalid destination number: {request.to}", field="to")
        sender = request.from_ or self._from_number
        if not sender:
            raise ValidationError("No sender number configured", field="from")

        data = {
            "To": request.to,
            "From": sender,
            "Body": fit_to_length(request.content, self.max_content_length),
        }
        callback_url = request.status_callback_url or self._status_callback_url
        if callback_url:
            data["StatusCallback"] = callback_url
            data["ProvideFeedback"] = "true"

        response = await self._request(
            "POST", f"{self._account_url}/Messages.json", data=data, auth=self._auth
        )
        payload = safe_json(response)
        if response.status_code >= 400:
            code = payload.get("code")
            raise self._send_error(
                response,
                payload.get("message") or response.text[:200],
                error_code=str(code) if code is not None else None,
            )

        sid = payload.get("sid")
        if not sid:
            raise self._send_error(response, "Response did not include a message sid")

        logger.info(f"[TwilioMessageProvider] Sent {sid} to {request.to}")
        return ProviderSendResult(
            channel_message_id=sid,
            status=self._codec.map_status(payload.get("status")),
            provider_id=self.provider_id,
            raw=payload,
        )

    async def validate_address(self, address: str) -> bool:
        if not is_e164(address):
            return False
        if not self._lookup_enabled:
            return True

        response = await self._request("GET", f"{TWILIO_LOOKUP_BASE}/{address}", auth=self._auth)
        if response.status_code == 404:
            return False
        if response.status_code >= 400:
            raise ConnectionError(
                self.provider_id, f"lookup returned HTTP {response.status_code}", TWILIO_LOOKUP_BASE
            )
        return True

    async def get_message_status(self, channel_message_id: str) -> MessageStatus:
        response = await self._request(
            "GET", f"{self._account_url}/Messages/{channel_message_id}.json", auth=self._auth
        )
        if response.status_code == 404:
            raise MessageNotFoundError(channel_message_id)
        if response.status_code >= 400:
            raise ConnectionError(
                self.provider_id, f"status lookup returned HTTP {response.status_code}"
            )
        return self._codec.map_status(safe_json(response).get("status"))

    async def health(self) -> bool:
        if not self._account_sid or not self._auth_token:
            return False
        try:
            response = await self._request("GET", f"{self._account_url}.json", auth=self._auth)
        except ConnectionError as e:
            logger.warning(f"[TwilioMessageProvider] Health check failed: {e}")
            return False
        return response.status_code == 200
