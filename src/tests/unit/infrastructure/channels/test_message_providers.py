"""
Unit tests for the Twilio and WhatsApp provider adapters.

HTTP is served by ``httpx.MockTransport`` so request shapes can be asserted.
"""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from src.domain.exceptions import (
    ConnectionError,
    MessageNotFoundError,
    ProviderSendError,
    ValidationError,
)
from src.domain.model.enums import Channel, MessageStatus
from src.domain.model.messaging import MessageKind, SendRequest
from src.infrastructure.adapters.secondary.channels.provider_gateway import (
    MessageProviderGateway,
)
from src.infrastructure.adapters.secondary.channels.twilio.provider import TwilioMessageProvider
from src.infrastructure.adapters.secondary.channels.whatsapp.provider import (
    WhatsAppMessageProvider,
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _text(content: str = "Thanks for reaching out!") -> SendRequest:
    return SendRequest(to="+15550001111", from_="+15559990000", content=content)


@pytest.mark.unit
class TestTwilioMessageProvider:
    async def test_send_posts_form_and_returns_sid(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["form"] = parse_qs(request.content.decode())
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(201, json={"sid": "SM123", "status": "queued"})

        provider = TwilioMessageProvider(
            "AC123",
            "token",
            status_callback_url="https://api.example.com/webhooks/twilio",
            client=_client(handler),
        )

        result = await provider.send(_text())

        assert result.channel_message_id == "SM123"
        assert result.status == MessageStatus.PENDING
        assert result.provider_id == "twilio"
        assert seen["url"].endswith("/Accounts/AC123/Messages.json")
        assert seen["form"]["To"] == ["+15550001111"]
        assert seen["form"]["Body"] == ["Thanks for reaching out!"]
        assert seen["form"]["StatusCallback"] == ["https://api.example.com/webhooks/twilio"]
        assert seen["auth"].startswith("Basic ")

    async def test_long_content_truncated_to_sms_limit(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(parse_qs(request.content.decode())["Body"][0])
            return httpx.Response(201, json={"sid": "SM1", "status": "queued"})

        provider = TwilioMessageProvider("AC123", "token", client=_client(handler))
        await provider.send(_text("word " * 500))

        assert len(bodies[0]) == 1600
        assert bodies[0].endswith("... [message truncated]")

    async def test_server_error_is_retryable(self):
        provider = TwilioMessageProvider(
            "AC123",
            "token",
            client=_client(lambda r: httpx.Response(503, json={"message": "busy", "code": 20503})),
        )

        with pytest.raises(ProviderSendError) as exc_info:
            await provider.send(_text())

        assert exc_info.value.retryable is True
        assert exc_info.value.error_code == "20503"

    async def test_client_error_is_not_retryable(self):
        provider = TwilioMessageProvider(
            "AC123",
            "token",
            client=_client(
                lambda r: httpx.Response(400, json={"message": "Invalid To", "code": 21211})
            ),
        )

        with pytest.raises(ProviderSendError) as exc_info:
            await provider.send(_text())

        assert exc_info.value.retryable is False

    async def test_network_failure_is_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        provider = TwilioMessageProvider("AC123", "token", client=_client(handler))

        with pytest.raises(ConnectionError):
            await provider.send(_text())

    async def test_invalid_destination_rejected_before_request(self):
        calls = []
        provider = TwilioMessageProvider(
            "AC123", "token", client=_client(lambda r: calls.append(r) or httpx.Response(201))
        )

        with pytest.raises(ValidationError):
            await provider.send(SendRequest(to="555-0000", from_="+15559990000", content="Hi"))
        assert calls == []

    async def test_template_not_supported(self):
        provider = TwilioMessageProvider("AC123", "token", client=_client(lambda r: httpx.Response(201)))

        with pytest.raises(ValidationError):
            await provider.send(
                SendRequest(
                    to="+15550001111",
                    from_="+15559990000",
                    kind=MessageKind.TEMPLATE,
                    template_name="welcome",
                )
            )

    async def test_get_message_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/Messages/SM404.json"):
                return httpx.Response(404, json={"message": "not found"})
            return httpx.Response(200, json={"sid": "SM1", "status": "delivered"})

        provider = TwilioMessageProvider("AC123", "token", client=_client(handler))

        assert await provider.get_message_status("SM1") == MessageStatus.DELIVERED
        with pytest.raises(MessageNotFoundError):
            await provider.get_message_status("SM404")

    async def test_validate_address_with_lookup(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if "+15550000404" in str(request.url):
                return httpx.Response(404)
            return httpx.Response(200, json={"phone_number": "+15550001111"})

        provider = TwilioMessageProvider(
            "AC123", "token", lookup_enabled=True, client=_client(handler)
        )

        assert await provider.validate_address("+15550001111") is True
        assert await provider.validate_address("+15550000404") is False
        assert await provider.validate_address("not-a-number") is False

    async def test_health_without_credentials(self):
        provider = TwilioMessageProvider(None, None)
        assert await provider.health() is False


@pytest.mark.unit
class TestWhatsAppMessageProvider:
    async def test_send_text(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"messages": [{"id": "wamid.out.1"}]})

        provider = WhatsAppMessageProvider("wa-token", "1234", client=_client(handler))

        result = await provider.send(_text())

        assert result.channel_message_id == "wamid.out.1"
        assert seen["url"] == "https://graph.facebook.com/v22.0/1234/messages"
        assert seen["auth"] == "Bearer wa-token"
        assert seen["body"] == {
            "messaging_product": "whatsapp",
            "to": "15550001111",
            "type": "text",
            "text": {"body": "Thanks for reaching out!"},
        }

    def test_template_payload(self):
        provider = WhatsAppMessageProvider("wa-token", "1234", template_language="en_GB")

        payload = provider.build_payload(
            SendRequest(
                to="+15550001111",
                from_="+15559990000",
                kind=MessageKind.TEMPLATE,
                template_name="order_update",
                template_params=("Ana", "#1001"),
            )
        )

        assert payload["type"] == "template"
        assert payload["template"]["name"] == "order_update"
        assert payload["template"]["language"] == {"code": "en_GB"}
        assert payload["template"]["components"][0]["parameters"] == [
            {"type": "text", "text": "Ana"},
            {"type": "text", "text": "#1001"},
        ]

    async def test_template_only_number_rejects_text(self):
        provider = WhatsAppMessageProvider(
            "wa-token", "1234", template_only=True, client=_client(lambda r: httpx.Response(200))
        )

        with pytest.raises(ValidationError):
            await provider.send(_text())

    async def test_graph_error_body(self):
        provider = WhatsAppMessageProvider(
            "wa-token",
            "1234",
            client=_client(
                lambda r: httpx.Response(
                    400, json={"error": {"message": "Invalid parameter", "code": 100}}
                )
            ),
        )

        with pytest.raises(ProviderSendError) as exc_info:
            await provider.send(_text())
        assert exc_info.value.error_code == "100"
        assert exc_info.value.retryable is False

    async def test_status_only_via_webhook(self):
        provider = WhatsAppMessageProvider("wa-token", "1234")

        with pytest.raises(MessageNotFoundError):
            await provider.get_message_status("wamid.out.1")


@pytest.mark.unit
class TestMessageProviderGateway:
    async def test_routes_by_channel(self):
        whatsapp = WhatsAppMessageProvider(
            "wa-token",
            "1234",
            client=_client(lambda r: httpx.Response(200, json={"messages": [{"id": "wamid.x"}]})),
        )
        gateway = MessageProviderGateway([whatsapp])

        result = await gateway.send(Channel.WHATSAPP, _text())

        assert result.provider_id == "whatsapp-business"

    async def test_unconfigured_channel_rejected(self):
        gateway = MessageProviderGateway([])

        with pytest.raises(ValidationError):
            await gateway.send(Channel.SMS, _text())

    async def test_health_reports_each_channel(self):
        gateway = MessageProviderGateway(
            [TwilioMessageProvider(None, None), WhatsAppMessageProvider("wa-token", "1234")]
        )

        assert await gateway.health() == {"sms": False, "whatsapp": True}
