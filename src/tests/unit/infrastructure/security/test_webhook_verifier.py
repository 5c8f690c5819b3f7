"""
Unit tests for webhook signature verification.

Every verifier must fail closed: no secret, no header or a bad signature
is a rejection.
"""

import base64
import hashlib
import hmac
from urllib.parse import urlencode

import pytest

from src.infrastructure.security.webhook_verifier import (
    MetaSignatureVerifier,
    PlatformWebhookVerifier,
    TwilioSignatureVerifier,
)

TWILIO_URL = "https://api.example.com/webhooks/twilio"
TWILIO_TOKEN = "twilio-test-token"


def twilio_signature(url: str, params: dict[str, str], token: str) -> str:
    base = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(token.encode(), base.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


@pytest.mark.unit
class TestTwilioSignatureVerifier:
    params = {"From": "+15550001111", "To": "+15559990000", "Body": "Hi there", "MessageSid": "SM1"}

    def test_valid_signature(self):
        body = urlencode(self.params).encode()
        headers = {"X-Twilio-Signature": twilio_signature(TWILIO_URL, self.params, TWILIO_TOKEN)}

        assert TwilioSignatureVerifier().verify(body, headers, TWILIO_TOKEN, url=TWILIO_URL)

    def test_header_lookup_is_case_insensitive(self):
        body = urlencode(self.params).encode()
        headers = {"x-twilio-signature": twilio_signature(TWILIO_URL, self.params, TWILIO_TOKEN)}

        assert TwilioSignatureVerifier().verify(body, headers, TWILIO_TOKEN, url=TWILIO_URL)

    def test_unsigned_request_rejected(self):
        body = urlencode(self.params).encode()

        assert not TwilioSignatureVerifier().verify(body, {}, TWILIO_TOKEN, url=TWILIO_URL)

    def test_rejected_when_no_token_configured(self):
        body = urlencode(self.params).encode()
        headers = {"X-Twilio-Signature": twilio_signature(TWILIO_URL, self.params, "")}

        assert not TwilioSignatureVerifier().verify(body, headers, "", url=TWILIO_URL)

    def test_tampered_body_rejected(self):
        headers = {"X-Twilio-Signature": twilio_signature(TWILIO_URL, self.params, TWILIO_TOKEN)}
        tampered = urlencode({**self.params, "Body": "Send me a refund"}).encode()

        assert not TwilioSignatureVerifier().verify(tampered, headers, TWILIO_TOKEN, url=TWILIO_URL)

    def test_different_url_rejected(self):
        body = urlencode(self.params).encode()
        headers = {"X-Twilio-Signature": twilio_signature(TWILIO_URL, self.params, TWILIO_TOKEN)}

        assert not TwilioSignatureVerifier().verify(
            body, headers, TWILIO_TOKEN, url="https://evil.example.com/webhooks/twilio"
        )

    def test_missing_url_rejected(self):
        body = urlencode(self.params).encode()
        headers = {"X-Twilio-Signature": twilio_signature(TWILIO_URL, self.params, TWILIO_TOKEN)}

        assert not TwilioSignatureVerifier().verify(body, headers, TWILIO_TOKEN)


@pytest.mark.unit
class TestMetaSignatureVerifier:
    body = b'{"object":"whatsapp_business_account","entry":[]}'

    def test_valid_signature(self):
        verifier = MetaSignatureVerifier()
        headers = {"X-Hub-Signature-256": "sha256=" + verifier.sign(self.body, "app-secret")}

        assert verifier.verify(self.body, headers, "app-secret")

    def test_signature_over_raw_bytes_not_reserialized_json(self):
        verifier = MetaSignatureVerifier()
        headers = {"X-Hub-Signature-256": "sha256=" + verifier.sign(self.body, "app-secret")}
        reserialized = b'{"object": "whatsapp_business_account", "entry": []}'

        assert not verifier.verify(reserialized, headers, "app-secret")

    def test_missing_prefix_rejected(self):
        verifier = MetaSignatureVerifier()
        headers = {"X-Hub-Signature-256": verifier.sign(self.body, "app-secret")}

        assert not verifier.verify(self.body, headers, "app-secret")

    def test_missing_header_rejected(self):
        assert not MetaSignatureVerifier().verify(self.body, {}, "app-secret")


@pytest.mark.unit
class TestPlatformWebhookVerifier:
    def test_base64_hmac(self):
        body = b'{"myshopify_domain":"candles.example.com"}'
        digest = hmac.new(b"shop-secret", body, hashlib.sha256).digest()
        headers = {"X-Shopify-Hmac-Sha256": base64.b64encode(digest).decode()}

        assert PlatformWebhookVerifier().verify(body, headers, "shop-secret")
        assert not PlatformWebhookVerifier().verify(body, headers, "other-secret")

    def test_channel_signature_does_not_pass_platform_check(self):
        body = b"{}"
        meta = MetaSignatureVerifier().sign(body, "shared")
        headers = {"X-Shopify-Hmac-Sha256": meta, "X-Hub-Signature-256": f"sha256={meta}"}

        assert not PlatformWebhookVerifier().verify(body, headers, "shared")
