"""
Webhook signature verification.

All verifiers compute an HMAC over the exact bytes received, never over a
parsed and re-serialized body, and fail closed: a missing header, an empty
secret or a mismatch is a rejection.

Channel-provider verifiers (Twilio, Meta/WhatsApp) and the merchant-platform
verifier are separate classes with separate secrets.
"""

import base64
import hmac
import logging
from collections.abc import Mapping
from urllib.parse import parse_qsl

logger = logging.getLogger(__name__)


def _get_header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


class HmacWebhookVerifier:
    """HMAC over the raw body, compared in constant time."""

    source = "webhook"
    header_name = "X-Signature"
    digestmod = "sha256"
    encoding = "hex"  # hex or base64
    prefix = ""

    def verify(
        self,
        raw_body: bytes,
        headers: Mapping[str, str],
        secret: str,
        url: str | None = None,
    ) -> bool:
        if not secret:
            logger.warning(f"[{self.source}] Rejecting webhook: no secret configured")
            return False

        provided = _get_header(headers, self.header_name)
        if not provided:
            logger.warning(f"[{self.source}] Rejecting webhook: missing {self.header_name}")
            return False

        payload = self._signed_payload(raw_body, url)
        if payload is None:
            logger.warning(f"[{self.source}] Rejecting webhook: signature base unavailable")
            return False

        if self.prefix:
            if not provided.startswith(self.prefix):
                logger.warning(f"[{self.source}] Rejecting webhook: malformed signature")
                return False
            provided = provided[len(self.prefix) :]

        expected = self.sign(payload, secret)
        if not hmac.compare_digest(expected.encode(), provided.strip().encode()):
            logger.warning(f"[{self.source}] Rejecting webhook: signature mismatch")
            return False
        return True

    def sign(self, payload: bytes, secret: str) -> str:
        digest = hmac.new(secret.encode(), payload, self.digestmod).digest()
        if self.encoding == "base64":
            return base64.b64encode(digest).decode()
        return digest.hex()

    def _signed_payload(self, raw_body: bytes, url: str | None) -> bytes | None:
        return raw_body


class TwilioSignatureVerifier(HmacWebhookVerifier):
    """Twilio request validation.

    Signature base is the full request URL followed by every form parameter
    name and value, sorted by name, taken from the raw form body.
    """

    source = "twilio"
    header_name = "X-Twilio-Signature"
    digestmod = "sha1"
    encoding = "base64"

    def _signed_payload(self, raw_body: bytes, url: str | None) -> bytes | None:
        if not url:
            return None
        try:
            params = parse_qsl(raw_body.decode("utf-8"), keep_blank_values=True)
        except UnicodeDecodeError:
            return None
        base = url + "".join(f"{key}{value}" for key, value in sorted(params))
        return base.encode("utf-8")


class MetaSignatureVerifier(HmacWebhookVerifier):
    """WhatsApp Cloud API: ``X-Hub-Signature-256: sha256=<hex>`` keyed by the app secret."""

    source = "whatsapp"
    header_name = "X-Hub-Signature-256"
    digestmod = "sha256"
    encoding = "hex"
    prefix = "sha256="


class PlatformWebhookVerifier(HmacWebhookVerifier):
    """Merchant-platform (Shopify) webhooks: base64 HMAC-SHA256 of the raw body."""

    source = "platform"
    header_name = "X-Shopify-Hmac-Sha256"
    digestmod = "sha256"
    encoding = "base64"
