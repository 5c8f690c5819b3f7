"""Infrastructure security layer - webhook authenticity verification."""

from .webhook_verifier import (
    HmacWebhookVerifier,
    MetaSignatureVerifier,
    PlatformWebhookVerifier,
    TwilioSignatureVerifier,
)

__all__ = [
    "HmacWebhookVerifier",
    "MetaSignatureVerifier",
    "PlatformWebhookVerifier",
    "TwilioSignatureVerifier",
]
