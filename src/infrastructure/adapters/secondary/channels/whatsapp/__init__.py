from src.infrastructure.adapters.secondary.channels.whatsapp.codec import WhatsAppCodec
from src.infrastructure.adapters.secondary.channels.whatsapp.provider import (
    WhatsAppMessageProvider,
)

__all__ = ["WhatsAppCodec", "WhatsAppMessageProvider"]
