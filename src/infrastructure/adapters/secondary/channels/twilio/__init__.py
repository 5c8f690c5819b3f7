from src.infrastructure.adapters.secondary.channels.twilio.codec import TwilioCodec
from src.infrastructure.adapters.secondary.channels.twilio.provider import TwilioMessageProvider

__all__ = ["TwilioCodec", "TwilioMessageProvider"]
