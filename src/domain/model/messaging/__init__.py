from src.domain.model.enums import Channel
from src.domain.model.messaging.inbound import NormalizedInbound, StatusCallback
from src.domain.model.messaging.outbound import (
    TRUNCATION_MARKER,
    MessageKind,
    ProviderSendResult,
    SendRequest,
    fit_to_length,
    is_e164,
)

__all__ = [
    "TRUNCATION_MARKER",
    "Channel",
    "NormalizedInbound",
    "StatusCallback",
    "MessageKind",
    "ProviderSendResult",
    "SendRequest",
    "fit_to_length",
    "is_e164",
]
