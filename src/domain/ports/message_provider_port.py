"""MessageProviderPort - uniform send/validate/status interface per channel."""

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from src.domain.model.enums import Channel, MessageStatus
from src.domain.model.messaging import ProviderSendResult, SendRequest


@runtime_checkable
class MessageProviderPort(Protocol):
    channel: Channel
    provider_id: str
    max_content_length: int

    @abstractmethod
    async def send(self, request: SendRequest) -> ProviderSendResult:
        """
        Send one message.

        Raises:
            ValidationError: Bad address, or a text/template kind the
                provider does not accept.
            ProviderSendError: The provider rejected the send.
            ConnectionError: The provider could not be reached.
        """
        ...

    @abstractmethod
    async def validate_address(self, address: str) -> bool: ...

    @abstractmethod
    async def get_message_status(self, channel_message_id: str) -> MessageStatus:
        """
        Poll a message's status.

        Raises:
            MessageNotFoundError: Unknown message, or the provider reports
                status only through webhooks. Not fatal for callers.
        """
        ...

    @abstractmethod
    async def health(self) -> bool: ...
