"""Message Provider Gateway: one provider per channel behind a single facade."""

import logging

from src.domain.exceptions import ValidationError
from src.domain.model.enums import Channel, MessageStatus
from src.domain.model.messaging import ProviderSendResult, SendRequest
from src.domain.ports.message_provider_port import MessageProviderPort

logger = logging.getLogger(__name__)


class MessageProviderGateway:
    def __init__(self, providers: list[MessageProviderPort] | None = None) -> None:
        self._providers: dict[Channel, MessageProviderPort] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: MessageProviderPort) -> None:
        self._providers[provider.channel] = provider
        logger.debug(f"[MessageProviderGateway] {provider.provider_id} serves {provider.channel}")

    def provider_for(self, channel: Channel) -> MessageProviderPort:
        provider = self._providers.get(channel)
        if provider is None:
            raise ValidationError(f"No provider configured for channel '{channel}'", field="channel")
        return provider

    async def send(self, channel: Channel, request: SendRequest) -> ProviderSendResult:
        return await self.provider_for(channel).send(request)

    async def validate_address(self, channel: Channel, address: str) -> bool:
        return await self.provider_for(channel).validate_address(address)

    async def get_message_status(self, channel: Channel, channel_message_id: str) -> MessageStatus:
        return await self.provider_for(channel).get_message_status(channel_message_id)

    async def health(self) -> dict[str, bool]:
        results: dict[str, bool] = {}
        for channel, provider in self._providers.items():
            results[channel.value] = await provider.health()
        return results

    async def close(self) -> None:
        for provider in self._providers.values():
            close = getattr(provider, "close", None)
            if close is not None:
                await close()
