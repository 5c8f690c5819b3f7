"""WebhookVerifierPort - authenticity check over raw request bytes."""

from abc import abstractmethod
from collections.abc import Mapping
from typing import Protocol, runtime_checkable


@runtime_checkable
class WebhookVerifierPort(Protocol):
    @abstractmethod
    def verify(
        self,
        raw_body: bytes,
        headers: Mapping[str, str],
        secret: str,
        url: str | None = None,
    ) -> bool:
        """
        Return True only if the signature header matches the HMAC of the
        exact request bytes. Missing header, empty secret or mismatch all
        return False.
        """
        ...
