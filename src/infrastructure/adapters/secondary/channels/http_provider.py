"""Shared HTTP plumbing for channel provider adapters."""

import logging
from typing import Any

import httpx

from src.domain.exceptions import ConnectionError, ProviderSendError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


class HttpProviderBase:
    """Owns an ``httpx.AsyncClient`` (or borrows an injected one) and maps
    transport failures onto the domain taxonomy."""

    provider_id = "http"

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, client: httpx.AsyncClient | None = None):
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._get_client().request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise ConnectionError(self.provider_id, "request timed out", url, e) from e
        except httpx.RequestError as e:
            raise ConnectionError(self.provider_id, str(e) or type(e).__name__, url, e) from e

    def _send_error(
        self,
        response: httpx.Response,
        reason: str,
        error_code: str | None = None,
    ) -> ProviderSendError:
        status = response.status_code
        retryable = status >= 500 or status == 429
        logger.warning(f"[{self.provider_id}] send rejected: HTTP {status} {reason}")
        return ProviderSendError(
            self.provider_id,
            reason,
            status_code=status,
            error_code=error_code,
            retryable=retryable,
        )


def safe_json(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
