"""Tool discovery for a merchant's tool endpoint."""

import logging

from src.domain.exceptions import CommerceError
from src.domain.model.agent import ToolSpec
from src.domain.ports import ToolClientPort

logger = logging.getLogger(__name__)


def tool_endpoint(shop_domain: str, endpoint_path: str = "/api/mcp") -> str:
    """``https://{shop_domain}{endpoint_path}``; tolerates a scheme on the domain."""
    domain = shop_domain.strip().rstrip("/")
    if "://" in domain:
        domain = domain.split("://", 1)[1]
    return f"https://{domain}{endpoint_path}"


class ToolDiscoveryService:
    """Lists the tools a shop advertises. Failure means no tools, never an error."""

    def __init__(self, tool_client: ToolClientPort) -> None:
        self._tool_client = tool_client

    async def get_available_tools(self, endpoint: str) -> list[ToolSpec]:
        try:
            tools = await self._tool_client.list_tools(endpoint)
        except CommerceError as e:
            logger.warning(f"[ToolDiscovery] Could not list tools at {endpoint}: {e}")
            return []
        logger.info(f"[ToolDiscovery] Found {len(tools)} tools at {endpoint}")
        return tools
