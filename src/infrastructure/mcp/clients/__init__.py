"""Merchant tool server clients."""

from src.infrastructure.mcp.clients.tool_client import MCPToolClient

__all__ = ["MCPToolClient"]
