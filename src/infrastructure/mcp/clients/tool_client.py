"""JSON-RPC 2.0 tool-call client for merchant tool servers.

Each operation is exactly one HTTP POST:

    {"jsonrpc": "2.0", "id": n, "method": "tools/list" | "tools/call", "params": {...}}

There is no retry here; retry and fallback policy belongs to the caller.
Transport failures raise ConnectionError, while a reachable server that
answers with a non-2xx status or a JSON-RPC ``error`` raises ToolCallError.
"""

import asyncio
import itertools
import json
import logging
from typing import Any

import aiohttp

from src.domain.exceptions import ConnectionError, ToolCallError
from src.domain.model.agent import ToolResult, ToolSpec
from src.domain.model.agent.tooling import EMPTY_INPUT_SCHEMA

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

SERVICE_NAME = "tool server"


class MCPToolClient:
    """
    Stateless JSON-RPC client; the endpoint is passed per call because each
    tenant's shop has its own.

    Usage:
        client = MCPToolClient(timeout=10)
        tools = await client.list_tools("https://shop.example.com/api/mcp")
        result = await client.call_tool(endpoint, "search_shop_catalog", {"query": "candles"})
        await client.close()
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        headers: dict[str, str] | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self._session = session
        self._owns_session = session is None
        self._ids = itertools.count(1)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def list_tools(self, endpoint: str) -> list[ToolSpec]:
        result = await self._send_request(endpoint, "tools/list", {}, subject="tools/list")
        tools = result.get("tools") or []
        specs: list[ToolSpec] = []
        for tool in tools:
            name = tool.get("name")
            if not name:
                continue
            schema = tool.get("inputSchema") or tool.get("input_schema") or dict(EMPTY_INPUT_SCHEMA)
            specs.append(
                ToolSpec(name=name, description=tool.get("description") or "", input_schema=schema)
            )
        logger.debug(f"[MCPToolClient] {endpoint} advertises {len(specs)} tools")
        return specs

    async def call_tool(self, endpoint: str, name: str, arguments: dict[str, Any]) -> ToolResult:
        result = await self._send_request(
            endpoint,
            "tools/call",
            {"name": name, "arguments": arguments or {}},
            subject=name,
        )
        text = extract_text(result)
        if result.get("isError"):
            raise ToolCallError(name, text or "Tool reported an error")
        return ToolResult(name=name, raw_text=text)

    async def _send_request(
        self,
        endpoint: str,
        method: str,
        params: dict[str, Any],
        subject: str,
    ) -> dict[str, Any]:
        request_id = next(self._ids)
        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
        session = await self._get_session()

        try:
            async with session.post(endpoint, json=payload) as response:
                body = await response.text()
                status = response.status
        except asyncio.TimeoutError as e:
            raise ConnectionError(
                SERVICE_NAME, f"timed out after {self.timeout}s", endpoint, original_error=e
            ) from e
        except aiohttp.ClientError as e:
            raise ConnectionError(SERVICE_NAME, str(e) or type(e).__name__, endpoint, e) from e

        if not 200 <= status < 300:
            logger.warning(f"[MCPToolClient] {method} to {endpoint} returned HTTP {status}")
            raise ToolCallError(subject, f"HTTP {status}: {body[:200]}", code=status)

        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise ToolCallError(subject, f"Invalid JSON response: {e}") from e

        if not isinstance(data, dict):
            raise ToolCallError(subject, "Response is not a JSON-RPC object")

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                raise ToolCallError(
                    subject,
                    error.get("message") or "Unknown JSON-RPC error",
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise ToolCallError(subject, str(error))

        result = data.get("result")
        if not isinstance(result, dict):
            raise ToolCallError(subject, "Response has no result")
        return result


def extract_text(result: dict[str, Any]) -> str:
    """Concatenate the ``text`` of every text block in ``result.content``."""
    content = result.get("content") or []
    if isinstance(content, str):
        return content
    texts = [
        block.get("text", "")
        for block in content
        if isinstance(block, dict) and block.get("type", "text") == "text" and block.get("text")
    ]
    return "\n".join(texts)
