"""
Unit tests for the JSON-RPC tool client.

A real ``aiohttp.web`` application stands in for the merchant tool server.
"""

import asyncio

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from src.domain.exceptions import ConnectionError, ToolCallError
from src.infrastructure.mcp.clients.tool_client import MCPToolClient, extract_text

TOOLS = [
    {
        "name": "search_shop_catalog",
        "description": "Search the product catalog",
        "inputSchema": {
            "type": "object",
            "properties": {"query": {"type": "string"}},
            "required": ["query"],
        },
    },
    {"name": "search_shop_policies_and_faqs", "description": "Store policies"},
    {"description": "nameless tools are skipped"},
]


async def _rpc(request: web.Request) -> web.Response:
    body = await request.json()
    request.app["requests"].append({"body": body, "headers": dict(request.headers)})
    method = body["method"]

    if method == "tools/list":
        return web.json_response({"jsonrpc": "2.0", "id": body["id"], "result": {"tools": TOOLS}})

    name = body["params"]["name"]
    if name == "search_shop_catalog":
        query = body["params"]["arguments"].get("query")
        return web.json_response(
            {
                "jsonrpc": "2.0",
                "id": body["id"],
                "result": {
                    "content": [
                        {"type": "text", "text": f"Lavender Candle $24 (matched {query})"},
                        {"type": "image", "data": "..."},
                        {"type": "text", "text": "Vanilla Candle $22"},
                    ]
                },
            }
        )
    if name == "broken":
        return web.json_response(
            {"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32000, "message": "boom"}}
        )
    if name == "reports_error":
        return web.json_response(
            {
                "jsonrpc": "2.0",
                "id": body["id"],
                "result": {"isError": True, "content": [{"type": "text", "text": "bad query"}]},
            }
        )
    if name == "slow":
        await asyncio.sleep(2)
    return web.Response(status=500, text="internal error")


@pytest.fixture
async def tool_server():
    app = web.Application()
    app["requests"] = []
    app.router.add_post("/api/mcp", _rpc)
    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
async def client():
    tool_client = MCPToolClient(timeout=1.0, headers={"Authorization": "Bearer shop-token"})
    yield tool_client
    await tool_client.close()


def _endpoint(server: TestServer) -> str:
    return str(server.make_url("/api/mcp"))


@pytest.mark.unit
class TestMCPToolClient:
    async def test_list_tools(self, tool_server, client):
        tools = await client.list_tools(_endpoint(tool_server))

        assert [tool.name for tool in tools] == [
            "search_shop_catalog",
            "search_shop_policies_and_faqs",
        ]
        assert tools[0].input_schema["required"] == ["query"]
        # Tools without a schema get an empty object schema
        assert tools[1].input_schema == {"type": "object", "properties": {}, "required": []}

    async def test_request_envelope_and_headers(self, tool_server, client):
        await client.list_tools(_endpoint(tool_server))
        await client.call_tool(_endpoint(tool_server), "search_shop_catalog", {"query": "candles"})

        first, second = tool_server.app["requests"]
        assert first["body"]["jsonrpc"] == "2.0"
        assert first["body"]["method"] == "tools/list"
        assert second["body"]["method"] == "tools/call"
        assert second["body"]["params"] == {
            "name": "search_shop_catalog",
            "arguments": {"query": "candles"},
        }
        assert second["body"]["id"] != first["body"]["id"]
        assert first["headers"]["Authorization"] == "Bearer shop-token"

    async def test_call_tool_concatenates_text_blocks(self, tool_server, client):
        result = await client.call_tool(
            _endpoint(tool_server), "search_shop_catalog", {"query": "candles"}
        )

        assert result.name == "search_shop_catalog"
        assert result.raw_text == "Lavender Candle $24 (matched candles)\nVanilla Candle $22"

    async def test_json_rpc_error(self, tool_server, client):
        with pytest.raises(ToolCallError) as exc_info:
            await client.call_tool(_endpoint(tool_server), "broken", {})
        assert exc_info.value.code == -32000

    async def test_result_flagged_as_error(self, tool_server, client):
        with pytest.raises(ToolCallError):
            await client.call_tool(_endpoint(tool_server), "reports_error", {})

    async def test_http_error_status(self, tool_server, client):
        with pytest.raises(ToolCallError) as exc_info:
            await client.call_tool(_endpoint(tool_server), "unknown", {})
        assert exc_info.value.code == 500

    async def test_timeout_is_connection_error(self, tool_server, client):
        with pytest.raises(ConnectionError):
            await client.call_tool(_endpoint(tool_server), "slow", {})

    async def test_unreachable_server_is_connection_error(self, client):
        with pytest.raises(ConnectionError):
            await client.list_tools("http://127.0.0.1:9/api/mcp")


@pytest.mark.unit
class TestExtractText:
    def test_string_content(self):
        assert extract_text({"content": "plain"}) == "plain"

    def test_no_content(self):
        assert extract_text({}) == ""


@pytest.mark.unit
async def test_injected_session_is_not_closed():
    async with aiohttp.ClientSession() as session:
        tool_client = MCPToolClient(session=session)
        await tool_client.close()
        assert not session.closed
