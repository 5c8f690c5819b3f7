"""
AI Orchestrator - one customer turn through the commerce assistant.

A turn moves through a fixed sequence of states:

    ClassifyIntent -> BuildContext -> InvokeModel
        -> no tool calls:  Respond
        -> tool calls:     ExecuteTools -> Humanize -> Respond

Every external step (model, tool server) degrades instead of raising:

- model unreachable: deterministic catalog/policy lookup when the intent
  calls for one, else a canned acknowledgement
- individual tool failure: recorded and left out of humanization
- every tool failed: an intent-specific "let me help you" reply
- humanization failure: a templated summary of the raw tool output
"""

import asyncio
import json
import logging
from typing import Any

from src.application.services.agent.context_loader import ContextLoader
from src.application.services.agent.intent_classifier import IntentClassifier
from src.application.services.agent.prompts import (
    ACKNOWLEDGEMENT_REPLY,
    CATALOG_TOOL,
    DEFAULT_REPLY,
    HUMANIZE_SYSTEM_PROMPT,
    POLICY_TOOL,
    basic_reply,
    build_humanize_prompt,
    intent_fallback_reply,
    templated_summary,
)
from src.application.services.agent.tool_discovery import ToolDiscoveryService, tool_endpoint
from src.domain.exceptions import CommerceError
from src.domain.model.agent import (
    AgentTurnResult,
    Intent,
    IntentClassification,
    ToolCall,
    ToolResult,
    ToolSpec,
)
from src.domain.model.conversations import Conversation
from src.domain.ports import ChatModelPort, ConversationStorePort, ToolClientPort

logger = logging.getLogger(__name__)

# Intent -> tool called directly when the model cannot be reached
DETERMINISTIC_TOOLS: dict[Intent, str] = {
    Intent.PRODUCT_SEARCH: CATALOG_TOOL,
    Intent.POLICY_QUESTION: POLICY_TOOL,
}


def parse_arguments(raw: Any) -> dict[str, Any]:
    """Tool-call arguments arrive as a JSON string or an object; bad JSON means none."""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning(f"[AIOrchestrator] Ignoring malformed tool arguments: {str(raw)[:200]}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def extract_embedded_call(content: str) -> ToolCall | None:
    """Find a function call the model wrote as JSON text instead of a native tool call.

    Accepts ``{"name": ..., "arguments": ...}`` and ``{"function": ..., "arguments": ...}``.
    """
    if not content or '"arguments"' not in content:
        return None
    decoder = json.JSONDecoder()
    index = content.find("{")
    while index != -1:
        try:
            candidate, _ = decoder.raw_decode(content, index)
        except json.JSONDecodeError:
            candidate = None
        if isinstance(candidate, dict):
            name = candidate.get("name") or candidate.get("function")
            if isinstance(name, dict):
                name = name.get("name")
            if isinstance(name, str) and name and "arguments" in candidate:
                return ToolCall(name=name, arguments=parse_arguments(candidate["arguments"]))
        index = content.find("{", index + 1)
    return None


class AIOrchestrator:
    """Drives one AI turn: intent, context, model, tools, humanization."""

    def __init__(
        self,
        chat_model: ChatModelPort,
        tool_client: ToolClientPort,
        store: ConversationStorePort,
        endpoint_path: str = "/api/mcp",
        llm_timeout: float = 30.0,
        tool_timeout: float = 10.0,
        history_window: int = 20,
        default_shop_domain: str | None = None,
        intent_classifier: IntentClassifier | None = None,
    ) -> None:
        self._chat_model = chat_model
        self._tool_client = tool_client
        self._endpoint_path = endpoint_path
        self._llm_timeout = llm_timeout
        self._tool_timeout = tool_timeout
        self._default_shop_domain = default_shop_domain
        if intent_classifier is None:
            intent_classifier = IntentClassifier(chat_model, timeout=llm_timeout)
        self._intent_classifier = intent_classifier
        self._context_loader = ContextLoader(store, history_window=history_window)
        self._tool_discovery = ToolDiscoveryService(tool_client)

    async def run_turn(
        self,
        conversation: Conversation,
        customer_message: str,
        current_message_id: str | None = None,
    ) -> AgentTurnResult:
        """Produce the reply for ``customer_message``. Never raises for external failures."""
        intent = await self._intent_classifier.classify(customer_message)
        logger.info(
            f"[AIOrchestrator] Intent {intent.intent.value} "
            f"(confidence={intent.confidence:.2f}, source={intent.source})"
        )

        shop_domain = conversation.shop_domain or self._default_shop_domain
        if not shop_domain:
            return await self._respond_without_tools(
                conversation, customer_message, intent, current_message_id
            )

        endpoint = tool_endpoint(shop_domain, self._endpoint_path)
        tools = await self._tool_discovery.get_available_tools(endpoint)
        context = await self._context_loader.load_context(
            conversation,
            customer_message,
            shop_domain=shop_domain,
            exclude_message_id=current_message_id,
        )

        try:
            response = await self._invoke_model(context.messages, tools)
        except (CommerceError, asyncio.TimeoutError) as e:
            logger.warning(f"[AIOrchestrator] Model invocation failed: {e!r}")
            return await self._model_unavailable(customer_message, intent, tools, endpoint)

        calls = self._tool_calls_from(response)
        if not calls:
            text = (response.get("content") or "").strip()
            return AgentTurnResult(response_text=text or DEFAULT_REPLY, intent=intent)

        return await self._execute_and_humanize(calls, customer_message, endpoint, intent)

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    async def _invoke_model(
        self, messages: list[dict[str, Any]], tools: list[ToolSpec]
    ) -> dict[str, Any]:
        schemas = [tool.to_function_schema() for tool in tools] or None
        logger.info(
            f"[AIOrchestrator] Calling model with {len(tools)} tools, "
            f"{len(messages)} context messages"
        )
        return await asyncio.wait_for(
            self._chat_model.generate(messages, tools=schemas),
            timeout=self._llm_timeout,
        )

    def _tool_calls_from(self, response: dict[str, Any]) -> list[ToolCall]:
        calls = [
            ToolCall(
                name=call["name"],
                arguments=parse_arguments(call.get("arguments")),
                call_id=call.get("id"),
            )
            for call in response.get("tool_calls") or []
            if call.get("name")
        ]
        if calls:
            return calls

        embedded = extract_embedded_call(response.get("content") or "")
        if embedded:
            logger.info(f"[AIOrchestrator] Executing function call embedded in text: {embedded.name}")
            return [embedded]
        return []

    async def _execute_tools(self, calls: list[ToolCall], endpoint: str) -> list[ToolResult]:
        """Run calls in order; failed calls are logged and left out."""
        results: list[ToolResult] = []
        for call in calls:
            try:
                result = await asyncio.wait_for(
                    self._tool_client.call_tool(endpoint, call.name, call.arguments),
                    timeout=self._tool_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(f"[AIOrchestrator] Tool {call.name} timed out")
                continue
            except CommerceError as e:
                logger.warning(f"[AIOrchestrator] Tool {call.name} failed: {e}")
                continue
            if result.is_error:
                logger.warning(f"[AIOrchestrator] Tool {call.name} returned an error result")
                continue
            results.append(result)
        return results

    async def _execute_and_humanize(
        self,
        calls: list[ToolCall],
        customer_message: str,
        endpoint: str,
        intent: IntentClassification,
    ) -> AgentTurnResult:
        results = await self._execute_tools(calls, endpoint)
        if not results:
            return AgentTurnResult(
                response_text=intent_fallback_reply(intent.intent),
                intent=intent,
                fallback="tool_failure",
            )

        text, humanized = await self._humanize(customer_message, results)
        return AgentTurnResult(
            response_text=text,
            used_tools=True,
            tools_executed=tuple(result.name for result in results),
            intent=intent,
            fallback=None if humanized else "templated_summary",
        )

    async def _humanize(self, customer_message: str, results: list[ToolResult]) -> tuple[str, bool]:
        try:
            response = await asyncio.wait_for(
                self._chat_model.generate(
                    [
                        {"role": "system", "content": HUMANIZE_SYSTEM_PROMPT},
                        {
                            "role": "user",
                            "content": build_humanize_prompt(customer_message, results),
                        },
                    ],
                    temperature=0.7,
                    max_tokens=200,
                ),
                timeout=self._llm_timeout,
            )
        except (CommerceError, asyncio.TimeoutError) as e:
            logger.warning(f"[AIOrchestrator] Humanization failed, using summary: {e!r}")
            return templated_summary(results), False

        text = (response.get("content") or "").strip()
        if not text:
            return templated_summary(results), False
        return text, True

    async def _model_unavailable(
        self,
        customer_message: str,
        intent: IntentClassification,
        tools: list[ToolSpec],
        endpoint: str,
    ) -> AgentTurnResult:
        tool_name = DETERMINISTIC_TOOLS.get(intent.intent)
        if tool_name and any(tool.name == tool_name for tool in tools):
            logger.info(f"[AIOrchestrator] Deterministic fallback via {tool_name}")
            call = ToolCall(
                name=tool_name,
                arguments={"query": customer_message, "context": customer_message},
            )
            turn = await self._execute_and_humanize([call], customer_message, endpoint, intent)
            if turn.used_tools:
                return AgentTurnResult(
                    response_text=turn.response_text,
                    used_tools=True,
                    tools_executed=turn.tools_executed,
                    intent=intent,
                    fallback="deterministic",
                )

        return AgentTurnResult(
            response_text=ACKNOWLEDGEMENT_REPLY, intent=intent, fallback="acknowledgement"
        )

    async def _respond_without_tools(
        self,
        conversation: Conversation,
        customer_message: str,
        intent: IntentClassification,
        current_message_id: str | None,
    ) -> AgentTurnResult:
        """No shop is bound to this conversation, so the model runs without tools."""
        context = await self._context_loader.load_context(
            conversation, customer_message, exclude_message_id=current_message_id
        )
        try:
            response = await self._invoke_model(context.messages, [])
        except (CommerceError, asyncio.TimeoutError) as e:
            logger.warning(f"[AIOrchestrator] Model invocation failed without tools: {e!r}")
            return AgentTurnResult(
                response_text=basic_reply(customer_message), intent=intent, fallback="basic"
            )

        text = (response.get("content") or "").strip()
        return AgentTurnResult(response_text=text or basic_reply(customer_message), intent=intent)
