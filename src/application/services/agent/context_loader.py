"""Context Loader - assembles the chat-model context for one turn.

The window is a system prompt naming the store, tenant and customer, the
last N messages of the conversation as alternating user/assistant turns,
and the current customer message. History that cannot be read degrades to
an empty window; it never fails the turn.
"""

import logging
from dataclasses import dataclass
from typing import Any

from src.application.services.agent.prompts import build_system_prompt
from src.domain.model.conversations import Conversation
from src.domain.model.enums import MessageDirection
from src.domain.ports import ConversationStorePort

logger = logging.getLogger(__name__)


@dataclass
class ContextLoadResult:
    """Result of context loading."""

    # Messages for the chat model (role + content dicts)
    messages: list[dict[str, Any]]
    # History turns included between the system prompt and the current message
    history_count: int = 0
    # False when history could not be read and the window is empty
    history_available: bool = True


class ContextLoader:
    def __init__(self, store: ConversationStorePort, history_window: int = 20) -> None:
        self._store = store
        self._history_window = history_window

    async def load_context(
        self,
        conversation: Conversation,
        customer_message: str,
        shop_domain: str | None = None,
        exclude_message_id: str | None = None,
    ) -> ContextLoadResult:
        system = {
            "role": "system",
            "content": build_system_prompt(
                shop_domain, conversation.tenant_id, conversation.customer_phone
            ),
        }
        current = {"role": "user", "content": customer_message}

        try:
            # One extra so the window stays full after dropping the current message
            recent = await self._store.recent_messages(
                conversation.id, self._history_window + 1
            )
        except Exception as e:
            logger.warning(f"[ContextLoader] History unavailable, using empty window: {e}")
            return ContextLoadResult(messages=[system, current], history_available=False)

        history = [
            {
                "role": "user" if message.direction == MessageDirection.INBOUND else "assistant",
                "content": message.content,
            }
            for message in recent
            if message.id != exclude_message_id and message.content
        ]
        if self._history_window > 0:
            history = history[-self._history_window :]
        else:
            history = []

        return ContextLoadResult(
            messages=[system, *history, current],
            history_count=len(history),
        )
