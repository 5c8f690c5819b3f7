"""
Per-conversation log correlation.

The conversation id handled by the current task lives in a ContextVar and a
logging filter copies it onto every record, so a turn's log lines can be
grepped out of interleaved output.

Usage:
    from src.infrastructure.logging_context import bind_conversation, configure_logging

    configure_logging("INFO")
    with bind_conversation("conv-123"):
        logger.info("[ConversationActor] handling inbound")
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [conv=%(conversation_id)s] %(message)s"

current_conversation_id: ContextVar[str | None] = ContextVar(
    "current_conversation_id", default=None
)


class ConversationContextFilter(logging.Filter):
    """Stamp ``conversation_id`` onto log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.conversation_id = current_conversation_id.get() or "-"
        return True


@contextmanager
def bind_conversation(conversation_id: str | None) -> Iterator[None]:
    token = current_conversation_id.set(conversation_id)
    try:
        yield
    finally:
        current_conversation_id.reset(token)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    context_filter = ConversationContextFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, ConversationContextFilter) for f in handler.filters):
            handler.addFilter(context_filter)

    # LiteLLM adds its own handler and also propagates, which duplicates lines
    for name in ("LiteLLM", "LiteLLM Router", "LiteLLM Proxy"):
        logging.getLogger(name).propagate = False
