"""
LLM Infrastructure Module.

Chat-model access for the conversation pipeline through LiteLLM.
"""

from src.infrastructure.llm.litellm.litellm_client import LiteLLMChatClient

__all__ = ["LiteLLMChatClient"]
