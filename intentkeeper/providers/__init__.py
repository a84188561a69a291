"""LLM provider abstraction module."""

from intentkeeper.providers.base import LLMProvider, LLMResponse
from intentkeeper.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "LiteLLMProvider"]
