"""LLM package initialization."""

from freight_delay_monitor.llm.openai_provider import OpenAIProvider
from freight_delay_monitor.llm.provider import LLMProvider

__all__ = [
    "LLMProvider",
    "OpenAIProvider",
]
