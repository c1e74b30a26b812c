"""LLM provider adapters.

OpenAILLMProvider streams chat completions from OpenAI or an
OpenAI-compatible API and is injected into the QA service by main.py.
"""

from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
