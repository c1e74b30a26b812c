"""Abstract base class for streaming LLM providers.

The query engine consumes answers fragment by fragment and forwards each
one to the caller as soon as it arrives, so the contract is an async
iterator rather than a single completion string.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator


# Concrete implementation: OpenAILLMProvider (src/providers/llm/)
class ILLMProvider(ABC):
    """Contract for chat-completion backends used by the query engine."""

    @abstractmethod
    def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        """Stream a completion as an ordered sequence of text fragments.

        Parameters
        ----------
        system_prompt:
            The instruction message (grounding rules).
        user_prompt:
            The message carrying retrieved context and the question.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on generated tokens.

        Returns
        -------
        AsyncIterator[str]
            Non-empty text fragments in generation order.  Closing the
            iterator early (``aclose()`` or task cancellation) must stop the
            upstream request.

        Raises
        ------
        src.utils.errors.GenerationError
            If credentials are missing or the remote call fails before or
            during streaming.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai-gpt-4o-mini"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured.  Makes no network call."""
