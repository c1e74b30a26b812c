"""OpenAI-compatible streaming LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
Completions are requested with ``stream=True`` and re-yielded fragment by
fragment.  When a custom ``openai_base_url`` is configured, the client
points at that OpenAI-compatible endpoint instead.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
from src.utils.errors import GenerationError

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """Streaming chat-completion provider backed by an OpenAI-compatible API.

    Uses ``gpt-4o-mini`` by default.  The upstream HTTP stream is closed
    whenever the consumer stops iterating, including on cancellation, so a
    disconnected caller does not keep a generation running.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._base_url = settings.openai_base_url
        self._timeout_seconds = settings.llm_timeout_seconds
        self._model = settings.openai_chat_model or "gpt-4o-mini"
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"
        self._client: openai.AsyncOpenAI | None = None

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            client_kwargs: dict = {
                "api_key": self._api_key,
                "timeout": openai.Timeout(self._timeout_seconds, connect=5.0),
                "max_retries": 0,
            }
            if self._base_url:
                client_kwargs["base_url"] = self._base_url
            self._client = openai.AsyncOpenAI(**client_kwargs)
        return self._client

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        """Yield completion fragments as the model produces them."""
        if not self._api_key:
            raise GenerationError(
                message="OPENAI_API_KEY is not configured",
                provider_name=self.get_provider_name(),
            )

        fragments = 0
        try:
            response_stream = await self._get_client().chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
            try:
                async for chunk in response_stream:
                    if not chunk.choices:
                        continue
                    delta = chunk.choices[0].delta.content
                    if delta:
                        fragments += 1
                        yield delta
            finally:
                await response_stream.close()
        except openai.APITimeoutError as exc:
            raise GenerationError(
                message=f"{self._provider_label} timed out after {self._timeout_seconds}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise GenerationError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "openai_stream_complete",
            model=self._model,
            provider=self._provider_label,
            fragments=fragments,
        )

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)
