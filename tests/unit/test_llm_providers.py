"""Unit tests for the streaming OpenAI LLM provider adapter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from src.config.settings import Settings
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.utils.errors import GenerationError

_CLIENT_PATH = "src.providers.llm.openai_provider.openai.AsyncOpenAI"


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_chat_model": "",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


def _chunk(content: str | None) -> MagicMock:
    chunk = MagicMock()
    chunk.choices = [MagicMock(delta=MagicMock(content=content))]
    return chunk


class _FakeStream:
    """Async-iterable stand-in for ``openai.AsyncStream``."""

    def __init__(self, chunks: list, error: Exception | None = None) -> None:
        self._chunks = list(chunks)
        self._error = error
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._chunks:
            return self._chunks.pop(0)
        if self._error is not None:
            raise self._error
        raise StopAsyncIteration

    async def close(self) -> None:
        self.closed = True


def _client(stream: _FakeStream | Exception) -> AsyncMock:
    client = AsyncMock()
    if isinstance(stream, Exception):
        client.chat.completions.create = AsyncMock(side_effect=stream)
    else:
        client.chat.completions.create = AsyncMock(return_value=stream)
    return client


async def _collect(provider: OpenAILLMProvider) -> list[str]:
    return [fragment async for fragment in provider.stream("system", "user")]


class TestOpenAILLMProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_get_provider_name(self, settings: Settings) -> None:
        assert OpenAILLMProvider(settings).get_provider_name() == "openai"

    def test_provider_name_with_base_url(self) -> None:
        provider = OpenAILLMProvider(_settings(openai_base_url="http://localhost:9000/v1"))
        assert provider.get_provider_name() == "openai-compatible"

    def test_is_available_without_key(self) -> None:
        assert OpenAILLMProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_stream_yields_non_empty_deltas(self, settings: Settings) -> None:
        stream = _FakeStream([_chunk("Hel"), _chunk(None), _chunk(""), _chunk("lo")])
        client = _client(stream)
        with patch(_CLIENT_PATH, return_value=client):
            fragments = await _collect(OpenAILLMProvider(settings))

        assert fragments == ["Hel", "lo"]
        assert stream.closed is True
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}
        assert kwargs["messages"][1] == {"role": "user", "content": "user"}

    @pytest.mark.asyncio
    async def test_chunks_without_choices_are_skipped(self, settings: Settings) -> None:
        empty = MagicMock()
        empty.choices = []
        with patch(_CLIENT_PATH, return_value=_client(_FakeStream([empty, _chunk("ok")]))):
            assert await _collect(OpenAILLMProvider(settings)) == ["ok"]

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_network(self) -> None:
        with patch(_CLIENT_PATH) as client_cls:
            provider = OpenAILLMProvider(_settings(openai_api_key=""))
            with pytest.raises(GenerationError, match="OPENAI_API_KEY"):
                await _collect(provider)
        client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self, settings: Settings) -> None:
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        with patch(_CLIENT_PATH, return_value=_client(openai.APITimeoutError(request=request))):
            with pytest.raises(GenerationError, match="timed out"):
                await _collect(OpenAILLMProvider(settings))

    @pytest.mark.asyncio
    async def test_mid_stream_error_closes_upstream(self, settings: Settings) -> None:
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        stream = _FakeStream([_chunk("partial")], error=openai.APIConnectionError(request=request))
        received: list[str] = []
        with patch(_CLIENT_PATH, return_value=_client(stream)):
            with pytest.raises(GenerationError):
                async for fragment in OpenAILLMProvider(settings).stream("s", "u"):
                    received.append(fragment)

        assert received == ["partial"]
        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_consumer_close_closes_upstream(self, settings: Settings) -> None:
        stream = _FakeStream([_chunk("a"), _chunk("b"), _chunk("c")])
        with patch(_CLIENT_PATH, return_value=_client(stream)):
            generator = OpenAILLMProvider(settings).stream("s", "u")
            assert await generator.__anext__() == "a"
            await generator.aclose()

        assert stream.closed is True
