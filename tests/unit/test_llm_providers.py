"""
LLM Provider Unit Tests

Metadata JSON parsing, the provider SDK calls (mocked), Ollama over an
httpx MockTransport, and ProviderChain fallback ordering.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from conftest import FakeProvider, make_chain

from inquiry_memory.core.config import Settings
from inquiry_memory.core.errors import ProviderError, ProviderUnavailableError
from inquiry_memory.services.llm import (
    AnthropicProvider,
    OllamaProvider,
    OpenAIProvider,
    build_provider,
    parse_summary,
)

SUMMARY_JSON = json.dumps(
    {
        "orientation_blurb": "Exploring cache invalidation.",
        "unresolved_edge": "When to use TTLs.",
        "last_pivot": "Moved from Redis to in-process caches.",
    }
)


# ---------------------------------------------------------------------------
# parse_summary
# ---------------------------------------------------------------------------


class TestParseSummary:
    def test_plain_json(self):
        summary = parse_summary(SUMMARY_JSON)
        assert summary.orientation_blurb == "Exploring cache invalidation."
        assert summary.last_pivot.startswith("Moved")

    def test_json_wrapped_in_prose_and_fences(self):
        text = f"Here you go:\n```json\n{SUMMARY_JSON}\n```\nHope that helps."
        assert parse_summary(text).unresolved_edge == "When to use TTLs."

    def test_missing_fields_default_to_empty(self):
        summary = parse_summary('{"orientation_blurb": "Only this"}')
        assert summary.unresolved_edge == ""
        assert summary.last_pivot == ""

    @pytest.mark.parametrize("text", ["", "no json here", "{not: valid}", "[1, 2]"])
    def test_unusable_output_raises(self, text):
        with pytest.raises(ProviderError):
            parse_summary(text)


# ---------------------------------------------------------------------------
# Provider SDK calls
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_openai_provider_synthesis():
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="  The answer.  "))]
    )
    with patch("inquiry_memory.services.llm.AsyncOpenAI") as MockClient:
        MockClient.return_value.chat.completions.create = AsyncMock(return_value=response)

        provider = OpenAIProvider("sk-test", "gpt-4o-mini")
        answer = await provider.generate_synthesis("prompt")

    assert answer == "The answer."
    _, kwargs = MockClient.return_value.chat.completions.create.call_args
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]


@pytest.mark.asyncio
async def test_anthropic_provider_metadata():
    response = SimpleNamespace(content=[SimpleNamespace(type="text", text=SUMMARY_JSON)])
    with patch("inquiry_memory.services.llm.AsyncAnthropic") as MockClient:
        MockClient.return_value.messages.create = AsyncMock(return_value=response)

        provider = AnthropicProvider("sk-ant-test", "claude-3-5-haiku-20241022")
        summary = await provider.generate_metadata("USER: hi\n\nASSISTANT: hello")

    assert summary.orientation_blurb == "Exploring cache invalidation."
    _, kwargs = MockClient.return_value.messages.create.call_args
    assert kwargs["model"] == "claude-3-5-haiku-20241022"
    assert "USER: hi" in kwargs["messages"][0]["content"]


@pytest.mark.asyncio
async def test_sdk_exception_becomes_provider_error():
    with patch("inquiry_memory.services.llm.AsyncOpenAI") as MockClient:
        MockClient.return_value.chat.completions.create = AsyncMock(
            side_effect=RuntimeError("rate limited")
        )
        provider = OpenAIProvider("sk-test", "gpt-4o-mini")

        with pytest.raises(ProviderError, match="rate limited"):
            await provider.generate_synthesis("prompt")


@pytest.mark.asyncio
async def test_empty_synthesis_is_an_error():
    provider = FakeProvider(reply="   ")
    with pytest.raises(ProviderError, match="empty"):
        await provider.generate_synthesis("prompt")


@pytest.mark.asyncio
async def test_title_is_stripped_of_quotes():
    provider = FakeProvider(reply='  "Caching Strategies Compared"\n')
    assert await provider.generate_title("USER: ...") == "Caching Strategies Compared"


# ---------------------------------------------------------------------------
# Ollama
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_ollama_chat_payload():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": []})
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"message": {"content": "Synthesized."}})

    provider = OllamaProvider(
        "http://ollama:11434", "llama3.2:latest", transport=httpx.MockTransport(handler)
    )

    assert await provider.is_available() is True
    assert await provider.generate_synthesis("prompt") == "Synthesized."
    assert seen["model"] == "llama3.2:latest"
    assert seen["stream"] is False
    assert seen["messages"] == [{"role": "user", "content": "prompt"}]


@pytest.mark.asyncio
async def test_ollama_error_status():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    provider = OllamaProvider("http://ollama:11434", "llama3.2:latest", transport=transport)

    with pytest.raises(ProviderError, match="Ollama error"):
        await provider.generate_synthesis("prompt")


# ---------------------------------------------------------------------------
# build_provider
# ---------------------------------------------------------------------------


def test_build_provider_requires_credentials():
    config = Settings(ANTHROPIC_API_KEY=None, OPENAI_API_KEY=None)
    with pytest.raises(ProviderUnavailableError, match="anthropic"):
        build_provider("anthropic", config)
    with pytest.raises(ProviderUnavailableError, match="openai"):
        build_provider("openai", config)


def test_build_provider_unknown_name():
    with pytest.raises(ProviderUnavailableError, match="Unknown provider"):
        build_provider("gemini", Settings())


def test_build_provider_uses_utility_models():
    config = Settings(ANTHROPIC_API_KEY="sk-ant", OPENAI_API_KEY="sk-oai")
    assert build_provider("anthropic", config).utility_model == "claude-3-5-haiku-20241022"
    assert build_provider("openai", config).utility_model == "gpt-4o-mini"
    assert build_provider("ollama", config).utility_model == "llama3.2:latest"


def test_build_provider_timeouts():
    """Hosted SDK clients get LLM_TIMEOUT; Ollama keeps its own."""
    config = Settings(
        ANTHROPIC_API_KEY="sk-ant",
        OPENAI_API_KEY="sk-oai",
        LLM_TIMEOUT=12.0,
        OLLAMA_TIMEOUT=99.0,
    )
    with (
        patch("inquiry_memory.services.llm.AsyncAnthropic") as MockAnthropic,
        patch("inquiry_memory.services.llm.AsyncOpenAI") as MockOpenAI,
    ):
        build_provider("anthropic", config)
        build_provider("openai", config)

    assert MockAnthropic.call_args.kwargs["timeout"] == 12.0
    assert MockOpenAI.call_args.kwargs["timeout"] == 12.0
    assert build_provider("ollama", config)._timeout == 99.0


# ---------------------------------------------------------------------------
# ProviderChain
# ---------------------------------------------------------------------------


class TestProviderChain:
    @pytest.mark.asyncio
    async def test_first_working_provider_wins(self):
        first = FakeProvider("anthropic", reply="from anthropic")
        second = FakeProvider("openai", reply="from openai")

        answer, used = await make_chain(first, second).generate_synthesis("prompt")

        assert (answer, used) == ("from anthropic", "anthropic")
        assert second.prompts == []

    @pytest.mark.asyncio
    async def test_unreachable_and_failing_providers_are_skipped(self):
        down = FakeProvider("anthropic", available=False)
        broken = FakeProvider("openai", error=RuntimeError("500"))
        local = FakeProvider("ollama", reply="local answer")

        answer, used = await make_chain(down, broken, local).generate_synthesis("p")

        assert used == "ollama"
        assert answer == "local answer"
        assert down.prompts == []
        assert broken.prompts == ["p"]

    @pytest.mark.asyncio
    async def test_preferred_provider_is_tried_first(self):
        first = FakeProvider("anthropic", reply="a")
        second = FakeProvider("openai", reply="b")

        _, used = await make_chain(first, second).generate_synthesis("p", preferred="openai")

        assert used == "openai"
        assert first.prompts == []

    @pytest.mark.asyncio
    async def test_missing_credentials_are_skipped(self):
        def factory(name):
            if name == "anthropic":
                raise ProviderUnavailableError("No API key found for provider: anthropic")
            return FakeProvider(name, reply="ok")

        from inquiry_memory.services.llm import ProviderChain

        _, used = await ProviderChain(["anthropic", "ollama"], factory).generate_synthesis("p")
        assert used == "ollama"

    @pytest.mark.asyncio
    async def test_exhausted_chain_raises(self):
        chain = make_chain(
            FakeProvider("anthropic", available=False),
            FakeProvider("ollama", error=RuntimeError("down")),
        )

        with pytest.raises(ProviderUnavailableError, match="No LLM provider available"):
            await chain.generate_synthesis("p")

    @pytest.mark.asyncio
    async def test_metadata_with_invalid_json_falls_through(self):
        chain = make_chain(
            FakeProvider("anthropic", reply="I cannot produce JSON today."),
            FakeProvider("openai", reply=SUMMARY_JSON),
        )

        summary = await chain.generate_metadata("USER: hi")
        assert summary.unresolved_edge == "When to use TTLs."

    @pytest.mark.asyncio
    async def test_available_lists_reachable_providers(self):
        chain = make_chain(
            FakeProvider("anthropic", available=False),
            FakeProvider("ollama"),
        )
        assert await chain.available() == ["ollama"]
