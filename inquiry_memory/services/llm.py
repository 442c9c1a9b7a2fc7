"""
LLM Providers

Text generation used by the memory subsystem: session metadata
(orientation / unresolved edge / last pivot), session titles, and
cross-session synthesis answers.

Providers:
    - anthropic: AsyncAnthropic messages API (needs ANTHROPIC_API_KEY).
    - openai:    AsyncOpenAI chat completions (needs OPENAI_API_KEY).
    - ollama:    local Ollama ``/api/chat`` via httpx.

Design:
    - Providers raise ``ProviderError`` on failure. They never return
      placeholder text in place of an answer.
    - ``ProviderChain`` tries an ordered list of providers: for each,
      build it, check it is reachable, call it, and move on to the next
      on any failure. Exhausting the chain raises
      ``ProviderUnavailableError``.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from typing import Final, TypeVar

import httpx
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from inquiry_memory.core.config import Settings, settings
from inquiry_memory.core.errors import ProviderError, ProviderUnavailableError
from inquiry_memory.models.schemas import SessionSummary

logger = logging.getLogger(__name__)

T = TypeVar("T")

METADATA_PROMPT: Final[str] = """Analyze this conversation and provide exactly three pieces of information in JSON format:

1. "orientation_blurb": A 2-3 sentence summary of what this inquiry is about. Write it as if reminding someone who was deeply engaged but stepped away.

2. "unresolved_edge": What question or tension remains open? What wasn't fully resolved or concluded? If the conversation feels complete, say "None apparent."

3. "last_pivot": Where did the conversation's direction or focus last change significantly? Describe the shift briefly.

Respond ONLY with valid JSON in this exact format:
{"orientation_blurb": "...", "unresolved_edge": "...", "last_pivot": "..."}"""

TITLE_PROMPT: Final[str] = """Based on this conversation opening, generate a concise, descriptive title (3-7 words) that captures the essence of the inquiry. The title should help someone recognize what this conversation was about when they see it in a list.

Respond with ONLY the title text, no quotes or punctuation unless part of the title."""

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def parse_summary(text: str) -> SessionSummary:
    """
    Extract the metadata JSON object from a model response.

    Models sometimes wrap JSON in markdown fences or prose; the first
    ``{`` through the last ``}`` is parsed.

    Raises:
        ProviderError: If no valid JSON object is present.
    """
    match = _JSON_OBJECT.search(text or "")
    if match is None:
        raise ProviderError("No JSON object in metadata response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ProviderError(f"Invalid JSON in metadata response: {e}") from e
    if not isinstance(data, dict):
        raise ProviderError("Metadata response is not a JSON object")

    return SessionSummary(
        orientation_blurb=str(data.get("orientation_blurb") or "").strip(),
        unresolved_edge=str(data.get("unresolved_edge") or "").strip(),
        last_pivot=str(data.get("last_pivot") or "").strip(),
    )


class LLMProvider:
    """
    Base class for generation providers.

    Subclasses implement ``_complete``; the prompt handling for
    metadata, titles and synthesis is shared.
    """

    name: str = "base"

    def __init__(self, utility_model: str) -> None:
        self.utility_model = utility_model

    async def _complete(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        raise NotImplementedError

    async def is_available(self) -> bool:
        return True

    async def generate_metadata(self, transcript: str) -> SessionSummary:
        text = await self._call(
            f"{METADATA_PROMPT}\n\nConversation:\n{transcript}",
            model=self.utility_model,
            temperature=0.3,
            max_tokens=1024,
        )
        return parse_summary(text)

    async def generate_title(self, content: str) -> str | None:
        text = await self._call(
            f"{TITLE_PROMPT}\n\nConversation:\n{content}",
            model=self.utility_model,
            temperature=0.5,
            max_tokens=50,
        )
        title = text.strip().strip('"').strip()
        return title or None

    async def generate_synthesis(self, prompt: str, model_id: str | None = None) -> str:
        text = await self._call(
            prompt,
            model=model_id or self.utility_model,
            temperature=0.7,
            max_tokens=2048,
        )
        answer = text.strip()
        if not answer:
            raise ProviderError(f"{self.name} returned an empty synthesis")
        return answer

    async def _call(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """Run ``_complete`` and normalize every failure to ProviderError."""
        try:
            text = await self._complete(
                prompt, model=model, temperature=temperature, max_tokens=max_tokens
            )
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"{self.name} call failed: {e}") from e

        logger.info(
            "%s response generated (model=%s, length=%d)",
            self.name,
            model,
            len(text),
        )
        return text


class AnthropicProvider(LLMProvider):
    name = "anthropic"

    def __init__(self, api_key: str, utility_model: str, timeout: float = 60.0) -> None:
        super().__init__(utility_model)
        self._client = AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def _complete(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        response = await self._client.messages.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        parts = [
            getattr(block, "text", "")
            for block in response.content or []
            if getattr(block, "type", None) == "text"
        ]
        return "\n".join(part for part in parts if part)


class OpenAIProvider(LLMProvider):
    name = "openai"

    def __init__(self, api_key: str, utility_model: str, timeout: float = 60.0) -> None:
        super().__init__(utility_model)
        self._client = AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def _complete(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        response = await self._client.chat.completions.create(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        return response.choices[0].message.content or ""


class OllamaProvider(LLMProvider):
    """
    Async provider backed by a local Ollama server.

    ``is_available`` probes ``/api/tags`` with a short timeout so the
    chain can skip a server that is not running without waiting for
    the full generation timeout.
    """

    name = "ollama"

    def __init__(
        self,
        base_url: str,
        utility_model: str,
        timeout: float = 60.0,
        probe_timeout: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(utility_model)
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._probe_timeout = probe_timeout
        self._transport = transport

    async def is_available(self) -> bool:
        try:
            async with httpx.AsyncClient(
                timeout=self._probe_timeout, transport=self._transport
            ) as client:
                response = await client.get(f"{self._base_url}/api/tags")
                return response.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False

    async def _complete(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }

        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.post(f"{self._base_url}/api/chat", json=payload)
            if response.status_code >= 400:
                raise ProviderError(f"Ollama error: {response.text}")
            data = response.json()

        return (data.get("message") or {}).get("content", "")


def build_provider(name: str, config: Settings = settings) -> LLMProvider:
    """
    Instantiate a provider from settings.

    Raises:
        ProviderUnavailableError: Unknown name or missing credential.
    """
    if name == "anthropic":
        if not config.ANTHROPIC_API_KEY:
            raise ProviderUnavailableError("No API key found for provider: anthropic")
        return AnthropicProvider(
            config.ANTHROPIC_API_KEY, config.ANTHROPIC_UTILITY_MODEL, config.LLM_TIMEOUT
        )
    if name == "openai":
        if not config.OPENAI_API_KEY:
            raise ProviderUnavailableError("No API key found for provider: openai")
        return OpenAIProvider(
            config.OPENAI_API_KEY, config.OPENAI_UTILITY_MODEL, config.LLM_TIMEOUT
        )
    if name == "ollama":
        return OllamaProvider(
            base_url=config.OLLAMA_BASE_URL,
            utility_model=config.OLLAMA_UTILITY_MODEL,
            timeout=config.OLLAMA_TIMEOUT,
            probe_timeout=config.AVAILABILITY_TIMEOUT,
        )
    raise ProviderUnavailableError(f"Unknown provider: {name}")


class ProviderChain:
    """
    Ordered fallback over LLM providers.

    Usage::

        chain = ProviderChain(["anthropic", "openai", "ollama"])
        summary = await chain.generate_metadata(transcript)
        answer, used = await chain.generate_synthesis(prompt, preferred="openai")
    """

    def __init__(
        self,
        names: Sequence[str],
        factory: Callable[[str], LLMProvider] | None = None,
    ) -> None:
        self._names = list(dict.fromkeys(names))
        self._factory = factory or build_provider
        self._cache: dict[str, LLMProvider] = {}

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def order(self, preferred: str | None = None) -> list[str]:
        """Chain order with ``preferred`` moved to the front."""
        if not preferred:
            return list(self._names)
        return [preferred] + [name for name in self._names if name != preferred]

    def _get(self, name: str) -> LLMProvider:
        if name not in self._cache:
            self._cache[name] = self._factory(name)
        return self._cache[name]

    async def run(
        self,
        operation: str,
        call: Callable[[LLMProvider], Awaitable[T]],
        preferred: str | None = None,
    ) -> tuple[T, str]:
        """
        Run ``call`` against each provider in order until one succeeds.

        Returns:
            The call result and the name of the provider that produced it.

        Raises:
            ProviderUnavailableError: Every provider was unconfigured,
                unreachable, or failed.
        """
        failures: list[str] = []
        for name in self.order(preferred):
            try:
                provider = self._get(name)
            except ProviderUnavailableError as e:
                failures.append(f"{name}: {e}")
                continue

            if not await provider.is_available():
                logger.warning("Provider '%s' unreachable for %s", name, operation)
                failures.append(f"{name}: unreachable")
                continue

            try:
                result = await call(provider)
            except ProviderError as e:
                logger.warning("Provider '%s' failed for %s: %s", name, operation, e)
                failures.append(f"{name}: {e}")
                continue

            return result, name

        raise ProviderUnavailableError(
            f"No LLM provider available for {operation} ({'; '.join(failures)})"
        )

    async def available(self) -> list[str]:
        """Names of providers that are configured and reachable."""
        names: list[str] = []
        for name in self._names:
            try:
                provider = self._get(name)
            except ProviderUnavailableError:
                continue
            if await provider.is_available():
                names.append(name)
        return names

    async def generate_metadata(self, transcript: str) -> SessionSummary:
        summary, _ = await self.run(
            "metadata", lambda provider: provider.generate_metadata(transcript)
        )
        return summary

    async def generate_title(self, content: str) -> str | None:
        title, _ = await self.run("title", lambda provider: provider.generate_title(content))
        return title

    async def generate_synthesis(
        self,
        prompt: str,
        preferred: str | None = None,
    ) -> tuple[str, str]:
        return await self.run(
            "synthesis",
            lambda provider: provider.generate_synthesis(prompt, provider.utility_model),
            preferred=preferred,
        )
