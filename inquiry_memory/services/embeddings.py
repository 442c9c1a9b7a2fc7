"""
Embedding Provider Gateway

Wraps one or more embedding backends behind a single ``embed(text)``
capability with ordered fallback.

Backends:
    - openai: hosted, text-embedding-3-small (needs OPENAI_API_KEY).
    - ollama: local HTTP server, nomic-embed-text.
    - local:  in-process sentence-transformers, all-MiniLM-L6-v2.

Design choices:
    - Best effort: ``embed`` returns None on total failure and never
      raises. Embeddings are an enrichment, not a hard dependency.
    - Fallback is logged, not raised.
    - The sentence-transformers model is loaded lazily once per process
      and its CPU-bound inference runs via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import importlib.util
import logging
from collections.abc import Sequence
from typing import Any, ClassVar

import httpx
from openai import AsyncOpenAI

from inquiry_memory.core.config import Settings, settings
from inquiry_memory.models.schemas import EmbeddingResult

logger = logging.getLogger(__name__)


class EmbeddingBackend:
    """
    Interface implemented by every embedding backend.

    ``embed`` raises on failure; the gateway decides what to do next.
    """

    name: str = "base"

    def __init__(self, model: str) -> None:
        self.model = model

    def is_configured(self) -> bool:
        """True when the backend has everything it needs to be called."""
        return True

    async def is_reachable(self) -> bool:
        """Cheap reachability probe."""
        return self.is_configured()

    async def embed(self, text: str) -> list[float]:
        raise NotImplementedError


class OpenAIEmbeddingBackend(EmbeddingBackend):
    """Hosted embeddings through the OpenAI API."""

    name = "openai"

    def __init__(
        self,
        api_key: str | None,
        model: str = "text-embedding-3-small",
        timeout: float = 30.0,
    ) -> None:
        super().__init__(model)
        self._api_key = api_key
        self._timeout = timeout
        self._client: AsyncOpenAI | None = None

    def is_configured(self) -> bool:
        return bool(self._api_key) and self._api_key.lower() != "mock"

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    async def embed(self, text: str) -> list[float]:
        client = self._get_client()
        response = await client.embeddings.create(
            input=[text.replace("\n", " ")],  # OpenAI recommends single-line input
            model=self.model,
        )
        return list(response.data[0].embedding)


class OllamaEmbeddingBackend(EmbeddingBackend):
    """Local embeddings through an Ollama server."""

    name = "ollama"

    def __init__(
        self,
        base_url: str,
        model: str = "nomic-embed-text",
        timeout: float = 30.0,
        probe_timeout: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(model)
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._probe_timeout = probe_timeout
        self._transport = transport

    async def is_reachable(self) -> bool:
        try:
            async with httpx.AsyncClient(
                timeout=self._probe_timeout, transport=self._transport
            ) as client:
                response = await client.get(f"{self._base_url}/api/tags")
                return response.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False

    async def embed(self, text: str) -> list[float]:
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.post(
                f"{self._base_url}/api/embeddings",
                json={"model": self.model, "prompt": text},
            )
            response.raise_for_status()
            vector = response.json().get("embedding")

        if not vector:
            raise ValueError(f"Ollama returned no embedding for model '{self.model}'")
        return [float(x) for x in vector]


class SentenceTransformerBackend(EmbeddingBackend):
    """
    In-process embeddings backed by a local sentence-transformers model.

    The model is loaded lazily on first use and cached as a class-level
    singleton. All inference runs in a thread pool to keep the event
    loop responsive.
    """

    name = "local"

    _models: ClassVar[dict[str, Any]] = {}

    def __init__(self, model: str = "all-MiniLM-L6-v2") -> None:
        super().__init__(model)

    def is_configured(self) -> bool:
        return importlib.util.find_spec("sentence_transformers") is not None

    def _get_model(self) -> Any:
        """
        Get or lazily initialize the sentence-transformers model.

        The import is deferred so that ``sentence_transformers`` is not
        required at module-import time (keeps test collection fast).
        """
        if self.model not in self._models:
            from sentence_transformers import SentenceTransformer

            logger.info("Loading embedding model: %s ...", self.model)
            self._models[self.model] = SentenceTransformer(self.model)
            logger.info("Embedding model loaded: %s", self.model)
        return self._models[self.model]

    def _encode_sync(self, text: str) -> list[float]:
        """Synchronous encoding. Always call via ``asyncio.to_thread``."""
        embedding = self._get_model().encode([text], normalize_embeddings=True)
        # numpy ndarray → native Python list for JSON storage
        result: list[float] = embedding.tolist()[0]
        return result

    async def embed(self, text: str) -> list[float]:
        return await asyncio.to_thread(self._encode_sync, text)

    @classmethod
    def reset(cls) -> None:
        """Release loaded models from memory."""
        cls._models.clear()
        logger.info("Local embedding models released")


class EmbeddingGateway:
    """
    Ordered fallback over embedding backends.

    The first backend is the configured primary; the rest are tried in
    order when the primary is unconfigured (e.g. missing API key) or
    its call fails.

    Usage::

        gateway = EmbeddingGateway.from_settings(settings)
        result = await gateway.embed("quantum computing")
        if result is None:
            ...  # proceed without the enrichment
    """

    def __init__(self, backends: Sequence[EmbeddingBackend]) -> None:
        self._backends = list(backends)

    @property
    def backends(self) -> list[EmbeddingBackend]:
        return list(self._backends)

    @classmethod
    def from_settings(cls, config: Settings = settings) -> EmbeddingGateway:
        names = [config.EMBEDDING_BACKEND]
        fallback = config.EMBEDDING_FALLBACK_BACKEND
        if fallback != "none" and fallback not in names:
            names.append(fallback)
        return cls([build_backend(name, config) for name in names])

    async def embed(self, text: str | None) -> EmbeddingResult | None:
        """
        Embed ``text`` with the first backend that succeeds.

        Returns:
            EmbeddingResult, or None if the input is blank or every
            backend failed.
        """
        if not text or not text.strip():
            logger.warning("Refusing to embed empty text")
            return None

        cleaned = text.strip()
        for position, backend in enumerate(self._backends):
            if not backend.is_configured():
                logger.info("Embedding backend '%s' not configured, skipping", backend.name)
                continue

            try:
                vector = await backend.embed(cleaned)
            except Exception as exc:
                logger.warning(
                    "Embedding backend '%s' failed (%s): %s",
                    backend.name,
                    type(exc).__name__,
                    exc,
                )
                continue

            if not vector:
                logger.warning("Embedding backend '%s' returned an empty vector", backend.name)
                continue

            if position > 0:
                logger.info("Embedded with fallback backend '%s'", backend.name)
            return EmbeddingResult(vector=vector, dimension=len(vector), model=backend.model)

        logger.error("All embedding backends failed (%d tried)", len(self._backends))
        return None

    async def is_available(self) -> bool:
        """
        Cheap reachability check used to decide whether concept search
        is worth attempting. Not a substitute for handling ``embed``
        returning None.
        """
        for backend in self._backends:
            if backend.is_configured() and await backend.is_reachable():
                return True
        return False


def build_backend(name: str, config: Settings = settings) -> EmbeddingBackend:
    """Instantiate a backend by its configuration name."""
    if name == "openai":
        return OpenAIEmbeddingBackend(
            api_key=config.OPENAI_API_KEY,
            model=config.OPENAI_EMBEDDING_MODEL,
            timeout=config.EMBEDDING_TIMEOUT,
        )
    if name == "ollama":
        return OllamaEmbeddingBackend(
            base_url=config.OLLAMA_BASE_URL,
            model=config.OLLAMA_EMBEDDING_MODEL,
            timeout=config.EMBEDDING_TIMEOUT,
            probe_timeout=config.AVAILABILITY_TIMEOUT,
        )
    if name == "local":
        return SentenceTransformerBackend(model=config.LOCAL_EMBEDDING_MODEL)
    raise ValueError(f"Unknown embedding backend: {name}")
