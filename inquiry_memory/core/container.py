"""
Service Container

Builds the long-lived service graph once per process: embedding
gateway, LLM provider chain, enrichment queue, domain services and the
metadata refresh scheduler. The FastAPI lifespan owns it and routers
reach it through ``request.app.state.services``.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inquiry_memory.core.config import Settings
from inquiry_memory.jobs.metadata_refresh import MetadataRefreshScheduler
from inquiry_memory.services.chunking import TextChunker
from inquiry_memory.services.documents import DocumentService
from inquiry_memory.services.embeddings import EmbeddingGateway
from inquiry_memory.services.enrichment import EnrichmentQueue
from inquiry_memory.services.llm import ProviderChain, build_provider
from inquiry_memory.services.metadata import MetadataService
from inquiry_memory.services.similarity import SimilarityService
from inquiry_memory.services.synthesis import SynthesisService


@dataclass
class Services:
    gateway: EmbeddingGateway
    chain: ProviderChain
    queue: EnrichmentQueue
    metadata: MetadataService
    documents: DocumentService
    similarity: SimilarityService
    synthesis: SynthesisService
    scheduler: MetadataRefreshScheduler


def build_services(
    config: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    gateway: EmbeddingGateway | None = None,
    chain: ProviderChain | None = None,
) -> Services:
    """
    Wire every service from settings.

    ``gateway`` and ``chain`` can be injected (tests use fakes).
    """
    gateway = gateway or EmbeddingGateway.from_settings(config)
    chain = chain or ProviderChain(
        config.LLM_PROVIDER_CHAIN, lambda name: build_provider(name, config)
    )
    queue = EnrichmentQueue(
        session_factory,
        maxsize=config.ENRICHMENT_QUEUE_SIZE,
        max_retries=config.ENRICHMENT_MAX_RETRIES,
        retry_delay=config.ENRICHMENT_RETRY_DELAY_SECONDS,
    )
    chunker = TextChunker(
        chunk_size=config.CHUNK_SIZE_WORDS,
        chunk_overlap=config.CHUNK_OVERLAP_WORDS,
        single_chunk_threshold=config.SINGLE_CHUNK_THRESHOLD_WORDS,
    )
    metadata = MetadataService(chain, gateway, queue)

    return Services(
        gateway=gateway,
        chain=chain,
        queue=queue,
        metadata=metadata,
        documents=DocumentService(chunker, gateway, queue),
        similarity=SimilarityService(gateway),
        synthesis=SynthesisService(gateway, chain),
        scheduler=MetadataRefreshScheduler(
            session_factory,
            metadata,
            inactivity_threshold=config.inactivity_threshold,
            interval_seconds=config.METADATA_REFRESH_INTERVAL_SECONDS,
        ),
    )
