"""Repositories package."""

from inquiry_memory.repositories.documents import DocumentRepository, document_repository
from inquiry_memory.repositories.embeddings import (
    EmbeddingRepository,
    embedding_repository,
)
from inquiry_memory.repositories.sessions import SessionRepository, session_repository

__all__ = [
    "DocumentRepository",
    "EmbeddingRepository",
    "SessionRepository",
    "document_repository",
    "embedding_repository",
    "session_repository",
]
