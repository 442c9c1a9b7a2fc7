"""
Router Dependencies

Services are built once in the application lifespan and stored on
``app.state.services``; these dependencies hand them to endpoints.
"""

from __future__ import annotations

from fastapi import Request

from inquiry_memory.core.container import Services
from inquiry_memory.services.documents import DocumentService
from inquiry_memory.services.metadata import MetadataService
from inquiry_memory.services.similarity import SimilarityService
from inquiry_memory.services.synthesis import SynthesisService


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_similarity_service(request: Request) -> SimilarityService:
    return get_services(request).similarity


def get_synthesis_service(request: Request) -> SynthesisService:
    return get_services(request).synthesis


def get_document_service(request: Request) -> DocumentService:
    return get_services(request).documents


def get_metadata_service(request: Request) -> MetadataService:
    return get_services(request).metadata
