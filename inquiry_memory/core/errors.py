"""
Error taxonomy for the memory subsystem.

Input errors are raised before any provider call. Provider errors are
raised by LLM providers; the embedding gateway never raises and
returns ``None`` instead. Routers translate these into HTTP errors.
"""

from __future__ import annotations


class InquiryMemoryError(Exception):
    """Base class for all errors raised by this package."""


class InvalidQueryError(InquiryMemoryError):
    """Query text is empty or too short to be worth a provider call."""


class InvalidInputError(InquiryMemoryError):
    """Request payload cannot be processed (e.g. empty document text)."""


class SessionNotFoundError(InquiryMemoryError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class DocumentNotFoundError(InquiryMemoryError):
    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


class SessionLockedError(InquiryMemoryError):
    """Imported sessions are never auto-processed."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session is an immutable import: {session_id}")
        self.session_id = session_id


class ProviderError(InquiryMemoryError):
    """A single LLM provider call failed or returned unusable output."""


class ProviderUnavailableError(InquiryMemoryError):
    """No provider could serve the request (missing credentials, unreachable, or all failed)."""
