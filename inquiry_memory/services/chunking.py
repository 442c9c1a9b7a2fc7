"""
Chunking Service

Splits raw document text into overlapping fixed-size word windows
suitable for embedding and retrieval.

Defaults:
    - Documents under 600 words: one chunk holding the trimmed text.
    - Otherwise: 500-word windows with a 75-word overlap (step 425),
      so a concept spanning a window boundary stays retrievable.
"""

from __future__ import annotations

import logging

from inquiry_memory.core.config import settings
from inquiry_memory.models.schemas import TextChunk

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE: int = settings.CHUNK_SIZE_WORDS
DEFAULT_CHUNK_OVERLAP: int = settings.CHUNK_OVERLAP_WORDS
DEFAULT_SINGLE_CHUNK_THRESHOLD: int = settings.SINGLE_CHUNK_THRESHOLD_WORDS


class TextChunker:
    """
    Splits text into overlapping word windows.

    Usage::

        chunker = TextChunker()
        chunks = chunker.split(text)
        # Each chunk has: text, index

    Args:
        chunk_size: Words per window.
        chunk_overlap: Words shared between consecutive windows.
        single_chunk_threshold: Texts with fewer words than this are
            returned whole as a single chunk.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        single_chunk_threshold: int = DEFAULT_SINGLE_CHUNK_THRESHOLD,
    ) -> None:
        if chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be less than "
                f"chunk_size ({chunk_size})"
            )

        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._single_chunk_threshold = single_chunk_threshold

    @property
    def chunk_size(self) -> int:
        """Words per chunk."""
        return self._chunk_size

    @property
    def chunk_overlap(self) -> int:
        """Words shared between consecutive chunks."""
        return self._chunk_overlap

    @property
    def step(self) -> int:
        """Distance in words between the starts of consecutive chunks."""
        return self._chunk_size - self._chunk_overlap

    def split(self, text: str | None) -> list[TextChunk]:
        """
        Split text into chunks.

        Args:
            text: Raw extracted document text.

        Returns:
            Chunks with contiguous indices starting at 0. Empty or
            whitespace-only input yields no chunks.
        """
        if not text:
            return []

        words = text.split()
        if not words:
            return []

        if len(words) < self._single_chunk_threshold:
            return [TextChunk(text=text.strip(), index=0)]

        chunks: list[TextChunk] = []
        for start in range(0, len(words), self.step):
            end = min(start + self._chunk_size, len(words))
            chunks.append(TextChunk(text=" ".join(words[start:end]), index=len(chunks)))
            if end >= len(words):
                break

        logger.debug(
            "Split %d words into %d chunks (size=%d, overlap=%d)",
            len(words),
            len(chunks),
            self._chunk_size,
            self._chunk_overlap,
        )

        return chunks
