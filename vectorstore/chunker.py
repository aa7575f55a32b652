"""Sentence-aware character chunking for long tab text.

Long pages are split into overlapping windows of roughly ``max_chunk_size``
characters. When a window would end mid-document, the boundary snaps to the
first sentence end (``.``, ``!`` or ``?`` followed by whitespace) found within
``SENTENCE_SEARCH_RADIUS`` characters of it; otherwise the cut is made exactly
at ``max_chunk_size``.

Whether a document is worth chunking at all is the caller's decision (see
``vectorstore.ingest``); the chunker only splits what it is given.
"""

import logging
import re
from typing import Iterator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_OVERLAP = 100
SENTENCE_SEARCH_RADIUS = 50

SENTENCE_END = re.compile(r"[.!?]\s")


class Chunker:
    """Splits text into ordered, overlapping segments."""

    def __init__(
        self,
        max_chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
    ):
        if max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        if overlap < 0:
            raise ValueError("overlap must not be negative")
        self.max_chunk_size = max_chunk_size
        self.overlap = overlap

    def iter_spans(self, text: str) -> Iterator[tuple[int, int]]:
        """Yield ``(start, end)`` offsets of each chunk, in order.

        Each call walks the text from the beginning, so the sequence can be
        restarted simply by calling again.
        """
        length = len(text)
        start = 0

        while start < length:
            end = min(start + self.max_chunk_size, length)

            if end < length:
                end = self._snap_to_sentence(text, start, end)

            yield start, end

            if end >= length:
                break

            # Step back by the overlap but always move forward
            start = max(end - self.overlap, start + 1)

    def iter_chunks(self, text: str) -> Iterator[str]:
        """Lazily yield chunk strings; see ``iter_spans``."""
        for start, end in self.iter_spans(text):
            yield text[start:end]

    def chunk(self, text: str) -> list[str]:
        """Split text into a list of chunks.

        Text no longer than ``max_chunk_size`` comes back as a single chunk equal
        to the input; empty text yields no chunks.
        """
        if not text:
            return []
        if len(text) <= self.max_chunk_size:
            return [text]

        chunks = list(self.iter_chunks(text))
        logger.debug(
            "Chunked %d chars into %d chunks (size=%d, overlap=%d)",
            len(text), len(chunks), self.max_chunk_size, self.overlap,
        )
        return chunks

    def _snap_to_sentence(self, text: str, start: int, end: int) -> int:
        """Move ``end`` to just after the first sentence break near it, if any."""
        window_start = max(end - SENTENCE_SEARCH_RADIUS, start)
        window_end = min(end + SENTENCE_SEARCH_RADIUS, len(text))

        match = SENTENCE_END.search(text, window_start, window_end)
        if match is None:
            return end
        # Keep the punctuation mark and the whitespace after it
        return match.end()


def chunk_text(
    text: str,
    max_chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> list[str]:
    """Convenience wrapper around ``Chunker.chunk``."""
    return Chunker(max_chunk_size=max_chunk_size, overlap=overlap).chunk(text)
