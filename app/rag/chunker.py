"""Text chunking with overlap for RAG pipeline.

Splits normalized text on a hierarchy of separators (paragraph, line,
sentence, word, character) so chunks break at the most natural boundary
that still fits the size limit. Character-based to avoid tokenizer
dependencies.
"""
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Union

import structlog

from app import config
from app.rag.models import Chunk, RawDocument

logger = structlog.get_logger()


@dataclass(frozen=True)
class Separator:
    """A split point and the string used to rejoin pieces split on it."""

    name: str
    joiner: str
    pattern: Optional[re.Pattern]

    def split(self, text: str) -> List[str]:
        if self.pattern is None:
            return list(text)
        return [piece for piece in self.pattern.split(text) if piece]


# Coarsest to finest. The last one splits between any two characters.
SEPARATORS = (
    Separator("paragraph", "\n\n", re.compile(r"\n\n")),
    Separator("line", "\n", re.compile(r"\n")),
    Separator("sentence", " ", re.compile(r"(?<=[.!?]) ")),
    Separator("word", " ", re.compile(r" ")),
    Separator("character", "", None),
)


class TextChunker:
    """Recursive separator-hierarchy chunker with overlap support."""

    def __init__(
        self,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Maximum chunk length in characters (default from config)
            chunk_overlap: Maximum characters shared by consecutive chunks
                (default from config)

        Raises:
            ValueError: If the size is not positive or the overlap is
                negative or not smaller than the size
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

        # Validate parameters
        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size ({self.chunk_size}) must be positive")
        if self.chunk_overlap < 0:
            raise ValueError(f"Overlap ({self.chunk_overlap}) must not be negative")
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"Overlap ({self.chunk_overlap}) must be less than "
                f"chunk size ({self.chunk_size})"
            )

        logger.debug(
            "chunker_initialized",
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    def split_text(self, text: str) -> List[str]:
        """Split text into overlapping chunks.

        Args:
            text: Normalized text to split

        Returns:
            List of chunk strings, each at most ``chunk_size`` characters
        """
        if not text or not text.strip():
            return []

        chunks = self._split(text.strip(), 0)

        logger.debug(
            "text_chunked",
            text_length=len(text),
            chunk_count=len(chunks),
        )

        return chunks

    def split_documents(self, documents: Iterable[RawDocument]) -> List[Chunk]:
        """Split each document and attach its metadata to every chunk.

        Document order and chunk order within a document are preserved.
        Each chunk's metadata extends the document's with ``chunk_index``,
        ``chunk_count`` and, when the chunk occurs verbatim in the source
        text, ``char_start``/``char_end``.

        Args:
            documents: Documents whose text is already normalized

        Returns:
            List of Chunk objects
        """
        chunks: List[Chunk] = []
        document_count = 0

        for document in documents:
            document_count += 1
            pieces = self.split_text(document.text)
            cursor = 0

            for chunk_index, piece in enumerate(pieces):
                metadata = {
                    **document.metadata,
                    "chunk_index": chunk_index,
                    "chunk_count": len(pieces),
                }

                start = document.text.find(piece, cursor)
                if start != -1:
                    metadata["char_start"] = start
                    metadata["char_end"] = start + len(piece)
                    # Next chunk may start inside this one because of overlap
                    cursor = start

                chunks.append(Chunk(content=piece, metadata=metadata))

        logger.info(
            "documents_chunked",
            document_count=document_count,
            chunk_count=len(chunks),
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

        return chunks

    def _split(self, text: str, level: int) -> List[str]:
        """Split text starting at separator ``level``, recursing on oversized pieces."""
        if len(text) <= self.chunk_size:
            return [text]

        # First separator that actually divides the text
        for index in range(level, len(SEPARATORS)):
            separator = SEPARATORS[index]
            pieces = separator.split(text)
            if len(pieces) >= 2:
                break

        return self._merge(pieces, separator, index)

    def _merge(self, pieces: List[str], separator: Separator, level: int) -> List[str]:
        """Greedily pack pieces into chunks, seeding each new chunk with overlap."""
        chunks: List[str] = []
        joiner = separator.joiner
        buffer = ""
        # Last emitted chunk, source of the overlap for the next buffer
        carry = ""

        for piece in pieces:
            if len(piece) > self.chunk_size:
                if buffer.strip():
                    chunks.append(buffer.strip())
                sub_chunks = self._split(piece, level + 1)
                chunks.extend(sub_chunks)
                buffer = ""
                carry = sub_chunks[-1] if sub_chunks else ""
                continue

            if buffer and len(buffer) + len(joiner) + len(piece) <= self.chunk_size:
                buffer = f"{buffer}{joiner}{piece}"
                continue

            if buffer:
                carry = buffer.strip()
                if carry:
                    chunks.append(carry)

            seed = self._seed(carry, piece, joiner)
            buffer = f"{seed}{joiner}{piece}" if seed else piece
            carry = ""

        if buffer.strip():
            chunks.append(buffer.strip())

        return chunks

    def _seed(self, previous: str, next_piece: str, joiner: str) -> str:
        """Overlap carried from ``previous`` into a buffer that will hold ``next_piece``."""
        room = self.chunk_size - len(next_piece) - len(joiner)
        return self._overlap_tail(previous, min(self.chunk_overlap, room))

    def _overlap_tail(self, chunk: str, limit: int) -> str:
        """Up to ``limit`` trailing characters of ``chunk``, cut at a word boundary when possible."""
        if limit <= 0 or not chunk:
            return ""
        if len(chunk) <= limit:
            return chunk

        tail = chunk[-limit:]
        if chunk[-limit - 1].isspace():
            return tail.strip()

        # Skip the partial word at the front of the window
        boundary = re.search(r"\s", tail)
        if boundary is None:
            return tail
        return tail[boundary.end():].strip()

    def get_chunk_stats(self, chunks: Sequence[Union[str, Chunk]]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: Chunk strings or Chunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
                "overlap": self.chunk_overlap,
            }

        chunk_sizes = [len(c.content) if isinstance(c, Chunk) else len(c) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }


# Singleton instance for convenience
_chunker_instance = None


def get_chunker() -> TextChunker:
    """Get a singleton text chunker instance.

    Returns:
        TextChunker instance with default config
    """
    global _chunker_instance
    if _chunker_instance is None:
        _chunker_instance = TextChunker()
    return _chunker_instance


# Convenience functions
def split_text(text: str, chunk_size: Optional[int] = None, chunk_overlap: Optional[int] = None) -> List[str]:
    """Split text into chunks (convenience function).

    Args:
        text: Text to split
        chunk_size: Maximum chunk length (default from config)
        chunk_overlap: Overlap between chunks (default from config)

    Returns:
        List of chunk strings
    """
    if chunk_size is None and chunk_overlap is None:
        return get_chunker().split_text(text)
    return TextChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap).split_text(text)


def split_documents(documents: Iterable[RawDocument]) -> List[Chunk]:
    """Split documents using the default chunker (convenience function)."""
    return get_chunker().split_documents(documents)
