"""Ingest pipeline for preparing documents for the vector store.

Orchestrates:
- Document coercion (RawDocument or {content, metadata} records)
- Text normalization
- Chunking with overlap
- Hand-off of chunks to the vector store collaborator
"""
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

import structlog

from app.rag.chunker import TextChunker
from app.rag.models import Chunk, RawDocument, document_fields
from app.rag.normalizer import TextNormalizer

logger = structlog.get_logger()


class VectorStoreWriter(Protocol):
    """Collaborator that embeds chunks and persists them in a collection."""

    async def add_documents(self, chunks: List[Chunk]) -> None:
        ...


class IngestPipeline:
    """Pipeline turning raw documents into chunks ready for embedding."""

    def __init__(
        self,
        store: Optional[VectorStoreWriter] = None,
        normalizer: Optional[TextNormalizer] = None,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
    ):
        """Initialize the ingest pipeline.

        Args:
            store: Vector store collaborator (required for ``ingest``)
            normalizer: Text normalizer (default instance if not provided)
            chunk_size: Chunk size in characters (default from config)
            chunk_overlap: Chunk overlap in characters (default from config)
        """
        self.store = store
        self.normalizer = normalizer or TextNormalizer()
        self.chunker = TextChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap)

        self.stats = self._empty_stats()

        logger.info(
            "ingest_pipeline_initialized",
            has_store=store is not None,
            chunk_size=self.chunker.chunk_size,
            chunk_overlap=self.chunker.chunk_overlap,
        )

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            "documents_received": 0,
            "documents_skipped": 0,
            "chunks_created": 0,
        }

    def prepare(self, documents: Iterable[Any]) -> List[Chunk]:
        """Normalize and chunk documents without storing them.

        Documents whose text is empty after normalization produce no chunks
        and are counted as skipped.

        Args:
            documents: RawDocuments or mappings with ``content``/``text``
                and ``metadata``

        Returns:
            Chunks in document order
        """
        chunks, stats = self._prepare(documents)
        self.stats = stats
        return chunks

    def _prepare(self, documents: Iterable[Any]) -> Tuple[List[Chunk], Dict[str, int]]:
        """Normalize and chunk, counting into a stats dict owned by this call."""
        stats = self._empty_stats()

        raw_documents = [_to_raw_document(d) for d in documents]
        stats["documents_received"] = len(raw_documents)

        normalized = []
        for document in self.normalizer.normalize_all(raw_documents):
            if not document.text:
                logger.warning("document_empty_after_normalization", metadata=document.metadata)
                stats["documents_skipped"] += 1
                continue
            normalized.append(document)

        chunks = self.chunker.split_documents(normalized)
        stats["chunks_created"] = len(chunks)

        return chunks, stats

    async def ingest(self, documents: Iterable[Any]) -> Dict[str, Any]:
        """Prepare documents and hand the chunks to the vector store.

        Args:
            documents: RawDocuments or ``{content, metadata}`` records

        Returns:
            Dictionary with ingestion statistics

        Raises:
            ValueError: If the pipeline was built without a store
            RuntimeError: If the store rejects the chunks
        """
        if self.store is None:
            raise ValueError("IngestPipeline.ingest requires a vector store")

        chunks, stats = self._prepare(documents)

        if not chunks:
            logger.warning("no_chunks_created", stats=stats)
            self.stats = stats
            return dict(stats)

        try:
            await self.store.add_documents(chunks)
        except Exception as e:
            logger.error(
                "chunk_storage_failed",
                chunk_count=len(chunks),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RuntimeError(f"Failed to store chunks: {e}") from e

        logger.info(
            "ingest_completed",
            stats=stats,
            chunk_stats=self.chunker.get_chunk_stats(chunks),
        )

        # Last finished run, informational only
        self.stats = stats
        return dict(stats)


def _to_raw_document(document: Any) -> RawDocument:
    if isinstance(document, RawDocument):
        return document
    if isinstance(document, str):
        return RawDocument(text=document)
    content, metadata = document_fields(document)
    return RawDocument(text=content, metadata=metadata)
