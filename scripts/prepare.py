#!/usr/bin/env python
"""Normalize and chunk documents, printing a JSON chunk manifest.

Usage:
    python scripts/prepare.py notes/                   # Every supported file under notes/
    python scripts/prepare.py a.md b.html --chunk-size 500 --overlap 50
    python scripts/prepare.py notes/ --full            # Include chunk text in the manifest
"""
import argparse
import json
import sys
from pathlib import Path
from typing import List

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app import config
from app.logging_config import configure_logging
from app.rag.ingest import IngestPipeline
from app.rag.loader import DocumentLoader
from app.rag.models import Chunk, RawDocument
import structlog

logger = structlog.get_logger()


def load_inputs(paths: List[Path], loader: DocumentLoader) -> List[RawDocument]:
    """Load files and directories given on the command line."""
    documents = []
    for path in paths:
        if path.is_dir():
            documents.extend(loader.load_directory(path))
        else:
            documents.append(loader.load_file(path))
    return documents


def build_manifest(chunks: List[Chunk], full: bool = False) -> List[dict]:
    """One manifest entry per chunk."""
    manifest = []
    for chunk in chunks:
        entry = {
            "source": chunk.metadata.get("source"),
            "chunk_index": chunk.metadata.get("chunk_index"),
            "char_start": chunk.metadata.get("char_start"),
            "char_end": chunk.metadata.get("char_end"),
            "len": len(chunk.content),
        }
        if full:
            entry["content"] = chunk.content
            entry["metadata"] = chunk.metadata
        manifest.append(entry)
    return manifest


def main():
    parser = argparse.ArgumentParser(
        description="Normalize and chunk documents for embedding"
    )
    parser.add_argument(
        "paths",
        nargs="*",
        type=Path,
        default=[config.DATA_DIR],
        help="Files or directories to prepare (default: data/)",
    )
    parser.add_argument("--chunk-size", type=int, default=None, help="Maximum chunk length")
    parser.add_argument("--overlap", type=int, default=None, help="Overlap between chunks")
    parser.add_argument("--full", action="store_true", help="Include chunk text and metadata")
    parser.add_argument("--log-level", default=None, help="Log level (default from config)")

    args = parser.parse_args()
    configure_logging(args.log_level)

    try:
        pipeline = IngestPipeline(chunk_size=args.chunk_size, chunk_overlap=args.overlap)
        documents = load_inputs(args.paths, DocumentLoader())
        chunks = pipeline.prepare(documents)
    except (ValueError, FileNotFoundError) as e:
        print(f"\n❌ {e}\n", file=sys.stderr)
        sys.exit(1)

    json.dump(build_manifest(chunks, full=args.full), sys.stdout, indent=2, ensure_ascii=False, default=str)
    print()

    logger.info("prepare_completed", stats=pipeline.stats)


if __name__ == "__main__":
    main()
