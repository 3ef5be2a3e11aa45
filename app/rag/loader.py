"""Loader for turning text, markdown and HTML files into RawDocuments.

Handles:
- YAML frontmatter parsing for markdown
- HTML <title> extraction
- Recursive directory discovery
"""
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import structlog
import yaml
from bs4 import BeautifulSoup

from app import config
from app.rag.models import RawDocument

logger = structlog.get_logger()

# Frontmatter fields copied into document metadata
FRONTMATTER_FIELDS = ["title", "source", "tags", "author", "created", "updated", "category"]


class DocumentLoader:
    """Reads files from disk into RawDocuments with file metadata."""

    # Regex for YAML frontmatter (must be at start of file)
    FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL)

    def __init__(self, allowed_extensions: Optional[Tuple[str, ...]] = None):
        """Initialize the loader.

        Args:
            allowed_extensions: File suffixes to load (default from config)
        """
        self.allowed_extensions = allowed_extensions or config.ALLOWED_EXTENSIONS

    def load_file(self, file_path: Path) -> RawDocument:
        """Load one file.

        Markup is left in place; cleaning it is the normalizer's job.

        Args:
            file_path: Path to a text, markdown or HTML file

        Returns:
            RawDocument with the file text and metadata

        Raises:
            FileNotFoundError: If file doesn't exist
            UnicodeDecodeError: If file encoding is invalid
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Document not found: {file_path}")

        try:
            content = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.error("document_encoding_error", path=str(file_path), error=str(e))
            raise

        suffix = file_path.suffix.lower()
        metadata: Dict[str, Any] = {
            "source": file_path.name,
            "file_path": str(file_path),
            "type": suffix.lstrip(".") or "txt",
        }

        if suffix in (".md", ".markdown"):
            frontmatter, content = self._parse_frontmatter(content)
            metadata.update(self._frontmatter_metadata(frontmatter))
        elif suffix in (".html", ".htm"):
            title = self._html_title(content)
            if title:
                metadata["title"] = title

        logger.info(
            "document_loaded",
            path=str(file_path),
            type=metadata["type"],
            content_length=len(content),
        )

        return RawDocument(text=content, metadata=metadata)

    def load_directory(self, root: Path) -> List[RawDocument]:
        """Load every supported file under a directory, recursively.

        Files that fail to load are logged and skipped.

        Args:
            root: Directory to walk

        Returns:
            RawDocuments sorted by path

        Raises:
            FileNotFoundError: If the directory doesn't exist
        """
        root = Path(root)
        if not root.is_dir():
            raise FileNotFoundError(f"Directory not found: {root}")

        paths = sorted(
            p for p in root.rglob("*")
            if p.is_file() and p.suffix.lower() in self.allowed_extensions
        )

        logger.info("documents_discovered", count=len(paths), root=str(root))

        documents = []
        for path in paths:
            try:
                documents.append(self.load_file(path))
            except (OSError, UnicodeDecodeError) as e:
                logger.error("document_load_failed", path=str(path), error=str(e))

        return documents

    def _parse_frontmatter(self, content: str) -> Tuple[Dict[str, Any], str]:
        """Extract YAML frontmatter from markdown content.

        Args:
            content: Full markdown content

        Returns:
            Tuple of (frontmatter_dict, content_without_frontmatter)
        """
        match = self.FRONTMATTER_PATTERN.match(content)

        if not match:
            return {}, content

        yaml_content = match.group(1)
        try:
            frontmatter = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            logger.warning(
                "frontmatter_parse_error",
                error=str(e),
                yaml_preview=yaml_content[:100],
            )
            frontmatter = None

        if not isinstance(frontmatter, dict):
            frontmatter = {}

        return frontmatter, content[match.end():]

    def _frontmatter_metadata(self, frontmatter: Dict[str, Any]) -> Dict[str, Any]:
        metadata = {}
        for field in FRONTMATTER_FIELDS:
            if field in frontmatter:
                value = frontmatter[field]
                # Convert date/datetime objects to ISO format strings
                if hasattr(value, "isoformat"):
                    value = value.isoformat()
                metadata[field] = value
        return metadata

    def _html_title(self, content: str) -> str:
        soup = BeautifulSoup(content, "html.parser")
        if soup.title and soup.title.string:
            return soup.title.string.strip()
        return ""


# Singleton instance for convenience
_loader_instance = None


def get_loader() -> DocumentLoader:
    """Get a singleton document loader instance.

    Returns:
        DocumentLoader instance
    """
    global _loader_instance
    if _loader_instance is None:
        _loader_instance = DocumentLoader()
    return _loader_instance


# Convenience functions
def load_document(file_path: Path) -> RawDocument:
    """Load one file (convenience function)."""
    return get_loader().load_file(file_path)


def load_directory(root: Path) -> List[RawDocument]:
    """Load a directory tree (convenience function)."""
    return get_loader().load_directory(root)
