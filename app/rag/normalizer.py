"""Text normalization for raw documents before chunking.

Handles, in this order:
- HTML entity decoding
- Markup removal (structural parser, regex fallback)
- Bullet normalization
- Boilerplate removal (copyright notices, header/footer lines, page markers)
- Whitespace collapsing
"""
import dataclasses
import html
import re
import warnings
from typing import Any, Iterable, List, Mapping, Optional

import structlog
from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

from app import config
from app.rag.models import RawDocument

logger = structlog.get_logger()

# Any whitespace except the newline itself
_H = r"[^\S\n]"


class TextNormalizer:
    """Cleans raw text into plain, whitespace-normalized text."""

    # Elements whose text is never document content
    DROPPED_ELEMENTS = ["script", "style", "noscript", "template"]

    TAG_PATTERN = re.compile(r"<[^>]+>")

    BULLET_GLYPHS = re.compile(r"[•●▪◦◆■]")
    STAR_BULLET = re.compile(rf"^({_H}*)\*{_H}+", re.MULTILINE)
    DASH_RUN = re.compile(rf"-(?:{_H}*-)+")
    LINE_DASH = re.compile(rf"^{_H}*-{_H}*", re.MULTILINE)

    BOILERPLATE_PATTERNS = [
        re.compile(r"copyright\s*(?:©|\(c\))?\s*\d{4}(?:\s*[-–]\s*\d{4})?", re.IGNORECASE),
        re.compile(r"©\s*\d{4}(?:\s*[-–]\s*\d{4})?"),
        re.compile(r"all\s+rights\s+reserved", re.IGNORECASE),
        re.compile(r"confidential", re.IGNORECASE),
    ]
    HEADER_FOOTER_LINE = re.compile(
        rf"^{_H}*(?:header|footer){_H}*:.*$", re.IGNORECASE | re.MULTILINE
    )
    PAGE_MARKER_LINE = re.compile(
        rf"^{_H}*page{_H}+\d+(?:{_H}+of{_H}+\d+)?{_H}*$", re.IGNORECASE | re.MULTILINE
    )

    HORIZONTAL_RUN = re.compile(rf"{_H}+")
    SPACE_AROUND_NEWLINE = re.compile(r" ?\n ?")
    NEWLINE_RUN = re.compile(r"\n{2,}")

    def __init__(self, max_passes: Optional[int] = None):
        """Initialize the normalizer.

        Args:
            max_passes: Upper bound on cleaning passes run to reach a fixed
                point (default from config)
        """
        self.max_passes = max(1, max_passes or config.MAX_NORMALIZE_PASSES)

    def normalize(self, text: Any) -> str:
        """Clean one raw text value.

        Never raises: None becomes an empty string and other non-string
        values are stringified first. Cleaning passes repeat until the text
        stops changing, because removing boilerplate can expose new bullet
        runs or blank lines.

        Args:
            text: Raw text, possibly containing HTML

        Returns:
            Normalized plain text
        """
        if text is None:
            return ""
        if not isinstance(text, str):
            text = str(text)

        result = self._clean(text)
        for _ in range(self.max_passes - 1):
            cleaned = self._clean(result)
            if cleaned == result:
                break
            result = cleaned

        return result

    def normalize_all(self, items: Iterable[Any]) -> List[Any]:
        """Normalize a mixed batch of strings, records and documents.

        Each item keeps its shape: strings stay strings, mappings are copied
        with only their ``content`` (or else ``text``) field replaced, and
        RawDocuments get a new ``text``.

        Args:
            items: Strings, mappings with a text field, or RawDocuments

        Returns:
            List of normalized items in input order
        """
        normalized = []

        for item in items:
            if isinstance(item, RawDocument):
                normalized.append(dataclasses.replace(item, text=self.normalize(item.text)))
            elif isinstance(item, Mapping):
                normalized.append(self._normalize_record(item))
            else:
                normalized.append(self.normalize(item))

        logger.info("documents_normalized", count=len(normalized))

        return normalized

    def _normalize_record(self, record: Mapping[str, Any]) -> dict:
        if "content" in record:
            key = "content"
        elif "text" in record:
            key = "text"
        else:
            logger.warning("record_without_text_field", keys=list(record.keys()))
            return dict(record)

        updated = dict(record)
        updated[key] = self.normalize(record[key])
        return updated

    def _clean(self, text: str) -> str:
        output = self._decode_entities(text)
        output = self._strip_markup(output)
        output = self._normalize_bullets(output)
        output = self._remove_boilerplate(output)
        output = self._normalize_whitespace(output)
        return output.strip()

    def _decode_entities(self, text: str) -> str:
        # Double-escaped input (&amp;nbsp;) needs more than one round
        while True:
            decoded = html.unescape(text)
            if decoded == text:
                return decoded
            text = decoded

    def _strip_markup(self, text: str) -> str:
        """Replace every tag with a single space so text nodes stay separated."""
        if "<" not in text:
            return text

        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
                soup = BeautifulSoup(text, "html.parser")
            for element in soup(self.DROPPED_ELEMENTS):
                element.decompose()
            return soup.get_text(separator=" ")
        except Exception as e:
            logger.warning(
                "markup_parse_failed_using_regex",
                error=str(e),
                error_type=type(e).__name__,
            )
            return self.TAG_PATTERN.sub(" ", text)

    def _normalize_bullets(self, text: str) -> str:
        output = self.BULLET_GLYPHS.sub("-", text)
        output = self.STAR_BULLET.sub(r"\1- ", output)
        output = self.DASH_RUN.sub("-", output)
        return self.LINE_DASH.sub("- ", output)

    def _remove_boilerplate(self, text: str) -> str:
        output = self.HEADER_FOOTER_LINE.sub("", text)
        output = self.PAGE_MARKER_LINE.sub("", output)
        # Replaced with a space so the words around a notice are not glued
        for pattern in self.BOILERPLATE_PATTERNS:
            output = pattern.sub(" ", output)
        return output

    def _normalize_whitespace(self, text: str) -> str:
        output = text.replace("\r", "")
        output = self.HORIZONTAL_RUN.sub(" ", output)
        output = self.SPACE_AROUND_NEWLINE.sub("\n", output)
        return self.NEWLINE_RUN.sub("\n", output)


# Singleton instance for convenience
_normalizer_instance = None


def get_normalizer() -> TextNormalizer:
    """Get a singleton text normalizer instance.

    Returns:
        TextNormalizer instance with default config
    """
    global _normalizer_instance
    if _normalizer_instance is None:
        _normalizer_instance = TextNormalizer()
    return _normalizer_instance


# Convenience functions
def normalize(text: Any) -> str:
    """Normalize text using the default normalizer (convenience function)."""
    return get_normalizer().normalize(text)


def normalize_all(items: Iterable[Any]) -> List[Any]:
    """Normalize a batch using the default normalizer (convenience function)."""
    return get_normalizer().normalize_all(items)
