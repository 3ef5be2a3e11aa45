"""Unit tests for TextChunker: recursive separator splitting with overlap."""
import string

import pytest

from app.rag.chunker import TextChunker, split_text
from app.rag.models import Chunk, RawDocument


def shared_overlap(previous: str, following: str) -> int:
    """Length of the longest suffix of ``previous`` that prefixes ``following``."""
    for size in range(min(len(previous), len(following)), 0, -1):
        if previous.endswith(following[:size]):
            return size
    return 0


class TestConfiguration:
    def test_overlap_must_be_smaller_than_size(self):
        with pytest.raises(ValueError):
            TextChunker(chunk_size=100, chunk_overlap=100)

    def test_negative_overlap_rejected(self):
        with pytest.raises(ValueError):
            TextChunker(chunk_size=100, chunk_overlap=-1)

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError):
            TextChunker(chunk_size=0, chunk_overlap=0)

    def test_zero_overlap_is_kept(self):
        assert TextChunker(chunk_size=50, chunk_overlap=0).chunk_overlap == 0


class TestSplitText:
    def test_empty_and_blank_text(self):
        chunker = TextChunker(chunk_size=100, chunk_overlap=10)
        assert chunker.split_text("") == []
        assert chunker.split_text("   \n ") == []

    def test_short_text_is_one_chunk(self):
        chunker = TextChunker(chunk_size=100, chunk_overlap=10)
        assert chunker.split_text("Just a line.") == ["Just a line."]

    def test_separator_free_text_is_split_by_characters(self):
        text = "".join(string.ascii_lowercase[i % 26] for i in range(2000))
        chunks = TextChunker(chunk_size=1000, chunk_overlap=200).split_text(text)

        assert len(chunks) > 1
        assert all(len(c) <= 1000 for c in chunks)
        assert [len(c) for c in chunks] == [1000, 1000, 400]
        assert chunks[1][:200] == chunks[0][-200:]
        assert chunks[2][:200] == chunks[1][-200:]

    def test_repeated_sentences(self):
        text = ("This is a sentence. " * 100).strip()
        chunks = TextChunker(chunk_size=1000, chunk_overlap=200).split_text(text)

        assert len(chunks) > 1
        assert all(len(c) <= 1000 for c in chunks)
        # Overlap starts on a word boundary
        assert all(c.split()[0] in {"This", "is", "a", "sentence."} for c in chunks)

    def test_paragraphs_kept_together_when_they_fit(self):
        text = "\n\n".join(["A" * 300, "B" * 300, "C" * 300])
        chunks = TextChunker(chunk_size=700, chunk_overlap=0).split_text(text)

        assert chunks == ["A" * 300 + "\n\n" + "B" * 300, "C" * 300]

    def test_lines_split_before_words(self):
        text = "first line here\nsecond line here\nthird line here"
        chunks = TextChunker(chunk_size=35, chunk_overlap=0).split_text(text)

        assert chunks == ["first line here\nsecond line here", "third line here"]

    def test_size_bound_and_overlap_bound(self, word_text):
        chunks = TextChunker(chunk_size=100, chunk_overlap=30).split_text(word_text)

        assert len(chunks) > 1
        assert all(len(c) <= 100 for c in chunks)

        overlaps = [shared_overlap(a, b) for a, b in zip(chunks, chunks[1:])]
        assert all(size <= 30 for size in overlaps)
        assert any(size > 0 for size in overlaps)

    def test_overlap_does_not_cut_words(self, word_text):
        chunks = TextChunker(chunk_size=100, chunk_overlap=30).split_text(word_text)
        words = set(word_text.split())

        for chunk in chunks:
            assert set(chunk.split()) <= words

    def test_no_overlap_reconstructs_text(self, word_text):
        chunks = TextChunker(chunk_size=100, chunk_overlap=0).split_text(word_text)

        assert " ".join(chunks) == word_text

    def test_oversized_token_falls_through_to_characters(self):
        text = "short " + "x" * 250 + " tail"
        chunks = TextChunker(chunk_size=100, chunk_overlap=10).split_text(text)

        assert all(len(c) <= 100 for c in chunks)
        assert chunks[0] == "short"
        assert chunks[-1].endswith("tail")
        assert sum(c.count("x") for c in chunks) >= 250

    def test_convenience_function(self):
        chunks = split_text("y" * 30, chunk_size=10, chunk_overlap=2)
        assert all(len(c) <= 10 for c in chunks)
        assert len(chunks) == 4


class TestSplitDocuments:
    def test_metadata_and_order_preserved(self, word_text):
        documents = [
            RawDocument(text=word_text, metadata={"source": "a.txt"}),
            RawDocument(text="tiny doc", metadata={"source": "b.txt", "lang": "en"}),
        ]
        chunks = TextChunker(chunk_size=100, chunk_overlap=20).split_documents(documents)

        first = [c for c in chunks if c.metadata["source"] == "a.txt"]
        assert chunks[-1] == Chunk(
            content="tiny doc",
            metadata={
                "source": "b.txt",
                "lang": "en",
                "chunk_index": 0,
                "chunk_count": 1,
                "char_start": 0,
                "char_end": 8,
            },
        )
        assert chunks[: len(first)] == first
        assert [c.metadata["chunk_index"] for c in first] == list(range(len(first)))
        assert all(c.metadata["chunk_count"] == len(first) for c in first)

    def test_offsets_point_at_chunk_text(self, word_text):
        document = RawDocument(text=word_text, metadata={})
        chunks = TextChunker(chunk_size=80, chunk_overlap=25).split_documents([document])

        for chunk in chunks:
            start, end = chunk.metadata["char_start"], chunk.metadata["char_end"]
            assert word_text[start:end] == chunk.content

        starts = [c.metadata["char_start"] for c in chunks]
        assert starts == sorted(starts)

    def test_document_metadata_not_mutated(self):
        metadata = {"source": "a.txt"}
        TextChunker(chunk_size=10, chunk_overlap=0).split_documents(
            [RawDocument(text="one two three four", metadata=metadata)]
        )
        assert metadata == {"source": "a.txt"}


def test_chunk_stats():
    chunker = TextChunker(chunk_size=10, chunk_overlap=2)
    stats = chunker.get_chunk_stats(["abc", Chunk(content="abcdefg")])

    assert stats == {
        "chunk_count": 2,
        "total_chars": 10,
        "avg_chunk_size": 5,
        "min_chunk_size": 3,
        "max_chunk_size": 7,
        "overlap": 2,
    }
    assert chunker.get_chunk_stats([])["chunk_count"] == 0
