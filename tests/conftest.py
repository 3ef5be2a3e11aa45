"""Pytest configuration and shared fixtures."""
import pytest

from app.rag.models import RawDocument


@pytest.fixture
def sample_html():
    """HTML snippet with entities, nested tags and padded text."""
    return "<div><h1>Header</h1><p>  Hello &nbsp; World!  </p></div>"


@pytest.fixture
def sample_chunks():
    """Two retrieved chunks in LangChain document shape."""
    return [
        {
            "page_content": "Gemini is a family of multimodal AI models developed by Google.",
            "metadata": {"source": "intro.txt", "topic": "AI"},
        },
        {
            "page_content": "Vector embeddings allow for semantic search capabilities.",
            "metadata": {"source": "vectors.md", "topic": "Search"},
        },
    ]


@pytest.fixture
def word_text():
    """Text of unique space-separated words, no sentence punctuation."""
    return " ".join(f"word{i}" for i in range(200))


@pytest.fixture
def raw_documents():
    """Raw documents as an ingestion source would hand them over."""
    return [
        RawDocument(
            text="<h1>Guide</h1><p>First&nbsp;part.</p>" + " Body sentence." * 60,
            metadata={"source": "guide.html", "category": "docs"},
        ),
        RawDocument(
            text="Short note.",
            metadata={"source": "note.txt"},
        ),
    ]
