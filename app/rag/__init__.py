"""RAG (Retrieval-Augmented Generation) text pipeline components.

This package contains modules for:
- Document loading
- Text normalization
- Document chunking with overlap
- Similarity score normalization and filtering
- Retrieval over an external vector backend
- Prompt assembly
"""
