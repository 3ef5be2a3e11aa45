"""Application configuration with sensible defaults."""
import os
from pathlib import Path

# Paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = BASE_DIR / "data"

# Chunking (character-based to avoid tokenizer inconsistencies)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "1000"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))

# Normalization
MAX_NORMALIZE_PASSES = int(os.getenv("MAX_NORMALIZE_PASSES", "5"))

# Retrieval
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "2"))
MIN_SIMILARITY_SCORE = float(os.getenv("MIN_SIMILARITY_SCORE", "0.5"))

# Prompt assembly. 1 token ~= 4 chars, so 120k chars ~= 30k tokens.
MAX_CONTEXT_CHARS = int(os.getenv("MAX_CONTEXT_CHARS", "120000"))

# Loader
ALLOWED_EXTENSIONS = (".txt", ".md", ".markdown", ".html", ".htm")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
