#!/usr/bin/env python
"""Assemble a generation prompt from a query and saved search results.

The results file is a JSON list of objects with ``content``, ``metadata``
and, optionally, ``score`` (raw backend score).

Usage:
    python scripts/build_prompt.py "What is X?" --results hits.json
    python scripts/build_prompt.py "What is X?" --results hits.json --min-score 0.7
    python scripts/build_prompt.py "What is X?" --results hits.json --max-chars 8000
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
from app.rag.models import ScoredResult
from app.rag.prompt import PromptBuilder
from app.rag.scoring import filter_results, score_results
import structlog

logger = structlog.get_logger()


def read_results(path: Path) -> List[ScoredResult]:
    """Read saved search hits; a hit without ``score`` has an unknown score."""
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"Expected a JSON list of results in {path}")

    return score_results(
        (item.get("content", ""), item.get("metadata") or {}, item.get("score"))
        for item in raw
    )


def main():
    parser = argparse.ArgumentParser(description="Assemble a grounded prompt")
    parser.add_argument("query", help="User query")
    parser.add_argument("--results", type=Path, required=True, help="JSON file with search hits")
    parser.add_argument(
        "--min-score",
        type=float,
        default=config.MIN_SIMILARITY_SCORE,
        help="Minimum normalized similarity",
    )
    parser.add_argument("--max-chars", type=int, default=None, help="Prompt length budget")
    parser.add_argument("--log-level", default=None, help="Log level (default from config)")

    args = parser.parse_args()
    configure_logging(args.log_level)

    try:
        results = filter_results(read_results(args.results), args.min_score)
    except (OSError, ValueError) as e:
        print(f"\n❌ {e}\n", file=sys.stderr)
        sys.exit(1)

    prompt = PromptBuilder(max_context_chars=args.max_chars).assemble(args.query, results)
    print(prompt.full_text)

    logger.info(
        "prompt_built",
        length=len(prompt.full_text),
        included_results=prompt.included_results,
        truncated=prompt.truncated,
    )


if __name__ == "__main__":
    main()
