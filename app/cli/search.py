"""CLI tool for running a bookmark search from the terminal.

Examples:
    python -m app.cli.search --user 01J... "machine learning"
    python -m app.cli.search --user 01J... --tags ai,ml --types ARTICLE
    python -m app.cli.search --user 01J... --special UNREAD --limit 5 --db /path/to/bookmarks.db
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from app.domain.models.search import SearchPage

logger = logging.getLogger(__name__)


def print_results(page: SearchPage, query: str | None) -> None:
    """Pretty print one page of search results."""
    print(f"\n{'=' * 80}")
    print(f"Query: '{query or ''}'")
    print(f"Results: {len(page.bookmarks)}")
    print(f"{'=' * 80}\n")

    if not page.bookmarks:
        print("No results found.")
        return

    for idx, hit in enumerate(page.bookmarks, 1):
        print(f"{idx}. {hit.title or hit.url}")
        print(f"   URL: {hit.url}")
        if hit.summary:
            summary = hit.summary if len(hit.summary) <= 200 else hit.summary[:197] + "..."
            print(f"   {summary}")
        match = hit.match_type or "-"
        print(f"   Match: {match} | Score: {hit.score:.3f} | Saved: {hit.created_at}")
        if hit.matched_tags:
            print(f"   Tags: {', '.join(hit.matched_tags)}")
        print()

    if page.has_more:
        print(f"More results: --cursor {page.next_cursor}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bms-search",
        description="Search one user's bookmarks with the ranked search pipeline",
    )
    parser.add_argument("query", nargs="*", help="Free text to search for")
    parser.add_argument("--user", required=True, help="Owner id whose bookmarks to search")
    parser.add_argument("--db", default=None, help="Path to SQLite database (defaults to DB_PATH)")
    parser.add_argument("--tags", default=None, help="Comma separated tag names")
    parser.add_argument("--types", default=None, help="Comma separated bookmark types")
    parser.add_argument("--special", default=None, help="READ, UNREAD and/or STAR")
    parser.add_argument("--limit", type=int, default=None, help="Page size")
    parser.add_argument("--cursor", default=None, help="Resume after a previous page")
    parser.add_argument(
        "--matching-distance", type=float, default=None, help="Semantic distance threshold"
    )
    parser.add_argument(
        "--lexical-only", action="store_true", help="Skip the semantic retrieval path"
    )
    return parser


async def run(args: argparse.Namespace) -> int:
    from app.config import load_config
    from app.di.search import build_search_container
    from app.domain.exceptions.domain_exceptions import SearchValidationError
    from app.services.search_query import RawSearchParams, SearchContext

    overrides: dict = {}
    if args.db:
        overrides["runtime"] = {"db_path": args.db}
    if args.lexical_only:
        overrides["search"] = {"semantic_enabled": False}
    cfg = load_config(**overrides)

    db_path = cfg.runtime.db_path
    if db_path != ":memory:" and not Path(db_path).exists():
        print(f"Error: Database file not found: {db_path}")
        return 1

    container = build_search_container(cfg)
    query = " ".join(args.query) or None
    try:
        page = await container.search.search(
            args.user,
            RawSearchParams(
                query=query,
                tags=args.tags,
                types=args.types,
                special_filters=args.special,
                cursor=args.cursor,
                limit=args.limit,
                matching_distance=args.matching_distance,
            ),
            context=SearchContext.APP,
        )
    except SearchValidationError as exc:
        print(f"Error: {exc.message}")
        return 2
    finally:
        container.db.close()

    print_results(page, query)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.WARNING,  # Suppress info logs for cleaner output
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nSearch interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
