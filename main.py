"""CLI entry point for the catalog search engine."""

import argparse
import json
import logging
import sqlite3
import sys
from pathlib import Path
from typing import Any

import yaml

from src.core.config import Settings
from src.core.db import init_db, insert_category, insert_entry
from src.core.errors import QueryError
from src.core.schemas import NewCategory, NewEntry, RankingFilters, SearchFilters
from src.pipeline.orchestrator import get_rankings, list_categories, search_websites


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Catalog search engine - search, rank and serve directory entries",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- serve ---
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Override api.host")
    serve_parser.add_argument("--port", type=int, default=None, help="Override api.port")
    _add_common(serve_parser)

    # --- search ---
    search_parser = subparsers.add_parser("search", help="Run a search and print JSON")
    search_parser.add_argument("query", nargs="?", default="", help="Free-text query")
    search_parser.add_argument("--category", help="Category slug")
    search_parser.add_argument(
        "--pricing-model", action="append", default=[],
        help="Pricing model (repeatable, OR-combined)",
    )
    search_parser.add_argument("--min-quality", type=int, default=None)
    search_parser.add_argument("--trusted", action="store_true")
    search_parser.add_argument("--featured", action="store_true")
    search_parser.add_argument("--free-plan", action="store_true")
    search_parser.add_argument("--sort-by", default="relevance")
    search_parser.add_argument("--sort-order", default="desc", choices=["asc", "desc"])
    search_parser.add_argument("--page", type=int, default=1)
    search_parser.add_argument("--limit", type=int, default=None)
    _add_common(search_parser)

    # --- rankings ---
    rankings_parser = subparsers.add_parser("rankings", help="Print a ranking view as JSON")
    rankings_parser.add_argument("type", nargs="?", default="popular")
    rankings_parser.add_argument("--category", help="Category slug")
    rankings_parser.add_argument("--price-filter", default="all", choices=["all", "free", "paid", "freemium"])
    rankings_parser.add_argument("--time-range", default="all")
    rankings_parser.add_argument("--page", type=int, default=1)
    rankings_parser.add_argument("--limit", type=int, default=None)
    _add_common(rankings_parser)

    # --- categories ---
    categories_parser = subparsers.add_parser("categories", help="Print the category tree")
    _add_common(categories_parser)

    # --- load ---
    load_parser = subparsers.add_parser(
        "load",
        help="Load categories and entries from a YAML/JSON fixture file",
    )
    load_parser.add_argument("fixture", help="Path to the fixture file")
    _add_common(load_parser)

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        sys.exit(2)
    return args


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_settings(path: str) -> Settings:
    """Settings from YAML; a missing default config falls back to built-in defaults."""
    if not Path(path).exists() and path == "config/settings.yaml":
        logging.getLogger(__name__).info("No config at %s, using defaults", path)
        return Settings()
    return Settings.from_yaml(path)


def cmd_search(args: argparse.Namespace, settings: Settings) -> dict[str, Any]:
    filters = SearchFilters(
        query=args.query,
        category=args.category,
        pricing_model=args.pricing_model,
        min_quality_score=args.min_quality,
        is_trusted=args.trusted or None,
        is_featured=args.featured or None,
        has_free_plan=args.free_plan or None,
        sort_by=args.sort_by,
        sort_order=args.sort_order,
        page=args.page,
        limit=args.limit,
    )
    conn = init_db(settings.database.path, timeout=settings.database.timeout_seconds)
    try:
        return search_websites(conn, filters, settings).model_dump(by_alias=True, mode="json")
    finally:
        conn.close()


def cmd_rankings(args: argparse.Namespace, settings: Settings) -> dict[str, Any]:
    filters = RankingFilters(
        type=args.type,
        category=args.category,
        price_filter=args.price_filter,
        time_range=args.time_range,
        page=args.page,
        limit=args.limit,
    )
    conn = init_db(settings.database.path, timeout=settings.database.timeout_seconds)
    try:
        return get_rankings(conn, filters, settings).model_dump(by_alias=True, mode="json")
    finally:
        conn.close()


def cmd_categories(settings: Settings) -> list[dict[str, Any]]:
    conn = init_db(settings.database.path, timeout=settings.database.timeout_seconds)
    try:
        return [n.model_dump(by_alias=True, mode="json") for n in list_categories(conn).tree()]
    finally:
        conn.close()


def cmd_load(args: argparse.Namespace, settings: Settings) -> None:
    """Seed the database. Categories are created before entries (parents first)."""
    path = Path(args.fixture)
    if not path.exists():
        msg = f"Fixture file not found: {path}"
        raise FileNotFoundError(msg)
    raw = yaml.safe_load(path.read_text()) or {}

    conn = init_db(settings.database.path, timeout=settings.database.timeout_seconds)
    try:
        categories = [NewCategory.model_validate(c) for c in raw.get("categories", [])]
        for category in categories:
            insert_category(conn, category)
        entries = [NewEntry.model_validate(e) for e in raw.get("entries", [])]
        for entry in entries:
            insert_entry(conn, entry)
    finally:
        conn.close()
    print(f"Loaded {len(categories)} categories and {len(entries)} entries into {settings.database.path}")


def cmd_serve(args: argparse.Namespace, settings: Settings) -> None:
    import uvicorn

    from src.api.app import create_app

    init_db(settings.database.path, timeout=settings.database.timeout_seconds).close()
    uvicorn.run(
        create_app(settings),
        host=args.host or settings.api.host,
        port=args.port or settings.api.port,
    )


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "serve":
            cmd_serve(args, settings)
        elif args.command == "load":
            cmd_load(args, settings)
        elif args.command == "categories":
            print(json.dumps(cmd_categories(settings), indent=2))
        elif args.command == "rankings":
            print(json.dumps(cmd_rankings(args, settings), indent=2))
        else:
            print(json.dumps(cmd_search(args, settings), indent=2))
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except QueryError as e:
        print(f"Query failed: {e}", file=sys.stderr)
        sys.exit(1)
    except sqlite3.Error as e:
        print(f"Database error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
