#!/usr/bin/env python3
"""Command-line entry point for the tab assistant backend.

Usage:
  python pipeline.py index https://example.com "Example" page.txt   # Index one tab
  python pipeline.py sync tabs.json                                 # Index a JSON list of tabs
  python pipeline.py search "how do I configure retries"            # Answer + sources
  python pipeline.py search "retries" --limit 5
  python pipeline.py remove 3f2a9c0d1b7e4a55                        # Remove a tab and its chunks
  python pipeline.py stats                                          # Vector store statistics

  python pipeline.py serve --port 3000                              # Launch the HTTP API
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import orjson

from settings import PROJECT_ROOT, load_settings

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(PROJECT_ROOT / "pipeline.log"),
        ],
    )


def _services(settings):
    from webapp.app import build_services

    return build_services(settings)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_index(args, settings):
    """Index a single tab from a text (or HTML) file."""
    from schemas.tab import TabContent, TabPayload

    raw = Path(args.file).read_text(encoding="utf-8")
    content = TabContent(html=raw) if args.html else TabContent(text=raw)
    payload = TabPayload(url=args.url, title=args.title, content=content)

    async def run():
        services = _services(settings)
        try:
            return await services.indexer.index_tab(payload)
        finally:
            await services.store.close()

    result = asyncio.run(run())
    print(f"\n{result.message}")
    print(f"  id: {result.id}")
    if result.chunk_count:
        print(f"  chunks: {result.chunk_count}")
    if result.from_fallback:
        print("  (stored in local fallback store)")


def cmd_sync(args, settings):
    """Index every tab in a JSON file (a list of tab objects)."""
    tabs = orjson.loads(Path(args.file).read_bytes())
    if not isinstance(tabs, list):
        raise ValueError(f"{args.file} must contain a JSON list of tabs")

    async def run():
        services = _services(settings)
        try:
            return await services.indexer.sync_tabs(tabs)
        finally:
            await services.store.close()

    results = asyncio.run(run())

    print("\n" + "=" * 70)
    print("SYNC RESULTS")
    print("=" * 70)
    for r in results:
        status = "OK  " if r.success else "FAIL"
        detail = r.id if r.success else r.error
        print(f"  [{status}] {r.title[:40]:40s} {detail}")
    succeeded = sum(1 for r in results if r.success)
    print(f"\n  {succeeded}/{len(results)} tabs indexed")
    print("=" * 70)


def cmd_search(args, settings):
    """Search indexed tabs and print the generated answer."""

    async def run():
        services = _services(settings)
        try:
            retrieval = await services.retriever.search(args.query, args.limit)
            answer = await services.answer_engine.answer(args.query, retrieval.results)
            return retrieval, answer
        finally:
            await services.store.close()

    retrieval, answer = asyncio.run(run())

    print(f"\nQuery: \"{args.query}\"")
    print(f"Results: {len(retrieval.results)} (tier: {retrieval.tier}, {retrieval.elapsed_ms:.0f}ms)")
    print("-" * 50)
    print(f"\n{answer.answer_text}\n")

    for i, r in enumerate(retrieval.results, 1):
        print(f"[{i}] Score: {r.score:.4f} | {r.title}")
        print(f"    URL: {r.url}")
        preview = r.snippet[:200].replace("\n", " ")
        print(f"    Text: {preview}...")
        print()


def cmd_remove(args, settings):
    """Remove a tab (and its chunks) from the index."""

    async def run():
        services = _services(settings)
        try:
            return await services.indexer.remove_tab(args.id)
        finally:
            await services.store.close()

    result = asyncio.run(run())
    print(f"\n{result.message} ({result.deleted_count} records)")


def cmd_stats(args, settings):
    """Show vector store statistics."""

    async def run():
        services = _services(settings)
        try:
            return await services.store.stats()
        finally:
            await services.store.close()

    stats = asyncio.run(run())

    print("\n" + "=" * 70)
    print("VECTOR STORE STATUS")
    print("=" * 70)
    print(f"\n  Total vectors: {stats.total_vectors}")
    for name, info in stats.namespaces.items():
        print(f"  Namespace {name}: {info.get('vectorCount', 0)} vectors")
    if stats.fallback_count is not None:
        print(f"  Local fallback records: {stats.fallback_count}")
    if stats.from_fallback:
        print("\n  Remote store unavailable, showing local fallback store")
    print("\n" + "=" * 70)


def cmd_serve(args, settings):
    """Launch the HTTP API used by the browser extension."""
    import uvicorn

    port = args.port or settings.port
    logger.info("=" * 60)
    logger.info("LAUNCHING TAB ASSISTANT API")
    logger.info("  http://%s:%d", args.host, port)
    logger.info("=" * 60)

    uvicorn.run(
        "webapp.app:create_app",
        factory=True,
        host=args.host,
        port=port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


# ---------------------------------------------------------------------------
# MAIN
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description="Tab assistant: index browser tabs and answer questions about them",
    )
    subparsers = parser.add_subparsers(dest="command")

    index_parser = subparsers.add_parser("index", help="Index a single tab")
    index_parser.add_argument("url", help="Tab URL")
    index_parser.add_argument("title", help="Tab title")
    index_parser.add_argument("file", help="File holding the page text")
    index_parser.add_argument("--html", action="store_true", help="Treat the file as HTML")

    sync_parser = subparsers.add_parser("sync", help="Index a JSON list of tabs")
    sync_parser.add_argument("file", help="JSON file with [{url, title, content}, ...]")

    search_parser = subparsers.add_parser("search", help="Search tabs and answer a question")
    search_parser.add_argument("query", help="Natural-language query")
    search_parser.add_argument("--limit", type=int, default=None, help="Number of results")

    remove_parser = subparsers.add_parser("remove", help="Remove a tab from the index")
    remove_parser.add_argument("id", help="Tab id")

    subparsers.add_parser("stats", help="Show vector store statistics")

    serve_parser = subparsers.add_parser("serve", help="Launch the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: PORT or 3000)")
    serve_parser.add_argument("--reload", action="store_true", help="Auto-reload on code changes")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    settings = load_settings()
    setup_logging(settings.log_level)

    commands = {
        "index": cmd_index,
        "sync": cmd_sync,
        "search": cmd_search,
        "remove": cmd_remove,
        "stats": cmd_stats,
        "serve": cmd_serve,
    }

    try:
        commands[args.command](args, settings)
    except Exception as e:
        logger.exception("Pipeline error: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
