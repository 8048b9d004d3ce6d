"""CLI tool for building and querying the workspace index.

Usage:
    python -m ctxgraph.rag build [--force]
    python -m ctxgraph.rag update
    python -m ctxgraph.rag stats
    python -m ctxgraph.rag search QUERY [-k K]
    python -m ctxgraph.rag context QUERY [--format detailed]
    python -m ctxgraph.rag watch [--debounce 2]
    python -m ctxgraph.rag clear
"""

import argparse
import sys
import time
from pathlib import Path

from ..config import config, get_indexing_config
from ..logging_config import setup_logging
from .indexer import IndexingManager
from .retriever import RetrievalAssembler


def _add_location_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--workspace",
        type=str,
        default=".",
        help="Workspace root directory (default: current directory)",
    )
    parser.add_argument(
        "--storage",
        type=str,
        default=None,
        help="Directory holding the .indexing folder (default: the workspace)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build and query the semantic workspace index"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    build_parser = subparsers.add_parser("build", help="Build the index (loads a persisted one if compatible)")
    build_parser.add_argument("--force", action="store_true", help="Discard the persisted index and rebuild")
    _add_location_args(build_parser)

    update_parser = subparsers.add_parser("update", help="Re-index files changed since the last build")
    _add_location_args(update_parser)

    stats_parser = subparsers.add_parser("stats", help="Show index statistics")
    _add_location_args(stats_parser)

    search_parser = subparsers.add_parser("search", help="Similarity search")
    search_parser.add_argument("query", type=str)
    search_parser.add_argument("-k", type=int, default=5, help="Number of results (default: 5)")
    _add_location_args(search_parser)

    context_parser = subparsers.add_parser("context", help="Show the chat context for a query")
    context_parser.add_argument("query", type=str)
    context_parser.add_argument("--format", choices=["compact", "detailed", "code-only"], default=None)
    context_parser.add_argument("--max-tokens", type=int, default=None)
    context_parser.add_argument("--min-score", type=float, default=None)
    _add_location_args(context_parser)

    watch_parser = subparsers.add_parser("watch", help="Watch for file changes and update the index")
    watch_parser.add_argument(
        "--debounce",
        type=float,
        default=None,
        help="Debounce time in seconds (default: from config)",
    )
    _add_location_args(watch_parser)

    clear_parser = subparsers.add_parser("clear", help="Empty the index")
    _add_location_args(clear_parser)

    return parser


def _open_manager(
    args,
    watch: bool = False,
    debounce: float | None = None,
    build_missing: bool = True,
) -> IndexingManager:
    indexing_config = get_indexing_config()
    if debounce is not None:
        indexing_config.debounce_seconds = debounce
    manager = IndexingManager(indexing_config, watch=watch)
    workspace = Path(args.workspace).resolve()
    storage = Path(args.storage).resolve() if args.storage else workspace
    if not manager.initialize(workspace, storage, background=False, build_missing=build_missing):
        raise RuntimeError(f"Indexing unavailable: {manager.last_error}")
    return manager


def main():
    """Main entry point for the index CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(config["log_level"], config["log_file"])

    try:
        if args.command == "build":
            manager = _open_manager(args, build_missing=not args.force)
            if args.force:
                manager.reindex(background=False)
            stats = manager.get_stats()
            print("\n✓ Index ready")
            print(f"  Documents: {stats['documents_count']}")
            print(f"  Chunks: {stats['chunks_count']}")
            print(f"  Index path: {stats['index_path']}")
            return 0

        elif args.command == "update":
            manager = _open_manager(args)
            stats = manager.sync_with_workspace()
            print("\n✓ Index updated!")
            print(f"  Files updated: {stats['updated']}")
            print(f"  Files removed: {stats['removed']}")
            print(f"  Files failed: {stats['failed']}")
            return 0

        elif args.command == "stats":
            manager = _open_manager(args)
            stats = manager.get_stats()
            print("\n📊 Index Statistics")
            print("=" * 50)
            for key, value in stats.items():
                print(f"  {key}: {value}")
            print(f"  orphaned_vectors: {manager.orphaned_vectors}")
            print("=" * 50)
            return 0

        elif args.command == "search":
            manager = _open_manager(args)
            results = manager.search(args.query, args.k)
            if not results:
                print("No results.")
            for i, result in enumerate(results, 1):
                print(f"\n--- {i}. {result.path} [chunk {result.chunk_ordinal}] (score: {result.score:.3f}) ---")
                print(result.text)
            return 0

        elif args.command == "context":
            manager = _open_manager(args)
            overrides = {
                key: value
                for key, value in (
                    ("format", args.format),
                    ("max_tokens", args.max_tokens),
                    ("min_score", args.min_score),
                )
                if value is not None
            }
            assembler = RetrievalAssembler(manager)
            context = assembler.get_context(args.query, overrides)
            if context is None:
                print("RAG unavailable.", file=sys.stderr)
                return 1
            print(context.context_text or "(no relevant context)")
            print(
                f"\n[{context.stats.chunks_used}/{context.stats.chunks_found} chunks, "
                f"{context.stats.total_tokens} tokens, files: {', '.join(context.stats.files_included)}]"
            )
            return 0

        elif args.command == "watch":
            manager = _open_manager(args, watch=True, debounce=args.debounce)
            print(f"👀 Watching for file changes in: {manager.workspace_path}")
            print(f"   Debounce: {manager.config.debounce_seconds}s")
            print("   Press Ctrl+C to stop")
            try:
                while True:
                    time.sleep(1)
            except KeyboardInterrupt:
                manager.shutdown()
            return 0

        elif args.command == "clear":
            manager = _open_manager(args, build_missing=False)
            manager.clear_index()
            print("✓ Index cleared")
            return 0

    except KeyboardInterrupt:
        print("\n\n👋 Stopped")
        return 0
    except Exception as e:
        print(f"\n❌ Error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
