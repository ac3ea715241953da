"""sentinel-memory CLI -- inspect and manage a workspace's memory store.

Provides ``list``, ``search``, ``show``, ``stats``, ``settings`` and
``serve`` subcommands.  The CLI never computes embeddings: ``search`` is a
keyword (FTS5) search.

Usage::

    sentinel-memory [--workspace PATH] list     [--type TYPE] [--tag TAG] [--sort importance|accessed] [--limit N] [--offset N] [--format table|json]
    sentinel-memory [--workspace PATH] search   <query> [--limit N] [--format table|json]
    sentinel-memory [--workspace PATH] show     <memory_id>
    sentinel-memory [--workspace PATH] stats
    sentinel-memory [--workspace PATH] settings [--auto-extract on|off] [--embedding-model M] [--threshold X] ...
    sentinel-memory [--workspace PATH] serve    [--http]
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import shutil
import sys
from typing import Any

from .errors import MemoryStoreError
from .memory import MEMORY_TYPES, PINNED_FILTER, SORT_ACCESSED, SORT_IMPORTANCE, MemoryFilters, UpdateSettingsInput
from .store import MemoryStore, default_db_path

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _workspace(args: argparse.Namespace) -> str:
    return args.workspace or os.environ.get("SENTINEL_WORKSPACE") or os.getcwd()


def _open_store(args: argparse.Namespace) -> MemoryStore | None:
    """Open the workspace's existing store, or report that there is none."""
    workspace = _workspace(args)
    path = default_db_path(workspace)
    if not os.path.isfile(path):
        print(f"Error: No memory store found at {path}.", file=sys.stderr)
        return None
    return MemoryStore(workspace)


def _format_timestamp(iso: str | None) -> str:
    """Format an ISO timestamp as ``YYYY-MM-DD HH:MM``."""
    if not iso:
        return "-"
    return iso[:16].replace("T", " ")


def _truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: max(width - 3, 0)] + "..."


def _text_width(fixed: int) -> int:
    term_width = shutil.get_terminal_size((80, 24)).columns
    return max(20, term_width - fixed)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_list(args: argparse.Namespace) -> int:
    """Handle the ``list`` subcommand."""
    store = _open_store(args)
    if store is None:
        return 1
    with store:
        memories, total = store.list(
            MemoryFilters(
                memory_type=args.type,
                tags=args.tag or None,
                limit=args.limit,
                offset=args.offset,
                sort_by=args.sort,
            )
        )

    if args.format == "json":
        print(json.dumps([m.to_dict() for m in memories], indent=2, ensure_ascii=False))
        return 0

    if not memories:
        print("No memories found.")
        return 0

    # ID(8) + Type(12) + Imp(4) + Hits(4) + Created(16) + gaps
    text_width = _text_width(8 + 2 + 12 + 2 + 4 + 2 + 4 + 2 + 16 + 2)
    print(f"{'ID':<8}  {'Type':<12}  {'Imp.':>4}  {'Hits':>4}  {'Created':<16}  {'Content'}")
    print(f"{'─' * 8}  {'─' * 12}  {'─' * 4}  {'─' * 4}  {'─' * 16}  {'─' * text_width}")
    for mem in memories:
        kind = mem.memory_type + ("*" if mem.is_pinned else "")
        preview = _truncate(mem.content.replace("\n", " "), text_width)
        print(
            f"{mem.id[:8]:<8}  {kind:<12}  {mem.importance:4d}  "
            f"{mem.access_count:3d}x  {_format_timestamp(mem.created_at):<16}  {preview}"
        )

    print(f"\nShowing {len(memories)} of {total} memories")
    return 0


def _cmd_search(args: argparse.Namespace) -> int:
    """Handle the ``search`` subcommand (keyword search only)."""
    store = _open_store(args)
    if store is None:
        return 1
    with store:
        try:
            hits = store.search_keyword(args.query, args.limit)
        except MemoryStoreError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

    if args.format == "json":
        print(json.dumps([h.to_dict() for h in hits], indent=2, ensure_ascii=False))
        return 0

    if not hits:
        print(f'No memories found matching "{args.query}".')
        return 0

    text_width = _text_width(8 + 2 + 7 + 2 + 4 + 2)
    print(f"{'ID':<8}  {'Score':>7}  {'Imp.':>4}  {'Content'}")
    print(f"{'─' * 8}  {'─' * 7}  {'─' * 4}  {'─' * text_width}")
    for hit in hits:
        mem = hit.memory
        preview = _truncate(mem.content.replace("\n", " "), text_width)
        print(f"{mem.id[:8]:<8}  {hit.score:7.3f}  {mem.importance:4d}  {preview}")

    print(f'\n{len(hits)} result(s) for "{args.query}"')
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    """Handle the ``show`` subcommand.

    Supports partial ID matching (any unambiguous prefix).
    """
    store = _open_store(args)
    if store is None:
        return 1
    prefix = args.memory_id
    with store:
        mem = store.get(prefix)
        if mem is None:
            everything, _ = store.list(MemoryFilters(limit=100_000))
            matches = [m for m in everything if m.id.startswith(prefix)]
            if not matches:
                print(f"Error: No memory found with ID prefix '{prefix}'.", file=sys.stderr)
                return 1
            if len(matches) > 1:
                print(
                    f"Error: Ambiguous ID prefix '{prefix}' matches {len(matches)} memories:",
                    file=sys.stderr,
                )
                for m in matches[:5]:
                    print(f"  {m.id}  {_truncate(m.content, 50)}", file=sys.stderr)
                return 1
            mem = matches[0]

    meta_str = json.dumps(mem.metadata, indent=2, ensure_ascii=False) if mem.metadata is not None else "-"
    print(f"Memory {mem.id}")
    print("─" * 40)
    print(f"{'Type:':<15}{mem.memory_type}")
    if mem.summary:
        print(f"{'Summary:':<15}{mem.summary}")
    print(f"{'Tags:':<15}{', '.join(mem.tags) if mem.tags else '-'}")
    print(f"{'Importance:':<15}{mem.importance}")
    print(f"{'Pinned:':<15}{'Yes' if mem.is_pinned else 'No'}")
    print(f"{'Access Count:':<15}{mem.access_count}")
    print(f"{'Last Access:':<15}{mem.last_accessed_at or '-'}")
    print(f"{'Created:':<15}{mem.created_at}")
    print(f"{'Updated:':<15}{mem.updated_at}")
    print(f"{'Embedding:':<15}{mem.embedding_model if mem.has_embedding else 'No'}")
    if mem.source_conversation_id:
        print(f"{'Conversation:':<15}{mem.source_conversation_id}")
    print(f"{'Metadata:':<15}{meta_str}")
    print()
    print("Content:")
    for line in mem.content.splitlines():
        print(f"  {line}")
    return 0


def _cmd_stats(args: argparse.Namespace) -> int:
    """Handle the ``stats`` subcommand."""
    store = _open_store(args)
    if store is None:
        return 1
    with store:
        stats = store.get_stats()
        path = store.path

    print("sentinel-memory Statistics")
    print("─" * 40)
    print(f"{'Store:':<25}{path}")
    print(f"{'Total memories:':<25}{stats.total_count}")
    print(f"{'  auto:':<25}{stats.auto_count}")
    print(f"{'  user:':<25}{stats.user_count}")
    print(f"{'  conversation:':<25}{stats.conversation_count}")
    print(f"{'Pinned:':<25}{stats.pinned_count}")
    print(f"{'With embeddings:':<25}{stats.with_embeddings}")
    print(f"{'Average importance:':<25}{stats.avg_importance:.2f}")
    return 0


def _cmd_settings(args: argparse.Namespace) -> int:
    """Handle the ``settings`` subcommand: show, or update then show."""
    store = _open_store(args)
    if store is None:
        return 1

    changes = UpdateSettingsInput(
        auto_extract_enabled=None if args.auto_extract is None else args.auto_extract == "on",
        extraction_model=args.extraction_model,
        embedding_model=args.embedding_model,
        max_memories=args.max_memories,
        context_injection_count=args.context_count,
        similarity_threshold=args.threshold,
    )
    with store:
        settings = store.update_settings(changes) if changes.present() else store.get_settings()

    data: dict[str, Any] = settings.to_dict()
    width = max(len(k) for k in data) + 3
    for key, value in data.items():
        print(f"{key + ':':<{width}}{'-' if value is None else value}")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    """Handle the ``serve`` subcommand by starting the MCP server."""
    from .config import MemoryConfig, configure_logging
    from .server import serve

    config = MemoryConfig.from_env()
    config.workspace = _workspace(args)
    configure_logging(config.debug)
    logging.getLogger("sentinel_memory").setLevel(logging.DEBUG if config.debug else logging.INFO)
    serve(config, http=args.http)
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="sentinel-memory",
        description="sentinel-memory -- view and manage workspace memories.",
    )
    parser.add_argument(
        "--workspace",
        default=None,
        help="Workspace root (default: $SENTINEL_WORKSPACE or the current directory).",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # -- list ---------------------------------------------------------
    p_list = subparsers.add_parser("list", help="List stored memories.")
    p_list.add_argument(
        "--type",
        choices=[*MEMORY_TYPES, PINNED_FILTER],
        default=None,
        help="Only this memory type ('pinned' for every pinned memory).",
    )
    p_list.add_argument("--tag", action="append", help="Only memories with this tag (repeatable).")
    p_list.add_argument(
        "--sort",
        choices=[SORT_IMPORTANCE, SORT_ACCESSED],
        default=None,
        help="Sort order (default: newest first).",
    )
    p_list.add_argument("--limit", type=int, default=20, help="Maximum memories to show (default: 20).")
    p_list.add_argument("--offset", type=int, default=0, help="Number of memories to skip.")
    p_list.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table).",
    )

    # -- search -------------------------------------------------------
    p_search = subparsers.add_parser("search", help="Search memories by keyword.")
    p_search.add_argument("query", help="FTS5 query text.")
    p_search.add_argument("--limit", type=int, default=10, help="Maximum results (default: 10).")
    p_search.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table).",
    )

    # -- show ---------------------------------------------------------
    p_show = subparsers.add_parser("show", help="Show full detail for a memory (supports partial ID).")
    p_show.add_argument("memory_id", help="Memory ID or prefix.")

    # -- stats --------------------------------------------------------
    subparsers.add_parser("stats", help="Show memory statistics.")

    # -- settings -----------------------------------------------------
    p_settings = subparsers.add_parser("settings", help="Show or change workspace memory settings.")
    p_settings.add_argument("--auto-extract", choices=["on", "off"], default=None)
    p_settings.add_argument("--extraction-model", default=None)
    p_settings.add_argument("--embedding-model", default=None)
    p_settings.add_argument("--max-memories", type=int, default=None)
    p_settings.add_argument("--context-count", type=int, default=None)
    p_settings.add_argument("--threshold", type=float, default=None)

    # -- serve --------------------------------------------------------
    p_serve = subparsers.add_parser("serve", help="Run the MCP server for this workspace.")
    p_serve.add_argument("--http", action="store_true", help="Serve streamable HTTP instead of stdio.")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Args:
        argv: Command-line arguments. Defaults to ``sys.argv[1:]``.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    # Suppress library logging -- CLI output should be clean.
    logging.getLogger("sentinel_memory").setLevel(logging.WARNING)

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands: dict[str, Any] = {
        "list": _cmd_list,
        "search": _cmd_search,
        "show": _cmd_show,
        "stats": _cmd_stats,
        "settings": _cmd_settings,
        "serve": _cmd_serve,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    result: int = handler(args)
    return result


if __name__ == "__main__":
    sys.exit(main())
