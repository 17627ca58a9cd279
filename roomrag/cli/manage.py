"""Command-line tool for indexing and querying room content.

Usage::

    python -m roomrag.cli index-file --file notes.pdf --room r1 --org o1

    python -m roomrag.cli index-export --export workspace.json --org o1

    python -m roomrag.cli search --room r1 --org o1 --query "release date"

    python -m roomrag.cli ask --room r1 --org o1 --question "When do we ship?" --stream

    python -m roomrag.cli stats --room r1

    python -m roomrag.cli clear-room --room r1 --yes

Heavy imports (providers, ChromaDB, the OpenAI SDK) are deferred into the
handlers so ``--help`` stays fast.
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path

from roomrag.config.settings import Settings
from roomrag.utils.errors import RoomRagError
from roomrag.utils.logging import configure_logging


def _build_components(app_settings: Settings, export: str | None = None):  # noqa: ANN202
    """Build the component graph, optionally over a JSON workspace export."""
    from roomrag.main import build_components
    from roomrag.providers.content.json_export_content_store import JsonExportContentStore

    content_store = JsonExportContentStore.from_file(export) if export else None
    return build_components(settings=app_settings, content_store=content_store)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_index_file(args: argparse.Namespace, components) -> int:  # noqa: ANN001
    """Index a local file as a standalone document of a room."""
    from roomrag.models.rag import SourceType, TenantScope

    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1
    mime_type = args.mime or mimetypes.guess_type(path.name)[0] or "text/plain"
    if not components.registry.can_process(mime_type):
        print(f"Error: unsupported file type: {mime_type}", file=sys.stderr)
        return 1

    print(f"Indexing {path.name} ({mime_type}) into room {args.room}")
    result = await components.ingestion.index_file_bytes(
        path.read_bytes(),
        file_name=path.name,
        mime_type=mime_type,
        source_type=SourceType.DOCUMENT,
        source_id=args.source_id or path.name,
        scope=TenantScope(org_id=args.org, room_id=args.room),
        metadata={"path": str(path)},
    )
    print(f"  Chunks created: {result.chunks_created}")
    return 0


async def _handle_index_export(args: argparse.Namespace, components) -> int:  # noqa: ANN001
    """Re-index every room of an organization from a JSON export."""
    print(f"Indexing organization {args.org} from {args.export}")
    result = await components.rag_service.index_all_rooms(args.org)

    print("\nBulk indexing complete:")
    print(f"  Rooms:    {result.successful_rooms}/{result.total_rooms}")
    print(f"  Indexed:  {result.total_indexed}")
    print(f"  Skipped:  {result.total_skipped}")
    if result.errors:
        print(f"  Errors ({len(result.errors)}):")
        for error in result.errors:
            print(f"    - {error}")
    return 0 if result.successful_rooms == result.total_rooms else 2


async def _handle_search(args: argparse.Namespace, components) -> int:  # noqa: ANN001
    from roomrag.models.rag import SearchFilters

    results = await components.search.search(
        args.query,
        SearchFilters(
            org_id=args.org,
            room_ids=[args.room],
            limit=args.limit,
            min_similarity=args.min_similarity,
        ),
    )
    if not results:
        print("No matches.")
        return 0
    for rank, result in enumerate(results, start=1):
        chunk = result.chunk
        print(
            f"{rank:>2}. [{chunk.source_type.value} {chunk.source_id} "
            f"{chunk.chunk_index + 1}/{chunk.chunk_total}] {result.similarity:.3f}"
        )
        print(f"    {chunk.content[:160]}")
    return 0


async def _handle_ask(args: argparse.Namespace, components) -> int:  # noqa: ANN001
    from roomrag.models.stream import StreamEventType

    if not args.stream:
        result = await components.rag_service.ask(args.room, args.org, args.question)
        print(result.answer)
        _print_sources(result.sources, result.confidence)
        return 0

    exit_code = 0
    sources = []
    confidence = 0.0
    async for event in components.answer_stream.stream(args.room, args.org, args.question):
        if event.type is StreamEventType.SOURCES:
            sources, confidence = event.sources, event.confidence
        elif event.type is StreamEventType.CHUNK:
            print(event.text, end="", flush=True)
        elif event.type is StreamEventType.DONE:
            if event.text:
                print(event.text, end="")
            print()
        else:
            print(f"\nError: {event.error}", file=sys.stderr)
            exit_code = 1
    if exit_code == 0:
        _print_sources(sources, confidence)
    return exit_code


async def _handle_stats(args: argparse.Namespace, components) -> int:  # noqa: ANN001
    stats = await components.rag_service.get_room_stats(args.room)
    print(f"Room {args.room}: {stats.total_embeddings} embeddings")
    return 0


async def _handle_clear_room(args: argparse.Namespace, components) -> int:  # noqa: ANN001
    """Delete every chunk of a room.  Asks for confirmation unless --yes."""
    stats = await components.rag_service.get_room_stats(args.room)
    if stats.total_embeddings == 0:
        print(f"Room {args.room} has no embeddings. Nothing to clear.")
        return 0
    if not args.yes:
        confirm = input(f"Delete {stats.total_embeddings} embeddings of room {args.room}? [y/N] ")
        if confirm.strip().lower() not in ("y", "yes"):
            print("Aborted.")
            return 0
    deleted = await components.rag_service.clear_room_embeddings(args.room)
    print(f"Deleted {deleted} embeddings.")
    return 0


def _print_sources(sources, confidence: float) -> None:  # noqa: ANN001
    if not sources:
        return
    print(f"\nSources (confidence {confidence:.2f}):")
    for source in sources:
        print(f"  - [{source.type.value} {source.id}] {source.score:.2f} {source.content[:80]}")


_HANDLERS = {
    "index-file": _handle_index_file,
    "index-export": _handle_index_export,
    "search": _handle_search,
    "ask": _handle_ask,
    "stats": _handle_stats,
    "clear-room": _handle_clear_room,
}


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m roomrag.cli",
        description="Index and query chat-room content for retrieval-augmented answers.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    index_file = subparsers.add_parser("index-file", help="Index a local file into a room")
    index_file.add_argument("--file", required=True, help="Path to the file")
    index_file.add_argument("--room", required=True, help="Room id")
    index_file.add_argument("--org", required=True, help="Organization id")
    index_file.add_argument("--mime", help="Mime type (guessed from the extension by default)")
    index_file.add_argument(
        "--source-id", dest="source_id", help="Source id (defaults to the file name)"
    )

    index_export = subparsers.add_parser(
        "index-export", help="Re-index every room of an organization from a JSON export"
    )
    index_export.add_argument("--export", required=True, help="Path to the workspace export")
    index_export.add_argument("--org", required=True, help="Organization id")

    search = subparsers.add_parser("search", help="Similarity search within a room")
    search.add_argument("--room", required=True)
    search.add_argument("--org", required=True)
    search.add_argument("--query", required=True)
    search.add_argument("--limit", type=int, default=10)
    search.add_argument("--min-similarity", dest="min_similarity", type=float, default=0.7)

    ask = subparsers.add_parser("ask", help="Ask a question about a room")
    ask.add_argument("--room", required=True)
    ask.add_argument("--org", required=True)
    ask.add_argument("--question", required=True)
    ask.add_argument("--stream", action="store_true", help="Print the answer as it is generated")
    ask.add_argument("--export", help="JSON export supplying the room's recent messages")

    stats = subparsers.add_parser("stats", help="Show the number of embeddings of a room")
    stats.add_argument("--room", required=True)

    clear = subparsers.add_parser("clear-room", help="Delete every embedding of a room")
    clear.add_argument("--room", required=True)
    clear.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    components = _build_components(app_settings, export=getattr(args, "export", None))
    try:
        return await _HANDLERS[args.command](args, components)
    finally:
        await components.aclose()


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    app_settings = Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    try:
        return asyncio.run(_run(args, app_settings))
    except RoomRagError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
