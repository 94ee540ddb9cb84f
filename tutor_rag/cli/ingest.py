"""Command-line front end for the course corpus.

Usage::

    python -m tutor_rag.cli pdf --file public/content/3_Radicals_Notes.pdf
    python -m tutor_rag.cli chapter radicals
    python -m tutor_rag.cli all
    python -m tutor_rag.cli chapters
    python -m tutor_rag.cli search "What is A1?" --source 3_Radicals_Exercises
    python -m tutor_rag.cli stats
    python -m tutor_rag.cli purge --source 3_Radicals_Notes --yes

Exit code 0 on success, 1 on failure.  Results go to stdout, logs to
stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from tutor_rag.config.loader import load_catalog
from tutor_rag.config.settings import Settings
from tutor_rag.main import build_services, startup
from tutor_rag.models.rag import IngestionResult
from tutor_rag.utils.errors import ConfigurationError, TutorRAGError
from tutor_rag.utils.logging import configure_logging

_SNIPPET_CHARS = 150


def _require_embeddings(services: dict[str, Any]) -> None:
    provider = services["embedding_provider"]
    if not provider.is_available():
        raise ConfigurationError(
            message="OPENAI_API_KEY is not set; it is required to embed documents",
            provider_name=provider.get_provider_name(),
        )


def _print_result(result: IngestionResult) -> None:
    if result.succeeded:
        print(
            f"  {result.source_id:<32} {result.chunks_created:>5} chunks"
            f"  ({result.chunks_dropped} dropped, {result.ingestion_time:.2f}s)"
        )
    else:
        print(f"  {result.source_id:<32} FAILED: {result.error}")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_pdf(args: argparse.Namespace, services: dict[str, Any]) -> int:
    """Ingest a single PDF."""
    _require_embeddings(services)
    print(f"Ingesting PDF: {args.file}")
    result = await services["ingestion_service"].ingest_file(args.file, source_id=args.source)

    print("\nIngestion complete:")
    print(f"  Source ID:        {result.source_id}")
    print(f"  Chunks created:   {result.chunks_created}")
    print(f"  Chunks dropped:   {result.chunks_dropped}")
    print(f"  Records replaced: {result.records_replaced}")
    print(f"  Time:             {result.ingestion_time:.2f}s")
    return 0


async def _handle_chapter(args: argparse.Namespace, services: dict[str, Any]) -> int:
    """Re-ingest every source of one chapter."""
    _require_embeddings(services)
    print(f"Ingesting chapter: {args.chapter_id}")
    results = await services["ingestion_service"].ingest_chapter(args.chapter_id)
    for result in results:
        _print_result(result)

    if not results:
        print("  No source files found.")
        return 1
    print(f"\n  Total chunks: {sum(r.chunks_created for r in results)}")
    return 0 if all(r.succeeded for r in results) else 1


async def _handle_all(args: argparse.Namespace, services: dict[str, Any]) -> int:
    """Ingest the whole catalog."""
    _require_embeddings(services)
    print("Ingesting all chapters")
    results = await services["ingestion_service"].ingest_catalog()
    for result in results:
        _print_result(result)

    failed = [r for r in results if not r.succeeded]
    print("\nCatalog ingestion complete:")
    print(f"  Documents: {len(results)}")
    print(f"  Failed:    {len(failed)}")
    print(f"  Chunks:    {sum(r.chunks_created for r in results)}")
    return 0 if results and not failed else 1


async def _handle_search(args: argparse.Namespace, services: dict[str, Any]) -> int:
    """Run a retrieval query and print the ranked hits."""
    hits = await services["retriever"].find_relevant_content(
        args.query,
        limit=args.limit,
        sources=args.source or None,
    )
    if not hits:
        print("No relevant content found.")
        return 0

    for rank, hit in enumerate(hits, start=1):
        label = f" [{hit.problem_label}]" if hit.problem_label else ""
        print(f"{rank}. {hit.source or 'unknown'} #{hit.chunk_index}{label}  similarity={hit.similarity:.3f}")
        snippet = hit.content[:_SNIPPET_CHARS]
        print(f"   {snippet}{'...' if len(hit.content) > _SNIPPET_CHARS else ''}")
    return 0


async def _handle_stats(args: argparse.Namespace, services: dict[str, Any]) -> int:
    """Display corpus statistics."""
    stats = await services["vector_store"].get_stats()

    print("Corpus Statistics")
    print("=" * 40)
    print(f"  Total records:  {stats.total_records}")
    print(f"  Total sources:  {stats.total_sources}")
    if stats.records_by_source:
        print("\n  Records by source:")
        for source, count in stats.records_by_source.items():
            print(f"    {source:<32} {count}")
    return 0


async def _handle_purge(args: argparse.Namespace, services: dict[str, Any]) -> int:
    """Delete every record of one source after confirmation."""
    count = await services["vector_store"].count({"source": args.source})
    if count == 0:
        print(f"No records found for source '{args.source}'. Nothing to purge.")
        return 0

    print(f"  Found {count} records for source '{args.source}'")
    if not args.yes:
        confirm = input(f"  Delete all {count} records? [y/N] ").strip().lower()
        if confirm not in ("y", "yes"):
            print("  Aborted.")
            return 0

    removed = await services["ingestion_service"].purge_sources([args.source])
    print(f"\n  Deleted {removed} records.")
    return 0


def _handle_chapters(app_settings: Settings) -> int:
    """List catalog chapters; needs no stores."""
    try:
        catalog = load_catalog(app_settings.catalog_path)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    for chapter in catalog.chapters:
        print(f"{chapter.chapter_id:<28} {chapter.name}")
        for source_id in chapter.source_ids:
            print(f"    {source_id}")
    return 0


_HANDLERS: dict[str, Callable[[argparse.Namespace, dict[str, Any]], Awaitable[int]]] = {
    "pdf": _handle_pdf,
    "chapter": _handle_chapter,
    "all": _handle_all,
    "search": _handle_search,
    "stats": _handle_stats,
    "purge": _handle_purge,
}


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    services = build_services(app_settings)
    await startup(services)
    return await _HANDLERS[args.command](args, services)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the corpus CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m tutor_rag.cli",
        description="Manage and query the course-content corpus.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Corpus commands")

    # -- pdf --
    pdf_parser = subparsers.add_parser("pdf", help="Ingest a single PDF")
    pdf_parser.add_argument("--file", required=True, help="Path to the PDF file")
    pdf_parser.add_argument("--source", default=None, help="Source id (default: file name without extension)")

    # -- chapter --
    chapter_parser = subparsers.add_parser("chapter", help="Re-ingest one catalog chapter")
    chapter_parser.add_argument("chapter_id", help="Chapter id, see 'chapters'")

    # -- all --
    subparsers.add_parser("all", help="Ingest every chapter in the catalog")

    # -- chapters --
    subparsers.add_parser("chapters", help="List catalog chapters and their sources")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Find relevant content for a query")
    search_parser.add_argument("query", help="Query text, e.g. 'What is A1?'")
    search_parser.add_argument("--limit", type=int, default=4, help="Maximum hits (default: 4)")
    search_parser.add_argument(
        "--source",
        action="append",
        default=None,
        help="Restrict to a source id; repeat for several",
    )

    # -- stats --
    subparsers.add_parser("stats", help="Show corpus statistics")

    # -- purge --
    purge_parser = subparsers.add_parser("purge", help="Delete every record of a source")
    purge_parser.add_argument("--source", required=True, help="Source id to purge")
    purge_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Exits with the handler's status code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    if args.command == "chapters":
        sys.exit(_handle_chapters(app_settings))

    try:
        exit_code = asyncio.run(_run(args, app_settings))
    except TutorRAGError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
