"""Command line entry point: crawl a directory into Qdrant, preview conversions, or search.

Usage:
    file-crawler -d data                 # Convert, chunk, embed and index ./data
    file-crawler -d data --since 1700000000
    file-crawler -d data --embed         # Print converted markdown only (alias: --preview)
    file-crawler --search "query text"   # Hybrid search + generated answer
    file-crawler -d data --reindex       # Drop the collection and rebuild it
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from file_crawler.config import REQUIRED_FOR_INGEST, REQUIRED_FOR_SEARCH, Settings, get_settings
from file_crawler.core.exceptions import ConfigError, ConversionError, FileCrawlerError
from file_crawler.core.logging import get_logger, setup_logging
from file_crawler.core.models import FileState
from file_crawler.services.converter import DocumentConverter, MarkItDownConverter
from file_crawler.services.pipeline import IngestionReport, discover

logger = get_logger(__name__)
console = Console()

_STATE_STYLES = {
    FileState.INDEXED: "green",
    FileState.UNCHANGED: "dim",
    FileState.FAILED: "red",
    FileState.CANCELLED: "yellow",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="file-crawler",
        description="Index local documents into Qdrant and search them with hybrid retrieval.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-d",
        "--directory",
        default="data",
        help="Directory to crawl (default: data)",
    )
    parser.add_argument(
        "-s",
        "--since",
        type=float,
        default=None,
        metavar="UNIX_TS",
        help="Only process files modified at or after this unix timestamp",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--embed",
        "--preview",
        dest="index",
        action="store_false",
        help="Convert files to markdown and print the content without indexing",
    )
    mode.add_argument("--search", metavar="QUERY", help="Search the index and answer QUERY")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Re-embed files even when their content is unchanged",
    )
    parser.add_argument(
        "--reindex",
        action="store_true",
        help="Drop and recreate the collection before indexing",
    )
    return parser


def _since(value: float | None) -> datetime | None:
    return None if value is None else datetime.fromtimestamp(value, tz=timezone.utc)


async def _preview(args: argparse.Namespace, settings: Settings, converter: DocumentConverter) -> int:
    documents = discover(args.directory, settings.supported_extensions, _since(args.since))
    if not documents:
        console.print("[yellow]No supported files found.[/yellow]")
        return 0

    for document in documents:
        console.rule(f"[bold]{document.path}")
        try:
            markdown = await converter.convert(document.path)
        except ConversionError as exc:
            console.print(f"[red]Conversion failed:[/red] {exc.message}")
            continue
        console.print(Markdown(markdown))
    return 0


def _print_report(report: IngestionReport) -> None:
    table = Table(title="Ingestion", box=box.SIMPLE_HEAVY)
    table.add_column("File")
    table.add_column("State")
    table.add_column("Chunks", justify="right")
    table.add_column("Stale removed", justify="right")
    table.add_column("Error", overflow="fold")
    for outcome in report.outcomes:
        style = _STATE_STYLES.get(outcome.state, "")
        table.add_row(
            outcome.path,
            f"[{style}]{outcome.state.value}[/{style}]" if style else outcome.state.value,
            str(outcome.chunk_count),
            str(outcome.stale_deleted),
            outcome.error or "",
        )
    console.print(table)
    console.print(
        f"indexed={report.indexed} unchanged={report.unchanged} "
        f"failed={report.failed} cancelled={report.cancelled} chunks={report.total_chunks}"
    )


def _install_cancel_handlers(cancel_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Signal handlers are unavailable on some platforms (e.g. Windows).
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, _request_cancel, cancel_event)


def _request_cancel(cancel_event: asyncio.Event) -> None:
    if not cancel_event.is_set():
        console.print("[yellow]Cancelling: finishing files in flight...[/yellow]")
        cancel_event.set()


async def _ingest(args: argparse.Namespace, settings: Settings, converter: DocumentConverter) -> int:
    from file_crawler.services.ingestion_service import IngestionService
    from file_crawler.services.qdrant_service import QdrantService

    settings.require(*REQUIRED_FOR_INGEST)
    qdrant = QdrantService(settings)
    try:
        if args.reindex:
            await qdrant.recreate_schema()
        else:
            await qdrant.ensure_schema()

        service = IngestionService(settings, qdrant, converter=converter)
        cancel_event = asyncio.Event()
        _install_cancel_handlers(cancel_event)
        with console.status("Indexing documents..."):
            report = await service.ingest_directory(
                args.directory,
                since=_since(args.since),
                force=args.force,
                cancel_event=cancel_event,
            )
        _print_report(report)
        return 0
    finally:
        await qdrant.aclose()


async def _search(args: argparse.Namespace, settings: Settings) -> int:
    from file_crawler.services.qdrant_service import QdrantService
    from file_crawler.services.search_service import SearchService

    settings.require(*REQUIRED_FOR_SEARCH)
    qdrant = QdrantService(settings)
    try:
        await qdrant.ensure_schema()
        service = SearchService(settings, qdrant)
        with console.status("Searching..."):
            result = await service.search(args.search)
    finally:
        await qdrant.aclose()

    if not result.contexts:
        console.print("[yellow]No results found.[/yellow]")

    table = Table(title=f"Sources for: {args.search}", box=box.SIMPLE_HEAVY)
    table.add_column("#", justify="right")
    table.add_column("File")
    table.add_column("Chunk", justify="right")
    table.add_column("RRF", justify="right")
    table.add_column("Rerank", justify="right")
    for i, candidate in enumerate(result.contexts, start=1):
        table.add_row(
            str(i),
            candidate.source_path,
            str(candidate.sequence_index),
            f"{candidate.rrf_score:.4f}",
            "-" if candidate.rerank_score is None else f"{candidate.rerank_score:.4f}",
        )
    if result.contexts:
        console.print(table)
    if not result.reranked:
        console.print("[yellow]Reranker unavailable; showing fused order.[/yellow]")

    if result.answer is not None:
        console.print(Panel(Markdown(result.answer), title="Answer", border_style="green"))
    elif result.generation_error:
        console.print(f"[red]Answer generation failed:[/red] {result.generation_error}")
    return 0


async def _dispatch(args: argparse.Namespace, settings: Settings, converter: DocumentConverter) -> int:
    if args.search is not None:
        return await _search(args, settings)
    if not Path(args.directory).is_dir():
        raise ConfigError(f"Directory not found: {args.directory}")
    if not args.index:
        return await _preview(args, settings, converter)
    return await _ingest(args, settings, converter)


def main(
    argv: Sequence[str] | None = None,
    *,
    settings: Settings | None = None,
    converter: DocumentConverter | None = None,
) -> int:
    """Run the CLI and return the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging()
    settings = settings or get_settings()

    try:
        return asyncio.run(_dispatch(args, settings, converter or MarkItDownConverter()))
    except FileCrawlerError as exc:
        logger.error("%s: %s", exc.__class__.__name__, exc.message)
        console.print(f"[red]Error:[/red] {exc.message}")
        return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
