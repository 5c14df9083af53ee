"""Command line front end for quotesync.

Usage:
    quotesync list [--category Motivation]
    quotesync random [--category Motivation]
    quotesync add "Stay hungry" Motivation
    quotesync edit srv-42 "Stay hungry, stay foolish" Motivation
    quotesync import quotes.json
    quotesync export [quotes.json]
    quotesync categories
    quotesync select Motivation
    quotesync sync
    quotesync watch [--interval 30]

Reads settings from environment or .env file.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from src.quotesync.config import get_settings
from src.quotesync.core.exceptions import ImportFormatError, QuoteValidationError
from src.quotesync.core.logging import configure_structlog
from src.quotesync.quotes.schemas import Quote, SyncResult, SyncStatus
from src.quotesync.service import QuoteManager
from src.quotesync.sync.scheduler import PeriodicSync

logger = structlog.get_logger(__name__)


def format_quote(quote: Quote) -> str:
    marker = " *" if quote.pending else ""
    return f'[{quote.id}]{marker} "{quote.text}" - {quote.category}'


def format_sync(result: SyncResult) -> str:
    summary = result.summary()
    line = (
        f"Sync {result.status.value}: pushed={summary['pushed']} "
        f"conflicts={summary['conflicts']} total={summary['total']}"
    )
    for conflict in result.conflict_details:
        line += f'\n  conflict {conflict.id}: kept "{conflict.remote.text}", discarded "{conflict.local.text}"'
    for error in result.errors:
        line += f"\n  error: {error}"
    return line


async def _watch(manager: QuoteManager, interval: float) -> None:
    manager.engine.subscribe(lambda result: print(format_sync(result)))
    scheduler = PeriodicSync(manager.engine, interval)
    logger.info("cli.watch_started", interval=interval)
    await scheduler.start(run_immediately=True)
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()


async def run(args: argparse.Namespace) -> int:
    manager = QuoteManager.from_settings()
    await manager.start()
    try:
        if args.command == "list":
            for quote in manager.quotes(args.category):
                print(format_quote(quote))

        elif args.command == "random":
            quote = await manager.show_random(args.category)
            print(format_quote(quote) if quote else "No quotes in this category.")

        elif args.command == "add":
            try:
                quote = await manager.add_quote(args.text, args.category)
            except QuoteValidationError as exc:
                print(str(exc), file=sys.stderr)
                return 1
            print(f"Quote added successfully: {format_quote(quote)}")

        elif args.command == "edit":
            try:
                quote = await manager.edit_quote(args.id, args.text, args.category)
            except KeyError:
                print(f"No quote with id {args.id}", file=sys.stderr)
                return 1
            except QuoteValidationError as exc:
                print(str(exc), file=sys.stderr)
                return 1
            print(f"Quote updated: {format_quote(quote)}")

        elif args.command == "import":
            try:
                result = await manager.import_quotes(Path(args.file).read_bytes())
            except (OSError, ImportFormatError) as exc:
                print(f"Import failed: {exc}", file=sys.stderr)
                return 1
            print(
                f"Imported {result.imported} quotes "
                f"({result.rejected} invalid, {result.skipped} already present)."
            )

        elif args.command == "export":
            payload = manager.export_quotes()
            if args.file:
                Path(args.file).write_text(payload + "\n", encoding="utf-8")
                print(f"Exported {len(manager.state)} quotes to {args.file}")
            else:
                print(payload)

        elif args.command == "categories":
            for name in manager.categories():
                marker = " (selected)" if name == manager.state.selected_category else ""
                print(f"{name}{marker}")

        elif args.command == "select":
            try:
                await manager.select_category(args.category)
            except ValueError as exc:
                print(str(exc), file=sys.stderr)
                return 1
            print(f"Selected category: {args.category}")

        elif args.command == "sync":
            result = await manager.sync_now()
            print(format_sync(result))
            return 1 if result.status == SyncStatus.FAILED else 0

        elif args.command == "watch":
            await _watch(manager, args.interval or get_settings().SYNC_INTERVAL_SECONDS)

        return 0
    finally:
        await manager.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quotesync", description="Manage and sync quotes")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List quotes")
    p.add_argument("--category", default=None)

    p = sub.add_parser("random", help="Show a random quote")
    p.add_argument("--category", default=None)

    p = sub.add_parser("add", help="Add a quote")
    p.add_argument("text")
    p.add_argument("category")

    p = sub.add_parser("edit", help="Edit a quote")
    p.add_argument("id")
    p.add_argument("text")
    p.add_argument("category")

    p = sub.add_parser("import", help="Import quotes from a JSON file")
    p.add_argument("file")

    p = sub.add_parser("export", help="Export quotes as JSON")
    p.add_argument("file", nargs="?", default=None)

    sub.add_parser("categories", help="List categories")

    p = sub.add_parser("select", help="Select the category filter")
    p.add_argument("category")

    sub.add_parser("sync", help="Run one sync cycle")

    p = sub.add_parser("watch", help="Sync periodically until interrupted")
    p.add_argument("--interval", type=float, default=None, help="Seconds between cycles")

    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_structlog()
    try:
        code = asyncio.run(run(args))
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
