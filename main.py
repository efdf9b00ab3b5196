import sys
import asyncio
import argparse
from pathlib import Path
from typing import List, Optional

from loguru import logger
from rich import print
from rich.panel import Panel
from rich.table import Table

from image_sync.config.settings import AppSettings, settings
from image_sync.logging.setup import setup_logging
from image_sync.fetching.image_fetcher import FetchError, ImageFetcher
from image_sync.imaging.transcoder import TranscodeError, Transcoder
from image_sync.matching.matcher import Matcher
from image_sync.models.enums import ExistingAssetPolicy, SubstringPolicy
from image_sync.models.report import BatchReport
from image_sync.models.show import CandidateShow
from image_sync.pipeline.audit import OrientationReport, audit_orientation
from image_sync.pipeline.orchestrator import BatchOrchestrator, entries_needing_images
from image_sync.sources.directory import DirectoryCandidateSource
from image_sync.storage.supabase_client import (
    StoreError,
    SupabaseCatalogStore,
    initialize_supabase,
)
from image_sync.utils.cache import TTLCache


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="image-sync",
        description="Match catalog shows to legacy artwork and store optimized images.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile = subparsers.add_parser(
        "reconcile", help="Match shows, transcode their images and update the catalog."
    )
    reconcile.add_argument(
        "--source",
        choices=["legacy", "directory"],
        default="legacy",
        help="Where candidate images come from.",
    )
    reconcile.add_argument(
        "--dir",
        dest="dirs",
        action="append",
        type=Path,
        help="Candidate directory (repeatable); defaults to CANDIDATE_DIRS.",
    )
    reconcile.add_argument("--dry-run", action="store_true", help="Only report matches.")
    reconcile.add_argument(
        "--skip-existing",
        action="store_true",
        help="Reuse already written output files instead of overwriting them.",
    )
    reconcile.add_argument(
        "--fallback",
        action="store_true",
        help="Render a placeholder card for shows without a match.",
    )
    reconcile.add_argument(
        "--all", action="store_true", help="Include shows that already have an asset."
    )
    reconcile.add_argument("--limit", type=int, help="Process at most N shows.")
    reconcile.add_argument("--batch-size", type=int, help="Override BATCH_SIZE.")

    subparsers.add_parser("status", help="Count catalog images per category.")

    audit = subparsers.add_parser(
        "audit", help="Report catalog images that are landscape or unreadable."
    )
    audit.add_argument("--limit", type=int, help="Inspect at most N shows.")

    transcode = subparsers.add_parser(
        "transcode", help="Transcode one image into the output directory."
    )
    transcode.add_argument("source", help="Image URL or local path.")
    transcode.add_argument("--id", dest="show_id", required=True)
    transcode.add_argument("--name", default="")
    return parser


def build_fetcher(app_settings: AppSettings) -> ImageFetcher:
    return ImageFetcher(
        public_dir=app_settings.public_dir,
        candidate_dirs=app_settings.candidate_dirs,
        timeout_seconds=app_settings.http_timeout_seconds,
        max_attempts=app_settings.http_max_attempts,
        cache=TTLCache(app_settings.image_cache_ttl_seconds),
    )


def build_transcoder(
    app_settings: AppSettings, skip_existing: bool = False
) -> Transcoder:
    return Transcoder(
        output_dir=app_settings.output_dir,
        public_url_prefix=app_settings.public_url_prefix,
        width=app_settings.image_width,
        height=app_settings.image_height,
        quality=app_settings.jpeg_quality,
        progressive=app_settings.progressive_jpeg,
        include_slug=app_settings.include_slug_in_filename,
        existing_policy=(
            ExistingAssetPolicy.SKIP if skip_existing else ExistingAssetPolicy.OVERWRITE
        ),
        placeholder_dir=app_settings.placeholder_dir,
        placeholder_url_prefix=app_settings.placeholder_url_prefix,
    )


def render_report(report: BatchReport, dry_run: bool = False) -> None:
    table = Table(title="Matches" if dry_run else "Reconciliation")
    table.add_column("Show")
    table.add_column("Status")
    table.add_column("Match")
    table.add_column("Detail", overflow="fold")
    for outcome in report.outcomes:
        match = outcome.match
        matched_to = "-"
        if match and match.candidate and match.kind:
            matched_to = f"{match.candidate.name} ({match.kind.value})"
        table.add_row(
            outcome.name,
            outcome.status.value,
            matched_to,
            outcome.error or (outcome.asset.web_path if outcome.asset else ""),
        )
    print(table)

    failures = ", ".join(
        f"{kind.value}: {count}" for kind, count in report.failures_by_kind.items()
    )
    summary = (
        f"Processed: {report.processed}\n"
        f"Matched: {report.matched}  "
        + "  ".join(f"{k.value}: {v}" for k, v in report.matches_by_kind.items())
        + f"\nUpdated: {report.updated}  Skipped: {report.skipped}  Failed: {report.failed}"
        + f"\nFailures by kind: {failures}"
    )
    if report.aborted:
        summary += f"\n[red]Aborted: {report.abort_reason}[/red]"
    print(Panel(summary, title="Summary", border_style="red" if report.aborted else "green"))


def render_orientation(report: OrientationReport) -> None:
    table = Table(title=f"Landscape images ({len(report.landscape)})")
    table.add_column("ID")
    table.add_column("Show")
    table.add_column("Size")
    for record in report.landscape:
        table.add_row(record.show_id, record.name, f"{record.width}x{record.height}")
    print(table)
    if report.failed:
        failed = Table(title=f"Failed checks ({len(report.failed)})")
        failed.add_column("ID")
        failed.add_column("Show")
        failed.add_column("Error", overflow="fold")
        for record in report.failed:
            failed.add_row(record.show_id, record.name, record.error or "")
        print(failed)
    print(f"Portrait images: {len(report.portrait)}")


async def load_candidates(
    args: argparse.Namespace, app_settings: AppSettings
) -> List[CandidateShow]:
    if args.source == "directory":
        dirs = args.dirs or app_settings.candidate_dirs
        return DirectoryCandidateSource(dirs).load()

    legacy_client = await initialize_supabase(
        app_settings.legacy_url, app_settings.legacy_key
    )
    legacy_store = SupabaseCatalogStore(legacy_client, app_settings.legacy_table)
    return await legacy_store.fetch_legacy_candidates()


async def run_reconcile(args: argparse.Namespace, app_settings: AppSettings) -> int:
    client = await initialize_supabase(app_settings.supabase_url, app_settings.supabase_key)
    store = SupabaseCatalogStore(client, app_settings.catalog_table)

    entries = await store.fetch_catalog_entries()
    if not args.all:
        entries = entries_needing_images(entries, app_settings.public_url_prefix)
    if args.limit:
        entries = entries[: args.limit]
    candidates = await load_candidates(args, app_settings)

    if not entries:
        logger.warning("No catalog shows need images. Nothing to do.")
        return 0
    if not candidates:
        logger.error("No candidates loaded; cannot match anything.")
        return 1

    matcher = Matcher(
        threshold=app_settings.match_threshold,
        substring_policy=SubstringPolicy(app_settings.substring_policy),
    )
    async with build_fetcher(app_settings) as fetcher:
        orchestrator = BatchOrchestrator(
            matcher=matcher,
            fetcher=fetcher,
            transcoder=build_transcoder(app_settings, args.skip_existing),
            store=store,
            batch_size=args.batch_size or app_settings.batch_size,
            batch_delay_seconds=app_settings.batch_delay_seconds,
            fallback_on_no_match=args.fallback,
        )
        report = await orchestrator.run(entries, candidates, dry_run=args.dry_run)

    render_report(report, dry_run=args.dry_run)
    return 1 if report.aborted else 0


async def run_status(app_settings: AppSettings) -> int:
    client = await initialize_supabase(app_settings.supabase_url, app_settings.supabase_key)
    store = SupabaseCatalogStore(client, app_settings.catalog_table)
    counts = await store.image_status()

    table = Table(title=f"Catalog images ({sum(counts.values())} shows)")
    table.add_column("Category")
    table.add_column("Shows", justify="right")
    for category, count in counts.items():
        table.add_row(category.value, str(count))
    print(table)
    return 0


async def run_audit(args: argparse.Namespace, app_settings: AppSettings) -> int:
    client = await initialize_supabase(app_settings.supabase_url, app_settings.supabase_key)
    store = SupabaseCatalogStore(client, app_settings.catalog_table)
    entries = await store.fetch_catalog_entries()
    if args.limit:
        entries = entries[: args.limit]

    async with build_fetcher(app_settings) as fetcher:
        report = await audit_orientation(entries, fetcher, app_settings.batch_size)
    render_orientation(report)
    return 0


async def run_transcode(args: argparse.Namespace, app_settings: AppSettings) -> int:
    transcoder = build_transcoder(app_settings)
    async with build_fetcher(app_settings) as fetcher:
        try:
            data = await fetcher.fetch(args.source)
            asset = await asyncio.to_thread(
                transcoder.write_asset, args.show_id, args.name, data
            )
        except (FetchError, TranscodeError) as e:
            logger.error(f"Could not transcode {args.source}: {e}")
            return 1
    print(Panel(f"{asset.path}\n{asset.web_path}", title="Image written"))
    return 0


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    args = build_parser().parse_args(argv)
    logger.info(f"Starting TV Tantrum image sync: {args.command}")

    try:
        if args.command == "reconcile":
            return await run_reconcile(args, settings)
        if args.command == "status":
            return await run_status(settings)
        if args.command == "audit":
            return await run_audit(args, settings)
        if args.command == "transcode":
            return await run_transcode(args, settings)
    except StoreError as e:
        logger.error(f"Catalog store error: {e}")
        return 1
    return 2


def run() -> None:
    setup_logging()
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Execution interrupted by user (KeyboardInterrupt).")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Unhandled exception in main execution: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
