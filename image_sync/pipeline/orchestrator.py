import asyncio
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence

from loguru import logger

from image_sync.fetching.image_fetcher import FetchError, ImageFetcher
from image_sync.imaging.transcoder import TranscodeError, Transcoder
from image_sync.matching.matcher import Matcher
from image_sync.models.asset import ImageAsset
from image_sync.models.enums import EntryStatus, FailureKind
from image_sync.models.match import MatchResult
from image_sync.models.report import BatchReport, EntryOutcome
from image_sync.models.show import CandidateShow, CatalogEntry
from image_sync.storage.supabase_client import PersistenceError, StoreUnavailableError


class ImagePathSink(Protocol):
    async def update_image_path(self, show_id: str, image_path: str) -> None: ...


class EntryAborted(Exception):
    """Wraps StoreUnavailableError together with the outcome of the entry that hit it."""

    def __init__(self, outcome: EntryOutcome, cause: StoreUnavailableError):
        super().__init__(str(cause))
        self.outcome = outcome
        self.cause = cause


class BatchOrchestrator:
    """Runs match -> fetch -> transcode -> persist for each catalog entry.

    Entries are processed in chunks of ``batch_size`` concurrently, with
    ``batch_delay_seconds`` between chunks. Failures are per entry and never
    stop the run, except for an unreachable store, which abandons the
    remaining chunks and returns what was gathered so far.
    """

    def __init__(
        self,
        matcher: Matcher,
        fetcher: ImageFetcher,
        transcoder: Transcoder,
        store: ImagePathSink,
        batch_size: int = 5,
        batch_delay_seconds: float = 2.0,
        fallback_on_no_match: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.matcher = matcher
        self.fetcher = fetcher
        self.transcoder = transcoder
        self.store = store
        self.batch_size = max(1, batch_size)
        self.batch_delay_seconds = batch_delay_seconds
        self.fallback_on_no_match = fallback_on_no_match
        self._sleep = sleep

    async def run(
        self,
        entries: Sequence[CatalogEntry],
        candidates: Sequence[CandidateShow],
        dry_run: bool = False,
    ) -> BatchReport:
        report = BatchReport()
        prepared = self.matcher.prepare(candidates)
        total_batches = (len(entries) + self.batch_size - 1) // self.batch_size
        logger.info(
            f"Reconciling {len(entries)} catalog entries against {len(candidates)} candidates "
            f"in {total_batches} batch(es){' (dry run)' if dry_run else ''}."
        )

        for batch_index in range(total_batches):
            start = batch_index * self.batch_size
            chunk = entries[start : start + self.batch_size]
            logger.info(
                f"Processing batch {batch_index + 1}/{total_batches} ({len(chunk)} shows)"
            )

            results = await asyncio.gather(
                *(self.process_entry(e, candidates, prepared, dry_run) for e in chunk),
                return_exceptions=True,
            )

            abort: Optional[EntryAborted] = None
            for entry, result in zip(chunk, results):
                if isinstance(result, EntryAborted):
                    report.add(result.outcome)
                    abort = abort or result
                elif isinstance(result, BaseException):
                    # process_entry handles its own errors; this is a bug guard
                    logger.opt(exception=result).error(
                        f"Unhandled error for show {entry.show_id} ({entry.name})"
                    )
                    report.add(
                        EntryOutcome(
                            show_id=entry.show_id,
                            name=entry.name,
                            status=EntryStatus.FAILED,
                            error=str(result),
                        )
                    )
                else:
                    report.add(result)

            if abort:
                report.aborted = True
                report.abort_reason = str(abort.cause)
                logger.critical(
                    f"Catalog store unavailable, abandoning remaining "
                    f"{len(entries) - start - len(chunk)} entries: {abort.cause}"
                )
                break

            if batch_index + 1 < total_batches and self.batch_delay_seconds > 0:
                await self._sleep(self.batch_delay_seconds)

        self._log_summary(report)
        return report

    async def process_entry(
        self,
        entry: CatalogEntry,
        candidates: Sequence[CandidateShow],
        prepared=None,
        dry_run: bool = False,
    ) -> EntryOutcome:
        """Processes one entry; recoverable failures are returned, not raised."""
        match = self.matcher.match(entry.name, candidates, prepared)

        if dry_run:
            return self._outcome(
                entry,
                EntryStatus.MATCHED if match.matched else EntryStatus.FAILED,
                match,
                failure=None if match.matched else FailureKind.NOT_FOUND,
            )

        if not match.matched and not self.fallback_on_no_match:
            logger.info(f"✗ No match found for: {entry.name} ({entry.show_id})")
            return self._outcome(
                entry, EntryStatus.FAILED, match, failure=FailureKind.NOT_FOUND
            )

        if match.matched:
            current_path = self.transcoder.target_path(entry.show_id, entry.name)
            current_web_path = self.transcoder.web_path_for(entry.show_id, entry.name)
        else:
            current_path = self.transcoder.placeholder_path(entry.show_id, entry.name)
            current_web_path = self.transcoder.placeholder_web_path_for(
                entry.show_id, entry.name
            )
        # Placeholders only satisfy unmatched entries
        if entry.image_url == current_web_path and current_path.is_file():
            logger.debug(f"{entry.name} already points at {current_web_path}")
            return self._outcome(entry, EntryStatus.SKIPPED, match)

        stage = FailureKind.FETCH
        try:
            if match.candidate is None:
                stage = FailureKind.TRANSCODE
                asset = await asyncio.to_thread(
                    self.transcoder.write_fallback, entry.show_id, entry.name
                )
            else:
                asset = self.transcoder.existing_asset(entry.show_id, entry.name)
                if asset is None:
                    data = await self.fetcher.fetch(match.candidate.image_ref)
                    stage = FailureKind.TRANSCODE
                    asset = await asyncio.to_thread(
                        self.transcoder.write_asset, entry.show_id, entry.name, data
                    )

            if not asset.path.is_file():
                raise TranscodeError(f"Asset {asset.path} missing after write")

            stage = FailureKind.PERSISTENCE
            await self.store.update_image_path(entry.show_id, asset.web_path)
        except StoreUnavailableError as e:
            outcome = self._outcome(
                entry, EntryStatus.FAILED, match, failure=stage, error=str(e)
            )
            raise EntryAborted(outcome, e) from e
        except (FetchError, TranscodeError, PersistenceError) as e:
            logger.error(
                f"✗ {stage.value} failure for {entry.name} ({entry.show_id}): {e}"
            )
            return self._outcome(
                entry, EntryStatus.FAILED, match, failure=stage, error=str(e)
            )
        except Exception as e:
            logger.exception(
                f"Unexpected {stage.value} error for {entry.name} ({entry.show_id}): {e}"
            )
            return self._outcome(
                entry, EntryStatus.FAILED, match, failure=stage, error=str(e)
            )

        self._log_update(entry, match, asset)
        return self._outcome(entry, EntryStatus.UPDATED, match, asset=asset)

    def _outcome(
        self,
        entry: CatalogEntry,
        status: EntryStatus,
        match: MatchResult,
        asset: Optional[ImageAsset] = None,
        failure: Optional[FailureKind] = None,
        error: Optional[str] = None,
    ) -> EntryOutcome:
        return EntryOutcome(
            show_id=entry.show_id,
            name=entry.name,
            status=status,
            match=match,
            asset=asset,
            failure=failure,
            error=error,
        )

    def _log_update(
        self, entry: CatalogEntry, match: MatchResult, asset: ImageAsset
    ) -> None:
        if asset.fallback:
            logger.success(f"✓ Fallback image: {entry.name} -> {asset.web_path}")
        else:
            reused = " (existing file)" if asset.reused else ""
            logger.success(f"✓ {match.description} -> {asset.web_path}{reused}")

    def _log_summary(self, report: BatchReport) -> None:
        kinds = ", ".join(
            f"{kind.value}={count}" for kind, count in report.matches_by_kind.items()
        )
        failures = ", ".join(
            f"{kind.value}={count}"
            for kind, count in report.failures_by_kind.items()
            if count
        )
        logger.info(
            f"Run finished: processed={report.processed} matched={report.matched} ({kinds}) "
            f"updated={report.updated} skipped={report.skipped} failed={report.failed}"
            + (f" [{failures}]" if failures else "")
        )
        if report.aborted:
            logger.error(f"Run aborted early: {report.abort_reason}")


def entries_needing_images(
    entries: Sequence[CatalogEntry], public_url_prefix: str
) -> List[CatalogEntry]:
    """Catalog entries that do not yet point at a pipeline-written asset."""
    return [e for e in entries if e.needs_image(public_url_prefix)]
