import asyncio
from typing import List, Optional, Sequence

from loguru import logger
from pydantic import BaseModel

from image_sync.fetching.image_fetcher import FetchError, ImageFetcher
from image_sync.imaging.transcoder import TranscodeError, inspect_orientation
from image_sync.models.show import CatalogEntry


class OrientationRecord(BaseModel):
    show_id: str
    name: str
    image_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_landscape(self) -> bool:
        return bool(self.width and self.height and self.width > self.height)


class OrientationReport(BaseModel):
    landscape: List[OrientationRecord] = []
    portrait: List[OrientationRecord] = []
    failed: List[OrientationRecord] = []


async def _inspect(entry: CatalogEntry, fetcher: ImageFetcher) -> OrientationRecord:
    record = OrientationRecord(
        show_id=entry.show_id, name=entry.name, image_url=entry.image_url
    )
    if not entry.image_url:
        record.error = "no image"
        return record
    try:
        data = await fetcher.fetch(entry.image_url)
        width, height = await asyncio.to_thread(inspect_orientation, data)
    except (FetchError, TranscodeError) as e:
        record.error = str(e)
        return record
    record.width, record.height = width, height
    return record


async def audit_orientation(
    entries: Sequence[CatalogEntry],
    fetcher: ImageFetcher,
    concurrency: int = 5,
) -> OrientationReport:
    """Sorts catalog images into landscape, portrait and unreadable.

    Landscape images are the ones that lose the most to the portrait
    cover crop and are worth replacing by hand.
    """
    report = OrientationReport()
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def bounded(entry: CatalogEntry) -> OrientationRecord:
        async with semaphore:
            return await _inspect(entry, fetcher)

    records = await asyncio.gather(*(bounded(e) for e in entries))
    for record in records:
        if record.error:
            report.failed.append(record)
        elif record.is_landscape:
            report.landscape.append(record)
        else:
            report.portrait.append(record)

    logger.info(
        f"Orientation audit: {len(report.landscape)} landscape, "
        f"{len(report.portrait)} portrait, {len(report.failed)} failed."
    )
    return report
