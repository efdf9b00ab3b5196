# image_sync/sources/directory.py
import re
from pathlib import Path
from typing import Iterable, List

from loguru import logger

from image_sync.models.enums import CandidateSourceKind
from image_sync.models.show import CandidateShow

SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".avif"}

_SEPARATOR_RE = re.compile(r"[-_]+")


def name_from_filename(path: Path) -> str:
    """'paw_patrol-rescue-knights.webp' -> 'paw patrol rescue knights'."""
    return _SEPARATOR_RE.sub(" ", path.stem).strip()


class DirectoryCandidateSource:
    """Offers image files found in local directories as matching candidates."""

    def __init__(self, directories: Iterable[Path], recursive: bool = False):
        self.directories: List[Path] = [Path(d) for d in directories]
        self.recursive = recursive

    def load(self) -> List[CandidateShow]:
        candidates: List[CandidateShow] = []
        seen = set()
        for directory in self.directories:
            if not directory.is_dir():
                logger.warning(f"Candidate directory does not exist: {directory}")
                continue

            pattern = "**/*" if self.recursive else "*"
            files = sorted(
                p
                for p in directory.glob(pattern)
                if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS
            )
            logger.info(f"Found {len(files)} image files in {directory}")

            for path in files:
                resolved = path.resolve()
                if resolved in seen:
                    continue
                seen.add(resolved)
                name = name_from_filename(path)
                if not name:
                    continue
                candidates.append(
                    CandidateShow(
                        name=name,
                        image_ref=str(resolved),
                        source=CandidateSourceKind.DIRECTORY,
                    )
                )

        logger.info(f"Loaded {len(candidates)} candidates from directories.")
        return candidates
