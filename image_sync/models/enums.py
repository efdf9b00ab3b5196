from enum import Enum


class MatchKind(str, Enum):
    EXACT = "exact"
    SUBSTRING = "substring"
    FUZZY = "fuzzy"


class SubstringPolicy(str, Enum):
    FIRST = "first"  # First satisfying candidate in input order
    CLOSEST = "closest"  # Smallest length difference to the target


class FailureKind(str, Enum):
    NOT_FOUND = "not_found"
    FETCH = "fetch"
    TRANSCODE = "transcode"
    PERSISTENCE = "persistence"


class EntryStatus(str, Enum):
    UPDATED = "updated"
    MATCHED = "matched"  # Dry runs stop after matching
    SKIPPED = "skipped"
    FAILED = "failed"


class ExistingAssetPolicy(str, Enum):
    OVERWRITE = "overwrite"
    SKIP = "skip"


class CandidateSourceKind(str, Enum):
    LEGACY_DB = "legacy_db"
    DIRECTORY = "directory"


class ImageCategory(str, Enum):
    OPTIMIZED = "optimized"
    CUSTOM = "custom"
    MEDIA = "media"
    EXTERNAL = "external"
    PLACEHOLDER = "placeholder"
    MISSING = "missing"
    OTHER = "other"
