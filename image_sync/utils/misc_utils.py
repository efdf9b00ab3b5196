# image_sync/utils/misc_utils.py
import re
import hashlib

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_UNSAFE_ID_RE = re.compile(r"[^\w-]+")


def slugify(name: str, max_length: int = 80) -> str:
    """Lowercase, hyphen-separated slug of a display name ("PAW Patrol!" -> "paw-patrol")."""
    slug = _NON_ALNUM_RE.sub("-", (name or "").lower()).strip("-")
    if len(slug) > max_length:
        # Keep long names unique without unbounded filenames
        digest = hashlib.sha1(slug.encode()).hexdigest()[:8]
        slug = slug[: max_length - 9].rstrip("-") + "-" + digest
    return slug


def asset_filename(show_id: str, name: str = "", include_slug: bool = True) -> str:
    """Deterministic output filename for a show image.

    The same identifier and name always map to the same file, so re-runs
    overwrite (or skip) rather than accumulate copies.
    """
    safe_id = _UNSAFE_ID_RE.sub("_", str(show_id)).strip("_") or "unknown"
    slug = slugify(name) if include_slug else ""
    if slug:
        return f"show-{safe_id}-{slug}.jpg"
    return f"show-{safe_id}.jpg"


def join_web_path(prefix: str, filename: str) -> str:
    return prefix.rstrip("/") + "/" + filename
