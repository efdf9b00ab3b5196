# image_sync/models/show.py
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import CandidateSourceKind, ImageCategory

PLACEHOLDER_PREFIXES = ("/images/placeholders/", "/placeholder", "/api/placeholder")


def is_remote_ref(image_ref: Optional[str]) -> bool:
    return bool(image_ref) and image_ref.lower().startswith(("http://", "https://"))


def categorize_image_ref(image_ref: Optional[str]) -> ImageCategory:
    """Buckets a stored image reference the way the catalog status report does."""
    if not image_ref or not image_ref.strip():
        return ImageCategory.MISSING
    if is_remote_ref(image_ref):
        return ImageCategory.EXTERNAL
    if image_ref.startswith(PLACEHOLDER_PREFIXES):
        return ImageCategory.PLACEHOLDER
    if image_ref.startswith(("/images/optimized/", "/images/tv-shows/")):
        return ImageCategory.OPTIMIZED
    if image_ref.startswith("/custom-images/"):
        return ImageCategory.CUSTOM
    if image_ref.startswith("/media/tv-shows/"):
        return ImageCategory.MEDIA
    return ImageCategory.OTHER


class CatalogEntry(BaseModel):
    """A show in the admin catalog whose image the pipeline may replace."""

    model_config = ConfigDict(populate_by_name=True)

    show_id: str = Field(..., alias="id", description="Stable catalog identifier.")
    name: str = Field(..., description="Display name as entered by admins.")
    image_url: Optional[str] = Field(
        None, description="Current image path or absolute URL."
    )

    @field_validator("show_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        # Postgres serial ids arrive as ints
        return str(value)

    @field_validator("image_url", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Optional[str]:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def image_category(self) -> ImageCategory:
        return categorize_image_ref(self.image_url)

    def needs_image(self, public_url_prefix: str) -> bool:
        """True unless the entry already points at pipeline-written artwork.

        Placeholder cards always count as still needing an image.
        """
        if not self.image_url or self.image_category == ImageCategory.PLACEHOLDER:
            return True
        prefix = public_url_prefix.rstrip("/") + "/"
        return not self.image_url.startswith(prefix)


class CandidateShow(BaseModel):
    """Read-only snapshot of a show from a legacy source, used for matching."""

    model_config = ConfigDict(frozen=True)

    name: str
    image_ref: str = Field(..., min_length=1)
    source: CandidateSourceKind = CandidateSourceKind.LEGACY_DB

    @property
    def is_remote(self) -> bool:
        return is_remote_ref(self.image_ref)
