import logging
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Catalog (current) Supabase project
    supabase_url: Optional[str] = Field(
        None, description="URL of the Supabase project holding the catalog."
    )
    supabase_key: Optional[str] = Field(
        None, description="Service key for the catalog Supabase project."
    )
    catalog_table: str = Field(
        "catalog_tv_shows", description="Table holding catalog shows."
    )

    # Legacy Supabase project used as a matching source
    legacy_supabase_url: Optional[str] = Field(
        None, description="URL of the legacy project. Defaults to the catalog URL."
    )
    legacy_supabase_key: Optional[str] = Field(
        None, description="Key of the legacy project. Defaults to the catalog key."
    )
    legacy_table: str = Field("tv_shows", description="Legacy shows table.")

    # Filesystem layout
    public_dir: Path = Field(
        Path("public"), description="Directory web paths are resolved against."
    )
    output_dir: Path = Field(
        Path("public/images/tv-shows"),
        description="Directory transcoded show images are written to.",
    )
    public_url_prefix: str = Field(
        "/images/tv-shows",
        description="Web path prefix stored in the catalog for written images.",
    )
    placeholder_dir: Path = Field(
        Path("public/images/placeholders"),
        description="Directory placeholder cards for unmatched shows are written to.",
    )
    placeholder_url_prefix: str = Field(
        "/images/placeholders",
        description="Web path prefix stored for placeholder cards.",
    )
    candidate_dirs: List[Path] = Field(
        default_factory=lambda: [
            Path("public/images/shows"),
            Path("public/custom-images"),
            Path("public/uploads"),
            Path("client/public"),
        ],
        description="Directories searched for local source images.",
    )

    # Transcode settings
    image_width: int = Field(400, gt=0)
    image_height: int = Field(600, gt=0)
    jpeg_quality: int = Field(85, ge=1, le=95)
    progressive_jpeg: bool = True
    include_slug_in_filename: bool = Field(
        True, description="Append a slug of the show name to output filenames."
    )

    # Network settings
    http_timeout_seconds: float = Field(15.0, gt=0)
    http_max_attempts: int = Field(
        4, ge=1, description="Total attempts per image download (1 + retries)."
    )
    image_cache_ttl_seconds: float = Field(
        600.0, ge=0, description="How long downloaded images stay cached."
    )

    # Batch settings
    batch_size: int = Field(5, ge=1)
    batch_delay_seconds: float = Field(
        2.0, ge=0, description="Pause between batches to spare image hosts."
    )

    # Matching settings
    match_threshold: float = Field(
        0.8, ge=0, le=1, description="Fuzzy score a candidate has to exceed."
    )
    substring_policy: str = Field(
        "first", description="'first' (input order) or 'closest' substring pick."
    )

    # Logging Configuration
    log_level: str = Field(
        "INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."
    )
    log_file: Optional[Path] = Field(
        None, description="Optional log file; rotated at 10 MB."
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def legacy_url(self) -> Optional[str]:
        return self.legacy_supabase_url or self.supabase_url

    @property
    def legacy_key(self) -> Optional[str]:
        return self.legacy_supabase_key or self.supabase_key


def load_settings() -> AppSettings:
    """Loads and validates application settings."""
    try:
        settings = AppSettings()
        log_level_upper = settings.log_level.upper()
        # Validate log_level even if loaded from .env
        if log_level_upper not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            logging.warning(
                f"Invalid LOG_LEVEL '{settings.log_level}' found in .env or default. Using INFO."
            )
            settings.log_level = "INFO"
        else:
            settings.log_level = log_level_upper

        if settings.substring_policy.lower() not in ["first", "closest"]:
            logging.warning(
                f"Invalid SUBSTRING_POLICY '{settings.substring_policy}'. Using 'first'."
            )
            settings.substring_policy = "first"
        else:
            settings.substring_policy = settings.substring_policy.lower()
        return settings
    except Exception as e:
        logging.exception(f"Error loading application settings: {e}")
        raise SystemExit("Failed to load application settings. Exiting.")


settings: AppSettings = load_settings()
