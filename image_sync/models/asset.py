from pathlib import Path

from pydantic import BaseModel, Field


class ImageAsset(BaseModel):
    """A transcoded show image written to the output directory."""

    show_id: str
    filename: str
    path: Path
    web_path: str = Field(..., description="Value persisted to the catalog.")
    width: int
    height: int
    # True when an existing file was kept instead of re-encoding
    reused: bool = False
    fallback: bool = False
