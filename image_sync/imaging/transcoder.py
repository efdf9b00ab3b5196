import io
import textwrap
from pathlib import Path
from typing import NamedTuple, Optional

from loguru import logger
from PIL import Image, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from image_sync.models.asset import ImageAsset
from image_sync.models.enums import ExistingAssetPolicy
from image_sync.utils.misc_utils import asset_filename, join_web_path

# Larger sources are rejected before decoding (decompression bombs)
MAX_SOURCE_PIXELS = 80_000_000

FALLBACK_BACKGROUND = (76, 89, 182)
FALLBACK_TEXT = (255, 255, 255)


class TranscodeError(Exception):
    """Raised when a source image cannot be decoded or re-encoded."""

    pass


class Orientation(NamedTuple):
    width: int
    height: int

    @property
    def is_landscape(self) -> bool:
        return self.width > self.height


def _open_image(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        width, height = image.size
        if width * height > MAX_SOURCE_PIXELS:
            raise TranscodeError(
                f"Image too large: {width}x{height} exceeds {MAX_SOURCE_PIXELS} pixels"
            )
        image.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise TranscodeError(f"Could not decode image: {e}") from e
    return image


def _to_rgb(image: Image.Image) -> Image.Image:
    """Converts any mode to RGB, flattening transparency onto white."""
    if image.mode == "RGB":
        return image
    if image.mode in ("RGBA", "LA") or (
        image.mode == "P" and "transparency" in image.info
    ):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


def inspect_orientation(data: bytes) -> Orientation:
    """Returns the display dimensions of an encoded image (EXIF rotation applied)."""
    image = _open_image(data)
    image = ImageOps.exif_transpose(image) or image
    return Orientation(*image.size)


def transcode_cover(
    data: bytes,
    width: int = 400,
    height: int = 600,
    quality: int = 85,
    progressive: bool = True,
) -> bytes:
    """Scales and center-crops an image to exactly ``width`` x ``height`` JPEG.

    The source aspect ratio is preserved: overflow is cropped, never
    stretched or letterboxed.
    """
    image = _open_image(data)
    try:
        image = ImageOps.exif_transpose(image) or image
        image = _to_rgb(image)
        fitted = ImageOps.fit(
            image,
            (width, height),
            method=Image.Resampling.LANCZOS,
            centering=(0.5, 0.5),
        )
        buffer = io.BytesIO()
        fitted.save(
            buffer,
            format="JPEG",
            quality=quality,
            progressive=progressive,
            optimize=True,
        )
    except (OSError, ValueError) as e:
        raise TranscodeError(f"Could not encode image: {e}") from e
    return buffer.getvalue()


def render_fallback(name: str, width: int = 400, height: int = 600) -> bytes:
    """Draws a plain portrait card with the show name for shows without artwork."""
    image = Image.new("RGB", (width, height), FALLBACK_BACKGROUND)
    draw = ImageDraw.Draw(image)
    font = ImageFont.load_default(size=max(12, width // 12))

    lines = textwrap.wrap(name or "TV Show", width=16) or ["TV Show"]
    line_height = max(12, width // 10)
    top = (height - line_height * len(lines)) // 2
    for index, line in enumerate(lines):
        left, _, right, _ = draw.textbbox((0, 0), line, font=font)
        draw.text(
            ((width - (right - left)) // 2, top + index * line_height),
            line,
            fill=FALLBACK_TEXT,
            font=font,
        )

    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=85)
    return buffer.getvalue()


class Transcoder:
    """Writes show images into the output directory under deterministic names.

    Placeholder cards go to a separate directory and web prefix so the
    catalog never mistakes them for real artwork.
    """

    def __init__(
        self,
        output_dir: Path,
        public_url_prefix: str = "/images/tv-shows",
        width: int = 400,
        height: int = 600,
        quality: int = 85,
        progressive: bool = True,
        include_slug: bool = True,
        existing_policy: ExistingAssetPolicy = ExistingAssetPolicy.OVERWRITE,
        placeholder_dir: Optional[Path] = None,
        placeholder_url_prefix: str = "/images/placeholders",
    ):
        self.output_dir = Path(output_dir)
        self.public_url_prefix = public_url_prefix
        self.width = width
        self.height = height
        self.quality = quality
        self.progressive = progressive
        self.include_slug = include_slug
        self.existing_policy = ExistingAssetPolicy(existing_policy)
        self.placeholder_dir = (
            Path(placeholder_dir)
            if placeholder_dir is not None
            else self.output_dir.parent / "placeholders"
        )
        self.placeholder_url_prefix = placeholder_url_prefix

    def filename_for(self, show_id: str, name: str) -> str:
        return asset_filename(show_id, name, include_slug=self.include_slug)

    def target_path(self, show_id: str, name: str) -> Path:
        return self.output_dir / self.filename_for(show_id, name)

    def web_path_for(self, show_id: str, name: str) -> str:
        return join_web_path(self.public_url_prefix, self.filename_for(show_id, name))

    def placeholder_path(self, show_id: str, name: str) -> Path:
        return self.placeholder_dir / self.filename_for(show_id, name)

    def placeholder_web_path_for(self, show_id: str, name: str) -> str:
        return join_web_path(
            self.placeholder_url_prefix, self.filename_for(show_id, name)
        )

    def existing_asset(self, show_id: str, name: str) -> Optional[ImageAsset]:
        """The already written asset for this show, if the skip policy allows reuse."""
        if self.existing_policy != ExistingAssetPolicy.SKIP:
            return None
        path = self.target_path(show_id, name)
        if not path.is_file():
            return None
        logger.debug(f"Reusing existing image {path.name} for show {show_id}")
        return self._asset(
            show_id, path, self.web_path_for(show_id, name), reused=True
        )

    def write_asset(self, show_id: str, name: str, data: bytes) -> ImageAsset:
        """Transcodes ``data`` and writes it to the show's target file.

        Raises TranscodeError for undecodable input or unwritable output.
        """
        existing = self.existing_asset(show_id, name)
        if existing:
            return existing

        encoded = transcode_cover(
            data, self.width, self.height, self.quality, self.progressive
        )
        path = self._write(self.target_path(show_id, name), encoded)
        return self._asset(show_id, path, self.web_path_for(show_id, name))

    def write_fallback(self, show_id: str, name: str) -> ImageAsset:
        """Renders and writes the placeholder card for a show without artwork."""
        encoded = render_fallback(name, self.width, self.height)
        path = self._write(self.placeholder_path(show_id, name), encoded)
        return self._asset(
            show_id, path, self.placeholder_web_path_for(show_id, name), fallback=True
        )

    def _write(self, path: Path, encoded: bytes) -> Path:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write then rename so an interrupted run never leaves a half file
            tmp_path = path.with_suffix(".jpg.part")
            tmp_path.write_bytes(encoded)
            tmp_path.replace(path)
        except OSError as e:
            raise TranscodeError(f"Could not write {path}: {e}") from e
        logger.debug(f"Wrote {path} ({len(encoded)} bytes)")
        return path

    def _asset(
        self,
        show_id: str,
        path: Path,
        web_path: str,
        reused: bool = False,
        fallback: bool = False,
    ) -> ImageAsset:
        return ImageAsset(
            show_id=str(show_id),
            filename=path.name,
            path=path,
            web_path=web_path,
            width=self.width,
            height=self.height,
            reused=reused,
            fallback=fallback,
        )
