import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from image_sync.models.show import is_remote_ref
from image_sync.utils.cache import TTLCache

# Define common HTTP status codes that warrant a retry
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class FetchError(Exception):
    """Raised when a source image cannot be downloaded or read."""

    pass


class RetryableFetchError(FetchError):
    """Transient HTTP status (408/429/5xx); retried before giving up."""

    pass


def _within(base: Path, relative: str) -> Optional[Path]:
    """``base / relative`` unless it resolves outside ``base``."""
    if not relative:
        return None
    path = base / relative
    try:
        if not path.resolve().is_relative_to(base.resolve()):
            logger.warning(f"Ignoring image path outside {base}: {relative}")
            return None
    except (OSError, RuntimeError):
        return None
    return path


class ImageFetcher:
    """Loads source image bytes from remote URLs or local files.

    Remote downloads go through a shared ``httpx.AsyncClient`` with a bounded
    timeout and retry with exponential backoff. Local references may be
    absolute filesystem paths or site-relative web paths such as
    ``/custom-images/bluey.jpg``, which are resolved against the public
    directory and then each candidate directory.
    """

    def __init__(
        self,
        public_dir: Path = Path("public"),
        candidate_dirs: Sequence[Path] = (),
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 15.0,
        max_attempts: int = 4,
        cache: Optional[TTLCache] = None,
        wait: Optional[wait_base] = None,
    ):
        self.public_dir = Path(public_dir)
        self.candidate_dirs: List[Path] = [Path(d) for d in candidate_dirs]
        self.max_attempts = max(1, max_attempts)
        self.cache = cache
        self._in_flight: Dict[str, "asyncio.Future[bytes]"] = {}
        self.wait = wait or wait_exponential(multiplier=1, min=1, max=10)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
            headers={
                "User-Agent": "Mozilla/5.0 (compatible; tv-tantrum-image-sync/1.0)",
                "Accept": "image/avif,image/webp,image/png,image/jpeg,image/*;q=0.8",
            },
        )

    async def __aenter__(self) -> "ImageFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def fetch(self, image_ref: str) -> bytes:
        """Returns the raw bytes behind ``image_ref`` or raises FetchError.

        Concurrent calls for the same reference share a single load.
        """
        if not image_ref or not image_ref.strip():
            raise FetchError("Empty image reference")

        if self.cache is not None:
            cached = self.cache.get(image_ref)
            if cached is not None:
                logger.debug(f"Image cache hit for {image_ref}")
                return cached

        task = self._in_flight.get(image_ref)
        if task is None:
            task = asyncio.ensure_future(self._load(image_ref))
            self._in_flight[image_ref] = task
            task.add_done_callback(lambda _: self._in_flight.pop(image_ref, None))
        else:
            logger.debug(f"Joining in-flight load of {image_ref}")
        return await asyncio.shield(task)

    async def _load(self, image_ref: str) -> bytes:
        if is_remote_ref(image_ref):
            data = await self.fetch_remote(image_ref)
        else:
            data = await asyncio.to_thread(self.read_local, image_ref)

        if self.cache is not None:
            self.cache.set(image_ref, data)
        return data

    async def fetch_remote(self, url: str) -> bytes:
        """Downloads ``url`` with retry on transport errors and transient statuses."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=self.wait,
                retry=retry_if_exception_type(
                    (httpx.TransportError, RetryableFetchError)
                ),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            f"Retrying {url} (attempt {attempt.retry_state.attempt_number}/{self.max_attempts})"
                        )
                    return await self._request_once(url)
        except RetryableFetchError as e:
            raise FetchError(
                f"{e} after {self.max_attempts} attempt(s) for {url}"
            ) from e
        except httpx.TimeoutException as e:
            raise FetchError(f"Timed out fetching {url}") from e
        except httpx.TransportError as e:
            raise FetchError(f"Network error fetching {url}: {e}") from e
        except RetryError as e:
            # Only reachable if reraise is disabled
            raise FetchError(f"Failed to fetch {url} after retries") from e
        raise FetchError(f"Failed to fetch {url}")

    async def _request_once(self, url: str) -> bytes:
        logger.debug(f"Downloading image: {url}")
        response = await self.client.get(url)

        if response.status_code in RETRYABLE_STATUS_CODES:
            raise RetryableFetchError(f"HTTP {response.status_code}")
        if not response.is_success:
            # 404s and other client errors will not fix themselves
            raise FetchError(f"HTTP {response.status_code} for {url}")

        content = response.content
        if not content:
            raise FetchError(f"Empty response body for {url}")
        logger.debug(f"Downloaded {len(content)} bytes from {url}")
        return content

    def candidate_paths(self, image_ref: str) -> List[Path]:
        """Filesystem locations a local image reference may live at, in lookup order.

        A web path is looked up under the public directory first, then as an
        absolute filesystem path, then under each candidate directory by
        relative path and by basename. Locations escaping their base
        directory are dropped.
        """
        ref = image_ref.split("?", 1)[0].strip()
        relative = ref.lstrip("/")
        basename = Path(relative).name
        paths = [_within(self.public_dir, relative)]
        direct = Path(ref)
        if direct.is_absolute() and ".." not in direct.parts:
            paths.append(direct)
        for directory in self.candidate_dirs:
            paths.append(_within(directory, relative))
            paths.append(_within(directory, basename))
        return [p for p in dict.fromkeys(paths) if p is not None]

    def resolve_local_path(self, image_ref: str) -> Optional[Path]:
        for path in self.candidate_paths(image_ref):
            if path.is_file():
                return path
        return None

    def read_local(self, image_ref: str) -> bytes:
        path = self.resolve_local_path(image_ref)
        if path is None:
            raise FetchError(f"Local image not found: {image_ref}")
        try:
            data = path.read_bytes()
        except OSError as e:
            raise FetchError(f"Could not read {path}: {e}") from e
        if not data:
            raise FetchError(f"Local image is empty: {path}")
        logger.debug(f"Read {len(data)} bytes from {path}")
        return data

    async def close(self) -> None:
        """Closes the underlying HTTP client if this fetcher created it."""
        if self._owns_client:
            await self.client.aclose()
            logger.debug("Closed image fetcher HTTP client")
