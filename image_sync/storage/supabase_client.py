# image_sync/storage/supabase_client.py
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger
from postgrest import APIResponse
from postgrest.exceptions import APIError
from pydantic import ValidationError
from supabase import AsyncClient, create_async_client

from image_sync.models.enums import CandidateSourceKind, ImageCategory
from image_sync.models.show import CandidateShow, CatalogEntry, is_remote_ref

# PostgREST caps responses at 1000 rows by default
PAGE_SIZE = 1000


class StoreError(Exception):
    """Base class for catalog store errors."""

    pass


class PersistenceError(StoreError):
    """An update did not affect any row or was rejected by the database."""

    pass


class StoreUnavailableError(StoreError):
    """The database cannot be reached; remaining work should be abandoned."""

    pass


async def initialize_supabase(url: Optional[str], key: Optional[str]) -> AsyncClient:
    """Creates an async Supabase client for the given project."""
    if not url or not key:
        logger.critical("Supabase URL or Key not configured in settings.")
        raise SystemExit("Supabase configuration missing.")

    key_snippet = f"{key[:5]}...{key[-5:]}" if len(key) > 10 else "*****"
    logger.debug(f"Initializing async Supabase client for {url} (key {key_snippet})")
    try:
        client: AsyncClient = await create_async_client(url, key)
    except httpx.TransportError as e:
        raise StoreUnavailableError(f"Could not reach Supabase at {url}: {e}") from e
    logger.success("Async Supabase client initialized successfully.")
    return client


class SupabaseCatalogStore:
    """Reads show rows from and writes image paths to a Supabase (Postgres) table."""

    def __init__(self, client: AsyncClient, table: str):
        self.client = client
        self.table = table

    async def _execute(self, query: Any, action: str) -> APIResponse:
        try:
            return await query.execute()
        except APIError as e:
            logger.debug(f"Full APIError details: {e}")
            raise PersistenceError(f"{action} on {self.table} failed: {e.message}") from e
        except httpx.TransportError as e:
            raise StoreUnavailableError(
                f"{action} on {self.table} failed, database unreachable: {e}"
            ) from e

    async def _fetch_rows(self, columns: str) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        start = 0
        while True:
            query = (
                self.client.table(self.table)
                .select(columns)
                .order("id")
                .range(start, start + PAGE_SIZE - 1)
            )
            response = await self._execute(query, "select")
            page = response.data or []
            rows.extend(page)
            if len(page) < PAGE_SIZE:
                break
            start += PAGE_SIZE
        logger.debug(f"Fetched {len(rows)} rows from {self.table}")
        return rows

    async def fetch_catalog_entries(self) -> List[CatalogEntry]:
        """All catalog rows, validated; malformed rows are logged and dropped."""
        entries: List[CatalogEntry] = []
        for row in await self._fetch_rows("id, name, image_url"):
            try:
                entries.append(CatalogEntry.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed catalog row {row.get('id')}: {e}")
        logger.info(f"Loaded {len(entries)} catalog entries from {self.table}.")
        return entries

    async def fetch_legacy_candidates(self) -> List[CandidateShow]:
        """Legacy rows that carry an absolute image URL, as matching candidates."""
        candidates: List[CandidateShow] = []
        for row in await self._fetch_rows("id, name, image_url"):
            name, image_url = row.get("name"), row.get("image_url")
            if not name or not is_remote_ref(image_url):
                continue
            candidates.append(
                CandidateShow(
                    name=name,
                    image_ref=image_url,
                    source=CandidateSourceKind.LEGACY_DB,
                )
            )
        logger.info(
            f"Loaded {len(candidates)} legacy candidates with external URLs from {self.table}."
        )
        return candidates

    async def update_image_path(self, show_id: str, image_path: str) -> None:
        """Sets ``image_url`` for one show; raises PersistenceError if no row changed."""
        query = (
            self.client.table(self.table)
            .update({"image_url": image_path})
            .eq("id", show_id)
        )
        response = await self._execute(query, "update")
        if not response.data:
            raise PersistenceError(
                f"No row in {self.table} with id {show_id}; image path not saved"
            )
        logger.debug(f"Updated show {show_id} image_url -> {image_path}")

    async def image_status(self) -> Dict[ImageCategory, int]:
        """Counts catalog rows per image category."""
        counts: Dict[ImageCategory, int] = {category: 0 for category in ImageCategory}
        for entry in await self.fetch_catalog_entries():
            counts[entry.image_category] += 1
        return counts
