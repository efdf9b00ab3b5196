import asyncio

import httpx
import pytest
from postgrest.exceptions import APIError

from conftest import FakeSupabase
from image_sync.models.enums import ImageCategory
from image_sync.storage.supabase_client import (
    PAGE_SIZE,
    PersistenceError,
    StoreUnavailableError,
    SupabaseCatalogStore,
    initialize_supabase,
)


def _catalog_rows():
    return [
        {"id": 1, "name": "Bluey", "image_url": "/media/tv-shows/bluey.jpg"},
        {"id": 2, "name": "Paw Patrol", "image_url": "https://cdn.example.com/paw.jpg"},
        {"id": 3, "name": "Octonauts", "image_url": None},
        {"id": 4, "name": "Peppa Pig", "image_url": "/images/tv-shows/show-4-peppa-pig.jpg"},
        {"id": 5, "name": "Arthur", "image_url": "/custom-images/arthur.png"},
        {"id": 6, "name": "Kipper", "image_url": "/api/placeholder/400/600"},
        {"id": 7, "name": None, "image_url": None},
    ]


def test_fetch_catalog_entries_validates_rows():
    client = FakeSupabase({"catalog_tv_shows": _catalog_rows()})
    store = SupabaseCatalogStore(client, "catalog_tv_shows")

    entries = asyncio.run(store.fetch_catalog_entries())

    assert [e.show_id for e in entries] == ["1", "2", "3", "4", "5", "6"]
    assert entries[0].name == "Bluey"


def test_fetch_catalog_entries_pages_through_results():
    rows = [{"id": i, "name": f"Show {i}", "image_url": None} for i in range(PAGE_SIZE + 5)]
    client = FakeSupabase({"catalog_tv_shows": rows})

    entries = asyncio.run(SupabaseCatalogStore(client, "catalog_tv_shows").fetch_catalog_entries())

    assert len(entries) == PAGE_SIZE + 5
    assert client.executed.count(("catalog_tv_shows", "select")) == 2


def test_fetch_legacy_candidates_keeps_only_external_urls():
    rows = [
        {"id": 1, "name": "Bluey (2018-present)", "image_url": "https://img.example.com/bluey.jpg"},
        {"id": 2, "name": "Arthur", "image_url": "/media/tv-shows/arthur.jpg"},
        {"id": 3, "name": "Kipper", "image_url": ""},
        {"id": 4, "name": "", "image_url": "https://img.example.com/blank.jpg"},
    ]
    store = SupabaseCatalogStore(FakeSupabase({"tv_shows": rows}), "tv_shows")

    candidates = asyncio.run(store.fetch_legacy_candidates())

    assert [c.name for c in candidates] == ["Bluey (2018-present)"]
    assert candidates[0].is_remote


def test_update_image_path_writes_row():
    client = FakeSupabase({"catalog_tv_shows": _catalog_rows()})
    store = SupabaseCatalogStore(client, "catalog_tv_shows")

    asyncio.run(store.update_image_path("3", "/images/tv-shows/show-3-octonauts.jpg"))

    assert client.tables["catalog_tv_shows"][2]["image_url"] == "/images/tv-shows/show-3-octonauts.jpg"


def test_update_of_unknown_id_is_a_persistence_error():
    store = SupabaseCatalogStore(FakeSupabase({"catalog_tv_shows": _catalog_rows()}), "catalog_tv_shows")
    with pytest.raises(PersistenceError, match="No row"):
        asyncio.run(store.update_image_path("999", "/images/tv-shows/x.jpg"))


def test_api_error_is_a_persistence_error():
    error = APIError({"message": "permission denied", "code": "42501"})
    store = SupabaseCatalogStore(FakeSupabase({}, error=error), "catalog_tv_shows")
    with pytest.raises(PersistenceError, match="permission denied"):
        asyncio.run(store.update_image_path("1", "/images/tv-shows/x.jpg"))


def test_transport_error_means_store_unavailable():
    store = SupabaseCatalogStore(
        FakeSupabase({}, error=httpx.ConnectError("connection refused")), "catalog_tv_shows"
    )
    with pytest.raises(StoreUnavailableError):
        asyncio.run(store.fetch_catalog_entries())


def test_image_status_counts_categories():
    store = SupabaseCatalogStore(FakeSupabase({"catalog_tv_shows": _catalog_rows()}), "catalog_tv_shows")

    counts = asyncio.run(store.image_status())

    assert counts[ImageCategory.MEDIA] == 1
    assert counts[ImageCategory.EXTERNAL] == 1
    assert counts[ImageCategory.MISSING] == 1
    assert counts[ImageCategory.OPTIMIZED] == 1
    assert counts[ImageCategory.CUSTOM] == 1
    assert counts[ImageCategory.PLACEHOLDER] == 1
    assert sum(counts.values()) == 6


def test_initialize_supabase_requires_configuration():
    with pytest.raises(SystemExit):
        asyncio.run(initialize_supabase(None, None))
