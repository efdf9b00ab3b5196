from __future__ import annotations

import io
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from PIL import Image

from image_sync.storage.supabase_client import PersistenceError, StoreUnavailableError


def make_image_bytes(
    width: int,
    height: int,
    color: Tuple[int, ...] = (200, 30, 30),
    fmt: str = "JPEG",
    mode: str = "RGB",
) -> bytes:
    image = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def make_striped_landscape(width: int = 1200, height: int = 800) -> bytes:
    """Three vertical bands: red | green | blue."""
    image = Image.new("RGB", (width, height))
    third = width // 3
    image.paste((255, 0, 0), (0, 0, third, height))
    image.paste((0, 255, 0), (third, 0, 2 * third, height))
    image.paste((0, 0, 255), (2 * third, 0, width, height))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class FakeStore:
    """In-memory stand-in for SupabaseCatalogStore.update_image_path."""

    def __init__(
        self,
        known_ids: Optional[List[str]] = None,
        unavailable_after: Optional[int] = None,
    ) -> None:
        self.known_ids = known_ids
        self.unavailable_after = unavailable_after
        self.updates: Dict[str, str] = {}
        self.calls = 0

    async def update_image_path(self, show_id: str, image_path: str) -> None:
        self.calls += 1
        if self.unavailable_after is not None and self.calls > self.unavailable_after:
            raise StoreUnavailableError("connection refused")
        if self.known_ids is not None and show_id not in self.known_ids:
            raise PersistenceError(f"No row with id {show_id}")
        self.updates[show_id] = image_path


class FakeQuery:
    def __init__(self, client: "FakeSupabase", table: str) -> None:
        self.client = client
        self.table_name = table
        self.op = "select"
        self.payload: Dict[str, Any] = {}
        self.filters: Dict[str, Any] = {}
        self.bounds: Optional[Tuple[int, int]] = None

    def select(self, columns: str) -> "FakeQuery":
        self.op = "select"
        return self

    def order(self, column: str) -> "FakeQuery":
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self.bounds = (start, end)
        return self

    def update(self, payload: Dict[str, Any]) -> "FakeQuery":
        self.op = "update"
        self.payload = payload
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters[column] = value
        return self

    async def execute(self) -> SimpleNamespace:
        self.client.executed.append((self.table_name, self.op))
        if self.client.error is not None:
            raise self.client.error
        rows = self.client.tables.get(self.table_name, [])
        if self.op == "update":
            changed = []
            for row in rows:
                if str(row["id"]) == str(self.filters.get("id")):
                    row.update(self.payload)
                    changed.append(dict(row))
            return SimpleNamespace(data=changed)
        if self.bounds:
            start, end = self.bounds
            rows = rows[start : end + 1]
        return SimpleNamespace(data=[dict(r) for r in rows])


class FakeSupabase:
    def __init__(
        self, tables: Dict[str, List[Dict[str, Any]]], error: Optional[Exception] = None
    ) -> None:
        self.tables = tables
        self.error = error
        self.executed: List[Tuple[str, str]] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)


@pytest.fixture
def image_bytes() -> Callable[..., bytes]:
    return make_image_bytes
