"""Shared fixtures for parceltrack tests."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from parceltrack.config import ParceltrackConfig
from parceltrack.exceptions import (
    BackendUnavailableError,
    PackageNotFoundError,
    StatusConflictError,
)


@dataclass
class DemoPackage:
    id: str
    short_code: str
    status: str = "created"
    current_location: str = "Main Office"
    origin: str = "Main Office"
    destination_branch_id: str = "b-1"
    contents_note: str = ""
    symbology: str = "code128"
    encoded_payload: str = ""
    created_by: str = "u-1"
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


@dataclass
class DemoHistoryEntry:
    package_id: str
    from_status: str | None
    to_status: str
    location: str
    scanned_by: str
    note: str | None = None
    scanned_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


@dataclass
class DemoUser:
    id: str
    name: str = "Operator"
    role: str = "standard"
    active: bool = True


@dataclass
class DemoItem:
    id: str
    name: str
    stock_on_hand: int


class InMemoryPackageRepo:
    def __init__(self) -> None:
        self.items: dict[str, DemoPackage] = {}
        self.lookups: list[tuple[str, str]] = []
        self.updates: list[tuple[str, str]] = []
        self.unavailable_for = 0
        self.fail_updates = False
        self._counter = itertools.count(1)

    def add(self, short_code: str, status: str = "created", **kwargs):
        package_id = kwargs.pop("id", f"p-{next(self._counter)}")
        package = DemoPackage(
            id=package_id, short_code=short_code, status=status, **kwargs
        )
        self.items[package.id] = package
        return package

    def _maybe_unavailable(self) -> None:
        if self.unavailable_for > 0:
            self.unavailable_for -= 1
            raise BackendUnavailableError("database is locked")

    async def get_by_short_code(self, short_code: str):
        self.lookups.append(("short_code", short_code))
        self._maybe_unavailable()
        for package in self.items.values():
            if package.short_code == short_code:
                return package
        return None

    async def get_by_id(self, package_id: str):
        self.lookups.append(("id", package_id))
        self._maybe_unavailable()
        return self.items.get(package_id)

    async def create(self, **kwargs):
        package = DemoPackage(**kwargs)
        self.items[package.id] = package
        return package

    async def update_status(
        self,
        package_id: str,
        status: str,
        *,
        expected_status: str,
        location: str,
    ):
        if self.fail_updates:
            raise RuntimeError("connection reset")
        package = self.items.get(package_id)
        if package is None:
            raise PackageNotFoundError(package_id)
        if package.status != expected_status:
            raise StatusConflictError(
                package_id, expected_status, package.status
            )
        package.status = status
        package.current_location = location
        self.updates.append((package_id, status))
        return package

    async def delete(self, package_id: str) -> None:
        self.items.pop(package_id, None)


class InMemoryHistory:
    def __init__(self) -> None:
        self.entries: list[DemoHistoryEntry] = []
        self.fail = False

    async def append(
        self,
        *,
        package_id,
        from_status,
        to_status,
        location,
        actor_id,
        note=None,
    ):
        if self.fail:
            raise RuntimeError("history table unavailable")
        entry = DemoHistoryEntry(
            package_id=package_id,
            from_status=from_status,
            to_status=to_status,
            location=location,
            scanned_by=actor_id,
            note=note,
        )
        self.entries.append(entry)
        return entry

    async def list_recent(self, package_id: str, limit: int = 10):
        matching = [e for e in self.entries if e.package_id == package_id]
        return list(reversed(matching))[:limit]


class InMemoryScans:
    def __init__(self) -> None:
        self.rows: list[dict] = []
        self.fail = False

    async def record(
        self,
        *,
        package_id,
        raw_data,
        symbology,
        location,
        actor_id,
        device_label="",
    ):
        if self.fail:
            raise RuntimeError("scan table unavailable")
        row = {
            "package_id": package_id,
            "raw_data": raw_data,
            "symbology": symbology,
            "location": location,
            "actor_id": actor_id,
            "device_label": device_label,
        }
        self.rows.append(row)
        return row


class InMemoryInventory:
    def __init__(self) -> None:
        self.items: dict[str, DemoItem] = {}
        self.movements: list[dict] = []
        self.fail_adjust = False

    def add(self, item_id: str, name: str, stock: int) -> DemoItem:
        item = DemoItem(id=item_id, name=name, stock_on_hand=stock)
        self.items[item_id] = item
        return item

    async def get_items(self, item_ids):
        return [self.items[i] for i in item_ids if i in self.items]

    async def record_movement(
        self, *, item_id, delta, reason, ref_package_id, user_id
    ):
        movement = {
            "item_id": item_id,
            "delta": delta,
            "reason": reason,
            "ref_package_id": ref_package_id,
            "user_id": user_id,
        }
        self.movements.append(movement)
        return movement

    async def adjust_stock(self, item_id, delta):
        if self.fail_adjust:
            raise RuntimeError("stock update failed")
        item = self.items[item_id]
        item.stock_on_hand += delta
        return item


class InMemoryUsers:
    def __init__(self) -> None:
        self.items: dict[str, DemoUser] = {
            "u-1": DemoUser(id="u-1", name="Operator"),
            "u-admin": DemoUser(id="u-admin", name="Admin", role="admin"),
            "u-off": DemoUser(id="u-off", name="Former", active=False),
        }

    async def get_by_id(self, user_id: str):
        return self.items.get(user_id)


class RetryStore:
    def __init__(self) -> None:
        self.events: list[dict] = []
        self.succeeded: list[str] = []
        self.failed: list[tuple[str, str]] = []
        self.exhausted: list[str] = []
        self.due: list[dict] = []

    async def store_failed_write(
        self, package_id: str, kind: str, payload: dict, error: str = ""
    ) -> str:
        self.events.append(
            {
                "package_id": package_id,
                "kind": kind,
                "payload": payload,
                "error": error,
            }
        )
        return f"retry-{len(self.events)}"

    async def get_due_retries(self, limit: int = 10) -> list[dict]:
        return self.due[:limit]

    async def mark_succeeded(self, retry_id: str) -> None:
        self.succeeded.append(retry_id)

    async def mark_failed(self, retry_id: str, error: str) -> None:
        self.failed.append((retry_id, error))

    async def mark_exhausted(self, retry_id: str) -> None:
        self.exhausted.append(retry_id)


class FakeCamera:
    """Scripted camera device recording start/stop calls."""

    def __init__(self, *, torch: bool = False, start_error=None) -> None:
        self.torch = torch
        self.start_error = start_error
        self.stop_error = None
        self.running = False
        self.starts = 0
        self.stops = 0
        self.torch_calls: list[bool] = []
        self.on_decode = None
        self.on_error = None

    async def start(self, constraints, on_decode, on_error) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.starts += 1
        self.running = True
        self.on_decode = on_decode
        self.on_error = on_error

    async def stop(self) -> None:
        self.stops += 1
        self.running = False
        if self.stop_error is not None:
            raise self.stop_error

    def supports_torch(self) -> bool:
        return self.torch

    async def set_torch(self, enabled: bool) -> None:
        self.torch_calls.append(enabled)


class DeviceError(Exception):
    """Device failure carrying a DOM-style error name."""

    def __init__(self, name: str, message: str = "") -> None:
        self.name = name
        super().__init__(message)


@pytest.fixture()
def config() -> ParceltrackConfig:
    return ParceltrackConfig(lookup_retry_backoff_ms=0)


@pytest.fixture()
def packages() -> InMemoryPackageRepo:
    return InMemoryPackageRepo()


@pytest.fixture()
def history() -> InMemoryHistory:
    return InMemoryHistory()


@pytest.fixture()
def scans() -> InMemoryScans:
    return InMemoryScans()


@pytest.fixture()
def inventory() -> InMemoryInventory:
    return InMemoryInventory()


@pytest.fixture()
def users() -> InMemoryUsers:
    return InMemoryUsers()


@pytest.fixture()
def retry_store() -> RetryStore:
    return RetryStore()


@pytest.fixture()
def camera() -> FakeCamera:
    return FakeCamera()


@pytest.fixture()
async def async_engine():
    """Create an in-memory aiosqlite async engine."""
    from sqlalchemy.ext.asyncio import create_async_engine

    from parceltrack.contrib.sqlalchemy.models import Base

    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def async_session_factory(async_engine):
    """Create an async session factory bound to the in-memory engine."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    factory = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )
    yield factory


class ManualClock:
    """Monotonic clock advanced by hand, in milliseconds."""

    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms / 1000
