"""Collaborator protocols: backend stores and the camera device."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

DecodeCallback = Callable[[str, str], Awaitable[None]]
ErrorCallback = Callable[[Exception], Awaitable[None]]


@runtime_checkable
class Package(Protocol):
    id: str
    short_code: str
    status: str
    current_location: str


@runtime_checkable
class PackageRepository(Protocol):
    """Package rows in the backing store."""

    async def get_by_short_code(self, short_code: str) -> Package | None: ...

    async def get_by_id(self, package_id: str) -> Package | None: ...

    async def create(self, **fields: Any) -> Package: ...

    async def update_status(
        self,
        package_id: str,
        status: str,
        *,
        expected_status: str,
        location: str,
    ) -> Package: ...

    async def delete(self, package_id: str) -> None: ...


@runtime_checkable
class StatusHistoryStore(Protocol):
    """Append-only status history."""

    async def append(
        self,
        *,
        package_id: str,
        from_status: str | None,
        to_status: str,
        location: str,
        actor_id: str,
        note: str | None = None,
    ) -> Any: ...

    async def list_recent(self, package_id: str, limit: int = 10) -> list: ...


@runtime_checkable
class ScanLogStore(Protocol):
    """Append-only log of raw decoded payloads."""

    async def record(
        self,
        *,
        package_id: str,
        raw_data: str,
        symbology: str,
        location: str,
        actor_id: str,
        device_label: str = "",
    ) -> Any: ...


@runtime_checkable
class InventoryRepository(Protocol):
    async def get_items(self, item_ids: list[str]) -> list: ...

    async def record_movement(
        self,
        *,
        item_id: str,
        delta: int,
        reason: str,
        ref_package_id: str | None,
        user_id: str,
    ) -> Any: ...

    async def adjust_stock(self, item_id: str, delta: int) -> Any: ...


@runtime_checkable
class UserRepository(Protocol):
    async def get_by_id(self, user_id: str) -> Any | None: ...


@runtime_checkable
class AuditRetryStore(Protocol):
    """Storage abstraction for queued audit-trail writes."""

    async def store_failed_write(
        self,
        package_id: str,
        kind: str,
        payload: dict,
        error: str = "",
    ) -> str: ...

    async def get_due_retries(self, limit: int = 10) -> list[dict]: ...

    async def mark_succeeded(self, retry_id: str) -> None: ...

    async def mark_failed(
        self,
        retry_id: str,
        error: str,
    ) -> None: ...

    async def mark_exhausted(self, retry_id: str) -> None: ...


@runtime_checkable
class CameraDevice(Protocol):
    """A camera plus decode loop, as exposed by a decoding library."""

    async def start(
        self,
        constraints: Any,
        on_decode: DecodeCallback,
        on_error: ErrorCallback,
    ) -> None: ...

    async def stop(self) -> None: ...

    def supports_torch(self) -> bool: ...

    async def set_torch(self, enabled: bool) -> None: ...
