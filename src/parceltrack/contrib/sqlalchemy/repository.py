"""SQLAlchemy repository implementations."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from parceltrack.contrib.sqlalchemy.models import (
    InventoryItemModel,
    InventoryMovementModel,
    PackageModel,
    ScanModel,
    StatusHistoryModel,
    UserModel,
)
from parceltrack.exceptions import (
    BackendUnavailableError,
    PackageNotFoundError,
    StatusConflictError,
)

P = ParamSpec("P")
T = TypeVar("T")


def transient_errors(
    func: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[T]]:
    """Re-raise connection-level database errors as BackendUnavailableError."""

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return await func(*args, **kwargs)
        except (OperationalError, InterfaceError) as exc:
            raise BackendUnavailableError(str(exc.orig or exc)) from exc

    return wrapper


class _Repository:
    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory


class SQLAlchemyPackageRepository(_Repository):
    """Package repository backed by SQLAlchemy async sessions."""

    @transient_errors
    async def get_by_short_code(self, short_code: str) -> PackageModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PackageModel).where(PackageModel.short_code == short_code)
            )
            return result.scalar_one_or_none()

    @transient_errors
    async def get_by_id(self, package_id: str) -> PackageModel | None:
        async with self.session_factory() as session:
            return await session.get(PackageModel, package_id)

    async def create(self, **kwargs: Any) -> PackageModel:
        package = PackageModel(**kwargs)
        async with self.session_factory() as session:
            session.add(package)
            await session.commit()
            await session.refresh(package)
        return package

    async def update_status(
        self,
        package_id: str,
        status: str,
        *,
        expected_status: str,
        location: str,
    ) -> PackageModel:
        """Write ``status`` only if the stored status is ``expected_status``."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(PackageModel)
                .where(
                    PackageModel.id == package_id,
                    PackageModel.status == expected_status,
                )
                .values(status=status, current_location=location)
            )
            await session.commit()
            package = await session.get(
                PackageModel, package_id, populate_existing=True
            )
            if package is None:
                raise PackageNotFoundError(package_id)
            if result.rowcount == 0:
                raise StatusConflictError(
                    package_id, expected_status, package.status
                )
            return package

    async def delete(self, package_id: str) -> None:
        async with self.session_factory() as session:
            await session.execute(
                delete(StatusHistoryModel).where(
                    StatusHistoryModel.package_id == package_id
                )
            )
            await session.execute(
                delete(ScanModel).where(ScanModel.package_id == package_id)
            )
            await session.execute(
                delete(PackageModel).where(PackageModel.id == package_id)
            )
            await session.commit()


class SQLAlchemyStatusHistoryStore(_Repository):
    async def append(
        self,
        *,
        package_id: str,
        from_status: str | None,
        to_status: str,
        location: str,
        actor_id: str,
        note: str | None = None,
    ) -> StatusHistoryModel:
        entry = StatusHistoryModel(
            package_id=package_id,
            from_status=from_status,
            to_status=to_status,
            location=location,
            scanned_by=actor_id,
            note=note,
        )
        async with self.session_factory() as session:
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
        return entry

    @transient_errors
    async def list_recent(
        self, package_id: str, limit: int = 10
    ) -> list[StatusHistoryModel]:
        """Newest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(StatusHistoryModel)
                .where(StatusHistoryModel.package_id == package_id)
                .order_by(StatusHistoryModel.scanned_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())


class SQLAlchemyScanLogStore(_Repository):
    async def record(
        self,
        *,
        package_id: str,
        raw_data: str,
        symbology: str,
        location: str,
        actor_id: str,
        device_label: str = "",
    ) -> ScanModel:
        scan = ScanModel(
            package_id=package_id,
            raw_data=raw_data,
            symbology=symbology,
            location=location,
            scanned_by=actor_id,
            device_label=device_label,
        )
        async with self.session_factory() as session:
            session.add(scan)
            await session.commit()
            await session.refresh(scan)
        return scan

    async def list_by_package(self, package_id: str) -> list[ScanModel]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ScanModel)
                .where(ScanModel.package_id == package_id)
                .order_by(ScanModel.scanned_at)
            )
            return list(result.scalars().all())


class SQLAlchemyInventoryRepository(_Repository):
    async def get_items(self, item_ids: list[str]) -> list[InventoryItemModel]:
        if not item_ids:
            return []
        async with self.session_factory() as session:
            result = await session.execute(
                select(InventoryItemModel).where(
                    InventoryItemModel.id.in_(item_ids)
                )
            )
            return list(result.scalars().all())

    async def record_movement(
        self,
        *,
        item_id: str,
        delta: int,
        reason: str,
        ref_package_id: str | None,
        user_id: str,
    ) -> InventoryMovementModel:
        movement = InventoryMovementModel(
            item_id=item_id,
            delta=delta,
            reason=reason,
            ref_package_id=ref_package_id,
            user_id=user_id,
        )
        async with self.session_factory() as session:
            session.add(movement)
            await session.commit()
            await session.refresh(movement)
        return movement

    async def adjust_stock(self, item_id: str, delta: int) -> InventoryItemModel:
        async with self.session_factory() as session:
            await session.execute(
                update(InventoryItemModel)
                .where(InventoryItemModel.id == item_id)
                .values(stock_on_hand=InventoryItemModel.stock_on_hand + delta)
            )
            await session.commit()
            item = await session.get(
                InventoryItemModel, item_id, populate_existing=True
            )
            if item is None:
                raise LookupError(f"Inventory item {item_id} not found")
            return item


class SQLAlchemyUserRepository(_Repository):
    @transient_errors
    async def get_by_id(self, user_id: str) -> UserModel | None:
        async with self.session_factory() as session:
            return await session.get(UserModel, user_id)
