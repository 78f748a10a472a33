"""Router factory for parceltrack."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from parceltrack.config import ParceltrackConfig
from parceltrack.exceptions import register_exception_handlers
from parceltrack.protocols import (
    AuditRetryStore,
    InventoryRepository,
    PackageRepository,
    ScanLogStore,
    StatusHistoryStore,
    UserRepository,
)
from parceltrack.routes.packages import router as packages_router
from parceltrack.routes.scans import router as scans_router
from parceltrack.routes.tracking import router as tracking_router


def create_tracking_router(
    *,
    config: ParceltrackConfig,
    packages: PackageRepository,
    history: StatusHistoryStore,
    scans: ScanLogStore,
    users: UserRepository,
    inventory: InventoryRepository | None = None,
    retry_store: AuditRetryStore | None = None,
) -> APIRouter:
    """Create a configured API router."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        app.state.parceltrack_config = config
        app.state.parceltrack_packages = packages
        app.state.parceltrack_history = history
        app.state.parceltrack_scans = scans
        app.state.parceltrack_users = users
        app.state.parceltrack_inventory = inventory
        app.state.parceltrack_retry_store = retry_store
        register_exception_handlers(app)
        yield

    router = APIRouter(lifespan=lifespan)
    router.include_router(packages_router)
    router.include_router(scans_router)
    router.include_router(tracking_router)
    return router
