"""FastAPI example app demonstrating parceltrack."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from parceltrack import ParceltrackConfig, create_tracking_router
from parceltrack.contrib.sqlalchemy.models import (
    Base,
    BranchModel,
    InventoryItemModel,
    UserModel,
)
from parceltrack.contrib.sqlalchemy.repository import (
    SQLAlchemyInventoryRepository,
    SQLAlchemyPackageRepository,
    SQLAlchemyScanLogStore,
    SQLAlchemyStatusHistoryStore,
    SQLAlchemyUserRepository,
)
from parceltrack.contrib.sqlalchemy.retry_store import (
    SQLAlchemyAuditRetryStore,
)
from parceltrack.dependencies import get_admin
from parceltrack.exceptions import register_exception_handlers
from parceltrack.retry import process_due_retries

logging.basicConfig(level=logging.INFO)

# --- Database setup ---

# The tracking router is mounted under /api, so label URLs carry the prefix.
config = ParceltrackConfig(
    database_url="sqlite+aiosqlite:///./example.db",
    tracking_origin="http://localhost:8000/api",
)
engine = create_async_engine(config.database_url, echo=False)
async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# --- Library integration ---

packages = SQLAlchemyPackageRepository(async_session)
history = SQLAlchemyStatusHistoryStore(async_session)
scans = SQLAlchemyScanLogStore(async_session)
inventory = SQLAlchemyInventoryRepository(async_session)
users = SQLAlchemyUserRepository(async_session)
retry_store = SQLAlchemyAuditRetryStore(
    async_session, backoff_seconds=config.retry_backoff_seconds
)

tracking_router = create_tracking_router(
    config=config,
    packages=packages,
    history=history,
    scans=scans,
    users=users,
    inventory=inventory,
    retry_store=retry_store,
)

# Fixed ids so the demo can be driven with ``X-Actor-Id`` right away.
DEMO_USERS = [
    ("admin", "Admin User", "admin"),
    ("manager", "Manager Admin", "admin"),
    ("jsmith", "John Smith", "standard"),
    ("jdoe", "Jane Doe", "standard"),
]
DEMO_BRANCHES = [
    ("main", "MAIN", "Main Office", "123 Main Street"),
    ("downtown", "BRANCH1", "Downtown Branch", "456 Downtown Ave"),
    ("uptown", "BRANCH2", "Uptown Branch", "789 Uptown Blvd"),
]
DEMO_ITEMS = [
    ("bag", "BAG001", "Small Shipping Bag", 150, 20),
    ("envelope", "ENV002", "Large Envelope", 75, 15),
    ("box", "BOX003", "Medium Box", 30, 5),
    ("tag", "TAG004", "Shipping Tag", 200, 50),
]


async def seed_demo_data(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Insert demo users, branches and stock into an empty database."""
    async with session_factory() as session:
        existing = await session.scalar(select(func.count(UserModel.id)))
        if existing:
            return
        session.add_all(
            UserModel(id=user_id, name=name, role=role)
            for user_id, name, role in DEMO_USERS
        )
        session.add_all(
            BranchModel(id=branch_id, code=code, name=name, address=address)
            for branch_id, code, name, address in DEMO_BRANCHES
        )
        session.add_all(
            InventoryItemModel(
                id=item_id,
                sku=sku,
                name=name,
                stock_on_hand=stock,
                min_threshold=threshold,
            )
            for item_id, sku, name, stock, threshold in DEMO_ITEMS
        )
        await session.commit()


# --- FastAPI app ---


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await seed_demo_data(async_session)
    yield
    await engine.dispose()


app = FastAPI(title="parceltrack demo", lifespan=lifespan)
register_exception_handlers(app)
app.include_router(tracking_router, prefix="/api")


@app.post("/api/admin/retries/process")
async def process_retries(admin=Depends(get_admin)) -> dict[str, int]:
    """Replay queued history and scan-log writes that are due."""
    processed = await process_due_retries(
        retry_store=retry_store,
        history=history,
        scans=scans,
        config=config,
    )
    return {"processed": processed}
