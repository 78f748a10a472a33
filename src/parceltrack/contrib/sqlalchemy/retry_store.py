"""SQLAlchemy audit-write retry store."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from parceltrack.contrib.sqlalchemy.models import AuditRetryModel
from parceltrack.retry import compute_next_retry_at

PENDING = "pending"
SUCCEEDED = "succeeded"
EXHAUSTED = "exhausted"


class SQLAlchemyAuditRetryStore:
    """Persist failed history/scan writes in an SQLAlchemy table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        backoff_seconds: int = 60,
    ) -> None:
        self.session_factory = session_factory
        self.backoff_seconds = backoff_seconds

    async def store_failed_write(
        self,
        package_id: str,
        kind: str,
        payload: dict,
        error: str = "",
    ) -> str:
        retry_id = str(uuid.uuid4())
        retry = AuditRetryModel(
            id=retry_id,
            package_id=package_id,
            kind=kind,
            payload=payload,
            attempts=0,
            last_error=error,
            status=PENDING,
            next_retry_at=compute_next_retry_at(1, self.backoff_seconds),
        )
        async with self.session_factory() as session:
            session.add(retry)
            await session.commit()
        return retry_id

    async def get_due_retries(self, limit: int = 10) -> list[dict]:
        now = datetime.now(tz=UTC)
        async with self.session_factory() as session:
            result = await session.execute(
                select(AuditRetryModel)
                .where(
                    AuditRetryModel.status == PENDING,
                    AuditRetryModel.next_retry_at <= now,
                )
                .order_by(AuditRetryModel.next_retry_at)
                .limit(limit)
            )
            return [
                {
                    "id": row.id,
                    "package_id": row.package_id,
                    "kind": row.kind,
                    "payload": row.payload,
                    "attempts": row.attempts,
                    "last_error": row.last_error,
                }
                for row in result.scalars().all()
            ]

    async def mark_succeeded(self, retry_id: str) -> None:
        async with self.session_factory() as session:
            retry = await session.get(AuditRetryModel, retry_id)
            if retry is not None:
                retry.status = SUCCEEDED
                await session.commit()

    async def mark_failed(self, retry_id: str, error: str) -> None:
        async with self.session_factory() as session:
            retry = await session.get(AuditRetryModel, retry_id)
            if retry is not None:
                retry.attempts += 1
                retry.last_error = error
                retry.next_retry_at = compute_next_retry_at(
                    retry.attempts + 1, self.backoff_seconds
                )
                await session.commit()

    async def mark_exhausted(self, retry_id: str) -> None:
        async with self.session_factory() as session:
            retry = await session.get(AuditRetryModel, retry_id)
            if retry is not None:
                retry.status = EXHAUSTED
                await session.commit()
