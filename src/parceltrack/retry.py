"""Audit-trail retry queue with exponential backoff."""

import logging
from datetime import UTC, datetime, timedelta

from parceltrack.config import ParceltrackConfig
from parceltrack.protocols import AuditRetryStore, ScanLogStore, StatusHistoryStore

logger = logging.getLogger(__name__)

HISTORY_WRITE = "history"
SCAN_WRITE = "scan"


def compute_backoff_seconds(attempt: int, base_seconds: float) -> float:
    """delay = base_seconds * 2^(attempt - 1)"""
    return base_seconds * (2 ** (attempt - 1))


def compute_next_retry_at(
    attempt: int,
    backoff_seconds: int,
) -> datetime:
    """Compute the next retry time with exponential backoff."""
    delay = compute_backoff_seconds(attempt, backoff_seconds)
    return datetime.now(tz=UTC) + timedelta(seconds=delay)


async def replay_write(
    kind: str,
    payload: dict,
    *,
    history: StatusHistoryStore,
    scans: ScanLogStore,
) -> None:
    if kind == HISTORY_WRITE:
        await history.append(**payload)
    elif kind == SCAN_WRITE:
        await scans.record(**payload)
    else:
        raise ValueError(f"Unknown audit write kind {kind!r}")


async def process_due_retries(
    *,
    retry_store: AuditRetryStore,
    history: StatusHistoryStore,
    scans: ScanLogStore,
    config: ParceltrackConfig,
    limit: int = 10,
) -> int:
    """Replay queued history/scan writes that are due.

    Returns the number of retries processed.
    """
    retries = await retry_store.get_due_retries(limit=limit)
    processed = 0

    for retry in retries:
        retry_id = retry["id"]
        package_id = retry["package_id"]
        attempts = retry["attempts"]

        if attempts >= config.retry_max_attempts:
            logger.warning(
                "Audit retry exhausted for package %s after %d attempts",
                package_id,
                attempts,
            )
            await retry_store.mark_exhausted(retry_id)
            processed += 1
            continue

        try:
            await replay_write(
                retry["kind"],
                retry["payload"],
                history=history,
                scans=scans,
            )
            await retry_store.mark_succeeded(retry_id)
            logger.info(
                "Retry %s: %s write for package %s succeeded",
                retry_id,
                retry["kind"],
                package_id,
            )
        except Exception as exc:
            new_attempts = attempts + 1
            await retry_store.mark_failed(retry_id, error=str(exc))
            if new_attempts >= config.retry_max_attempts:
                logger.warning(
                    "Audit retry exhausted for package %s after %d attempts: %s",
                    package_id,
                    new_attempts,
                    exc,
                )
                await retry_store.mark_exhausted(retry_id)
            else:
                logger.info(
                    "Retry %s: attempt %d failed: %s",
                    retry_id,
                    new_attempts,
                    exc,
                )

        processed += 1

    return processed
