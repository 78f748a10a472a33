"""Public tracking endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from parceltrack.dependencies import get_history, get_packages
from parceltrack.exceptions import PackageNotFoundError
from parceltrack.schemas import PackageDetailResponse

router = APIRouter()

TRACKING_HISTORY_LIMIT = 20


@router.get("/health")
async def health() -> dict[str, str]:
    """Healthcheck endpoint."""
    return {"status": "ok"}


@router.get("/track/{short_code}", response_model=PackageDetailResponse)
async def track_package(
    short_code: str,
    packages=Depends(get_packages),
    history=Depends(get_history),
) -> PackageDetailResponse:
    """Public tracking page data for a printed short code."""
    code = short_code.strip().upper()
    package = await packages.get_by_short_code(code)
    if package is None:
        raise PackageNotFoundError(code)
    entries = await history.list_recent(package.id, TRACKING_HISTORY_LIMIT)
    return PackageDetailResponse.build(package, entries)
