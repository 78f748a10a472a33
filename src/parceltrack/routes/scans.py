"""Scan endpoints: code resolution and bulk status updates."""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Response

from parceltrack.dependencies import get_actor, get_handler, get_resolver
from parceltrack.schemas import (
    BulkOutcomeResponse,
    BulkScanRequest,
    BulkScanResponse,
    HistoryEntryResponse,
    PackageResponse,
    ResolveRequest,
    ResolveResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/scans/resolve",
    response_model=ResolveResponse,
    responses={204: {"description": "Decoded text was camera noise"}},
)
async def resolve_scan(
    body: ResolveRequest,
    resolver=Depends(get_resolver),
    actor=Depends(get_actor),
):
    """Resolve decoded scanner text to a package and its recent history."""
    if resolver.is_noise(body.text):
        return Response(status_code=204)
    resolution = await resolver.resolve(body.text)
    return ResolveResponse(
        identifier=resolution.identifier,
        package=PackageResponse.from_package(resolution.package),
        history=[
            HistoryEntryResponse.from_entry(entry)
            for entry in resolution.history
        ],
    )


@router.post("/scans/bulk", response_model=BulkScanResponse)
async def bulk_scan(
    body: BulkScanRequest,
    resolver=Depends(get_resolver),
    handler=Depends(get_handler),
    actor=Depends(get_actor),
) -> BulkScanResponse:
    """Apply one status to every code, in order, without confirmation.

    Noise reads and immediate repeats of the previous code are skipped.
    """
    results: list[BulkOutcomeResponse] = []
    skipped: list[str] = []
    previous: str | None = None
    for raw in body.codes:
        if resolver.is_noise(raw):
            skipped.append(raw)
            continue
        code = raw.strip()
        if code == previous:
            skipped.append(raw)
            continue
        previous = code
        outcome = await handler.apply_bulk(
            code,
            body.to_status,
            actor_id=str(actor.id),
            symbology=body.symbology,
            device_label=body.device_label,
        )
        results.append(BulkOutcomeResponse(**asdict(outcome)))

    succeeded = sum(1 for outcome in results if outcome.success)
    logger.info(
        "Bulk scan to %s: %d succeeded, %d failed",
        body.to_status.value,
        succeeded,
        len(results) - succeeded,
    )
    return BulkScanResponse(
        to_status=body.to_status.value,
        results=results,
        succeeded=succeeded,
        failed=len(results) - succeeded,
        skipped=skipped,
    )
