"""Package endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from parceltrack.config import ParceltrackConfig
from parceltrack.dependencies import (
    get_actor,
    get_admin,
    get_config,
    get_handler,
    get_history,
    get_package_service,
    get_packages,
)
from parceltrack.exceptions import PackageNotFoundError
from parceltrack.labels import build_tracking_url, render_qr_data_url
from parceltrack.packages import ItemRequest
from parceltrack.schemas import (
    CreatePackageRequest,
    CreatePackageResponse,
    LabelResponse,
    PackageDetailResponse,
    PackageResponse,
    StatusChangeRequest,
    StatusChangeResponse,
)

router = APIRouter()


async def _load(packages, package_id: str):
    package = await packages.get_by_id(package_id)
    if package is None:
        raise PackageNotFoundError(package_id)
    return package


@router.post("/packages", response_model=CreatePackageResponse)
async def create_package(
    body: CreatePackageRequest,
    service=Depends(get_package_service),
    actor=Depends(get_actor),
) -> CreatePackageResponse:
    """Create a package and deduct its items from stock."""
    created = await service.create_package(
        actor_id=str(actor.id),
        destination_branch_id=body.destination_branch_id,
        recipient_name=body.recipient_name,
        recipient_company=body.recipient_company,
        delivery_address=body.delivery_address,
        items=[ItemRequest(item.item_id, item.quantity) for item in body.items],
        origin=body.origin,
    )
    return CreatePackageResponse(
        package=PackageResponse.from_package(created.package),
        inventory_warnings=created.inventory_warnings,
    )


@router.get("/packages/{package_id}", response_model=PackageDetailResponse)
async def package_detail(
    package_id: str,
    packages=Depends(get_packages),
    history=Depends(get_history),
    config: ParceltrackConfig = Depends(get_config),
    actor=Depends(get_actor),
) -> PackageDetailResponse:
    package = await _load(packages, package_id)
    entries = await history.list_recent(package.id, config.history_limit)
    return PackageDetailResponse.build(package, entries)


@router.get("/packages/{package_id}/label", response_model=LabelResponse)
async def package_label(
    package_id: str,
    packages=Depends(get_packages),
    config: ParceltrackConfig = Depends(get_config),
    actor=Depends(get_actor),
) -> LabelResponse:
    """Label data: tracking URL, QR payload and rendered QR image."""
    package = await _load(packages, package_id)
    tracking_url = build_tracking_url(config.tracking_origin, package.short_code)
    return LabelResponse(
        short_code=package.short_code,
        tracking_url=tracking_url,
        encoded_payload=package.encoded_payload,
        qr_data_url=render_qr_data_url(tracking_url),
    )


@router.post(
    "/packages/{package_id}/status",
    response_model=StatusChangeResponse,
)
async def change_status(
    package_id: str,
    body: StatusChangeRequest,
    packages=Depends(get_packages),
    handler=Depends(get_handler),
    actor=Depends(get_actor),
) -> StatusChangeResponse:
    """Apply an explicitly chosen status to one package.

    ``expected_status`` should carry the status the client saw at lookup
    time; the write is rejected with 409 if the package moved since.
    """
    package = await _load(packages, package_id)
    result = await handler.apply(
        package,
        body.to_status,
        actor_id=str(actor.id),
        note=body.note,
        location=body.location,
        raw_data=body.raw_data,
        symbology=body.symbology,
        device_label=body.device_label,
        expected_status=body.expected_status.value
        if body.expected_status
        else None,
    )
    return StatusChangeResponse.from_result(result)


@router.delete("/packages/{package_id}", status_code=204)
async def delete_package(
    package_id: str,
    packages=Depends(get_packages),
    admin=Depends(get_admin),
) -> Response:
    """Hard-delete a package. Administrators only."""
    package = await _load(packages, package_id)
    await packages.delete(package.id)
    return Response(status_code=204)
