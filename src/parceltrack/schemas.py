"""Request and response models for the HTTP interface."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from parceltrack.contents import parse_contents_note
from parceltrack.statuses import PackageStatus


class PackageResponse(BaseModel):
    id: str
    short_code: str
    status: str
    current_location: str
    origin: str = ""
    destination_branch_id: str | None = None
    contents_note: str = ""
    symbology: str = ""
    encoded_payload: str = ""
    created_at: datetime | None = None

    @classmethod
    def from_package(cls, package: Any) -> PackageResponse:
        return cls(
            id=str(package.id),
            short_code=package.short_code,
            status=str(package.status),
            current_location=package.current_location,
            origin=getattr(package, "origin", ""),
            destination_branch_id=getattr(package, "destination_branch_id", None),
            contents_note=getattr(package, "contents_note", ""),
            symbology=getattr(package, "symbology", ""),
            encoded_payload=getattr(package, "encoded_payload", ""),
            created_at=getattr(package, "created_at", None),
        )


class HistoryEntryResponse(BaseModel):
    from_status: str | None
    to_status: str
    location: str
    scanned_by: str
    scanned_at: datetime | None = None
    note: str | None = None

    @classmethod
    def from_entry(cls, entry: Any) -> HistoryEntryResponse:
        return cls(
            from_status=entry.from_status,
            to_status=entry.to_status,
            location=entry.location,
            scanned_by=str(entry.scanned_by),
            scanned_at=getattr(entry, "scanned_at", None),
            note=getattr(entry, "note", None),
        )


class PackageDetailResponse(BaseModel):
    package: PackageResponse
    history: list[HistoryEntryResponse] = Field(default_factory=list)
    recipient_name: str = ""
    recipient_company: str = ""
    delivery_address: str = ""
    contents: str = ""

    @classmethod
    def build(cls, package: Any, history: list[Any]) -> PackageDetailResponse:
        parsed = parse_contents_note(getattr(package, "contents_note", "") or "")
        return cls(
            package=PackageResponse.from_package(package),
            history=[HistoryEntryResponse.from_entry(entry) for entry in history],
            recipient_name=parsed.recipient_name,
            recipient_company=parsed.recipient_company,
            delivery_address=parsed.delivery_address,
            contents=parsed.contents,
        )


class ResolveRequest(BaseModel):
    text: str
    format: str = "qr"


class ResolveResponse(BaseModel):
    identifier: str
    package: PackageResponse
    history: list[HistoryEntryResponse] = Field(default_factory=list)


class StatusChangeRequest(BaseModel):
    to_status: PackageStatus
    note: str | None = None
    expected_status: PackageStatus | None = None
    location: str | None = None
    raw_data: str | None = None
    symbology: str | None = "qr"
    device_label: str = ""


class StatusChangeResponse(BaseModel):
    package: PackageResponse
    from_status: str
    to_status: str
    history_recorded: bool
    scan_recorded: bool
    audit_incomplete: bool
    audit_errors: list[str] = Field(default_factory=list)
    queued_retries: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: Any) -> StatusChangeResponse:
        return cls(
            package=PackageResponse.from_package(result.package),
            from_status=result.from_status,
            to_status=result.to_status,
            history_recorded=result.history_recorded,
            scan_recorded=result.scan_recorded,
            audit_incomplete=result.audit_incomplete,
            audit_errors=list(result.audit_errors),
            queued_retries=list(result.queued_retries),
        )


class BulkScanRequest(BaseModel):
    to_status: PackageStatus
    codes: list[str]
    symbology: str | None = "qr"
    device_label: str = ""


class BulkOutcomeResponse(BaseModel):
    code: str
    success: bool
    short_code: str | None = None
    error: str | None = None
    error_code: str | None = None
    audit_incomplete: bool = False


class BulkScanResponse(BaseModel):
    to_status: str
    results: list[BulkOutcomeResponse]
    succeeded: int
    failed: int
    skipped: list[str] = Field(default_factory=list)


class ItemQuantity(BaseModel):
    item_id: str
    quantity: int = Field(gt=0)


class CreatePackageRequest(BaseModel):
    destination_branch_id: str
    recipient_name: str = ""
    recipient_company: str = ""
    delivery_address: str = ""
    items: list[ItemQuantity] = Field(default_factory=list)
    origin: str | None = None


class CreatePackageResponse(BaseModel):
    package: PackageResponse
    inventory_warnings: list[str] = Field(default_factory=list)


class LabelResponse(BaseModel):
    short_code: str
    tracking_url: str
    encoded_payload: str
    qr_data_url: str
