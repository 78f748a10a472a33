"""Status transition handler.

A status change is three writes: the conditional status update, the
history row and the scan-log row. Only the first is fatal. Failures of the
trailing audit writes are reported on the result and, when a retry store
is configured, queued for replay.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from parceltrack.config import ParceltrackConfig
from parceltrack.exceptions import (
    BackendUnavailableError,
    InvalidTransitionError,
    PackageNotFoundError,
    StatusConflictError,
    StatusUpdateError,
)
from parceltrack.protocols import (
    AuditRetryStore,
    Package,
    PackageRepository,
    ScanLogStore,
    StatusHistoryStore,
)
from parceltrack.resolver import LookupResolver
from parceltrack.retry import HISTORY_WRITE, SCAN_WRITE
from parceltrack.statuses import PackageStatus, ensure_transition

logger = logging.getLogger(__name__)

BULK_NOTE = "Bulk update via QR scanner"

_SYMBOLOGY_ALIASES = {
    "code_128": "code128",
    "code128": "code128",
    "qr_code": "qr",
    "qr": "qr",
}


def normalize_symbology(value: str | None) -> str:
    """Map decoder format names to the stored symbology labels."""
    if not value:
        return "qr"
    lowered = value.strip().lower()
    return _SYMBOLOGY_ALIASES.get(lowered, lowered)


@dataclass
class TransitionResult:
    package: Package
    from_status: str
    to_status: str
    history_recorded: bool = True
    scan_recorded: bool = True
    audit_errors: list[str] = field(default_factory=list)
    queued_retries: list[str] = field(default_factory=list)

    @property
    def audit_incomplete(self) -> bool:
        return not (self.history_recorded and self.scan_recorded)


@dataclass
class BulkOutcome:
    code: str
    success: bool
    short_code: str | None = None
    error: str | None = None
    error_code: str | None = None
    audit_incomplete: bool = False


class StatusTransitionHandler:
    def __init__(
        self,
        packages: PackageRepository,
        history: StatusHistoryStore,
        scans: ScanLogStore,
        *,
        config: ParceltrackConfig | None = None,
        retry_store: AuditRetryStore | None = None,
        resolver: LookupResolver | None = None,
    ) -> None:
        self.packages = packages
        self.history = history
        self.scans = scans
        self.config = config or ParceltrackConfig()
        self.retry_store = retry_store
        self.resolver = resolver or LookupResolver(
            packages, history, self.config
        )

    async def apply(
        self,
        package: Package,
        target: str | PackageStatus,
        *,
        actor_id: str,
        note: str | None = None,
        location: str | None = None,
        raw_data: str | None = None,
        symbology: str | None = "qr",
        device_label: str = "",
        expected_status: str | None = None,
    ) -> TransitionResult:
        """Move ``package`` to ``target``.

        ``expected_status`` defaults to the status observed on ``package``;
        the write only lands if the stored status still matches it.
        """
        observed = expected_status or package.status
        destination = ensure_transition(
            observed, target, enforce=self.config.enforce_transitions
        )
        where = location or package.current_location or self.config.default_location

        try:
            updated = await self.packages.update_status(
                package.id,
                destination.value,
                expected_status=observed,
                location=where,
            )
        except (StatusConflictError, PackageNotFoundError):
            raise
        except Exception as exc:
            logger.error(
                "Status update for package %s (%s -> %s) failed: %s",
                package.short_code,
                observed,
                destination.value,
                exc,
            )
            raise StatusUpdateError(
                f"Failed to update package {package.short_code}: {exc}"
            ) from exc

        logger.info(
            "Package %s status %s -> %s by %s",
            package.short_code,
            observed,
            destination.value,
            actor_id,
        )
        result = TransitionResult(
            package=updated,
            from_status=observed,
            to_status=destination.value,
        )

        history_payload = {
            "package_id": package.id,
            "from_status": observed,
            "to_status": destination.value,
            "location": where,
            "actor_id": actor_id,
            "note": note or None,
        }
        result.history_recorded = await self._audit_write(
            HISTORY_WRITE,
            history_payload,
            result,
        )

        scan_payload = {
            "package_id": package.id,
            "raw_data": raw_data or package.short_code,
            "symbology": normalize_symbology(symbology),
            "location": where,
            "actor_id": actor_id,
            "device_label": device_label[:50],
        }
        result.scan_recorded = await self._audit_write(
            SCAN_WRITE,
            scan_payload,
            result,
        )
        return result

    async def apply_bulk(
        self,
        code: str,
        target: str | PackageStatus,
        *,
        actor_id: str,
        symbology: str | None = "qr",
        device_label: str = "",
    ) -> BulkOutcome:
        """Resolve ``code`` and apply ``target`` without confirmation."""
        try:
            resolution = await self.resolver.resolve(code, with_history=False)
        except PackageNotFoundError as exc:
            return BulkOutcome(
                code=code,
                success=False,
                error="Package not found",
                error_code=exc.code,
            )
        except BackendUnavailableError as exc:
            return BulkOutcome(
                code=code, success=False, error=str(exc), error_code=exc.code
            )

        package = resolution.package
        try:
            result = await self.apply(
                package,
                target,
                actor_id=actor_id,
                note=BULK_NOTE,
                raw_data=code,
                symbology=symbology,
                device_label=device_label,
            )
        except (
            InvalidTransitionError,
            StatusConflictError,
            StatusUpdateError,
            PackageNotFoundError,
        ) as exc:
            logger.warning("Bulk update of %s failed: %s", package.short_code, exc)
            return BulkOutcome(
                code=code,
                success=False,
                short_code=package.short_code,
                error=str(exc),
                error_code=exc.code,
            )

        return BulkOutcome(
            code=code,
            success=True,
            short_code=package.short_code,
            audit_incomplete=result.audit_incomplete,
        )

    async def _audit_write(
        self,
        kind: str,
        payload: dict[str, Any],
        result: TransitionResult,
    ) -> bool:
        try:
            if kind == HISTORY_WRITE:
                await self.history.append(**payload)
            else:
                await self.scans.record(**payload)
            return True
        except Exception as exc:
            logger.warning(
                "Status of package %s was updated but the %s write failed: %s",
                payload["package_id"],
                kind,
                exc,
            )
            result.audit_errors.append(f"{kind}: {exc}")

        if self.retry_store is not None and self.config.retry_enabled:
            try:
                retry_id = await self.retry_store.store_failed_write(
                    payload["package_id"],
                    kind,
                    payload,
                    error=result.audit_errors[-1],
                )
            except Exception as exc:
                logger.error(
                    "Could not queue %s write for package %s: %s",
                    kind,
                    payload["package_id"],
                    exc,
                )
            else:
                result.queued_retries.append(retry_id)
        return False
