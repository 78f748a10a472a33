"""Headless scan UI controller.

Drives a camera session, the lookup resolver and the transition handler
through one screen state at a time. The camera runs only while the
controller is in ``IDLE_SCANNING``; entering any other state stops it and
returning to scanning restarts it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from parceltrack.camera import CameraSession, classify_device_error
from parceltrack.config import ParceltrackConfig
from parceltrack.debounce import ScanDebouncer
from parceltrack.exceptions import (
    BackendUnavailableError,
    CameraError,
    InvalidTransitionError,
    PackageNotFoundError,
    StatusConflictError,
    StatusUpdateError,
)
from parceltrack.resolver import LookupResolver, Resolution
from parceltrack.statuses import PackageStatus, parse_status
from parceltrack.transitions import (
    BulkOutcome,
    StatusTransitionHandler,
    TransitionResult,
)

logger = logging.getLogger(__name__)


class ScanState(StrEnum):
    STOPPED = "stopped"
    IDLE_SCANNING = "idle_scanning"
    LOADING_LOOKUP = "loading_lookup"
    NOT_FOUND = "not_found"
    PACKAGE_DETAIL = "package_detail"
    STATUS_PICKER = "status_picker"


class ScanMode(StrEnum):
    SINGLE = "single"
    BULK = "bulk"


@dataclass(frozen=True)
class Notification:
    level: str
    code: str
    message: str


class ScanController:
    def __init__(
        self,
        camera: CameraSession,
        resolver: LookupResolver,
        handler: StatusTransitionHandler,
        *,
        actor_id: str,
        mode: ScanMode = ScanMode.SINGLE,
        config: ParceltrackConfig | None = None,
        debouncer: ScanDebouncer | None = None,
        notify: Callable[[Notification], None] | None = None,
        device_label: str = "",
    ) -> None:
        self.camera = camera
        self.resolver = resolver
        self.handler = handler
        self.actor_id = actor_id
        self.mode = mode
        self.config = config or resolver.config
        self.debouncer = debouncer or ScanDebouncer(
            window_ms=self.config.debounce_window_ms,
            throttle_ms=self.config.throttle_ms,
        )
        self._notify = notify
        self.device_label = device_label

        self.state = ScanState.STOPPED
        self.processing = False
        self._closed = True
        self.scan_count = 0
        self.current: Resolution | None = None
        self.current_format: str | None = None
        self.not_found_code: str | None = None
        self.bulk_status: PackageStatus | None = None
        self.bulk_results: list[BulkOutcome] = []
        self.last_result: TransitionResult | None = None
        self.last_error: CameraError | None = None
        self.notifications: list[Notification] = []

    # --- lifecycle -------------------------------------------------------

    async def open(self) -> None:
        """Start scanning. Camera errors are raised; call again to retry."""
        self._closed = False
        self.last_error = None
        try:
            await self._enter(ScanState.IDLE_SCANNING)
        except CameraError as exc:
            await self._fail(exc)
            raise

    async def close(self) -> None:
        """Stop the camera; scans still in flight will not restart it."""
        self._closed = True
        try:
            await self.camera.stop()
        finally:
            self.state = ScanState.STOPPED
            self.current = None
            self.current_format = None
            self.not_found_code = None

    async def __aenter__(self) -> ScanController:
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # --- mode ------------------------------------------------------------

    def set_mode(self, mode: ScanMode) -> None:
        self.mode = ScanMode(mode)
        if self.mode is ScanMode.SINGLE:
            self.bulk_status = None
        self.debouncer.reset()

    def set_bulk_status(self, status: str | PackageStatus) -> None:
        self.bulk_status = parse_status(status)

    def clear_bulk_results(self) -> None:
        self.bulk_results = []

    # --- camera callbacks ------------------------------------------------

    async def on_decode(self, text: str, fmt: str = "qr") -> None:
        if self.processing:
            logger.debug("Already processing a scan, ignoring read")
            return
        if self.mode is ScanMode.BULK and self.bulk_status is None:
            self._emit("warning", "select_status_first", "Select a status first")
            return
        if self.state is not ScanState.IDLE_SCANNING:
            return
        if self.resolver.is_noise(text):
            return
        code = text.strip()
        if not self.debouncer.accept(code):
            return

        self.processing = True
        self.scan_count += 1
        try:
            await self._enter(ScanState.LOADING_LOOKUP)
            if self.mode is ScanMode.BULK:
                await self._process_bulk(code, fmt)
            else:
                await self._process_single(code, fmt)
        except Exception as exc:
            logger.exception("Scan processing error for %s", code[:20])
            self._emit("error", "error_processing", str(exc))
            await self._resume_scanning()
        finally:
            self.processing = False

    async def on_camera_error(self, exc: Exception) -> None:
        if not isinstance(exc, CameraError):
            exc = classify_device_error(
                getattr(exc, "name", type(exc).__name__),
                str(exc),
                secure_context=self.camera.secure_context,
            )
        await self._fail(exc)

    async def toggle_torch(self) -> bool:
        return await self.camera.toggle_torch()

    # --- single mode -----------------------------------------------------

    async def choose_status(self) -> None:
        self._require(ScanState.PACKAGE_DETAIL)
        await self._enter(ScanState.STATUS_PICKER)

    async def confirm(
        self,
        target: str | PackageStatus,
        note: str | None = None,
    ) -> TransitionResult | None:
        """Apply the chosen status to the open package.

        Returns None when another status change is still running.
        """
        self._require(ScanState.PACKAGE_DETAIL, ScanState.STATUS_PICKER)
        if self.processing:
            return None
        resolution = self.current
        if resolution is None:
            raise RuntimeError("No package is open")

        self.processing = True
        try:
            result = await self.handler.apply(
                resolution.package,
                target,
                actor_id=self.actor_id,
                note=note,
                raw_data=resolution.package.short_code,
                symbology=self.current_format,
                device_label=self.device_label,
            )
        except (
            InvalidTransitionError,
            StatusConflictError,
            StatusUpdateError,
            PackageNotFoundError,
        ) as exc:
            self._emit("error", exc.code, str(exc))
            raise
        finally:
            self.processing = False

        self.last_result = result
        if result.audit_incomplete:
            self._emit(
                "warning",
                "audit_incomplete",
                "Status updated but the audit trail is incomplete: "
                + "; ".join(result.audit_errors),
            )
        self._emit(
            "success",
            "status_updated",
            f"{resolution.package.short_code} -> {result.to_status}",
        )
        await self._resume_scanning()
        return result

    async def cancel(self) -> None:
        self._require(ScanState.PACKAGE_DETAIL, ScanState.STATUS_PICKER)
        await self._resume_scanning()

    async def acknowledge(self) -> None:
        """Dismiss the not-found screen and go back to scanning."""
        self._require(ScanState.NOT_FOUND)
        await self._resume_scanning()

    # --- internals -------------------------------------------------------

    async def _process_single(self, code: str, fmt: str) -> None:
        try:
            resolution = await self.resolver.resolve(code)
        except PackageNotFoundError as exc:
            self.not_found_code = code
            self._emit("error", exc.code, str(exc))
            await self._enter(ScanState.NOT_FOUND)
            return
        except BackendUnavailableError as exc:
            self._emit("error", exc.code, str(exc))
            await self._resume_scanning()
            return

        if self._closed:
            return
        self.current = resolution
        self.current_format = fmt
        self._emit(
            "success",
            "package_found",
            f"Package {resolution.package.short_code} found",
        )
        await self._enter(ScanState.PACKAGE_DETAIL)

    async def _process_bulk(self, code: str, fmt: str) -> None:
        if self.bulk_status is None:
            raise RuntimeError("No bulk status selected")
        outcome = await self.handler.apply_bulk(
            code,
            self.bulk_status,
            actor_id=self.actor_id,
            symbology=fmt,
            device_label=self.device_label,
        )
        self.bulk_results.append(outcome)
        if outcome.success:
            self._emit(
                "success",
                "status_updated",
                f"{outcome.short_code} -> {self.bulk_status.value}",
            )
        else:
            self._emit(
                "error",
                outcome.error_code or "bulk_update_failed",
                f"{outcome.short_code or code}: {outcome.error}",
            )
        await self._resume_scanning()

    async def _enter(self, state: ScanState) -> None:
        if self._closed:
            return
        if state is ScanState.IDLE_SCANNING:
            if not self.camera.active:
                await self.camera.start(self.on_decode, self.on_camera_error)
        elif self.camera.active:
            await self.camera.stop()
        self.state = state

    async def _resume_scanning(self) -> None:
        if self._closed:
            return
        self.current = None
        self.current_format = None
        self.not_found_code = None
        try:
            await self._enter(ScanState.IDLE_SCANNING)
        except CameraError as exc:
            await self._fail(exc)

    async def _fail(self, exc: CameraError) -> None:
        self.last_error = exc
        logger.error("Camera error: %s (%s)", exc, exc.cause)
        self._emit("error", exc.code, str(exc))
        await self.camera.stop()
        self.state = ScanState.STOPPED

    def _require(self, *states: ScanState) -> None:
        if self.state not in states:
            raise RuntimeError(
                f"Operation not allowed in state {self.state.value}"
            )

    def _emit(self, level: str, code: str, message: str) -> None:
        notification = Notification(level=level, code=code, message=message)
        self.notifications.append(notification)
        if self._notify is not None:
            self._notify(notification)
