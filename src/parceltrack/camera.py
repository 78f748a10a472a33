"""Decoder adapter: camera ownership, device errors and torch control."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from parceltrack.exceptions import (
    CameraBusyError,
    CameraError,
    CameraNotFoundError,
    CameraPermissionDeniedError,
    CameraTimeoutError,
    InsecureContextError,
    TorchUnsupportedError,
)
from parceltrack.protocols import CameraDevice, DecodeCallback, ErrorCallback

logger = logging.getLogger(__name__)

_ERRORS_BY_NAME: dict[str, type[CameraError]] = {
    "NotAllowedError": CameraPermissionDeniedError,
    "PermissionDeniedError": CameraPermissionDeniedError,
    "NotFoundError": CameraNotFoundError,
    "DevicesNotFoundError": CameraNotFoundError,
    "NotReadableError": CameraBusyError,
    "TrackStartError": CameraBusyError,
}


@dataclass(frozen=True)
class CameraConstraints:
    facing_mode: str | None = "environment"
    device_id: str | None = None
    fps: int = 10
    qrbox: int = 250


def classify_device_error(
    name: str | None,
    message: str | None = "",
    *,
    secure_context: bool = True,
) -> CameraError:
    """Map a raw device error to a distinguishable CameraError."""
    message = message or ""
    cause = f"{name}: {message}" if name else message
    error_class = _ERRORS_BY_NAME.get(name or "")
    if error_class is not None:
        return error_class(cause=cause)
    if "https" in message.lower() or not secure_context:
        return InsecureContextError(cause=cause)
    if "timeout" in message.lower():
        return CameraTimeoutError(cause=cause)
    return CameraError(message or None, cause=cause)


class CameraLease:
    """Exclusive ownership of one physical camera.

    Sessions that share a lease cannot hold the camera at the same time.
    """

    def __init__(self) -> None:
        self._owner: object | None = None

    @property
    def owner(self) -> object | None:
        return self._owner

    def acquire(self, owner: object) -> None:
        if self._owner is not None and self._owner is not owner:
            raise CameraBusyError(cause="camera is held by another session")
        self._owner = owner

    def release(self, owner: object) -> None:
        if self._owner is owner:
            self._owner = None


class CameraSession:
    """One scanner's hold on the camera.

    ``stop()`` is idempotent and always releases both the device and the
    lease, so it is safe to call from every exit path.
    """

    def __init__(
        self,
        device: CameraDevice,
        *,
        constraints: CameraConstraints | None = None,
        lease: CameraLease | None = None,
        secure_context: bool = True,
    ) -> None:
        self.device = device
        self.constraints = constraints or CameraConstraints()
        self.lease = lease or CameraLease()
        self.secure_context = secure_context
        self.active = False
        self.torch_available = False
        self.torch_on = False

    async def start(
        self,
        on_decode: DecodeCallback,
        on_error: ErrorCallback,
    ) -> None:
        if self.active:
            return
        if not self.secure_context:
            raise InsecureContextError(cause="insecure context")
        self.lease.acquire(self)
        try:
            await self.device.start(self.constraints, on_decode, on_error)
        except CameraError:
            self.lease.release(self)
            raise
        except Exception as exc:
            self.lease.release(self)
            error = classify_device_error(
                getattr(exc, "name", type(exc).__name__),
                str(exc),
                secure_context=self.secure_context,
            )
            logger.error("Camera failed to start: %s (%s)", error, error.cause)
            raise error from exc

        self.active = True
        self.torch_available = bool(self.device.supports_torch())
        logger.debug("Camera started (torch=%s)", self.torch_available)

    async def stop(self) -> None:
        try:
            if self.active:
                await self.device.stop()
        except Exception as exc:
            logger.warning("Error while stopping camera: %s", exc)
        finally:
            self.active = False
            self.torch_on = False
            self.lease.release(self)

    async def toggle_torch(self) -> bool:
        """Flip the flashlight and return its new state."""
        if not self.active or not self.torch_available:
            raise TorchUnsupportedError()
        enabled = not self.torch_on
        await self.device.set_torch(enabled)
        self.torch_on = enabled
        return enabled

    async def __aenter__(self) -> CameraSession:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
