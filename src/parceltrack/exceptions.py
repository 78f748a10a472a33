"""Exception taxonomy and handlers mapping it to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class ParceltrackError(Exception):
    """Base class for all parceltrack errors."""

    code = "parceltrack_error"


# --- device errors -------------------------------------------------------


class CameraError(ParceltrackError):
    """Camera could not be acquired or driven."""

    code = "camera_error"
    message = "Failed to access camera"

    def __init__(self, message: str | None = None, *, cause: str = "") -> None:
        self.cause = cause
        super().__init__(message or self.message)


class CameraPermissionDeniedError(CameraError):
    code = "camera_permission_denied"
    message = "Camera permission was denied. Allow camera access and retry."


class CameraNotFoundError(CameraError):
    code = "camera_not_found"
    message = "No camera was found on this device."


class CameraBusyError(CameraError):
    code = "camera_in_use"
    message = "The camera is already in use by another application."


class InsecureContextError(CameraError):
    code = "camera_requires_https"
    message = "Camera access requires a secure (HTTPS) connection."


class CameraTimeoutError(CameraError):
    code = "camera_timeout"
    message = "Timed out while starting the camera."


class TorchUnsupportedError(CameraError):
    code = "torch_unsupported"
    message = "This camera does not support the flashlight."


# --- lookup errors -------------------------------------------------------


class PackageNotFoundError(ParceltrackError):
    """No package matched the scanned identifier. Terminal."""

    code = "package_not_found"

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"Package {identifier} not found")


class BackendUnavailableError(ParceltrackError):
    """Transient backend failure; the operation may be retried."""

    code = "backend_unavailable"


# --- write errors --------------------------------------------------------


class InvalidTransitionError(ParceltrackError):
    code = "invalid_transition"

    def __init__(
        self,
        message: str,
        *,
        current: str | None = None,
        target: str | None = None,
    ) -> None:
        self.current = current
        self.target = target
        super().__init__(message)


class StatusConflictError(ParceltrackError):
    """The package status changed since it was observed."""

    code = "status_conflict"

    def __init__(
        self,
        package_id: str,
        expected: str,
        actual: str | None,
    ) -> None:
        self.package_id = package_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Package {package_id} status is {actual}, expected {expected}"
        )


class StatusUpdateError(ParceltrackError):
    """The package status write failed; nothing was changed."""

    code = "status_update_failed"


class InsufficientStockError(ParceltrackError):
    code = "insufficient_stock"

    def __init__(self, shortfalls: list[tuple[str, int, int]]) -> None:
        self.shortfalls = shortfalls
        detail = "; ".join(
            f"{name}: needed {needed}, available {available}"
            for name, needed, available in shortfalls
        )
        super().__init__(f"Insufficient stock: {detail}")


# --- access errors -------------------------------------------------------


class AuthenticationError(ParceltrackError):
    code = "not_authenticated"


class PermissionDenied(ParceltrackError):
    code = "permission_denied"


def _error_response(status_code: int, exc: ParceltrackError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": exc.code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register parceltrack exception handlers on a FastAPI app.

    More specific handlers must be registered first so FastAPI
    matches them before the generic ParceltrackError handler.

    Handler order (most specific first):
    1. PackageNotFoundError → 404
    2. StatusConflictError → 409
    3. InvalidTransitionError → 409
    4. InsufficientStockError → 409
    5. BackendUnavailableError → 503
    6. StatusUpdateError → 502
    7. AuthenticationError → 401
    8. PermissionDenied → 403
    9. CameraError → 400
    10. ParceltrackError → 400 (catch-all)
    """

    @app.exception_handler(PackageNotFoundError)
    async def _not_found(
        request: Request,
        exc: PackageNotFoundError,
    ) -> JSONResponse:
        return _error_response(404, exc)

    @app.exception_handler(StatusConflictError)
    async def _conflict(
        request: Request,
        exc: StatusConflictError,
    ) -> JSONResponse:
        return _error_response(409, exc)

    @app.exception_handler(InvalidTransitionError)
    async def _invalid_transition(
        request: Request,
        exc: InvalidTransitionError,
    ) -> JSONResponse:
        return _error_response(409, exc)

    @app.exception_handler(InsufficientStockError)
    async def _insufficient_stock(
        request: Request,
        exc: InsufficientStockError,
    ) -> JSONResponse:
        return _error_response(409, exc)

    @app.exception_handler(BackendUnavailableError)
    async def _backend_unavailable(
        request: Request,
        exc: BackendUnavailableError,
    ) -> JSONResponse:
        return _error_response(503, exc)

    @app.exception_handler(StatusUpdateError)
    async def _status_update_failed(
        request: Request,
        exc: StatusUpdateError,
    ) -> JSONResponse:
        return _error_response(502, exc)

    @app.exception_handler(AuthenticationError)
    async def _not_authenticated(
        request: Request,
        exc: AuthenticationError,
    ) -> JSONResponse:
        return _error_response(401, exc)

    @app.exception_handler(PermissionDenied)
    async def _permission_denied(
        request: Request,
        exc: PermissionDenied,
    ) -> JSONResponse:
        return _error_response(403, exc)

    @app.exception_handler(CameraError)
    async def _camera_error(
        request: Request,
        exc: CameraError,
    ) -> JSONResponse:
        return _error_response(400, exc)

    @app.exception_handler(ParceltrackError)
    async def _parceltrack_error(
        request: Request,
        exc: ParceltrackError,
    ) -> JSONResponse:
        return _error_response(400, exc)
