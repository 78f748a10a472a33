"""Exception handler tests."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from parceltrack.exceptions import (
    AuthenticationError,
    BackendUnavailableError,
    CameraPermissionDeniedError,
    InsufficientStockError,
    InvalidTransitionError,
    PackageNotFoundError,
    ParceltrackError,
    PermissionDenied,
    StatusConflictError,
    StatusUpdateError,
    register_exception_handlers,
)


def _create_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    return app


def _raise(exc: Exception):
    app = _create_app()

    @app.get("/boom")
    async def boom():
        raise exc

    client = TestClient(app, raise_server_exceptions=False)
    return client.get("/boom")


def test_package_not_found_has_identifier() -> None:
    exc = PackageNotFoundError("XYZ999")
    assert exc.identifier == "XYZ999"
    assert str(exc) == "Package XYZ999 not found"


def test_status_conflict_message() -> None:
    exc = StatusConflictError("p-1", "created", "in_transit")
    assert "in_transit" in str(exc)
    assert exc.expected == "created"


def test_insufficient_stock_message() -> None:
    exc = InsufficientStockError([("Small Bag", 3, 1)])
    assert str(exc) == "Insufficient stock: Small Bag: needed 3, available 1"


def test_camera_error_default_message_and_cause() -> None:
    exc = CameraPermissionDeniedError(cause="NotAllowedError: denied")
    assert "permission" in str(exc).lower()
    assert exc.cause == "NotAllowedError: denied"


@pytest.mark.parametrize(
    ("exc", "status_code", "code"),
    [
        (PackageNotFoundError("XYZ999"), 404, "package_not_found"),
        (StatusConflictError("p-1", "created", "x"), 409, "status_conflict"),
        (InvalidTransitionError("nope"), 409, "invalid_transition"),
        (InsufficientStockError([("Bag", 2, 0)]), 409, "insufficient_stock"),
        (BackendUnavailableError("timeout"), 503, "backend_unavailable"),
        (StatusUpdateError("write failed"), 502, "status_update_failed"),
        (AuthenticationError("who?"), 401, "not_authenticated"),
        (PermissionDenied("admins only"), 403, "permission_denied"),
        (CameraPermissionDeniedError(), 400, "camera_permission_denied"),
        (ParceltrackError("something broke"), 400, "parceltrack_error"),
    ],
)
def test_error_status_codes(exc, status_code, code) -> None:
    resp = _raise(exc)
    assert resp.status_code == status_code
    body = resp.json()
    assert body["detail"] == str(exc)
    assert body["code"] == code
