"""Package tracking: scan workflow core and FastAPI service."""

from typing import TYPE_CHECKING

__version__ = "0.1.0"

__all__ = [
    "LookupResolver",
    "PackageNotFoundError",
    "PackageStatus",
    "ParceltrackConfig",
    "ScanController",
    "StatusTransitionHandler",
    "__version__",
    "create_tracking_router",
    "register_exception_handlers",
]

if TYPE_CHECKING:
    from parceltrack.config import ParceltrackConfig
    from parceltrack.controller import ScanController
    from parceltrack.exceptions import (
        PackageNotFoundError,
        register_exception_handlers,
    )
    from parceltrack.resolver import LookupResolver
    from parceltrack.router import create_tracking_router
    from parceltrack.statuses import PackageStatus
    from parceltrack.transitions import StatusTransitionHandler


def __getattr__(name: str):
    # Lazy imports to avoid loading all submodules on package import.
    if name == "ParceltrackConfig":
        from parceltrack.config import ParceltrackConfig

        return ParceltrackConfig
    if name == "create_tracking_router":
        from parceltrack.router import create_tracking_router

        return create_tracking_router
    if name in ("PackageNotFoundError", "register_exception_handlers"):
        from parceltrack import exceptions

        return getattr(exceptions, name)
    if name == "PackageStatus":
        from parceltrack.statuses import PackageStatus

        return PackageStatus
    if name == "LookupResolver":
        from parceltrack.resolver import LookupResolver

        return LookupResolver
    if name == "StatusTransitionHandler":
        from parceltrack.transitions import StatusTransitionHandler

        return StatusTransitionHandler
    if name == "ScanController":
        from parceltrack.controller import ScanController

        return ScanController
    raise AttributeError(f"module 'parceltrack' has no attribute {name!r}")
