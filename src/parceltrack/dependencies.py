"""Dependency providers for request handlers."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, Header, HTTPException, Request

from parceltrack.config import ParceltrackConfig
from parceltrack.exceptions import AuthenticationError, PermissionDenied
from parceltrack.packages import PackageService
from parceltrack.protocols import (
    AuditRetryStore,
    InventoryRepository,
    PackageRepository,
    ScanLogStore,
    StatusHistoryStore,
    UserRepository,
)
from parceltrack.resolver import LookupResolver
from parceltrack.transitions import StatusTransitionHandler


def get_config(request: Request) -> ParceltrackConfig:
    """Read config from FastAPI app state."""
    return request.app.state.parceltrack_config


def get_packages(request: Request) -> PackageRepository:
    return request.app.state.parceltrack_packages


def get_history(request: Request) -> StatusHistoryStore:
    return request.app.state.parceltrack_history


def get_scans(request: Request) -> ScanLogStore:
    return request.app.state.parceltrack_scans


def get_inventory(request: Request) -> InventoryRepository | None:
    return getattr(request.app.state, "parceltrack_inventory", None)


def get_users(request: Request) -> UserRepository:
    return request.app.state.parceltrack_users


def get_retry_store(request: Request) -> AuditRetryStore | None:
    """Read retry store from FastAPI app state."""
    return getattr(request.app.state, "parceltrack_retry_store", None)


def get_resolver(request: Request) -> LookupResolver:
    """Create a LookupResolver for the current request."""
    return LookupResolver(
        get_packages(request),
        get_history(request),
        get_config(request),
    )


def get_handler(request: Request) -> StatusTransitionHandler:
    """Create a StatusTransitionHandler for the current request."""
    return StatusTransitionHandler(
        get_packages(request),
        get_history(request),
        get_scans(request),
        config=get_config(request),
        retry_store=get_retry_store(request),
        resolver=get_resolver(request),
    )


def get_package_service(request: Request) -> PackageService:
    inventory = get_inventory(request)
    if inventory is None:
        raise HTTPException(
            status_code=500,
            detail="Inventory repository not configured",
        )
    return PackageService(get_packages(request), inventory, get_config(request))


async def get_actor(
    x_actor_id: str | None = Header(default=None),
    users: UserRepository = Depends(get_users),
) -> Any:
    """Resolve the acting user from the ``X-Actor-Id`` header."""
    if not x_actor_id:
        raise AuthenticationError("Missing X-Actor-Id header")
    user = await users.get_by_id(x_actor_id)
    if user is None or not getattr(user, "active", True):
        raise AuthenticationError("Unknown or inactive user")
    return user


async def get_admin(actor: Any = Depends(get_actor)) -> Any:
    if getattr(actor, "role", None) != "admin":
        raise PermissionDenied("Administrator role required")
    return actor
