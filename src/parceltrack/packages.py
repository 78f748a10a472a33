"""Package creation with inventory deduction."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from parceltrack.config import ParceltrackConfig
from parceltrack.contents import format_contents_note
from parceltrack.exceptions import InsufficientStockError, ParceltrackError
from parceltrack.labels import build_encoded_payload, generate_short_code
from parceltrack.protocols import InventoryRepository, Package, PackageRepository
from parceltrack.statuses import PackageStatus

logger = logging.getLogger(__name__)

SHORT_CODE_ATTEMPTS = 5


class ShortCodeCollisionError(ParceltrackError):
    code = "short_code_collision"


@dataclass
class ItemRequest:
    item_id: str
    quantity: int


@dataclass
class CreatedPackage:
    package: Package
    inventory_warnings: list[str] = field(default_factory=list)


class PackageService:
    """Create packages and take their items out of stock.

    The package insert, the movement rows and the stock updates are
    separate writes. A failed inventory write after the insert is logged
    and reported on the result; the package is kept.
    """

    def __init__(
        self,
        packages: PackageRepository,
        inventory: InventoryRepository,
        config: ParceltrackConfig | None = None,
    ) -> None:
        self.packages = packages
        self.inventory = inventory
        self.config = config or ParceltrackConfig()

    async def create_package(
        self,
        *,
        actor_id: str,
        destination_branch_id: str,
        recipient_name: str = "",
        recipient_company: str = "",
        delivery_address: str = "",
        items: list[ItemRequest] | None = None,
        origin: str | None = None,
        symbology: str = "code128",
    ) -> CreatedPackage:
        items = [item for item in items or [] if item.quantity > 0]
        stock = await self._check_stock(items)

        contents = ", ".join(
            f"{stock[item.item_id].name} x{item.quantity}" for item in items
        )
        note = format_contents_note(
            recipient_name,
            recipient_company,
            delivery_address,
            contents,
        )
        location = origin or self.config.default_location
        package = await self._insert(
            created_by=actor_id,
            origin=location,
            destination_branch_id=destination_branch_id,
            contents_note=note,
            status=PackageStatus.CREATED.value,
            current_location=location,
            symbology=symbology,
        )
        logger.info("Package %s created by %s", package.short_code, actor_id)

        created = CreatedPackage(package=package)
        for item in items:
            name = stock[item.item_id].name
            try:
                await self.inventory.record_movement(
                    item_id=item.item_id,
                    delta=-item.quantity,
                    reason=f"Package {package.short_code} created",
                    ref_package_id=package.id,
                    user_id=actor_id,
                )
            except Exception as exc:
                logger.warning(
                    "Failed to record inventory movement for %s: %s", name, exc
                )
                created.inventory_warnings.append(
                    f"Failed to record inventory movement for {name}"
                )
            try:
                await self.inventory.adjust_stock(item.item_id, -item.quantity)
            except Exception as exc:
                logger.warning("Failed to update inventory for %s: %s", name, exc)
                created.inventory_warnings.append(
                    f"Failed to update inventory for {name}"
                )
        return created

    async def _check_stock(self, items: list[ItemRequest]) -> dict[str, Any]:
        found = await self.inventory.get_items([item.item_id for item in items])
        stock = {row.id: row for row in found}
        shortfalls: list[tuple[str, int, int]] = []
        for item in items:
            row = stock.get(item.item_id)
            if row is None:
                shortfalls.append(("Unknown", item.quantity, 0))
            elif row.stock_on_hand < item.quantity:
                shortfalls.append((row.name, item.quantity, row.stock_on_hand))
        if shortfalls:
            raise InsufficientStockError(shortfalls)
        return stock

    async def _insert(self, **fields: Any) -> Package:
        for _ in range(SHORT_CODE_ATTEMPTS):
            short_code = generate_short_code()
            if await self.packages.get_by_short_code(short_code) is not None:
                continue
            package_id = str(uuid.uuid4())
            return await self.packages.create(
                id=package_id,
                short_code=short_code,
                encoded_payload=build_encoded_payload(package_id),
                **fields,
            )
        raise ShortCodeCollisionError(
            f"Could not allocate a unique short code in {SHORT_CODE_ATTEMPTS} attempts"
        )
