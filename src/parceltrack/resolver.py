"""Turn decoded scanner text into a package."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote

from parceltrack.config import DEFAULT_NOISE_LITERALS, ParceltrackConfig
from parceltrack.exceptions import BackendUnavailableError, PackageNotFoundError
from parceltrack.protocols import Package, PackageRepository, StatusHistoryStore
from parceltrack.retry import compute_backoff_seconds

logger = logging.getLogger(__name__)

TRACKING_PATH_RE = re.compile(r"/track/([^/?#]+)", re.IGNORECASE)
PAYLOAD_ID_FIELDS = ("pkg", "id")


def is_noise(
    text: str | None,
    min_length: int = 3,
    noise_literals: Iterable[str] = DEFAULT_NOISE_LITERALS,
) -> bool:
    """Return True for reads that are almost certainly camera noise."""
    if not isinstance(text, str):
        return True
    normalized = text.strip()
    if len(normalized) < min_length:
        return True
    return normalized in set(noise_literals)


def extract_package_identifier(text: str) -> str:
    """Pull a package identifier out of a decoded payload.

    Accepts a JSON object carrying ``pkg`` or ``id``, a tracking URL
    (``{origin}/track/{code}``), or a bare code.
    """
    try:
        payload = json.loads(text)
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in PAYLOAD_ID_FIELDS:
            value = payload.get(key)
            if value not in (None, ""):
                return str(value).strip()

    match = TRACKING_PATH_RE.search(text)
    if match:
        return unquote(match.group(1)).strip()

    return text.strip()


@dataclass
class Resolution:
    identifier: str
    package: Package
    history: list[Any] = field(default_factory=list)


class LookupResolver:
    """Resolve decoded text to a package: short code first, then id."""

    def __init__(
        self,
        packages: PackageRepository,
        history: StatusHistoryStore | None = None,
        config: ParceltrackConfig | None = None,
    ) -> None:
        self.packages = packages
        self.history = history
        self.config = config or ParceltrackConfig()

    def is_noise(self, text: str | None) -> bool:
        return is_noise(
            text,
            min_length=self.config.min_code_length,
            noise_literals=self.config.noise_literals,
        )

    async def find(self, identifier: str) -> Package | None:
        package = await self._with_retry(
            self.packages.get_by_short_code, identifier
        )
        if package is None:
            package = await self._with_retry(self.packages.get_by_id, identifier)
        return package

    async def resolve(self, text: str, *, with_history: bool = True) -> Resolution:
        """Resolve decoded text.

        Raises PackageNotFoundError when neither the short code nor the
        primary key matches, and BackendUnavailableError once lookup
        retries are exhausted.
        """
        identifier = extract_package_identifier(text)
        logger.debug("Resolving scanned identifier %s", identifier)
        package = await self.find(identifier)
        if package is None:
            raise PackageNotFoundError(identifier)

        history: list[Any] = []
        if with_history and self.history is not None:
            history = await self._with_retry(
                self.history.list_recent,
                package.id,
                self.config.history_limit,
            )
        return Resolution(identifier=identifier, package=package, history=history)

    async def _with_retry(self, func, *args):
        attempts = max(1, self.config.lookup_retry_attempts)
        base = self.config.lookup_retry_backoff_ms / 1000
        for attempt in range(1, attempts + 1):
            try:
                return await func(*args)
            except BackendUnavailableError as exc:
                if attempt >= attempts:
                    logger.warning(
                        "Lookup failed after %d attempts: %s", attempt, exc
                    )
                    raise
                delay = compute_backoff_seconds(attempt, base)
                logger.info(
                    "Lookup attempt %d failed (%s), retrying in %.3fs",
                    attempt,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
