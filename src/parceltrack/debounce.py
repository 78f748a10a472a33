"""Duplicate-read suppression for camera decode callbacks."""

from __future__ import annotations

import time
from collections.abc import Callable


class ScanDebouncer:
    """Drop reads that repeat too quickly.

    A read is rejected when any read was accepted less than ``throttle_ms``
    ago, or when the same code was accepted less than ``window_ms`` ago.
    Rejected reads leave the timestamps untouched.
    """

    def __init__(
        self,
        window_ms: int = 500,
        throttle_ms: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_ms = window_ms
        self.throttle_ms = throttle_ms
        self._clock = clock
        self._last_code: str | None = None
        self._last_at: float | None = None

    def accept(self, code: str) -> bool:
        now = self._clock()
        if self._last_at is not None:
            elapsed_ms = (now - self._last_at) * 1000
            if elapsed_ms < self.throttle_ms:
                return False
            if code == self._last_code and elapsed_ms < self.window_ms:
                return False
        self._last_code = code
        self._last_at = now
        return True

    def reset(self) -> None:
        self._last_code = None
        self._last_at = None
