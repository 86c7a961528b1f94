"""Per-provider circuit breaker."""

from __future__ import annotations

import logging
from threading import Lock

from .errors import ProviderDisabled


class CircuitBreaker:
    """Once tripped, stays open until reset() is called explicitly."""

    def __init__(self, name: str, *, logger: logging.Logger) -> None:
        self.name = name
        self._logger = logger
        self._open = False
        self._reason: str | None = None
        self._lock = Lock()

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def reason(self) -> str | None:
        return self._reason

    def check(self) -> None:
        """Raise ProviderDisabled when the circuit is open."""
        if self._open:
            raise ProviderDisabled(f"{self.name} is disabled: {self._reason}")

    def trip(self, reason: str) -> None:
        with self._lock:
            if self._open:
                return
            self._open = True
            self._reason = reason
        self._logger.warning("Disabling %s for this process: %s", self.name, reason)

    def reset(self) -> None:
        with self._lock:
            self._open = False
            self._reason = None
