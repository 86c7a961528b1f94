"""Run budget tracking in a shared money unit."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal
from threading import Lock

from .errors import BudgetExhausted


def cost_of(
    unit_costs: Mapping[str, Decimal], operation: str, *, logger: logging.Logger
) -> Decimal:
    """Look up an operation's unit price; unknown operations are free."""
    cost = unit_costs.get(operation)
    if cost is None:
        logger.warning("No unit cost configured for %s; treating it as free.", operation)
        return Decimal("0")
    return cost


class Budget:
    """Cumulative spend against a fixed ceiling. Spend only ever grows."""

    def __init__(self, limit: Decimal) -> None:
        self._limit = max(Decimal("0"), Decimal(limit))
        self._spent = Decimal("0")
        self._lock = Lock()

    @property
    def limit(self) -> Decimal:
        return self._limit

    @property
    def spent(self) -> Decimal:
        return self._spent

    def can_spend(self, cost: Decimal) -> bool:
        return self._spent + cost <= self._limit

    def spend(self, cost: Decimal) -> None:
        if cost < 0:
            raise ValueError("cost must be >= 0")
        with self._lock:
            if self._spent + cost > self._limit:
                raise BudgetExhausted(
                    f"spending {cost} would exceed the limit ({self._spent}/{self._limit})"
                )
            self._spent += cost

    def try_spend(self, cost: Decimal) -> bool:
        """Atomic check-then-spend for callers running on several threads."""
        with self._lock:
            if cost < 0 or self._spent + cost > self._limit:
                return False
            self._spent += cost
            return True

    def remaining(self) -> Decimal:
        return max(Decimal("0"), self._limit - self._spent)
