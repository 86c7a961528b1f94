"""Budget-gated orchestration of provider calls across domains."""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal

from tqdm import tqdm

from .budget import Budget, cost_of
from .models import ProviderClient, RawContactCandidate

CandidatePredicate = Callable[[RawContactCandidate], bool]

STOP_BUDGET = "budget_exhausted"
STOP_ZERO_YIELD = "zero_yield"
STOP_CANCELLED = "cancelled"
STOP_NO_PROVIDERS = "no_providers"
STOP_LIMIT = "limit_reached"

PROVIDER_PAGE_SIZE = 10


def per_domain_cap(limit: int, domain_count: int, max_per_domain: int) -> int:
    """Spread ``limit`` across domains, never below one or above ``max_per_domain``."""
    if limit <= 0 or domain_count <= 0:
        return 0
    share = max(1, math.ceil(limit / min(domain_count, limit)))
    return min(share, max_per_domain)


@dataclass
class DomainOutcome:
    """What one domain produced. ``raw_yield`` counts candidates before filtering."""

    domain: str
    candidates: list[RawContactCandidate] = field(default_factory=list)
    raw_yield: int = 0
    calls: int = 0
    budget_exhausted: bool = False


@dataclass
class AgentRun:
    candidates: list[RawContactCandidate]
    provider_calls: int
    domains_attempted: int
    by_source: dict[str, int]
    stopped_reason: str | None = None


class Orchestrator:
    """Walks domains through an ordered provider list under a shared budget.

    Domains run in windows of ``parallelism``. The first provider call of every
    domain is paid for on the calling thread, in domain order, before the
    window is submitted; outcomes are folded back in domain order. A stop
    raised while folding ends the run after the current window, whose
    remaining outcomes are still deduplicated and counted.
    """

    def __init__(
        self,
        *,
        providers: Sequence[ProviderClient],
        budget: Budget,
        unit_costs: Mapping[str, Decimal],
        logger: logging.Logger,
        parallelism: int = 1,
        zero_yield_abort_threshold: int = 2,
        keep: CandidatePredicate | None = None,
        cancel_event: threading.Event | None = None,
        show_progress: bool = False,
    ) -> None:
        self._providers = list(providers)
        self._budget = budget
        self._unit_costs = unit_costs
        self._logger = logger
        self._parallelism = max(1, parallelism)
        self._zero_yield_threshold = zero_yield_abort_threshold
        self._keep = keep or (lambda candidate: True)
        self._cancel = cancel_event or threading.Event()
        self._show_progress = show_progress

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def run(
        self,
        domains: Sequence[str],
        *,
        limit: int,
        per_domain: int,
        title: str | None = None,
        locations: tuple[str, ...] = (),
    ) -> AgentRun:
        accepted: list[RawContactCandidate] = []
        seen: set[str] = set()
        by_source: dict[str, int] = {}
        calls = 0
        attempted = 0
        zero_streak = 0
        stopped: str | None = None
        pending = list(domains)

        progress = tqdm(
            total=len(pending), desc="enriching domains", disable=not self._show_progress
        )
        try:
            while pending and stopped is None:
                if self.cancelled:
                    stopped = STOP_CANCELLED
                    break
                needed = limit - len(accepted)
                if needed <= 0:
                    stopped = STOP_LIMIT
                    break
                window_size = min(
                    self._parallelism, max(1, math.ceil(needed / max(per_domain, 1)))
                )
                window, reserve_stop = self._reserve_window(pending, window_size)
                pending = pending[len(window) :]
                if not window:
                    stopped = reserve_stop
                    break

                outcomes = self._run_window(window, per_domain, title, locations)
                calls += sum(outcome.calls for outcome in outcomes)

                for outcome in outcomes:
                    attempted += 1
                    progress.update(1)
                    for candidate in outcome.candidates:
                        if len(accepted) >= limit:
                            break
                        key = candidate.email.lower()
                        if key in seen:
                            continue
                        seen.add(key)
                        accepted.append(candidate)
                        by_source[candidate.source] = by_source.get(candidate.source, 0) + 1

                    if stopped:
                        continue
                    if outcome.raw_yield == 0:
                        zero_streak += 1
                        self._logger.info(
                            "No candidates for %s (zero-yield streak %d)",
                            outcome.domain,
                            zero_streak,
                        )
                    else:
                        zero_streak = 0

                    if outcome.budget_exhausted:
                        stopped = STOP_BUDGET
                    elif self._zero_yield_threshold and zero_streak >= self._zero_yield_threshold:
                        self._logger.warning(
                            "Stopping after %d consecutive domains without candidates; "
                            "providers may be rate limiting.",
                            zero_streak,
                        )
                        stopped = STOP_ZERO_YIELD
                    elif len(accepted) >= limit:
                        stopped = STOP_LIMIT
                if stopped is None:
                    stopped = reserve_stop
        finally:
            progress.close()

        if stopped == STOP_BUDGET:
            self._logger.warning(
                "Run budget exhausted (spent %s of %s); returning partial results.",
                self._budget.spent,
                self._budget.limit,
            )
        self._logger.info(
            "Orchestration finished: %d candidates from %d domains, %d provider calls",
            len(accepted),
            attempted,
            calls,
        )
        return AgentRun(
            candidates=accepted,
            provider_calls=calls,
            domains_attempted=attempted,
            by_source=by_source,
            stopped_reason=stopped,
        )

    def _first_available(self) -> ProviderClient | None:
        for provider in self._providers:
            if provider.available:
                return provider
        return None

    def _reserve_window(
        self, pending: list[str], size: int
    ) -> tuple[list[tuple[str, ProviderClient]], str | None]:
        """Pay for each domain's first provider call in order until the window is full."""
        window: list[tuple[str, ProviderClient]] = []
        for domain in pending[:size]:
            if self.cancelled:
                return window, STOP_CANCELLED
            provider = self._first_available()
            if provider is None:
                self._logger.warning("No provider is available; stopping the run.")
                return window, STOP_NO_PROVIDERS
            cost = cost_of(self._unit_costs, provider.cost_key, logger=self._logger)
            if not self._budget.try_spend(cost):
                return window, STOP_BUDGET
            window.append((domain, provider))
        return window, None

    def _run_window(
        self,
        window: list[tuple[str, ProviderClient]],
        per_domain: int,
        title: str | None,
        locations: tuple[str, ...],
    ) -> list[DomainOutcome]:
        if len(window) == 1:
            domain, provider = window[0]
            return [self._process_domain(domain, provider, per_domain, title, locations)]
        with ThreadPoolExecutor(max_workers=len(window)) as executor:
            futures = [
                executor.submit(
                    self._process_domain, domain, provider, per_domain, title, locations
                )
                for domain, provider in window
            ]
            return [future.result() for future in futures]

    def _process_domain(
        self,
        domain: str,
        reserved: ProviderClient,
        per_domain: int,
        title: str | None,
        locations: tuple[str, ...],
    ) -> DomainOutcome:
        outcome = DomainOutcome(domain=domain)
        local_seen: set[str] = set()
        started = False
        for provider in self._providers:
            if not started:
                if provider is not reserved:
                    continue
                started = True
            else:
                if self.cancelled or len(outcome.candidates) >= per_domain:
                    break
                if not provider.available:
                    continue
                cost = cost_of(self._unit_costs, provider.cost_key, logger=self._logger)
                if not self._budget.try_spend(cost):
                    outcome.budget_exhausted = True
                    break

            outcome.calls += 1
            found = provider.search(
                domain,
                title=title,
                locations=locations,
                limit=max(per_domain, PROVIDER_PAGE_SIZE),
            )
            outcome.raw_yield += len(found)
            for candidate in found:
                if len(outcome.candidates) >= per_domain:
                    break
                key = candidate.email.lower()
                if key in local_seen or not self._keep(candidate):
                    continue
                local_seen.add(key)
                outcome.candidates.append(candidate)
            self._logger.debug(
                "%s: %s returned %d, kept %d so far",
                domain,
                provider.name,
                len(found),
                len(outcome.candidates),
            )
        return outcome
