"""Enrichment entry point: orchestration, filtering, secondary passes and verification."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from .agent import Orchestrator, per_domain_cap
from .apollo import ApolloClient
from .budget import Budget, cost_of
from .config import HUNTER_VERIFY, EnrichConfig
from .enrichment import SecondaryEnricher
from .fetchers import RateLimitedFetcher, RetryPolicy, make_retry_session
from .hunter import HunterClient
from .jobs import JobListingEnricher, JobUrlSuggester
from .matching import LeadFilter
from .models import (
    EnrichOptions,
    EnrichResult,
    EnrichStats,
    LeadRecord,
    ProviderClient,
    RawContactCandidate,
)
from .news import NewsClient
from .phone import is_valid_phone, normalize_phone
from .scoring import compute_quality, parse_score, verification_status
from .validation import domains_from_urls, mx_check

MxCheckFn = Callable[[str], bool]
NowFn = Callable[[], datetime]

UNVERIFIED_STATUSES = frozenset({"error", "timeout"})


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


class EnrichmentService:
    """Long-lived enrichment service.

    Owns the provider clients, and through them their circuit breakers, for
    the lifetime of the process. Every ``enrich`` call gets a fresh budget
    and a fresh zero-yield counter.
    """

    def __init__(
        self,
        config: EnrichConfig,
        *,
        hunter: HunterClient | None,
        logger: logging.Logger,
        apollo: ApolloClient | None = None,
        secondary: SecondaryEnricher | None = None,
        mx_checker: MxCheckFn = mx_check,
        now: NowFn = _utc_now,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self.config = config
        self.hunter = hunter
        self.apollo = apollo
        self._secondary = secondary
        self._mx_checker = mx_checker
        self._now = now
        self._logger = logger
        self._on_close = on_close

    def providers_for(self, options: EnrichOptions) -> list[ProviderClient]:
        """Hunter alone by default; Apollo first, then Hunter, when requested."""
        ordered: list[ProviderClient | None] = [self.hunter]
        if options.use_apollo:
            ordered = [self.apollo, self.hunter]
        return [provider for provider in ordered if provider is not None]

    def reset_circuits(self) -> None:
        for provider in (self.hunter, self.apollo):
            if provider is not None:
                provider.breaker.reset()
        self._logger.info("Provider circuits reset.")

    def close(self) -> None:
        if self._on_close is not None:
            self._on_close()

    def enrich(
        self,
        urls: Sequence[str],
        limit: int,
        options: EnrichOptions | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> EnrichResult:
        """Return up to ``limit`` filtered, enriched leads for the given company URLs.

        Provider outages and budget exhaustion never raise; the caller gets
        whatever was accumulated plus usage statistics.
        """
        options = options or EnrichOptions()
        budget = Budget(self.config.run_budget)
        stats = EnrichStats(remaining=budget.remaining())
        domains = domains_from_urls(list(urls))
        self._logger.info(
            "Enrichment requested: limit=%d, %d URLs, %d domains", limit, len(urls), len(domains)
        )
        if not domains or limit <= 0:
            stats.stopped_reason = "no_domains" if not domains else None
            return EnrichResult(leads=[], stats=stats)

        criteria = options.criteria()
        lead_filter = LeadFilter(criteria, logger=self._logger)
        orchestrator = Orchestrator(
            providers=self.providers_for(options),
            budget=budget,
            unit_costs=self.config.unit_costs,
            logger=self._logger,
            parallelism=self.config.parallelism,
            zero_yield_abort_threshold=self.config.zero_yield_abort_threshold,
            keep=lead_filter.matches,
            cancel_event=cancel_event,
            show_progress=self.config.show_progress,
        )
        run = orchestrator.run(
            domains,
            limit=limit,
            per_domain=per_domain_cap(limit, len(domains), self.config.max_emails_per_domain),
            title=options.title,
            locations=criteria.locations,
        )

        captured_at = _isoformat(self._now())
        leads = lead_filter.apply([self._to_lead(c, captured_at) for c in run.candidates])
        leads = leads[:limit]

        if self._secondary is not None and self.config.enrichment_domain_cap > 0:
            self._secondary.enrich(leads)

        if options.verify_emails:
            stats.verified = self._verify(leads, budget)
        for lead in leads:
            if lead.quality is None:
                lead.quality = compute_quality(
                    mx_ok=lead.mx_ok, verification={}, provider_confidence=lead.confidence
                )

        stats.total = len(leads)
        for lead in leads:
            stats.by_source[lead.source] = stats.by_source.get(lead.source, 0) + 1
        stats.provider_calls = run.provider_calls
        stats.domains_attempted = run.domains_attempted
        stats.spent = budget.spent
        stats.remaining = budget.remaining()
        stats.stopped_reason = run.stopped_reason
        self._logger.info(
            "Enrichment finished: %d leads %s, spent %s, remaining %s",
            stats.total,
            stats.by_source,
            stats.spent,
            stats.remaining,
        )
        return EnrichResult(leads=leads, stats=stats)

    @staticmethod
    def _to_lead(candidate: RawContactCandidate, captured_at: str) -> LeadRecord:
        phone = normalize_phone(candidate.phone_number, candidate.location, candidate.domain)
        return LeadRecord.from_candidate(
            candidate,
            captured_at=captured_at,
            phone_number=phone if is_valid_phone(phone) else None,
        )

    def _verify(self, leads: list[LeadRecord], budget: Budget) -> int:
        """Verify each lead through Hunter while the budget allows, and MX-check it."""
        verified = 0
        cost = cost_of(self.config.unit_costs, HUNTER_VERIFY, logger=self._logger)
        budget_warned = False
        for lead in leads:
            result: dict[str, Any] = {}
            if self.hunter is not None and self.hunter.available:
                if budget.try_spend(cost):
                    result = self.hunter.verify_email(lead.email, poll=True, timeout=20)
                elif not budget_warned:
                    self._logger.warning("Budget exhausted; skipping remaining verifications.")
                    budget_warned = True
            status = verification_status(result)
            if status and status not in UNVERIFIED_STATUSES:
                lead.verify_status = status
                lead.verify_score = parse_score(result)
                verified += 1
            lead.mx_ok = self._mx_checker(lead.email)
            lead.quality = compute_quality(
                mx_ok=lead.mx_ok, verification=result, provider_confidence=lead.confidence
            )
        self._logger.info("Verified %d of %d leads", verified, len(leads))
        return verified


def build_service(
    config: EnrichConfig,
    *,
    logger: logging.Logger,
    job_url_suggester: JobUrlSuggester | None = None,
) -> EnrichmentService:
    """Wire the default HTTP stack and providers for a process-lifetime service."""
    session = make_retry_session(config.user_agent)
    fetcher = RateLimitedFetcher(
        session=session,
        user_agent=config.user_agent,
        timeout=config.request_timeout,
        min_delay=config.min_host_delay,
        logger=logger,
        retry_policy=RetryPolicy(fallback_delay=config.rate_limit_fallback),
        robots_ttl=config.robots_ttl,
    )
    hunter = HunterClient(fetcher=fetcher, api_key=config.hunter_key, logger=logger)
    apollo = ApolloClient(
        fetcher=fetcher,
        api_key=config.apollo_key,
        logger=logger,
        enabled=config.apollo_enabled,
    )
    secondary = SecondaryEnricher(
        fetcher=fetcher,
        logger=logger,
        news=NewsClient(fetcher=fetcher, api_key=config.news_key, logger=logger),
        jobs=JobListingEnricher(fetcher=fetcher, logger=logger, suggester=job_url_suggester),
        domain_cap=config.enrichment_domain_cap,
    )
    if not config.hunter_key:
        logger.warning("HUNTER_API_KEY is not set; Hunter lookups are disabled.")
    return EnrichmentService(
        config,
        hunter=hunter,
        apollo=apollo,
        secondary=secondary,
        logger=logger,
        on_close=session.close,
    )
