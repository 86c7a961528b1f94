"""Secondary enrichment passes run over already-filtered leads."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable

from .errors import LeadEnricherError
from .jobs import JobListingEnricher
from .models import HttpFetcher, LeadRecord, ScrapeResult
from .news import NewsClient
from .phone import is_valid_phone, normalize_phone
from .scrape import scrape_website

Scraper = Callable[..., ScrapeResult | None]
NEWS_PER_COMPANY = 3


def select_domains(leads: list[LeadRecord], cap: int) -> list[str]:
    """First ``cap`` distinct domains in lead order."""
    domains: list[str] = []
    for lead in leads:
        if lead.domain not in domains:
            domains.append(lead.domain)
        if len(domains) >= cap:
            break
    return domains


def merge_scrape(lead: LeadRecord, result: ScrapeResult) -> list[str]:
    """Copy scraped signals into empty lead fields; return the names filled."""
    filled = []
    for raw in result.phones:
        phone = normalize_phone(raw, lead.location, lead.domain)
        if is_valid_phone(phone):
            if lead.fill("phone_number", phone):
                filled.append("phone_number")
            break
    linkedin = next((link for link in result.social_links if "linkedin.com" in link.lower()), None)
    candidates = {
        "linkedin_url": linkedin,
        "social_profiles": list(result.social_links),
        "careers_links": list(result.careers_links),
        "location": result.addresses[0] if result.addresses else None,
        "technologies": list(result.technologies),
        "description": result.meta_description,
    }
    for name, value in candidates.items():
        if lead.fill(name, value):
            filled.append(name)
    return filled


class SecondaryEnricher:
    """Site-scrape, news and jobs passes over a capped set of domains.

    Each pass makes at most one best-effort lookup per domain and only fills
    fields that are still empty. A failure for one domain never stops the
    others.
    """

    def __init__(
        self,
        *,
        fetcher: HttpFetcher,
        logger: logging.Logger,
        news: NewsClient | None = None,
        jobs: JobListingEnricher | None = None,
        domain_cap: int = 5,
        scraper: Scraper = scrape_website,
    ) -> None:
        self._fetcher = fetcher
        self._logger = logger
        self._news = news
        self._jobs = jobs
        self._domain_cap = domain_cap
        self._scraper = scraper

    def enrich(self, leads: list[LeadRecord]) -> None:
        if not leads:
            return
        domains = select_domains(leads, self._domain_cap)
        by_domain: dict[str, list[LeadRecord]] = {}
        for lead in leads:
            if lead.domain in domains:
                by_domain.setdefault(lead.domain, []).append(lead)

        self._run_pass("scrape", by_domain, self._scrape_domain)
        if self._news is not None and self._news.available:
            self._run_pass("news", by_domain, functools.partial(self._news_for_domain, self._news))
        if self._jobs is not None:
            self._run_pass("jobs", by_domain, functools.partial(self._jobs_for_domain, self._jobs))

    def _run_pass(
        self,
        name: str,
        by_domain: dict[str, list[LeadRecord]],
        handler: Callable[[str, list[LeadRecord]], None],
    ) -> None:
        self._logger.info("Running %s pass over %d domains", name, len(by_domain))
        for domain, domain_leads in by_domain.items():
            try:
                handler(domain, domain_leads)
            except (LeadEnricherError, ValueError) as exc:
                self._logger.warning("%s pass failed for %s: %s", name, domain, exc)

    def _scrape_domain(self, domain: str, leads: list[LeadRecord]) -> None:
        result = self._scraper(f"https://{domain}", fetcher=self._fetcher, logger=self._logger)
        if result is None:
            return
        for lead in leads:
            filled = merge_scrape(lead, result)
            if filled:
                self._logger.debug("Scrape filled %s for %s", ", ".join(filled), lead.email)

    def _news_for_domain(self, news: NewsClient, domain: str, leads: list[LeadRecord]) -> None:
        articles = news.company_news(domain)[:NEWS_PER_COMPANY]
        for lead in leads:
            lead.fill("recent_news", list(articles))

    def _jobs_for_domain(
        self, jobs: JobListingEnricher, domain: str, leads: list[LeadRecord]
    ) -> None:
        postings = jobs.company_jobs(domain, leads[0].company)
        for lead in leads:
            if lead.fill("company_jobs", list(postings)):
                lead.active_job_count = len(postings)
            elif lead.active_job_count is None:
                lead.active_job_count = len(lead.company_jobs)
            lead.fill("careers_links", sorted({job.source_url for job in postings}))
