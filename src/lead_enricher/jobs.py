"""Open positions scraped from company careers pages."""

from __future__ import annotations

import logging
import re
from typing import Protocol
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .errors import FetchError, RobotsDisallowed
from .models import HttpFetcher, JobPosting

JOB_SELECTORS = (
    ".job-listing",
    ".careers-job",
    ".position",
    ".opening",
    '[data-qa="job"]',
    ".lever-job",
    ".job-post",
    ".career-item",
    "li[class*=job]",
)
TITLE_SELECTOR = 'h1, h2, h3, .title, .job-title, [data-qa="job-title"]'
DEPARTMENT_SELECTOR = '.department, .team, [data-qa="department"]'
LOCATION_SELECTOR = '.location, [data-qa="location"]'
TYPE_SELECTOR = '.type, .employment-type, [data-qa="job-type"]'
DESCRIPTION_SELECTOR = ".description, .job-description"
APPLY_SELECTOR = 'a[href*="apply"], a[href*="job"]'
JOB_TITLE_KEYWORDS = re.compile(
    r"software engineer|product manager|data scientist|designer|developer|"
    r"account executive|sales|marketing|analyst|director|manager|coordinator|specialist",
    re.IGNORECASE,
)


class JobUrlSuggester(Protocol):
    """Optional collaborator proposing careers URLs for a company."""

    def suggest(self, domain: str, company: str | None) -> list[str]:
        """Return candidate careers URLs, best first."""


def default_job_urls(domain: str) -> list[str]:
    return [
        f"https://{domain}/careers",
        f"https://{domain}/jobs",
        f"https://careers.{domain}",
        f"https://jobs.{domain}",
    ]


def _clean(text: str | None) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _first_text(element: Tag, selector: str) -> str | None:
    node = element.select_one(selector)
    return _clean(node.get_text(" ")) or None if node is not None else None


def _apply_url(element: Tag, source_url: str) -> str:
    link = element.select_one(APPLY_SELECTOR)
    href = str(link.get("href", "")).strip() if link is not None else ""
    return urljoin(source_url, href) if href else source_url


def extract_jobs_with_selectors(soup: BeautifulSoup, source_url: str) -> list[JobPosting]:
    """Use the first selector that yields titled postings."""
    for selector in JOB_SELECTORS:
        jobs = []
        for element in soup.select(selector):
            title = _first_text(element, TITLE_SELECTOR)
            if not title:
                continue
            description = _first_text(element, DESCRIPTION_SELECTOR)
            jobs.append(
                JobPosting(
                    title=title,
                    apply_url=_apply_url(element, source_url),
                    source_url=source_url,
                    department=_first_text(element, DEPARTMENT_SELECTOR),
                    location=_first_text(element, LOCATION_SELECTOR),
                    employment_type=_first_text(element, TYPE_SELECTOR),
                    description=description[:500] if description else None,
                )
            )
        if jobs:
            return jobs
    return []


def extract_jobs_from_text(soup: BeautifulSoup, source_url: str) -> list[JobPosting]:
    """Fallback: recognise common job titles in the page text."""
    titles: list[str] = []
    for match in JOB_TITLE_KEYWORDS.finditer(soup.get_text(" ")):
        title = _clean(match.group(0)).title()
        if title not in titles:
            titles.append(title)
    return [JobPosting(title=t, apply_url=source_url, source_url=source_url) for t in titles[:10]]


def deduplicate_jobs(jobs: list[JobPosting]) -> list[JobPosting]:
    seen: set[tuple[str, str]] = set()
    unique = []
    for job in jobs:
        key = (job.title.lower(), (job.location or "").lower())
        if key in seen:
            continue
        seen.add(key)
        unique.append(job)
    return unique


class JobListingEnricher:
    """Collects open positions for a company from a few candidate careers URLs."""

    def __init__(
        self,
        *,
        fetcher: HttpFetcher,
        logger: logging.Logger,
        suggester: JobUrlSuggester | None = None,
        max_urls: int = 3,
        max_jobs: int = 10,
    ) -> None:
        self._fetcher = fetcher
        self._logger = logger
        self._suggester = suggester
        self._max_urls = max_urls
        self._max_jobs = max_jobs

    def candidate_urls(self, domain: str, company: str | None = None) -> list[str]:
        urls: list[str] = []
        if self._suggester is not None:
            try:
                urls = [u for u in self._suggester.suggest(domain, company) if u]
            except Exception as exc:  # noqa: BLE001
                self._logger.warning("Job URL suggester failed for %s: %s", domain, exc)
        return (urls or default_job_urls(domain))[: self._max_urls]

    def company_jobs(self, domain: str, company: str | None = None) -> list[JobPosting]:
        domain = (domain or "").lower().removeprefix("www.")
        if not domain:
            return []
        jobs: list[JobPosting] = []
        for url in self.candidate_urls(domain, company):
            try:
                html = self._fetcher.fetch(url)
            except RobotsDisallowed:
                self._logger.info("Robots.txt disallows job page %s", url)
                continue
            except FetchError as exc:
                self._logger.debug("Job page fetch failed for %s: %s", url, exc)
                continue
            soup = BeautifulSoup(html or "", "html.parser")
            found = extract_jobs_with_selectors(soup, url) or extract_jobs_from_text(soup, url)
            jobs.extend(found)
            if found:
                break
        unique = deduplicate_jobs(jobs)[: self._max_jobs]
        self._logger.info("Jobs for %s: %d postings", domain, len(unique))
        return unique
