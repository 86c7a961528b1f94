"""Protocols and lightweight model types."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Protocol

import requests

Range = tuple[int | None, int | None]


class HttpFetcher(Protocol):
    """Contract for the rate-limited outbound HTTP layer."""

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """Perform one polite request or raise a FetchError subclass."""

    def fetch(self, url: str) -> str:
        """Return the body of a GET request or raise a FetchError subclass."""


class ProviderClient(Protocol):
    """Contract for contact-data providers."""

    name: str
    cost_key: str

    @property
    def available(self) -> bool:
        """Return False when the provider has no credentials or its circuit is open."""

    def search(
        self,
        domain: str,
        title: str | None = None,
        locations: tuple[str, ...] = (),
        limit: int = 10,
    ) -> list[RawContactCandidate]:
        """Return candidates for a domain. Never raises."""


class EmailVerifier(Protocol):
    """Contract for email verification providers."""

    def verify_email(self, email: str, poll: bool = True, timeout: int = 20) -> dict[str, Any]:
        """Verify one email address."""


@dataclass(frozen=True)
class RawContactCandidate:
    """One contact as reported by a provider, before filtering."""

    domain: str
    email: str
    source: str
    name: str | None = None
    title: str | None = None
    linkedin_url: str | None = None
    location: str | None = None
    phone_number: str | None = None
    confidence: int | None = None
    company_name: str | None = None
    company_size: int | None = None
    founded_year: int | None = None
    industry: str | None = None
    technologies: tuple[str, ...] = ()


@dataclass(frozen=True)
class FilterCriteria:
    """Caller-supplied acceptance criteria. Empty collections and None mean "no filter"."""

    titles: tuple[str, ...] = ()
    locations: tuple[str, ...] = ()
    is_startup: bool | None = None
    sectors: tuple[str, ...] = ()
    technologies: tuple[str, ...] = ()
    company_size_range: Range | None = None
    founded_year_range: Range | None = None

    @property
    def title_filter_active(self) -> bool:
        return bool(self.titles)

    @property
    def location_filter_active(self) -> bool:
        return any(loc.strip() for loc in self.locations)


@dataclass(frozen=True)
class EnrichOptions:
    """Per-run options accepted by the enrichment entry point."""

    title: str | None = None
    locations: tuple[str, ...] = ()
    use_apollo: bool = False
    verify_emails: bool = False
    is_startup: bool | None = None
    sectors: tuple[str, ...] = ()
    technologies: tuple[str, ...] = ()
    company_size_range: Range | None = None
    founded_year_range: Range | None = None

    def criteria(self) -> FilterCriteria:
        """Build filter criteria; a comma-separated title means "match any"."""
        titles = tuple(part.strip() for part in (self.title or "").split(",") if part.strip())
        return FilterCriteria(
            titles=titles,
            locations=tuple(loc.strip() for loc in self.locations if loc.strip()),
            is_startup=self.is_startup,
            sectors=self.sectors,
            technologies=self.technologies,
            company_size_range=self.company_size_range,
            founded_year_range=self.founded_year_range,
        )


@dataclass(frozen=True)
class NewsArticle:
    title: str
    url: str
    source: str | None = None
    published_at: str | None = None


@dataclass(frozen=True)
class JobPosting:
    title: str
    apply_url: str
    source_url: str
    department: str | None = None
    location: str | None = None
    employment_type: str | None = None
    description: str | None = None


@dataclass
class ScrapeResult:
    """Signals extracted from a company website."""

    url: str
    title: str | None = None
    meta_description: str | None = None
    emails: list[str] = field(default_factory=list)
    phones: list[str] = field(default_factory=list)
    social_links: list[str] = field(default_factory=list)
    careers_links: list[str] = field(default_factory=list)
    addresses: list[str] = field(default_factory=list)
    technologies: list[str] = field(default_factory=list)


@dataclass
class LeadRecord:
    """An accepted contact. Secondary passes only ever fill empty fields."""

    lead_id: str
    domain: str
    email: str
    source: str
    captured_at: str
    name: str | None = None
    title: str | None = None
    company: str | None = None
    company_website: str | None = None
    linkedin_url: str | None = None
    location: str | None = None
    phone_number: str | None = None
    description: str | None = None
    industry: str | None = None
    company_size: int | None = None
    founded_year: int | None = None
    technologies: list[str] = field(default_factory=list)
    social_profiles: list[str] = field(default_factory=list)
    careers_links: list[str] = field(default_factory=list)
    company_jobs: list[JobPosting] = field(default_factory=list)
    active_job_count: int | None = None
    recent_news: list[NewsArticle] = field(default_factory=list)
    raw_sources: list[str] = field(default_factory=list)
    confidence: int | None = None
    verify_status: str | None = None
    verify_score: float | None = None
    mx_ok: bool | None = None
    quality: str | None = None

    @classmethod
    def from_candidate(
        cls, candidate: RawContactCandidate, *, captured_at: str, phone_number: str | None
    ) -> LeadRecord:
        return cls(
            lead_id=f"{candidate.domain}_{candidate.email}",
            domain=candidate.domain,
            email=candidate.email,
            source=candidate.source,
            captured_at=captured_at,
            name=candidate.name,
            title=candidate.title,
            company=candidate.company_name or candidate.domain,
            company_website=f"https://{candidate.domain}",
            linkedin_url=candidate.linkedin_url,
            location=candidate.location,
            phone_number=phone_number,
            industry=candidate.industry,
            company_size=candidate.company_size,
            founded_year=candidate.founded_year,
            technologies=list(candidate.technologies),
            raw_sources=[f"https://{candidate.domain}"],
            confidence=candidate.confidence,
        )

    def fill(self, name: str, value: Any) -> bool:
        """Set a field only if it is currently empty. Returns True when it was set."""
        if not value or getattr(self, name):
            return False
        setattr(self, name, value)
        return True

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["company_context"] = {"recent_news": data.pop("recent_news")}
        return data


@dataclass
class EnrichStats:
    total: int = 0
    by_source: dict[str, int] = field(default_factory=dict)
    verified: int = 0
    provider_calls: int = 0
    domains_attempted: int = 0
    spent: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")
    stopped_reason: str | None = None


@dataclass
class EnrichResult:
    leads: list[LeadRecord]
    stats: EnrichStats
