"""Custom exceptions for the enrichment domain."""

from __future__ import annotations


class LeadEnricherError(Exception):
    """Base exception for this project."""


class ConfigError(LeadEnricherError):
    """Raised when runtime configuration is invalid."""


class FetchError(LeadEnricherError):
    """Raised when fetching a URL fails unexpectedly."""


class FetchTimeout(FetchError):
    """Raised when a request exceeds the configured timeout."""


class RobotsDisallowed(FetchError):
    """Raised when robots.txt forbids the request. Never retried."""

    def __init__(self, url: str) -> None:
        super().__init__(f"robots.txt disallows {url}")
        self.url = url


class RateLimited(FetchError):
    """Raised when a host keeps answering 429/503 after the retry budget."""

    def __init__(self, url: str, status: int) -> None:
        super().__init__(f"rate limited ({status}) on {url}")
        self.url = url
        self.status = status


class HttpError(FetchError):
    """Raised for any other non-2xx response."""

    def __init__(self, url: str, status: int, body: str = "") -> None:
        super().__init__(f"HTTP {status} for {url}")
        self.url = url
        self.status = status
        self.body = body


class ProviderError(LeadEnricherError):
    """Raised when a third-party provider call fails."""


class ProviderDisabled(ProviderError):
    """Raised when a provider's circuit is open."""


class MalformedResponse(ProviderError):
    """Raised when a provider returns an unexpected payload shape."""


class BudgetExhausted(LeadEnricherError):
    """Raised when a spend would exceed the run budget."""
