"""Validation and runtime guardrails."""

from __future__ import annotations

import socket
from decimal import Decimal
from pathlib import Path
from urllib.parse import urlparse

import dns.exception
import dns.resolver

from .errors import ConfigError


def is_supported_url(url: str) -> bool:
    """Allow only absolute HTTP(S) URLs with a hostname."""
    parsed = urlparse(url)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def domain_from_url(url: str) -> str:
    """Extract the bare lowercase hostname from a URL or hostname string."""
    value = (url or "").strip()
    if not value:
        return ""
    if "://" not in value:
        value = f"https://{value}"
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"}:
        return ""
    host = (parsed.hostname or "").lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    if "." not in host or " " in host:
        return ""
    return host


def domains_from_urls(urls: list[str]) -> list[str]:
    """Derive unique domains from input URLs, preserving first-seen order."""
    output: list[str] = []
    seen: set[str] = set()
    for raw in urls:
        domain = domain_from_url(raw)
        if not domain or domain in seen:
            continue
        seen.add(domain)
        output.append(domain)
    return output


def load_lines_from_file(path: str) -> list[str]:
    """Load non-empty lines from a UTF-8 text file."""
    content = Path(path).read_text(encoding="utf-8")
    return [line.strip() for line in content.splitlines() if line.strip()]


def validate_runtime_constraints(
    *,
    request_timeout: float,
    parallelism: int,
    max_emails_per_domain: int,
    run_budget: Decimal,
    unit_costs: dict[str, Decimal],
    min_host_delay: float,
    robots_ttl: float,
    rate_limit_fallback: float,
    zero_yield_abort_threshold: int,
    enrichment_domain_cap: int,
) -> None:
    """Validate runtime configuration and raise ConfigError on invalid values."""
    if request_timeout <= 0:
        raise ConfigError("request timeout must be > 0.")
    if parallelism < 1:
        raise ConfigError("parallelism must be >= 1.")
    if max_emails_per_domain < 1:
        raise ConfigError("max emails per domain must be >= 1.")
    if run_budget < 0:
        raise ConfigError("run budget must be >= 0.")
    for name, cost in unit_costs.items():
        if cost < 0:
            raise ConfigError(f"unit cost for {name} must be >= 0.")
    if min_host_delay < 0:
        raise ConfigError("minimum host delay must be >= 0.")
    if robots_ttl < 0:
        raise ConfigError("robots cache TTL must be >= 0.")
    if rate_limit_fallback < 0:
        raise ConfigError("rate-limit fallback delay must be >= 0.")
    if zero_yield_abort_threshold < 0:
        raise ConfigError("zero-yield abort threshold must be >= 0.")
    if enrichment_domain_cap < 0:
        raise ConfigError("enrichment domain cap must be >= 0.")


def mx_check(email: str) -> bool:
    """Return True when target domain has MX or A record."""
    try:
        domain = email.split("@", maxsplit=1)[1]
    except IndexError:
        return False
    try:
        answers = dns.resolver.resolve(domain, "MX", lifetime=8)
        return bool(answers)
    except (dns.resolver.NoAnswer, dns.resolver.NXDOMAIN, dns.resolver.NoNameservers):
        try:
            socket.gethostbyname(domain)
            return True
        except OSError:
            return False
    except dns.exception.DNSException:
        return False
