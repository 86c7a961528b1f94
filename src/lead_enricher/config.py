"""Runtime configuration model."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from .errors import ConfigError
from .validation import validate_runtime_constraints

DEFAULT_USER_AGENT = "LeadEnricher/1.0 (+https://example.invalid/lead-enricher)"
DEFAULT_REQUEST_TIMEOUT = 8.0
DEFAULT_PARALLELISM = 8
DEFAULT_MAX_EMAILS_PER_DOMAIN = 1
DEFAULT_RUN_BUDGET = Decimal("0.5")
DEFAULT_MIN_HOST_DELAY = 1.0
DEFAULT_ROBOTS_TTL = 3600.0
DEFAULT_RATE_LIMIT_FALLBACK = 5.0
DEFAULT_ZERO_YIELD_ABORT_THRESHOLD = 2
DEFAULT_ENRICHMENT_DOMAIN_CAP = 5

HUNTER_DOMAIN = "hunter_domain"
HUNTER_VERIFY = "hunter_verify"
APOLLO_SEARCH = "apollo_search"

DEFAULT_UNIT_COSTS: dict[str, Decimal] = {
    HUNTER_DOMAIN: Decimal("0.002"),
    HUNTER_VERIFY: Decimal("0.001"),
    APOLLO_SEARCH: Decimal("0.02"),
}


@dataclass(frozen=True)
class EnrichConfig:
    """Validated configuration shared by every enrichment run."""

    hunter_key: str | None = None
    apollo_key: str | None = None
    apollo_enabled: bool = True
    news_key: str | None = None
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    parallelism: int = DEFAULT_PARALLELISM
    max_emails_per_domain: int = DEFAULT_MAX_EMAILS_PER_DOMAIN
    run_budget: Decimal = DEFAULT_RUN_BUDGET
    unit_costs: dict[str, Decimal] = field(default_factory=lambda: dict(DEFAULT_UNIT_COSTS))
    min_host_delay: float = DEFAULT_MIN_HOST_DELAY
    robots_ttl: float = DEFAULT_ROBOTS_TTL
    rate_limit_fallback: float = DEFAULT_RATE_LIMIT_FALLBACK
    zero_yield_abort_threshold: int = DEFAULT_ZERO_YIELD_ABORT_THRESHOLD
    enrichment_domain_cap: int = DEFAULT_ENRICHMENT_DOMAIN_CAP
    show_progress: bool = True

    def __post_init__(self) -> None:
        validate_runtime_constraints(
            request_timeout=self.request_timeout,
            parallelism=self.parallelism,
            max_emails_per_domain=self.max_emails_per_domain,
            run_budget=self.run_budget,
            unit_costs=self.unit_costs,
            min_host_delay=self.min_host_delay,
            robots_ttl=self.robots_ttl,
            rate_limit_fallback=self.rate_limit_fallback,
            zero_yield_abort_threshold=self.zero_yield_abort_threshold,
            enrichment_domain_cap=self.enrichment_domain_cap,
        )


def _env_str(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name, "").strip()
    return value or None


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}.") from exc


def _env_decimal(environ: Mapping[str, str], name: str, default: Decimal) -> Decimal:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = Decimal(raw)
    except InvalidOperation as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}.") from exc
    if not value.is_finite():
        raise ConfigError(f"{name} must be finite, got {raw!r}.")
    return value


def _env_seconds(environ: Mapping[str, str], name: str, default: float, scale: float) -> float:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw) / scale
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}.") from exc


def load_config(environ: Mapping[str, str] | None = None, **overrides: object) -> EnrichConfig:
    """Build EnrichConfig from environment-style settings plus explicit overrides."""
    env = os.environ if environ is None else environ
    unit_costs = {
        HUNTER_DOMAIN: _env_decimal(env, "COST_HUNTER_DOMAIN", DEFAULT_UNIT_COSTS[HUNTER_DOMAIN]),
        HUNTER_VERIFY: _env_decimal(env, "COST_HUNTER_VERIFY", DEFAULT_UNIT_COSTS[HUNTER_VERIFY]),
        APOLLO_SEARCH: _env_decimal(env, "COST_APOLLO_SEARCH", DEFAULT_UNIT_COSTS[APOLLO_SEARCH]),
    }
    values: dict[str, object] = {
        "hunter_key": _env_str(env, "HUNTER_API_KEY"),
        "apollo_key": _env_str(env, "APOLLO_API_KEY"),
        "apollo_enabled": env.get("APOLLO_ENABLED", "true").strip().lower() != "false",
        "news_key": _env_str(env, "NEWS_API_KEY"),
        "user_agent": _env_str(env, "HTTP_USER_AGENT") or DEFAULT_USER_AGENT,
        "request_timeout": _env_seconds(
            env, "REQUEST_TIMEOUT_MS", DEFAULT_REQUEST_TIMEOUT, 1000.0
        ),
        "parallelism": _env_int(env, "PARALLELISM", DEFAULT_PARALLELISM),
        "max_emails_per_domain": _env_int(
            env, "HUNTER_MAX_EMAILS_PER_DOMAIN", DEFAULT_MAX_EMAILS_PER_DOMAIN
        ),
        "run_budget": _env_decimal(env, "RUN_BUDGET_USD", DEFAULT_RUN_BUDGET),
        "unit_costs": unit_costs,
        "min_host_delay": _env_seconds(
            env, "MIN_HOST_DELAY_MS", DEFAULT_MIN_HOST_DELAY, 1000.0
        ),
        "robots_ttl": _env_seconds(env, "ROBOTS_CACHE_TTL_S", DEFAULT_ROBOTS_TTL, 1.0),
        "rate_limit_fallback": _env_seconds(
            env, "RATE_LIMIT_FALLBACK_S", DEFAULT_RATE_LIMIT_FALLBACK, 1.0
        ),
        "zero_yield_abort_threshold": _env_int(
            env, "ZERO_YIELD_ABORT_THRESHOLD", DEFAULT_ZERO_YIELD_ABORT_THRESHOLD
        ),
        "enrichment_domain_cap": _env_int(
            env, "ENRICHMENT_DOMAIN_CAP", DEFAULT_ENRICHMENT_DOMAIN_CAP
        ),
    }
    values.update({key: value for key, value in overrides.items() if value is not None})
    return EnrichConfig(**values)  # type: ignore[arg-type]
