from decimal import Decimal
from pathlib import Path
from typing import Any

import dns.exception
import dns.resolver
import pytest

from lead_enricher.errors import ConfigError
from lead_enricher.validation import (
    domain_from_url,
    domains_from_urls,
    is_supported_url,
    load_lines_from_file,
    mx_check,
    validate_runtime_constraints,
)

VALID: dict[str, Any] = {
    "request_timeout": 8.0,
    "parallelism": 8,
    "max_emails_per_domain": 1,
    "run_budget": Decimal("0.5"),
    "unit_costs": {"hunter_domain": Decimal("0.002")},
    "min_host_delay": 1.0,
    "robots_ttl": 3600.0,
    "rate_limit_fallback": 5.0,
    "zero_yield_abort_threshold": 2,
    "enrichment_domain_cap": 5,
}


def test_is_supported_url() -> None:
    assert is_supported_url("https://example.com/a") is True
    assert is_supported_url("ftp://example.com/file") is False
    assert is_supported_url("example.com") is False


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("https://www.Example.com/about", "example.com"),
        ("http://shop.example.co.uk", "shop.example.co.uk"),
        ("example.com", "example.com"),
        ("www.example.com/path", "example.com"),
        ("ftp://example.com", ""),
        ("localhost", ""),
        ("", ""),
    ],
)
def test_domain_from_url(raw: str, expected: str) -> None:
    assert domain_from_url(raw) == expected


def test_domains_from_urls_dedupes_in_order() -> None:
    urls = ["https://b.com", "https://www.a.com/x", "not a url", "http://a.com", "b.com/jobs"]
    assert domains_from_urls(urls) == ["b.com", "a.com"]


def test_validate_runtime_constraints_accepts_defaults() -> None:
    validate_runtime_constraints(**VALID)


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("request_timeout", 0),
        ("parallelism", 0),
        ("max_emails_per_domain", 0),
        ("run_budget", Decimal("-1")),
        ("unit_costs", {"hunter_domain": Decimal("-0.1")}),
        ("min_host_delay", -1),
        ("zero_yield_abort_threshold", -1),
        ("enrichment_domain_cap", -1),
    ],
)
def test_validate_runtime_constraints_rejects_invalid(field: str, value: object) -> None:
    with pytest.raises(ConfigError):
        validate_runtime_constraints(**{**VALID, field: value})


def test_load_lines_from_file(tmp_path: Path) -> None:
    sample = tmp_path / "sample.txt"
    sample.write_text("one.com\n\n two.com \n", encoding="utf-8")
    assert load_lines_from_file(str(sample)) == ["one.com", "two.com"]


def test_mx_check_fallback_to_a_record(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_resolve(*_args: object, **_kwargs: object) -> object:
        raise dns.resolver.NoAnswer()

    def fake_gethostbyname(_domain: str) -> str:
        return "127.0.0.1"

    monkeypatch.setattr("lead_enricher.validation.dns.resolver.resolve", fake_resolve)
    monkeypatch.setattr("lead_enricher.validation.socket.gethostbyname", fake_gethostbyname)

    assert mx_check("user@example.com") is True


def test_mx_check_invalid_email_and_dns_exception(monkeypatch: pytest.MonkeyPatch) -> None:
    assert mx_check("invalid-email") is False

    def fake_resolve(*_args: object, **_kwargs: object) -> object:
        raise dns.exception.Timeout()

    monkeypatch.setattr("lead_enricher.validation.dns.resolver.resolve", fake_resolve)
    assert mx_check("user@example.com") is False
