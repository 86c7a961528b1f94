import logging

import pytest

from lead_enricher.circuit import CircuitBreaker
from lead_enricher.errors import ProviderDisabled


def test_breaker_starts_closed() -> None:
    breaker = CircuitBreaker("hunter", logger=logging.getLogger("test"))
    assert breaker.is_open is False
    breaker.check()


def test_trip_opens_until_explicit_reset() -> None:
    breaker = CircuitBreaker("apollo", logger=logging.getLogger("test"))
    breaker.trip("HTTP 403 plan inaccessible")
    assert breaker.is_open is True
    assert breaker.reason == "HTTP 403 plan inaccessible"
    with pytest.raises(ProviderDisabled):
        breaker.check()

    breaker.reset()
    assert breaker.is_open is False
    assert breaker.reason is None


def test_second_trip_keeps_first_reason(caplog: pytest.LogCaptureFixture) -> None:
    breaker = CircuitBreaker("hunter", logger=logging.getLogger("test"))
    with caplog.at_level(logging.WARNING, logger="test"):
        breaker.trip("first")
        breaker.trip("second")
    assert breaker.reason == "first"
    assert caplog.text.count("Disabling hunter") == 1
