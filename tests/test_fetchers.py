import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any

import pytest
import requests

from lead_enricher.errors import FetchError, FetchTimeout, HttpError, RateLimited, RobotsDisallowed
from lead_enricher.fetchers import (
    RateLimitedFetcher,
    RetryPolicy,
    make_retry_session,
    parse_retry_after,
)


class FakeResponse:
    def __init__(
        self,
        *,
        status_code: int = 200,
        text: str = "",
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.text = text
        self.headers = headers or {}

    def json(self) -> Any:
        raise ValueError("not json")


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeSession:
    def __init__(
        self,
        clock: FakeClock,
        routes: dict[str, list[FakeResponse]] | None = None,
        robots: str | None = None,
        error: Exception | None = None,
    ) -> None:
        self._clock = clock
        self._routes = routes or {}
        self._robots = robots
        self._error = error
        self.calls: list[tuple[str, str, float]] = []

    def request(self, method: str, url: str, **_kwargs: Any) -> FakeResponse:
        self.calls.append((method, url, self._clock.now))
        if url.endswith("/robots.txt"):
            if self._robots is None:
                return FakeResponse(status_code=404)
            return FakeResponse(text=self._robots)
        if self._error is not None:
            raise self._error
        queue = self._routes.get(url)
        if queue:
            return queue.pop(0) if len(queue) > 1 else queue[0]
        return FakeResponse(text="ok")

    def page_calls(self) -> list[tuple[str, str, float]]:
        return [call for call in self.calls if not call[1].endswith("/robots.txt")]


def _fetcher(session: FakeSession, clock: FakeClock, min_delay: float = 1.0) -> RateLimitedFetcher:
    return RateLimitedFetcher(
        session=session,  # type: ignore[arg-type]
        user_agent="LeadEnricher/1.0",
        timeout=5.0,
        min_delay=min_delay,
        logger=logging.getLogger("test"),
        clock=clock,
        sleep=clock.sleep,
    )


def test_requests_to_same_host_are_spaced_by_floor() -> None:
    clock = FakeClock()
    session = FakeSession(clock)
    fetcher = _fetcher(session, clock, min_delay=1.0)

    for path in ("a", "b", "c"):
        assert fetcher.fetch(f"https://example.com/{path}") == "ok"

    times = [call[2] for call in session.calls]
    assert session.calls[0][1] == "https://example.com/robots.txt"
    assert all(later - earlier >= 1.0 for earlier, later in zip(times, times[1:]))


def test_crawl_delay_from_robots_overrides_smaller_floor() -> None:
    clock = FakeClock()
    session = FakeSession(clock, robots="User-agent: *\nCrawl-delay: 3\n")
    fetcher = _fetcher(session, clock, min_delay=1.0)

    fetcher.fetch("https://example.com/a")
    fetcher.fetch("https://example.com/b")

    pages = session.page_calls()
    assert pages[1][2] - pages[0][2] >= 3.0


class SlowSession(FakeSession):
    def __init__(self, clock: FakeClock, **kwargs: Any) -> None:
        super().__init__(clock, **kwargs)
        self._lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(0.05)
            return super().request(method, url, **kwargs)
        finally:
            with self._lock:
                self.in_flight -= 1


def test_threads_fetching_one_host_are_serialized_and_spaced() -> None:
    clock = FakeClock()
    session = SlowSession(clock, robots="User-agent: *\nCrawl-delay: 3\n")
    fetcher = _fetcher(session, clock, min_delay=1.0)
    start = threading.Barrier(2)
    bodies: list[str] = []

    def worker(path: str) -> None:
        start.wait()
        bodies.append(fetcher.fetch(f"https://example.com/{path}"))

    threads = [threading.Thread(target=worker, args=(path,)) for path in ("a", "b")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert bodies == ["ok", "ok"]
    assert session.max_in_flight == 1
    assert len(session.calls) - len(session.page_calls()) == 1
    times = sorted(call[2] for call in session.page_calls())
    assert len(times) == 2
    assert times[1] - times[0] >= 3.0


def test_different_hosts_do_not_wait_for_each_other() -> None:
    clock = FakeClock()
    session = FakeSession(clock)
    fetcher = _fetcher(session, clock, min_delay=0.0)

    fetcher.fetch("https://one.example/a")
    fetcher.fetch("https://two.example/a")
    assert clock.sleeps == []


def test_retry_after_then_single_retry() -> None:
    clock = FakeClock()
    url = "https://api.example.com/search"
    session = FakeSession(
        clock,
        routes={
            url: [
                FakeResponse(status_code=429, headers={"Retry-After": "1"}),
                FakeResponse(text="done"),
            ]
        },
    )
    fetcher = _fetcher(session, clock, min_delay=0.0)

    assert fetcher.fetch(url) == "done"
    assert clock.sleeps == [1.0]
    assert len(session.page_calls()) == 2


def test_second_rate_limit_raises_rate_limited() -> None:
    clock = FakeClock()
    url = "https://api.example.com/search"
    session = FakeSession(
        clock,
        routes={url: [FakeResponse(status_code=429, headers={"Retry-After": "1"})]},
    )
    fetcher = _fetcher(session, clock, min_delay=0.0)

    with pytest.raises(RateLimited) as excinfo:
        fetcher.fetch(url)
    assert excinfo.value.status == 429
    assert len(session.page_calls()) == 2


def test_rate_limit_without_header_uses_fallback_delay() -> None:
    clock = FakeClock()
    url = "https://api.example.com/search"
    session = FakeSession(
        clock, routes={url: [FakeResponse(status_code=503), FakeResponse(text="ok")]}
    )
    fetcher = RateLimitedFetcher(
        session=session,  # type: ignore[arg-type]
        user_agent="agent",
        timeout=5.0,
        min_delay=0.0,
        logger=logging.getLogger("test"),
        retry_policy=RetryPolicy(fallback_delay=7.0),
        clock=clock,
        sleep=clock.sleep,
    )
    fetcher.fetch(url)
    assert clock.sleeps == [7.0]


def test_custom_backoff_function_is_used() -> None:
    policy = RetryPolicy(backoff=lambda attempt, retry_after: 0.25 * attempt)
    assert policy.delay_for(1, 30.0) == 0.25
    assert RetryPolicy(max_delay=10.0).delay_for(1, 600.0) == 10.0


def test_robots_disallow_blocks_without_request() -> None:
    clock = FakeClock()
    session = FakeSession(clock, robots="User-agent: *\nDisallow: /secret\n")
    fetcher = _fetcher(session, clock)

    with pytest.raises(RobotsDisallowed):
        fetcher.fetch("https://example.com/secret/page")
    assert session.page_calls() == []


def test_non_success_status_raises_http_error() -> None:
    clock = FakeClock()
    url = "https://example.com/missing"
    session = FakeSession(clock, routes={url: [FakeResponse(status_code=404, text="nope")]})
    fetcher = _fetcher(session, clock, min_delay=0.0)

    with pytest.raises(HttpError) as excinfo:
        fetcher.fetch(url)
    assert excinfo.value.status == 404
    assert excinfo.value.body == "nope"


def test_timeout_raises_fetch_timeout() -> None:
    clock = FakeClock()
    session = FakeSession(clock, error=requests.Timeout("slow"))
    fetcher = _fetcher(session, clock, min_delay=0.0)

    with pytest.raises(FetchTimeout):
        fetcher.fetch("https://example.com/slow")


def test_connection_error_raises_fetch_error() -> None:
    clock = FakeClock()
    session = FakeSession(clock, error=requests.ConnectionError("refused"))
    fetcher = _fetcher(session, clock, min_delay=0.0)

    with pytest.raises(FetchError):
        fetcher.fetch("https://example.com/down")


def test_rejects_unsupported_urls() -> None:
    clock = FakeClock()
    session = FakeSession(clock)
    fetcher = _fetcher(session, clock)
    with pytest.raises(FetchError):
        fetcher.fetch("file:///tmp/test")
    assert session.calls == []


def test_parse_retry_after_seconds_and_http_date() -> None:
    now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    assert parse_retry_after("3") == 3.0
    assert parse_retry_after("Mon, 01 Jan 2024 12:00:10 GMT", now=now) == 10.0
    assert parse_retry_after("garbage") is None
    assert parse_retry_after(None) is None


def test_make_retry_session_sets_user_agent() -> None:
    session = make_retry_session("my-agent")
    assert session.headers["User-Agent"] == "my-agent"
