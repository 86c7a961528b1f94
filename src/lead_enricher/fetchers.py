"""Polite HTTP access: robots checks, per-host spacing, timeouts and 429/503 retry."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from threading import Lock
from typing import Any
from urllib.parse import urlparse

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException
from urllib3.util.retry import Retry

from .errors import FetchError, FetchTimeout, HttpError, RateLimited, RobotsDisallowed
from .robots import RobotsCache, crawl_delay, is_allowed
from .validation import is_supported_url

SleepFn = Callable[[float], None]
Clock = Callable[[], float]
BackoffFn = Callable[[int, float | None], float]


def make_retry_session(user_agent: str) -> Session:
    """Create a requests session that retries connection failures only.

    Status-level retries (429/503) are handled by RateLimitedFetcher so that
    they honour Retry-After and the per-host spacing.
    """
    session = Session()
    session.headers.update({"User-Agent": user_agent})
    retry = Retry(
        total=2,
        connect=2,
        read=0,
        status=0,
        backoff_factor=0.6,
        allowed_methods=frozenset({"GET", "POST"}),
        raise_on_status=False,
        respect_retry_after_header=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def parse_retry_after(value: str | None, *, now: datetime | None = None) -> float | None:
    """Parse a Retry-After header given as delta-seconds or an HTTP date."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    return max(0.0, (when - current).total_seconds())


@dataclass(frozen=True)
class RetryPolicy:
    """How rate-limited responses are retried."""

    max_attempts: int = 2
    fallback_delay: float = 5.0
    max_delay: float = 120.0
    retry_statuses: frozenset[int] = frozenset({429, 503})
    backoff: BackoffFn | None = None

    def delay_for(self, attempt: int, retry_after: float | None) -> float:
        """Seconds to wait before attempt ``attempt + 1``."""
        if self.backoff is not None:
            return self.backoff(attempt, retry_after)
        if retry_after is not None:
            return min(retry_after, self.max_delay)
        return min(self.fallback_delay * (2 ** (attempt - 1)), self.max_delay)


class RateLimitedFetcher:
    """Serializes requests per host and spaces them by max(crawl-delay, floor)."""

    def __init__(
        self,
        *,
        session: Session,
        user_agent: str,
        timeout: float,
        min_delay: float,
        logger: logging.Logger,
        retry_policy: RetryPolicy | None = None,
        robots_ttl: float = 3600.0,
        robots_cache: RobotsCache | None = None,
        clock: Clock = time.monotonic,
        sleep: SleepFn = time.sleep,
    ) -> None:
        self._session = session
        self._user_agent = user_agent
        self._timeout = timeout
        self._min_delay = min_delay
        self._logger = logger
        self._retry = retry_policy or RetryPolicy()
        self._clock = clock
        self._sleep = sleep
        self._robots = robots_cache or RobotsCache(
            loader=self._load_robots, logger=logger, ttl=robots_ttl, clock=clock
        )
        self._last_request: dict[str, float] = {}
        self._host_locks: dict[str, Lock] = {}
        self._guard = Lock()

    @property
    def robots(self) -> RobotsCache:
        return self._robots

    def fetch(self, url: str) -> str:
        """GET ``url`` and return its body text."""
        return str(self.request("GET", url).text)

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """Perform one request, honouring robots.txt, spacing and the retry policy."""
        if not is_supported_url(url):
            raise FetchError(f"unsupported URL: {url}")
        host = urlparse(url).netloc.lower()
        with self._lock_for(host):
            policy = self._robots.get_policy(url)
            if not is_allowed(policy, url, self._user_agent):
                self._logger.info("Skipping due to robots.txt: %s", url)
                raise RobotsDisallowed(url)
            interval = max(crawl_delay(policy, self._user_agent), self._min_delay)

            attempt = 0
            while True:
                attempt += 1
                self._wait_turn(host, interval)
                response = self._send(method, url, **kwargs)
                status = response.status_code
                if status in self._retry.retry_statuses:
                    if attempt >= self._retry.max_attempts:
                        self._logger.warning("Giving up on %s after HTTP %s", url, status)
                        raise RateLimited(url, status)
                    retry_after = parse_retry_after(response.headers.get("Retry-After"))
                    delay = self._retry.delay_for(attempt, retry_after)
                    self._logger.warning(
                        "HTTP %s from %s, retrying in %.1fs", status, host, delay
                    )
                    self._sleep(delay)
                    continue
                if not 200 <= status < 300:
                    raise HttpError(url, status, str(getattr(response, "text", "") or ""))
                return response

    def _lock_for(self, host: str) -> Lock:
        with self._guard:
            lock = self._host_locks.get(host)
            if lock is None:
                lock = Lock()
                self._host_locks[host] = lock
            return lock

    def _wait_turn(self, host: str, interval: float) -> None:
        # Caller holds the host lock.
        last = self._last_request.get(host)
        if last is not None:
            remaining = last + interval - self._clock()
            if remaining > 0:
                self._logger.debug("Waiting %.2fs before next request to %s", remaining, host)
                self._sleep(remaining)
        self._last_request[host] = self._clock()

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            return self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.Timeout as exc:
            raise FetchTimeout(f"timed out after {self._timeout}s: {url}") from exc
        except RequestException as exc:
            raise FetchError(f"request failed for {url}: {exc}") from exc

    def _load_robots(self, robots_url: str) -> str:
        # Runs inside request() while the host lock is held, so it shares the spacing.
        host = urlparse(robots_url).netloc.lower()
        self._wait_turn(host, self._min_delay)
        response = self._send("GET", robots_url)
        if not 200 <= response.status_code < 300:
            raise HttpError(robots_url, response.status_code)
        return str(response.text)
