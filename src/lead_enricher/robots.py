"""robots.txt parsing and a per-host policy cache."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from threading import Lock
from urllib.parse import urlparse

from .errors import FetchError, HttpError

RobotsLoader = Callable[[str], str]
Clock = Callable[[], float]


@dataclass
class RobotsRule:
    user_agent: str
    allow: list[str] = field(default_factory=list)
    disallow: list[str] = field(default_factory=list)
    crawl_delay: float | None = None


@dataclass
class RobotsPolicy:
    rules: list[RobotsRule] = field(default_factory=list)
    sitemaps: list[str] = field(default_factory=list)
    default_crawl_delay: float | None = None


def _parse_delay(value: str) -> float | None:
    try:
        delay = float(value)
    except ValueError:
        return None
    return delay if delay >= 0 else None


def parse_robots_txt(content: str) -> RobotsPolicy:
    """Parse robots.txt text into grouped user-agent rules."""
    policy = RobotsPolicy()
    # Consecutive User-agent lines share the directives that follow them.
    group: list[RobotsRule] = []
    reading_agents = False
    for raw_line in content.splitlines():
        line = raw_line.split("#", maxsplit=1)[0].strip()
        if not line or ":" not in line:
            continue
        key, value = (part.strip() for part in line.split(":", maxsplit=1))
        key = key.lower()
        if key == "user-agent":
            if not reading_agents:
                group = []
            rule = RobotsRule(user_agent=value.lower())
            policy.rules.append(rule)
            group.append(rule)
            reading_agents = True
            continue
        reading_agents = False
        if key == "sitemap":
            policy.sitemaps.append(value)
        elif key == "crawl-delay":
            delay = _parse_delay(value)
            if delay is None:
                continue
            if not group:
                policy.default_crawl_delay = delay
            for rule in group:
                rule.crawl_delay = delay
        elif key == "disallow":
            for rule in group:
                if value:
                    rule.disallow.append(value)
                else:
                    rule.allow.append("*")
        elif key == "allow" and value:
            for rule in group:
                rule.allow.append(value)
    return policy


def _agent_matches(rule_agent: str, user_agent: str) -> bool:
    if not rule_agent:
        return False
    return rule_agent == "*" or rule_agent in user_agent


def select_rule(policy: RobotsPolicy, user_agent: str) -> RobotsRule | None:
    """Pick the group with the longest matching agent token; '*' is the fallback."""
    agent = user_agent.lower()
    matching = [rule for rule in policy.rules if _agent_matches(rule.user_agent, agent)]
    named = [rule for rule in matching if rule.user_agent != "*"]
    if named:
        return max(named, key=lambda rule: len(rule.user_agent))
    return matching[0] if matching else None


def _pattern_matches(path: str, pattern: str) -> bool:
    if pattern in {"", "*"}:
        return True
    anchored = pattern.endswith("$")
    body = pattern[:-1] if anchored else pattern
    regex = ".*".join(re.escape(chunk) for chunk in body.split("*"))
    return re.match(regex + ("$" if anchored else ""), path) is not None


def is_allowed(policy: RobotsPolicy | None, path: str, user_agent: str) -> bool:
    """Return True when the policy permits fetching ``path`` (a path or full URL)."""
    if policy is None or not policy.rules:
        return True
    rule = select_rule(policy, user_agent)
    if rule is None:
        return True
    if "://" in path:
        path = urlparse(path).path
    path = path or "/"
    if any(_pattern_matches(path, pattern) for pattern in rule.allow):
        return True
    return not any(_pattern_matches(path, pattern) for pattern in rule.disallow)


def crawl_delay(policy: RobotsPolicy | None, user_agent: str) -> float:
    """Return the crawl delay in seconds for ``user_agent`` (0 when unspecified)."""
    if policy is None:
        return 0.0
    rule = select_rule(policy, user_agent)
    if rule is not None and rule.crawl_delay is not None:
        return rule.crawl_delay
    if policy.default_crawl_delay is not None:
        return policy.default_crawl_delay
    return 0.0


class RobotsCache:
    """Per-origin robots.txt cache with a TTL. Stale entries are refetched on demand."""

    def __init__(
        self,
        *,
        loader: RobotsLoader,
        logger: logging.Logger,
        ttl: float = 3600.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self._loader = loader
        self._logger = logger
        self._ttl = ttl
        self._clock = clock
        self._cache: dict[str, tuple[RobotsPolicy | None, float]] = {}
        self._lock = Lock()

    def get_policy(self, url: str) -> RobotsPolicy | None:
        """Return the policy for the URL's origin, or None meaning "allow everything"."""
        parsed = urlparse(url)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        now = self._clock()
        with self._lock:
            cached = self._cache.get(origin)
        if cached is not None and now - cached[1] < self._ttl:
            return cached[0]

        robots_url = origin + "/robots.txt"
        try:
            content = self._loader(robots_url)
        except HttpError as exc:
            self._logger.debug("No robots.txt at %s (HTTP %s)", robots_url, exc.status)
            policy = None
        except FetchError as exc:
            self._logger.warning("robots.txt fetch failed for %s, allowing: %s", robots_url, exc)
            return None
        else:
            policy = parse_robots_txt(content) if content.strip() else None

        with self._lock:
            self._cache[origin] = (policy, self._clock())
        return policy

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
