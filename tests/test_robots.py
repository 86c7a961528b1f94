import logging

from lead_enricher.errors import FetchError, HttpError
from lead_enricher.robots import RobotsCache, crawl_delay, is_allowed, parse_robots_txt

ROBOTS = """
User-agent: *
Disallow: /private
Allow: /private/press
Crawl-delay: 2

User-agent: LeadEnricher
User-agent: OtherBot
Disallow: /internal$
Crawl-delay: 5

Sitemap: https://example.com/sitemap.xml
"""


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class FakeLoader:
    def __init__(self, result: str | Exception) -> None:
        self._result = result
        self.calls: list[str] = []

    def __call__(self, url: str) -> str:
        self.calls.append(url)
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


def test_parse_groups_consecutive_user_agents() -> None:
    policy = parse_robots_txt(ROBOTS)
    agents = [rule.user_agent for rule in policy.rules]
    assert agents == ["*", "leadenricher", "otherbot"]
    assert policy.rules[1].disallow == ["/internal$"]
    assert policy.rules[2].crawl_delay == 5
    assert policy.sitemaps == ["https://example.com/sitemap.xml"]


def test_wildcard_rules_allow_before_disallow() -> None:
    policy = parse_robots_txt(ROBOTS)
    assert is_allowed(policy, "https://example.com/private/press/2024", "somebot") is True
    assert is_allowed(policy, "/private/data", "somebot") is False
    assert is_allowed(policy, "/public", "somebot") is True


def test_named_agent_group_wins_over_wildcard() -> None:
    policy = parse_robots_txt(ROBOTS)
    agent = "LeadEnricher/1.0"
    assert is_allowed(policy, "/private/data", agent) is True
    assert is_allowed(policy, "/internal", agent) is False
    assert is_allowed(policy, "/internal/page", agent) is True
    assert crawl_delay(policy, agent) == 5
    assert crawl_delay(policy, "somebot") == 2


def test_empty_user_agent_group_matches_nobody() -> None:
    policy = parse_robots_txt("User-agent:\nDisallow: /\n\nUser-agent: *\nAllow: /\n")
    assert is_allowed(policy, "/page", "LeadEnricher/1.0") is True


def test_longest_matching_agent_group_wins() -> None:
    policy = parse_robots_txt(
        "User-agent: lead\nDisallow: /\n\n"
        "User-agent: leadenricher\nDisallow: /private\n\n"
        "User-agent: *\nDisallow: /public\n"
    )
    agent = "LeadEnricher/1.0"
    assert is_allowed(policy, "/public", agent) is True
    assert is_allowed(policy, "/private/data", agent) is False
    assert is_allowed(policy, "/public", "leadbot") is False
    assert is_allowed(policy, "/public", "somebot") is False
    assert is_allowed(policy, "/other", "somebot") is True


def test_empty_disallow_allows_everything() -> None:
    policy = parse_robots_txt("User-agent: *\nDisallow:\n")
    assert is_allowed(policy, "/anything", "bot") is True


def test_missing_policy_allows_and_has_no_delay() -> None:
    assert is_allowed(None, "/x", "bot") is True
    assert crawl_delay(None, "bot") == 0.0


def test_cache_reuses_policy_until_ttl_expires() -> None:
    clock = FakeClock()
    loader = FakeLoader("User-agent: *\nDisallow: /x\n")
    cache = RobotsCache(loader=loader, logger=logging.getLogger("test"), ttl=60, clock=clock)

    first = cache.get_policy("https://example.com/a")
    cache.get_policy("https://example.com/b")
    assert first is not None
    assert loader.calls == ["https://example.com/robots.txt"]

    clock.now = 61
    cache.get_policy("https://example.com/c")
    assert len(loader.calls) == 2


def test_cache_treats_http_error_as_no_policy_and_caches_it() -> None:
    loader = FakeLoader(HttpError("https://example.com/robots.txt", 404))
    cache = RobotsCache(loader=loader, logger=logging.getLogger("test"), clock=FakeClock())
    assert cache.get_policy("https://example.com/") is None
    assert cache.get_policy("https://example.com/other") is None
    assert len(loader.calls) == 1


def test_cache_fails_open_without_caching_on_fetch_error() -> None:
    loader = FakeLoader(FetchError("connection refused"))
    cache = RobotsCache(loader=loader, logger=logging.getLogger("test"), clock=FakeClock())
    assert cache.get_policy("https://example.com/") is None
    assert cache.get_policy("https://example.com/") is None
    assert len(loader.calls) == 2
