import logging
from typing import Any

from lead_enricher.errors import FetchTimeout
from lead_enricher.news import NEWS_API_URL, NewsClient, derive_news_terms, filter_articles


class FakeResponse:
    def __init__(self, payload: Any = None) -> None:
        self._payload = payload

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeFetcher:
    def __init__(self, outcome: FakeResponse | Exception) -> None:
        self._outcome = outcome
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome

    def fetch(self, url: str) -> str:
        raise NotImplementedError


def _client(fetcher: FakeFetcher, api_key: str | None = "news-key") -> NewsClient:
    return NewsClient(
        fetcher=fetcher,  # type: ignore[arg-type]
        api_key=api_key,
        logger=logging.getLogger("test"),
    )


def test_derive_news_terms_for_multi_level_tld() -> None:
    assert derive_news_terms("acme.co.uk") == ('"acme.co.uk" OR "acme"', ["acme.co.uk", "acme"])


def test_derive_news_terms_strips_www_and_hyphens() -> None:
    query, terms = derive_news_terms("www.example-labs.com")
    assert query == '"example-labs.com" OR "example labs"'
    assert terms == ["example-labs.com", "example labs"]


def test_derive_news_terms_for_free_text() -> None:
    assert derive_news_terms("Acme Robotics!") == ('"Acme Robotics"', ["acme robotics"])
    assert derive_news_terms("  ") == ("", [])


def test_filter_articles_requires_a_term_mention() -> None:
    articles = [
        {"title": "Acme raises Series B", "url": "https://n.test/1"},
        {"title": "Weather today", "url": "https://n.test/2"},
        {"title": "Funding round", "source": {"name": "Acme Blog"}, "url": "https://n.test/3"},
    ]
    kept = filter_articles(articles, ["acme"])
    assert [a["url"] for a in kept] == ["https://n.test/1", "https://n.test/3"]
    assert filter_articles(articles, []) == articles


def test_company_news_without_key_is_a_no_op() -> None:
    fetcher = FakeFetcher(FakeResponse({"articles": []}))
    client = _client(fetcher, api_key=None)
    assert client.available is False
    assert client.company_news("acme.com") == []
    assert fetcher.calls == []


def test_company_news_maps_matching_articles() -> None:
    payload = {
        "articles": [
            {
                "title": "Acme opens Berlin office",
                "url": "https://n.test/acme",
                "source": {"name": "TechWire"},
                "publishedAt": "2026-01-02T10:00:00Z",
            },
            {"title": "Unrelated story", "url": "https://n.test/other"},
            {"title": "Acme without link"},
        ]
    }
    fetcher = FakeFetcher(FakeResponse(payload))
    articles = _client(fetcher).company_news("acme.com")

    assert len(articles) == 1
    assert articles[0].title == "Acme opens Berlin office"
    assert articles[0].source == "TechWire"
    assert articles[0].published_at == "2026-01-02T10:00:00Z"

    method, url, kwargs = fetcher.calls[0]
    assert (method, url) == ("GET", NEWS_API_URL)
    assert kwargs["params"]["q"] == '"acme.com" OR "acme"'
    assert kwargs["params"]["sortBy"] == "publishedAt"
    assert kwargs["headers"] == {"X-Api-Key": "news-key"}


def test_company_news_failures_return_empty() -> None:
    assert _client(FakeFetcher(FetchTimeout("slow"))).company_news("acme.com") == []
    assert _client(FakeFetcher(FakeResponse(None))).company_news("acme.com") == []
    assert _client(FakeFetcher(FakeResponse({"status": "error"}))).company_news("acme.com") == []
