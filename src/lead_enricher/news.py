"""Recent company news from NewsAPI."""

from __future__ import annotations

import logging
import re
from typing import Any

from .errors import FetchError
from .models import HttpFetcher, NewsArticle

NEWS_API_URL = "https://newsapi.org/v2/everything"
_DOMAIN_LIKE = re.compile(r"^[\w.-]+\.[a-z]{2,}$", re.IGNORECASE)


def derive_news_terms(raw: str) -> tuple[str, list[str]]:
    """Build a NewsAPI query and the terms an article must mention.

    ``acme.co.uk`` yields the query ``"acme.co.uk" OR "acme"``; free text is
    used as a single quoted phrase.
    """
    value = (raw or "").strip()
    if not value:
        return "", []
    terms: list[str] = []
    if _DOMAIN_LIKE.match(value) and " " not in value:
        domain = re.sub(r"^https?://", "", value, flags=re.IGNORECASE)
        domain = domain.split("/", maxsplit=1)[0].lower()
        domain = domain[4:] if domain.startswith("www.") else domain
        terms.append(domain)
        parts = domain.split(".")
        base_parts = parts[:-1]
        if len(parts) >= 3 and len(parts[-1]) == 2 and len(parts[-2]) <= 3:
            base_parts = parts[:-2]
        base = re.sub(r"[-_]", " ", " ".join(base_parts)).strip()
        if base and base not in terms:
            terms.append(base)
    else:
        cleaned = re.sub(r"\s+", " ", re.sub(r"[^\w\s&.-]", " ", value)).strip()
        if cleaned:
            terms.append(cleaned)
    query = " OR ".join(f'"{term}"' for term in terms)
    match_terms = [term.lower() for term in terms if len(term) > 2]
    return query, match_terms


def filter_articles(articles: list[dict[str, Any]], match_terms: list[str]) -> list[dict[str, Any]]:
    if not match_terms:
        return articles
    kept = []
    for article in articles:
        source = article.get("source") if isinstance(article.get("source"), dict) else {}
        haystack = " ".join(
            str(part or "")
            for part in (article.get("title"), article.get("description"), source.get("name"))
        ).lower()
        if any(term in haystack for term in match_terms):
            kept.append(article)
    return kept


class NewsClient:
    """Thin NewsAPI client. Without a key every lookup is an empty no-op."""

    def __init__(
        self,
        *,
        fetcher: HttpFetcher,
        api_key: str | None,
        logger: logging.Logger,
        page_size: int = 5,
    ) -> None:
        self._fetcher = fetcher
        self._api_key = api_key
        self._logger = logger
        self._page_size = page_size

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    def company_news(self, domain_or_name: str) -> list[NewsArticle]:
        if not self._api_key or not domain_or_name:
            return []
        query, match_terms = derive_news_terms(domain_or_name)
        try:
            response = self._fetcher.request(
                "GET",
                NEWS_API_URL,
                params={
                    "q": query or f'"{domain_or_name}"',
                    "pageSize": self._page_size,
                    "sortBy": "publishedAt",
                    "language": "en",
                },
                headers={"X-Api-Key": self._api_key},
            )
            payload = response.json()
        except FetchError as exc:
            self._logger.warning("News lookup failed for %s: %s", domain_or_name, exc)
            return []
        except ValueError:
            self._logger.warning("News lookup for %s returned non-JSON body", domain_or_name)
            return []

        items = payload.get("articles") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            return []
        articles = []
        for item in filter_articles([i for i in items if isinstance(i, dict)], match_terms):
            if not item.get("title") or not item.get("url"):
                continue
            source = item.get("source") if isinstance(item.get("source"), dict) else {}
            articles.append(
                NewsArticle(
                    title=str(item["title"]),
                    url=str(item["url"]),
                    source=source.get("name"),
                    published_at=item.get("publishedAt"),
                )
            )
        self._logger.info("News for %s: %d articles", domain_or_name, len(articles))
        return articles
