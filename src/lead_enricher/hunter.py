"""Hunter API client."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Any

from .circuit import CircuitBreaker
from .config import HUNTER_DOMAIN
from .errors import FetchError, HttpError, MalformedResponse, ProviderDisabled
from .models import HttpFetcher, RawContactCandidate

HUNTER_BASE_URL = "https://api.hunter.io/v2"
# Error ids Hunter returns when the key or plan can never succeed.
DISABLING_ERROR_IDS = frozenset(
    {"authentication_failed", "restricted_account", "unauthorized", "pricing_plan_error"}
)


def _error_ids(body: str) -> set[str]:
    try:
        payload = json.loads(body or "{}")
    except ValueError:
        return set()
    errors = payload.get("errors") if isinstance(payload, dict) else None
    if not isinstance(errors, list):
        return set()
    return {str(item.get("id")) for item in errors if isinstance(item, dict) and item.get("id")}


class HunterClient:
    """Hunter wrapper for domain search and email verification."""

    name = "hunter"
    cost_key = HUNTER_DOMAIN

    def __init__(
        self,
        *,
        fetcher: HttpFetcher,
        api_key: str | None,
        logger: logging.Logger,
        breaker: CircuitBreaker | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._api_key = api_key
        self._logger = logger
        self.breaker = breaker or CircuitBreaker(self.name, logger=logger)
        self._sleep = sleep
        self._clock = clock

    @property
    def available(self) -> bool:
        return bool(self._api_key) and not self.breaker.is_open

    def search(
        self,
        domain: str,
        title: str | None = None,
        locations: tuple[str, ...] = (),
        limit: int = 10,
    ) -> list[RawContactCandidate]:
        """Domain search; title and locations are applied later by the filter engine."""
        _ = (title, locations)
        if not domain or not self._api_key:
            return []
        try:
            self.breaker.check()
            payload = self._get("domain-search", {"domain": domain, "limit": limit})
            emails = self._emails_from(payload)
        except ProviderDisabled as exc:
            self._logger.debug("Hunter skipped for %s: %s", domain, exc)
            return []
        except HttpError as exc:
            self._handle_http_error(exc, domain)
            return []
        except (FetchError, MalformedResponse) as exc:
            self._logger.warning("Hunter domain-search failed for %s: %s", domain, exc)
            return []
        self._logger.info("Hunter returned %d emails for %s", len(emails), domain)
        return [self._to_candidate(domain, item) for item in emails][:limit]

    def verify_email(self, email: str, poll: bool = True, timeout: int = 20) -> dict[str, Any]:
        if not self._api_key:
            return {"status": "error", "reason": "no api key"}
        if self.breaker.is_open:
            return {"status": "error", "reason": "provider disabled"}
        started_at = self._clock()
        while True:
            try:
                response = self._fetcher.request(
                    "GET",
                    f"{HUNTER_BASE_URL}/email-verifier",
                    params={"email": email, "api_key": self._api_key},
                )
            except HttpError as exc:
                self._handle_http_error(exc, email)
                return {"status": "error", "http_status": exc.status, "body": exc.body}
            except FetchError as exc:
                return {"status": "error", "exception": str(exc)}
            if response.status_code == 202 and poll:
                if self._clock() - started_at > timeout:
                    return {"status": "timeout"}
                self._sleep(1.0)
                continue
            try:
                payload = response.json()
            except ValueError:
                return {"status": "error", "reason": "malformed response"}
            data = payload.get("data", {}) if isinstance(payload, dict) else {}
            return data if isinstance(data, dict) else {}

    def _get(self, endpoint: str, params: dict[str, Any]) -> Any:
        response = self._fetcher.request(
            "GET",
            f"{HUNTER_BASE_URL}/{endpoint}",
            params={**params, "api_key": self._api_key},
        )
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponse(f"Hunter {endpoint} returned non-JSON body") from exc

    @staticmethod
    def _emails_from(payload: Any) -> list[dict[str, Any]]:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise MalformedResponse("Hunter payload has no data object")
        emails = data.get("emails", [])
        if not isinstance(emails, list):
            raise MalformedResponse("Hunter data.emails is not a list")
        return [
            item
            for item in emails
            if isinstance(item, dict) and isinstance(item.get("value"), str) and item["value"]
        ]

    def _handle_http_error(self, exc: HttpError, subject: str) -> None:
        ids = _error_ids(exc.body)
        if exc.status == 401 or (exc.status == 403 and ids & DISABLING_ERROR_IDS):
            self.breaker.trip(f"HTTP {exc.status} {','.join(sorted(ids))}".strip())
            return
        self._logger.warning("Hunter HTTP %s for %s", exc.status, subject)

    @staticmethod
    def _to_candidate(domain: str, item: dict[str, Any]) -> RawContactCandidate:
        name = " ".join(part for part in (item.get("first_name"), item.get("last_name")) if part)
        confidence = item.get("confidence")
        return RawContactCandidate(
            domain=domain,
            email=str(item["value"]).strip().lower(),
            source="hunter",
            name=name or None,
            title=item.get("position") or None,
            linkedin_url=item.get("linkedin") or None,
            phone_number=item.get("phone_number") or None,
            confidence=confidence if isinstance(confidence, int) else None,
        )
