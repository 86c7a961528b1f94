"""Apollo.io people-search client."""

from __future__ import annotations

import json
import logging
from typing import Any

from .circuit import CircuitBreaker
from .config import APOLLO_SEARCH
from .errors import FetchError, HttpError, MalformedResponse, ProviderDisabled
from .models import HttpFetcher, RawContactCandidate

APOLLO_BASE_URL = "https://api.apollo.io/v1"
PLAN_ERROR_CODES = frozenset({"API_INACCESSIBLE"})
LOCKED_EMAIL_MARKER = "not_unlocked"


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


class ApolloClient:
    """People search by organization domain, with a secondary endpoint fallback."""

    name = "apollo"
    cost_key = APOLLO_SEARCH

    def __init__(
        self,
        *,
        fetcher: HttpFetcher,
        api_key: str | None,
        logger: logging.Logger,
        enabled: bool = True,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._api_key = api_key
        self._enabled = enabled
        self._logger = logger
        self.breaker = breaker or CircuitBreaker(self.name, logger=logger)

    @property
    def available(self) -> bool:
        return self._enabled and bool(self._api_key) and not self.breaker.is_open

    def search(
        self,
        domain: str,
        title: str | None = None,
        locations: tuple[str, ...] = (),
        limit: int = 10,
    ) -> list[RawContactCandidate]:
        if not domain or not self._enabled or not self._api_key:
            return []
        try:
            self.breaker.check()
            people = self._search_with_fallback(domain, title, locations, limit)
        except ProviderDisabled as exc:
            self._logger.debug("Apollo skipped for %s: %s", domain, exc)
            return []
        except HttpError as exc:
            if self._is_plan_error(exc):
                self.breaker.trip(f"HTTP {exc.status} plan inaccessible")
            else:
                self._logger.warning("Apollo HTTP %s for %s", exc.status, domain)
            return []
        except (FetchError, MalformedResponse) as exc:
            self._logger.warning("Apollo people search failed for %s: %s", domain, exc)
            return []

        candidates: list[RawContactCandidate] = []
        for person in people:
            candidate = self._to_candidate(domain, person)
            if candidate is not None:
                candidates.append(candidate)
        self._logger.info("Apollo returned %d usable people for %s", len(candidates), domain)
        return candidates[:limit]

    def _search_with_fallback(
        self, domain: str, title: str | None, locations: tuple[str, ...], limit: int
    ) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {
            "page": 1,
            "per_page": limit,
            "q_organization_domains": [domain],
        }
        if title:
            payload["person_titles"] = [part.strip() for part in title.split(",") if part.strip()]
        if locations:
            payload["person_locations"] = list(locations)
        try:
            people = self._post("mixed_people/search", payload)
        except HttpError as exc:
            if self._is_plan_error(exc):
                raise
            self._logger.warning("Apollo HTTP %s for %s; trying fallback", exc.status, domain)
        except MalformedResponse as exc:
            self._logger.warning("Apollo returned an unexpected payload for %s: %s", domain, exc)
        else:
            if people:
                return people
            self._logger.info("Apollo returned no people for %s; trying fallback", domain)

        fallback = dict(payload)
        if title:
            fallback["title"] = title
        if locations:
            fallback["locations"] = list(locations)
        return self._post("people/search", fallback)

    def _post(self, endpoint: str, payload: dict[str, Any]) -> list[dict[str, Any]]:
        response = self._fetcher.request(
            "POST",
            f"{APOLLO_BASE_URL}/{endpoint}",
            json=payload,
            headers={
                "Content-Type": "application/json",
                "Cache-Control": "no-cache",
                "X-Api-Key": str(self._api_key),
            },
        )
        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponse(f"Apollo {endpoint} returned non-JSON body") from exc
        people = data.get("people", []) if isinstance(data, dict) else None
        if not isinstance(people, list):
            raise MalformedResponse(f"Apollo {endpoint} people is not a list")
        return [person for person in people if isinstance(person, dict)]

    @staticmethod
    def _is_plan_error(exc: HttpError) -> bool:
        if exc.status == 403:
            return True
        try:
            body = json.loads(exc.body or "{}")
        except ValueError:
            return False
        return isinstance(body, dict) and str(body.get("error_code", "")) in PLAN_ERROR_CODES

    @staticmethod
    def _to_candidate(domain: str, person: dict[str, Any]) -> RawContactCandidate | None:
        email = person.get("email")
        if not isinstance(email, str) or "@" not in email or LOCKED_EMAIL_MARKER in email:
            return None
        name = person.get("name") or " ".join(
            part for part in (person.get("first_name"), person.get("last_name")) if part
        )
        location = ", ".join(
            str(person[key]) for key in ("city", "state", "country") if person.get(key)
        )
        phone = None
        for entry in person.get("phone_numbers") or []:
            if isinstance(entry, dict):
                phone = entry.get("sanitized_number") or entry.get("raw_number")
                if phone:
                    break
        org = person.get("organization") if isinstance(person.get("organization"), dict) else {}
        technologies = org.get("technology_names") or org.get("keywords") or []
        return RawContactCandidate(
            domain=domain,
            email=email.strip().lower(),
            source="apollo",
            name=name or None,
            title=person.get("title") or None,
            linkedin_url=person.get("linkedin_url") or None,
            location=location or None,
            phone_number=phone or None,
            company_name=org.get("name") or None,
            company_size=_as_int(org.get("estimated_num_employees")),
            founded_year=_as_int(org.get("founded_year")),
            industry=org.get("industry") or None,
            technologies=tuple(str(t) for t in technologies if isinstance(t, str)),
        )
