"""Title, location and firmographic matching.

The heuristics are table driven: ``ROLE_SYNONYMS`` maps a canonical role token
to the phrases that mean it in English, French, German and Spanish, and
``LOCATION_ALIASES`` maps a country to its codes, alternative names and major
cities. Control flow below only reads the tables.

Missing data is permissive: a lead without a location, size or founded year
passes the corresponding filter. A missing *title* is the exception and never
matches an active title filter.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

from .models import FilterCriteria, Range

T = TypeVar("T")

ROLE_SYNONYMS: dict[str, tuple[str, ...]] = {
    "ceo": (
        "chief executive officer",
        "chief executive",
        "president directeur general",
        "directeur general",
        "directrice generale",
        "pdg",
        "dg",
        "geschaftsfuhrer",
        "geschaftsfuhrerin",
        "director general",
        "director ejecutivo",
        "consejero delegado",
    ),
    "cfo": (
        "chief financial officer",
        "chief finance officer",
        "directeur administratif et financier",
        "directeur financier",
        "directrice financiere",
        "daf",
        "finanzvorstand",
        "director financiero",
    ),
    "cto": (
        "chief technology officer",
        "chief technical officer",
        "directeur technique",
        "directrice technique",
        "director tecnico",
    ),
    "coo": (
        "chief operating officer",
        "chief operations officer",
        "directeur des operations",
        "director de operaciones",
    ),
    "cmo": (
        "chief marketing officer",
        "directeur marketing",
        "directrice marketing",
    ),
    "founder": (
        "co founder",
        "cofounder",
        "co fondateur",
        "cofondateur",
        "co fondatrice",
        "cofondatrice",
        "fondateur",
        "fondatrice",
        "mitgrunder",
        "grunder",
        "cofundador",
        "fundador",
    ),
    "president": ("presidente", "presidentin"),
    "owner": ("proprietaire", "inhaber", "propietario"),
}

# Requested role -> candidate role tokens that satisfy it.
ROLE_EQUIVALENTS: dict[str, frozenset[str]] = {
    "ceo": frozenset({"ceo", "president", "founder", "owner"}),
    "cfo": frozenset({"cfo"}),
    "cto": frozenset({"cto"}),
    "coo": frozenset({"coo"}),
    "cmo": frozenset({"cmo"}),
    "founder": frozenset({"founder"}),
    "president": frozenset({"president", "ceo"}),
    "owner": frozenset({"owner", "founder"}),
}

# Job families rejected whenever the query asks for an executive role.
EXCLUDED_TITLE_TERMS: tuple[str, ...] = (
    "sales",
    "marketing",
    "manager",
    "director",
    "vice president",
    "vp",
    "coordinator",
    "specialist",
    "analyst",
    "assistant",
    "associate",
    "business development",
    "account executive",
    "intern",
)

LOCATION_ALIASES: dict[str, dict[str, tuple[str, ...]]] = {
    "france": {
        "codes": ("fr", "fra"),
        "names": ("republique francaise",),
        "cities": ("paris", "lyon", "marseille", "toulouse", "lille", "bordeaux", "nantes"),
    },
    "united states": {
        "codes": ("us", "usa"),
        "names": ("united states of america", "america"),
        "cities": ("new york", "san francisco", "los angeles", "chicago", "boston", "austin",
                   "seattle"),
    },
    "united kingdom": {
        "codes": ("uk", "gb", "gbr"),
        "names": ("great britain", "england", "scotland", "wales"),
        "cities": ("london", "manchester", "edinburgh", "bristol"),
    },
    "germany": {
        "codes": ("de", "deu"),
        "names": ("deutschland",),
        "cities": ("berlin", "munich", "munchen", "hamburg", "frankfurt", "cologne"),
    },
    "spain": {
        "codes": ("es", "esp"),
        "names": ("espana",),
        "cities": ("madrid", "barcelona", "valencia", "seville"),
    },
    "italy": {
        "codes": ("it", "ita"),
        "names": ("italia",),
        "cities": ("rome", "roma", "milan", "milano", "turin", "naples"),
    },
    "canada": {
        "codes": ("ca", "can"),
        "names": (),
        "cities": ("toronto", "vancouver", "montreal", "ottawa"),
    },
    "netherlands": {
        "codes": ("nl", "nld"),
        "names": ("holland", "nederland"),
        "cities": ("amsterdam", "rotterdam", "utrecht", "eindhoven"),
    },
    "switzerland": {
        "codes": ("ch", "che"),
        "names": ("suisse", "schweiz", "svizzera"),
        "cities": ("zurich", "geneva", "geneve", "basel", "lausanne"),
    },
    "belgium": {
        "codes": ("be", "bel"),
        "names": ("belgique", "belgie"),
        "cities": ("brussels", "bruxelles", "antwerp", "ghent"),
    },
    "india": {
        "codes": ("in", "ind"),
        "names": ("bharat",),
        "cities": ("bangalore", "bengaluru", "mumbai", "delhi", "hyderabad", "pune"),
    },
    "australia": {
        "codes": ("au", "aus"),
        "names": (),
        "cities": ("sydney", "melbourne", "brisbane", "perth"),
    },
}

SIZE_BUCKETS: dict[str, Range] = {
    "1-10": (1, 10),
    "11-50": (11, 50),
    "51-200": (51, 200),
    "201-1000": (201, 1000),
    "1001+": (1001, None),
}

STARTUP_FOUNDED_SINCE = 2010
STARTUP_MAX_EMPLOYEES = 200


def _fold(text: str) -> str:
    """Lower-case, drop diacritics, turn punctuation into spaces, collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    ascii_text = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()
    return re.sub(r"\s+", " ", re.sub(r"[^\w\s]|_", " ", ascii_text)).strip()


def _phrase_pattern(phrases: Iterable[str]) -> re.Pattern[str]:
    ordered = sorted(set(phrases), key=len, reverse=True)
    return re.compile(r"\b(?:" + "|".join(re.escape(p) for p in ordered) + r")\b")


_SYNONYM_TO_ROLE = {
    phrase: role for role, phrases in ROLE_SYNONYMS.items() for phrase in phrases
}
_SYNONYM_PATTERN = _phrase_pattern(_SYNONYM_TO_ROLE)
_EXCLUDED_PATTERN = _phrase_pattern(EXCLUDED_TITLE_TERMS)


def normalize_title(title: str | None) -> str:
    """Fold a job title and rewrite known executive synonyms to canonical tokens."""
    folded = _fold(title or "")
    return _SYNONYM_PATTERN.sub(lambda m: _SYNONYM_TO_ROLE[m.group(0)], folded)


def role_tokens(normalized_title: str) -> frozenset[str]:
    return frozenset(token for token in normalized_title.split() if token in ROLE_EQUIVALENTS)


def has_excluded_term(normalized_title: str) -> bool:
    return _EXCLUDED_PATTERN.search(normalized_title) is not None


@dataclass(frozen=True)
class TitleQuery:
    """One requested title, normalized, with its executive roles (if any)."""

    raw: str
    normalized: str
    roles: frozenset[str]

    @property
    def is_executive(self) -> bool:
        return bool(self.roles)

    @classmethod
    def parse(cls, raw: str) -> TitleQuery:
        normalized = normalize_title(raw)
        return cls(raw=raw, normalized=normalized, roles=role_tokens(normalized))


def parse_title_queries(titles: Iterable[str]) -> tuple[TitleQuery, ...]:
    """Parse requested titles; each entry may itself be a comma-separated list."""
    queries: list[TitleQuery] = []
    for entry in titles:
        for part in (entry or "").split(","):
            query = TitleQuery.parse(part.strip())
            if query.normalized:
                queries.append(query)
    return tuple(queries)


def title_matches(title: str | None, queries: tuple[TitleQuery, ...]) -> bool:
    """Return True when ``title`` satisfies any query. No queries means no filter."""
    if not queries:
        return True
    normalized = normalize_title(title)
    if not normalized:
        return False
    tokens = set(normalized.split())
    for query in queries:
        if query.is_executive:
            accepted = frozenset().union(*(ROLE_EQUIVALENTS[role] for role in query.roles))
            if tokens & accepted and not has_excluded_term(normalized):
                return True
        elif query.normalized in normalized or normalized in query.normalized:
            return True
    return False


def _location_variants(requested: str) -> tuple[str, ...]:
    folded = _fold(requested)
    if not folded:
        return ()
    for country, aliases in LOCATION_ALIASES.items():
        if folded == country or folded in aliases["codes"] or folded in aliases["names"]:
            return (country, *aliases["names"], *aliases["codes"], *aliases["cities"])
    return (folded,)


def _variant_matches(variant: str, location: str, tokens: set[str]) -> bool:
    if len(variant) <= 3:
        # Short codes only match whole tokens ("us" must not hit "austin").
        return variant in tokens
    if variant in location:
        return True
    if len(location) <= 3:
        return location in variant.split()
    return location in variant


def location_matches(location: str | None, requested: Iterable[str]) -> bool:
    """Bidirectional substring match with aliases; a missing location always passes."""
    wanted = [loc for loc in requested if loc and loc.strip()]
    if not wanted:
        return True
    folded = _fold(location or "")
    if len(folded) < 2:
        return True
    tokens = set(folded.split())
    return any(
        _variant_matches(variant, folded, tokens)
        for loc in wanted
        for variant in _location_variants(loc)
    )


def parse_size_range(value: str) -> Range:
    """Parse a size bucket (``51-200``, ``1001+``) or an explicit ``MIN-MAX``."""
    text = (value or "").strip().replace(" ", "")
    if text in SIZE_BUCKETS:
        return SIZE_BUCKETS[text]
    match = re.fullmatch(r"(\d+)?-(\d+)?|(\d+)\+", text)
    if not match or not any(match.groups()):
        raise ValueError(f"invalid company size range: {value!r}")
    if match.group(3):
        return int(match.group(3)), None
    low = int(match.group(1)) if match.group(1) else None
    high = int(match.group(2)) if match.group(2) else None
    if low is not None and high is not None and low > high:
        raise ValueError(f"invalid company size range: {value!r}")
    return low, high


def _in_range(value: int, bounds: Range) -> bool:
    low, high = bounds
    return (low is None or value >= low) and (high is None or value <= high)


def _descriptive_text(item: Any) -> str:
    parts = [
        getattr(item, "description", None),
        getattr(item, "industry", None),
        getattr(item, "company", None) or getattr(item, "company_name", None),
        getattr(item, "domain", None),
    ]
    parts.extend(article.title for article in getattr(item, "recent_news", None) or [])
    return _fold(" ".join(str(part) for part in parts if part))


def _has_descriptive_data(item: Any) -> bool:
    return bool(
        getattr(item, "description", None)
        or getattr(item, "industry", None)
        or getattr(item, "recent_news", None)
    )


def firmographics_match(item: Any, criteria: FilterCriteria) -> bool:
    """Apply size, founded-year, startup, sector and technology filters.

    Each filter is skipped when the item lacks the attribute it would inspect.
    """
    size = getattr(item, "company_size", None)
    founded = getattr(item, "founded_year", None)

    if criteria.company_size_range is not None and size:
        if not _in_range(size, criteria.company_size_range):
            return False
    if criteria.founded_year_range is not None and founded:
        if not _in_range(founded, criteria.founded_year_range):
            return False
    if criteria.is_startup and (size or founded):
        young = bool(founded) and founded >= STARTUP_FOUNDED_SINCE
        small = bool(size) and size <= STARTUP_MAX_EMPLOYEES
        if not (young or small):
            return False

    sectors = [_fold(sector) for sector in criteria.sectors if _fold(sector)]
    if sectors and _has_descriptive_data(item):
        text = _descriptive_text(item)
        if not any(sector in text for sector in sectors):
            return False

    wanted_tech = [_fold(tech) for tech in criteria.technologies if _fold(tech)]
    known_tech = {_fold(tech) for tech in getattr(item, "technologies", None) or []}
    if wanted_tech and (known_tech or _has_descriptive_data(item)):
        text = _descriptive_text(item)
        if not all(tech in known_tech or tech in text for tech in wanted_tech):
            return False
    return True


class LeadFilter:
    """Applies FilterCriteria to candidates or lead records."""

    def __init__(self, criteria: FilterCriteria, *, logger: logging.Logger) -> None:
        self.criteria = criteria
        self._titles = parse_title_queries(criteria.titles)
        self._logger = logger

    @property
    def executive_intent(self) -> bool:
        return any(query.is_executive for query in self._titles)

    def matches(self, item: Any) -> bool:
        if not title_matches(getattr(item, "title", None), self._titles):
            return False
        if not location_matches(getattr(item, "location", None), self.criteria.locations):
            return False
        return firmographics_match(item, self.criteria)

    def apply(self, items: Iterable[T]) -> list[T]:
        materialized = list(items)
        kept = [item for item in materialized if self.matches(item)]
        self._logger.info(
            "Filter kept %d of %d (titles=%s, locations=%s)",
            len(kept),
            len(materialized),
            [query.raw for query in self._titles],
            list(self.criteria.locations),
        )
        return kept
