"""Phone number normalization and sanity checks."""

from __future__ import annotations

import re

COUNTRY_CODE_BY_KEYWORD: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"india|\bin\b"), "+91"),
    (re.compile(r"united\s*states|\busa?\b|america|california|new york|texas|florida"), "+1"),
    (re.compile(r"canada|toronto|vancouver|montreal"), "+1"),
    (re.compile(r"united\s*kingdom|england|scotland|wales|\buk\b|london"), "+44"),
    (re.compile(r"australia|sydney|melbourne|brisbane"), "+61"),
    (re.compile(r"france|paris|lyon|marseille"), "+33"),
    (re.compile(r"germany|deutschland|berlin|munich|hamburg|frankfurt"), "+49"),
    (re.compile(r"spain|madrid|barcelona|valencia"), "+34"),
    (re.compile(r"italy|rome|milan|naples|florence"), "+39"),
    (re.compile(r"netherlands|amsterdam|rotterdam|utrecht"), "+31"),
    (re.compile(r"brazil|sao paulo|rio de janeiro|brasilia"), "+55"),
    (re.compile(r"south\s*africa|johannesburg|cape town|durban"), "+27"),
    (re.compile(r"\buae\b|united\s*arab\s*emirates|dubai|abu\s*dhabi"), "+971"),
]

COUNTRY_CODE_BY_TLD = {
    "in": "+91",
    "uk": "+44",
    "gb": "+44",
    "au": "+61",
    "fr": "+33",
    "de": "+49",
    "es": "+34",
    "it": "+39",
    "nl": "+31",
    "ca": "+1",
    "br": "+55",
    "za": "+27",
    "ae": "+971",
    "us": "+1",
}

_EXTENSION = re.compile(r"(ext\.?|extension|x)\s*\d+\s*$", re.IGNORECASE)
_E164 = re.compile(r"^\+\d{6,15}$")
# Calling codes checked longest-first when splitting an international number.
KNOWN_CALLING_CODES = frozenset(
    {
        "1", "7", "20", "27", "30", "31", "32", "33", "34", "36", "39", "40", "41", "43",
        "44", "45", "46", "47", "48", "49", "51", "52", "54", "55", "56", "57", "60",
        "61", "62", "63", "64", "65", "66", "81", "82", "84", "86", "90", "91", "92",
        "212", "216", "234", "254", "351", "352", "353", "358", "966", "971", "972", "974",
    }
)
_FAKE_PREFIX = re.compile(r"^(123|000|111|555|999)")


def guess_country_code(location: str | None, domain: str | None) -> str | None:
    """Guess a dialling code from location keywords, then from the domain TLD."""
    text = (location or "").lower()
    for pattern, code in COUNTRY_CODE_BY_KEYWORD:
        if pattern.search(text):
            return code
    host = (domain or "").lower().rstrip(".")
    if "." in host:
        return COUNTRY_CODE_BY_TLD.get(host.rsplit(".", maxsplit=1)[1])
    return None


def _group_digits(code: str, digits: str) -> str:
    if code == "+1" and len(digits) == 10:
        return f"{digits[:3]} {digits[3:6]} {digits[6:]}"
    return " ".join(digits[i : i + 3] for i in range(0, len(digits), 3))


def _split_calling_code(number: str) -> tuple[str, str]:
    for size in (3, 2, 1):
        if number[:size] in KNOWN_CALLING_CODES:
            return f"+{number[:size]}", number[size:]
    return f"+{number[:2]}", number[2:]


def normalize_phone(
    raw: str | None, location: str | None = None, domain: str | None = None
) -> str | None:
    """Return ``+CC grouped digits`` or None when nothing dialable remains."""
    if not raw or not str(raw).strip():
        return None
    value = _EXTENSION.sub("", str(raw).strip())
    cleaned = re.sub(r"[^\d+]", "", value)
    if cleaned.startswith("00"):
        cleaned = "+" + cleaned[2:]

    if _E164.match(cleaned):
        code, digits = _split_calling_code(cleaned[1:])
        return f"{code} {_group_digits(code, digits)}"

    digits = re.sub(r"\D", "", cleaned).lstrip("0")
    if not digits:
        return None
    code = guess_country_code(location, domain) or "+1"
    return f"{code} {_group_digits(code, digits)}"


def is_valid_phone(phone: str | None) -> bool:
    """Reject numbers that are too short/long, repeated digits, or obvious placeholders."""
    if not phone:
        return False
    digits = re.sub(r"\D", "", phone)
    if not 7 <= len(digits) <= 15:
        return False
    if len(set(digits)) == 1:
        return False
    return _FAKE_PREFIX.match(digits) is None
