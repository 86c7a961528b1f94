"""Lead quality grading from verification, MX and provider confidence."""

from __future__ import annotations

from typing import Any

DELIVERABLE = frozenset({"deliverable", "valid", "ok", "success"})
UNDELIVERABLE = frozenset({"undeliverable", "invalid", "disposable"})


def parse_score(verification: dict[str, Any]) -> float | None:
    """Return the verifier score on a 0-100 scale, if any."""
    for key in ("score", "confidence"):
        value = verification.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            score = float(value)
        except (TypeError, ValueError):
            continue
        return score * 100.0 if score <= 1.0 else score
    return None


def verification_status(verification: dict[str, Any]) -> str | None:
    for key in ("result", "status"):
        value = verification.get(key)
        if value:
            return str(value).strip().lower()
    return None


def compute_quality(
    *, mx_ok: bool | None, verification: dict[str, Any], provider_confidence: int | None
) -> str:
    """Grade a lead High/Medium/Low.

    A deliverable verdict is High and an undeliverable one is Low regardless
    of other signals. Otherwise the verifier score, then the provider's own
    confidence, decide together with the MX result.
    """
    status = verification_status(verification)
    if status in DELIVERABLE:
        return "High"
    if status in UNDELIVERABLE or mx_ok is False:
        return "Low"

    score = parse_score(verification)
    if score is None and provider_confidence is not None:
        score = float(provider_confidence)
    if score is not None:
        if score >= 80.0:
            return "High"
        if score >= 50.0:
            return "Medium"
        return "Low"
    return "Medium" if mx_ok else "Low"
