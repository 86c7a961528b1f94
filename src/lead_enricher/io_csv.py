"""CSV and JSON serialization helpers."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

from .models import EnrichResult, LeadRecord

LEAD_CSV_FIELDS = [
    "lead_id",
    "email",
    "name",
    "title",
    "company",
    "domain",
    "company_website",
    "linkedin_url",
    "location",
    "phone_number",
    "industry",
    "company_size",
    "founded_year",
    "technologies",
    "careers_links",
    "active_job_count",
    "recent_news",
    "source",
    "verify_status",
    "verify_score",
    "mx_ok",
    "quality",
    "captured_at",
]


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, list):
        return ";".join(str(item) for item in value)
    return str(value)


def lead_to_row(lead: LeadRecord) -> dict[str, str]:
    row = {name: _cell(getattr(lead, name)) for name in LEAD_CSV_FIELDS if name != "recent_news"}
    row["recent_news"] = ";".join(article.title for article in lead.recent_news)
    return row


def write_leads(path: str, leads: list[LeadRecord]) -> None:
    """Write leads to CSV with stable schema."""
    output_path = Path(path)
    with output_path.open("w", newline="", encoding="utf-8") as file_obj:
        writer = csv.DictWriter(file_obj, fieldnames=LEAD_CSV_FIELDS)
        writer.writeheader()
        for lead in leads:
            writer.writerow(lead_to_row(lead))


def write_json(path: str, result: EnrichResult) -> None:
    """Write leads and run statistics as one JSON document."""
    stats = result.stats
    document = {
        "leads": [lead.to_dict() for lead in result.leads],
        "stats": {
            "total": stats.total,
            "by_source": stats.by_source,
            "verified": stats.verified,
            "provider_calls": stats.provider_calls,
            "domains_attempted": stats.domains_attempted,
            "spent": str(stats.spent),
            "remaining": str(stats.remaining),
            "stopped_reason": stats.stopped_reason,
        },
    }
    Path(path).write_text(json.dumps(document, indent=2), encoding="utf-8")
