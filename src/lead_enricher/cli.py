"""CLI entrypoint for lead-enricher."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from decimal import Decimal, InvalidOperation

from .config import EnrichConfig, load_config
from .errors import ConfigError
from .io_csv import write_json, write_leads
from .logging_utils import configure_logging, get_logger
from .matching import parse_size_range
from .models import EnrichOptions, Range
from .pipeline import build_service
from .validation import load_lines_from_file


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from exc


def _size_range(value: str) -> Range:
    try:
        return parse_size_range(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _csv_list(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(
        description="Lead Enricher - budget-gated contact discovery for company websites."
    )
    source_group = parser.add_mutually_exclusive_group(required=True)
    source_group.add_argument("--urls", nargs="+", help="Company URLs or bare domains.")
    source_group.add_argument("--urls-file", help="Path to URL file (one URL per line).")
    parser.add_argument("--limit", type=int, default=10, help="Maximum leads to return.")
    parser.add_argument(
        "--title", help='Title filter; a comma-separated list matches any ("CEO,CFO").'
    )
    parser.add_argument(
        "--locations", type=_csv_list, default=(), help="Comma-separated location filter."
    )
    parser.add_argument(
        "--use-apollo", action="store_true", help="Query Apollo first, then Hunter."
    )
    parser.add_argument(
        "--verify-emails", action="store_true", help="Verify accepted emails (costs budget)."
    )
    parser.add_argument("--startup", action="store_true", help="Keep startup-like companies only.")
    parser.add_argument("--sectors", type=_csv_list, default=(), help="Comma-separated sectors.")
    parser.add_argument(
        "--technologies", type=_csv_list, default=(), help="Comma-separated technologies."
    )
    parser.add_argument(
        "--company-size", type=_size_range, help="Size bucket (51-200, 1001+) or MIN-MAX."
    )
    parser.add_argument("--founded-min", type=int, help="Earliest founding year.")
    parser.add_argument("--founded-max", type=int, help="Latest founding year.")
    parser.add_argument("--budget", type=_decimal, help="Run budget (overrides RUN_BUDGET_USD).")
    parser.add_argument("--workers", type=int, help="Domains processed concurrently.")
    parser.add_argument(
        "--output", default="leads_output.csv", help="Output path (.csv or .json)."
    )
    parser.add_argument("--no-progress", action="store_true", help="Disable tqdm progress bars.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse and pre-validate CLI input."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.limit < 1:
        parser.error("--limit must be >= 1.")
    if (
        args.founded_min is not None
        and args.founded_max is not None
        and args.founded_min > args.founded_max
    ):
        parser.error("--founded-min must not be after --founded-max.")
    return args


def namespace_to_config(args: argparse.Namespace) -> EnrichConfig:
    """Convert CLI args to validated EnrichConfig; credentials come from the environment."""
    return load_config(
        run_budget=args.budget,
        parallelism=args.workers,
        show_progress=not args.no_progress,
    )


def namespace_to_options(args: argparse.Namespace) -> EnrichOptions:
    founded: Range | None = None
    if args.founded_min is not None or args.founded_max is not None:
        founded = (args.founded_min, args.founded_max)
    return EnrichOptions(
        title=args.title,
        locations=tuple(args.locations),
        use_apollo=args.use_apollo,
        verify_emails=args.verify_emails,
        is_startup=True if args.startup else None,
        sectors=tuple(args.sectors),
        technologies=tuple(args.technologies),
        company_size_range=args.company_size,
        founded_year_range=founded,
    )


def _materialize_urls(args: argparse.Namespace) -> list[str]:
    if args.urls:
        return list(args.urls)
    return load_lines_from_file(args.urls_file)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""
    args = parse_args(argv)
    configure_logging(args.verbose)
    logger = get_logger()
    try:
        config = namespace_to_config(args)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    service = build_service(config, logger=logger)
    try:
        result = service.enrich(_materialize_urls(args), args.limit, namespace_to_options(args))
    finally:
        service.close()

    if args.output.lower().endswith(".json"):
        write_json(args.output, result)
    else:
        write_leads(args.output, result.leads)
    stats = result.stats
    logger.info(
        "Wrote %d leads to %s (by source %s, %d provider calls, spent %s, stopped: %s)",
        stats.total,
        args.output,
        stats.by_source,
        stats.provider_calls,
        stats.spent,
        stats.stopped_reason or "completed",
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
