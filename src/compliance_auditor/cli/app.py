"""Command-line interface implementation for the compliance auditor."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from loguru import logger

from ..adapters import (
    AwsCollector,
    AwsContext,
    CredentialsError,
    ResourceCollector,
    SnapshotCollector,
    SnapshotError,
)
from ..config import AuditSettings, SettingsError
from ..logs import configure_logging
from ..models import ResourceCategory, Severity
from ..reporting import EXIT_FATAL, OUTPUT_FORMATS, Reporter, ReportError
from ..rules import CatalogError, RuleCatalog
from ..service import AuditService


def _add_catalog_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--catalog",
        dest="catalogs",
        action="append",
        type=Path,
        default=None,
        help="Additional rule catalog YAML/JSON file (repeatable).",
    )
    parser.add_argument(
        "--no-default-catalog",
        dest="include_default_catalog",
        action="store_false",
        default=True,
        help="Do not load the bundled AWS baseline catalog.",
    )
    parser.add_argument(
        "--category",
        dest="categories",
        action="append",
        default=None,
        metavar="NAME",
        help=(
            "Restrict the run to a resource category (repeatable). One of: "
            + ", ".join(category.value for category in ResourceCategory)
        ),
    )


def build_parser() -> argparse.ArgumentParser:
    """Construct the CLI argument parser."""

    parser = argparse.ArgumentParser(
        prog="compliance-auditor",
        description="Detect drift between declared AWS best practices and observed state.",
    )
    subparsers = parser.add_subparsers(dest="command")

    verify_parser = subparsers.add_parser(
        "verify", help="Collect resources, evaluate the rule catalog and report findings."
    )
    verify_parser.add_argument(
        "--provider",
        choices=["aws"],
        default="aws",
        help="Cloud provider to audit.",
    )
    verify_parser.add_argument(
        "--region",
        default=None,
        help="AWS region. Defaults to AWS_REGION or AWS_DEFAULT_REGION.",
    )
    verify_parser.add_argument(
        "--profile",
        default=None,
        help="Named AWS profile. Defaults to AWS_PROFILE or the standard credential chain.",
    )
    verify_parser.add_argument(
        "--snapshot",
        type=Path,
        default=None,
        help="Audit a recorded resource inventory (JSON/YAML) instead of a live account.",
    )
    _add_catalog_arguments(verify_parser)
    verify_parser.add_argument(
        "--fail-on",
        choices=[severity.value for severity in Severity],
        default=Severity.WARN.value,
        help="Fail the run when findings at or above this severity fail.",
    )
    verify_parser.add_argument(
        "--fail-on-unknown",
        action="store_true",
        help="Also fail the run for unknown findings at or above the threshold.",
    )
    verify_parser.add_argument(
        "--format",
        choices=list(OUTPUT_FORMATS),
        default="text",
        help="Output format for the report.",
    )
    verify_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the report to this file instead of stdout.",
    )
    verify_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Global collection timeout in seconds (default 300).",
    )
    verify_parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Number of categories collected concurrently (default 8).",
    )
    verify_parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    rules_parser = subparsers.add_parser("rules", help="List the rules in the loaded catalog.")
    _add_catalog_arguments(rules_parser)

    return parser


def create_collector(settings: AuditSettings) -> ResourceCollector:
    """Create the collector selected by ``settings``."""

    if settings.snapshot is not None:
        return SnapshotCollector(settings.snapshot)

    context = AwsContext.from_profile(settings.profile, settings.region)
    context.ensure_credentials()
    return AwsCollector(context)


def create_service(settings: AuditSettings) -> AuditService:
    """Create an audit service wired to the configured collector."""

    return AuditService(collector_factory=lambda: create_collector(settings))


def render_rules(catalog: RuleCatalog, categories: Sequence[ResourceCategory]) -> str:
    rules = catalog.list_rules()
    if categories:
        rules = [rule for rule in rules if rule.category in set(categories)]
    if not rules:
        return "No rules loaded."

    headers = ("Rule ID", "Category", "Severity", "Description")
    rows = [headers] + [
        (rule.rule_id, rule.category.value, rule.severity.value, rule.description)
        for rule in rules
    ]
    widths = [max(len(row[idx]) for row in rows) for idx in range(len(headers))]
    lines = ["  ".join(value.ljust(width) for value, width in zip(row, widths)).rstrip() for row in rows]
    lines.insert(1, "  ".join("=" * width for width in widths))
    return "\n".join(lines)


def _handle_verify(args: argparse.Namespace) -> int:
    configure_logging(args.verbose)

    try:
        settings = AuditSettings.from_args(args)
    except SettingsError as exc:
        print(f"Error: {exc}")
        return EXIT_FATAL

    service = create_service(settings)

    try:
        result = service.run(
            categories=settings.categories,
            catalogs=settings.catalogs,
            include_default_catalog=settings.include_default_catalog,
            timeout=settings.timeout,
            max_workers=settings.max_workers,
        )
    except (CatalogError, CredentialsError, SnapshotError) as exc:
        print(f"Error: {exc}")
        return EXIT_FATAL

    metadata = {**settings.metadata, **result.metadata}
    reporter = Reporter(
        sink=settings.output if settings.output is not None else "-",
        output_format=settings.output_format,
        threshold=settings.threshold,
        fail_on_unknown=settings.fail_on_unknown,
    )

    try:
        report = reporter.report(result.findings, metadata)
    except ReportError as exc:
        print(f"Error: {exc}")
        return EXIT_FATAL

    if settings.output is not None:
        print(report.summary_line())
    logger.info("Audit finished with exit code {}", report.exit_code)
    return report.exit_code


def _handle_rules(args: argparse.Namespace) -> int:
    try:
        categories = [ResourceCategory.parse(name) for name in args.categories or []]
        catalog = AuditService().load_catalog(
            args.catalogs, include_default=args.include_default_catalog
        )
    except (CatalogError, ValueError) as exc:
        print(f"Error: {exc}")
        return EXIT_FATAL

    print(render_rules(catalog, categories))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by tests and the ``python -m`` invocation."""

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "verify":
        return _handle_verify(args)
    if args.command == "rules":
        return _handle_rules(args)

    parser.print_help()
    return 0


def run() -> None:  # pragma: no cover - thin wrapper for module execution
    """Execute the CLI and exit with the produced status code."""

    raise SystemExit(main())


if __name__ == "__main__":  # pragma: no cover - module execution guard
    run()
