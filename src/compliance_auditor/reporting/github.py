"""Helpers for publishing audit findings to GitHub Actions surfaces."""

from __future__ import annotations

import argparse
import json
import os
from itertools import islice
from pathlib import Path
from typing import Iterable, Mapping, MutableMapping, Sequence

from .report import EXIT_FAILED, EXIT_FATAL, EXIT_OK, ReportError

SEVERITY_ORDER = ["critical", "warn", "info"]
OUTCOME_ORDER = ["fail", "unknown", "pass"]
ANNOTATION_LEVELS = {
    "critical": "error",
    "warn": "warning",
    "info": "notice",
}
DISPLAY_LIMIT = 10


def _normalize_outcomes(raw_counts: Mapping[str, object] | None) -> MutableMapping[str, int]:
    counts: MutableMapping[str, int] = {outcome: 0 for outcome in OUTCOME_ORDER}
    for outcome, value in (raw_counts or {}).items():
        key = str(outcome).lower()
        if key in counts:
            counts[key] = int(value)  # type: ignore[arg-type]
    return counts


def _normalize_severities(
    raw_counts: Mapping[str, object] | None,
) -> MutableMapping[str, MutableMapping[str, int]]:
    counts: MutableMapping[str, MutableMapping[str, int]] = {
        severity: {outcome: 0 for outcome in OUTCOME_ORDER} for severity in SEVERITY_ORDER
    }
    for severity, by_outcome in (raw_counts or {}).items():
        key = str(severity).lower()
        if key in counts and isinstance(by_outcome, Mapping):
            counts[key].update(_normalize_outcomes(by_outcome))
    return counts


def _actionable(findings: Sequence[Mapping[str, object]]) -> list[Mapping[str, object]]:
    """Failing findings first, then unknown ones, ordered by severity."""

    selected = [f for f in findings if str(f.get("outcome", "")).lower() in ("fail", "unknown")]

    def sort_key(finding: Mapping[str, object]) -> tuple[int, int]:
        outcome = str(finding.get("outcome", "")).lower()
        severity = str(finding.get("severity", "info")).lower()
        severity_index = SEVERITY_ORDER.index(severity) if severity in SEVERITY_ORDER else 99
        return OUTCOME_ORDER.index(outcome), severity_index

    return sorted(selected, key=sort_key)


def format_summary(report: Mapping[str, object]) -> str:
    """Render a Markdown job summary for the provided report."""

    summary: Mapping[str, object] = report.get("summary") or {}  # type: ignore[assignment]
    metadata: Mapping[str, object] = report.get("metadata") or {}  # type: ignore[assignment]
    findings: Sequence[Mapping[str, object]] = report.get("findings") or []  # type: ignore[assignment]

    total_findings = int(summary.get("total_findings", 0))  # type: ignore[arg-type]
    threshold = str(summary.get("threshold") or "warn")
    exit_code = int(summary.get("exit_code", 0))  # type: ignore[arg-type]
    outcomes = _normalize_outcomes(summary.get("outcomes"))  # type: ignore[arg-type]
    severities = _normalize_severities(summary.get("severities"))  # type: ignore[arg-type]

    lines: list[str] = [
        "# AWS Compliance Audit",
        "",
        f"**Result:** {'Failed' if exit_code else 'Passed'}",
        f"**Total findings:** {total_findings}",
        f"**Threshold:** {threshold.title()}",
        "",
        "| Severity | Pass | Fail | Unknown |",
        "| --- | ---: | ---: | ---: |",
    ]

    for severity in SEVERITY_ORDER:
        counts = severities[severity]
        lines.append(
            f"| {severity.title()} | {counts['pass']} | {counts['fail']} | {counts['unknown']} |"
        )
    lines.append(
        f"| **Total** | {outcomes['pass']} | {outcomes['fail']} | {outcomes['unknown']} |"
    )

    if metadata:
        lines.extend(["", "## Metadata", ""])
        for key in sorted(metadata):
            lines.append(f"- **{key}:** {metadata[key]}")

    actionable = _actionable(findings)
    if actionable:
        lines.extend(["", "## Findings", ""])
        for finding in actionable[:DISPLAY_LIMIT]:
            outcome = str(finding.get("outcome", "")).upper()
            severity = str(finding.get("severity", "info")).lower()
            rule_id = str(finding.get("rule_id", "")).strip()
            resource_id = str(finding.get("resource_id", "")).strip()
            detail = str(finding.get("cause") or finding.get("message") or "").strip()

            bullet = f"- **{outcome}** {severity.title()}"
            if rule_id:
                bullet += f" `{rule_id}`"
            if detail:
                bullet += f" - {detail}"
            if resource_id:
                bullet += f" _(Resource: `{resource_id}`)_"
            lines.append(bullet)

        remaining = len(actionable) - DISPLAY_LIMIT
        if remaining > 0:
            lines.append(f"- ...and {remaining} more findings.")

    lines.append("")
    return "\n".join(lines)


def iter_annotations(report: Mapping[str, object]) -> Iterable[str]:
    """Generate workflow command annotations for failing and unknown findings."""

    findings: Sequence[Mapping[str, object]] = report.get("findings") or []  # type: ignore[assignment]
    for finding in _actionable(findings):
        outcome = str(finding.get("outcome", "")).lower()
        severity = str(finding.get("severity", "info")).lower()
        level = ANNOTATION_LEVELS.get(severity, "notice") if outcome == "fail" else "notice"
        rule_id = str(finding.get("rule_id", "")).strip()
        resource_id = str(finding.get("resource_id", "")).strip()

        if outcome == "unknown":
            message = f"Could not verify: {finding.get('cause') or 'unknown cause'}"
        else:
            message = str(finding.get("remediation") or finding.get("message") or "").strip()

        title_parts = [part for part in (severity.title(), rule_id) if part]
        title = " - ".join(title_parts)

        body_parts = [message] if message else []
        if resource_id:
            body_parts.append(f"Resource: {resource_id}")
        if not body_parts:
            body_parts.append("Compliance finding reported without message.")

        body = "; ".join(body_parts)
        body = body.replace("%", "%25").replace("\r", "").replace("\n", "%0A")

        attribute_segment = f" title={title}" if title else ""
        yield f"::{level}{attribute_segment}::{body}"


def load_report(path: Path) -> Mapping[str, object]:
    """Read a JSON report written by ``compliance-auditor verify --format json``."""

    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except OSError as exc:
        raise ReportError(f"Cannot read report {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ReportError(f"Report {path} is not valid JSON: {exc.msg}") from exc

    if not isinstance(data, Mapping) or "findings" not in data:
        raise ReportError(f"Report {path} is not an audit report")
    return data


def append_summary(report: Mapping[str, object], destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    with destination.open("a", encoding="utf-8") as handle:
        handle.write(format_summary(report))


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="compliance-auditor-github",
        description="Publish audit findings as a GitHub job summary and workflow annotations.",
    )
    parser.add_argument("report", type=Path, help="JSON report produced by 'verify --format json'.")
    parser.add_argument(
        "--summary-path",
        type=Path,
        default=None,
        help="Job summary file. Defaults to $GITHUB_STEP_SUMMARY.",
    )
    parser.add_argument(
        "--max-annotations",
        type=int,
        default=50,
        help="Emit at most this many annotations (failures first).",
    )
    parser.add_argument(
        "--exit-code",
        action="store_true",
        help="Exit with the status recorded in the report instead of 0.",
    )
    args = parser.parse_args(argv)

    summary_path = args.summary_path
    if summary_path is None and os.getenv("GITHUB_STEP_SUMMARY"):
        summary_path = Path(os.environ["GITHUB_STEP_SUMMARY"])

    try:
        report = load_report(args.report)
        if summary_path is not None:
            append_summary(report, summary_path)
    except (ReportError, OSError) as exc:
        print(f"Error: {exc}")
        return EXIT_FATAL

    for command in islice(iter_annotations(report), max(args.max_annotations, 0)):
        print(command)

    if not args.exit_code:
        return EXIT_OK
    summary: Mapping[str, object] = report.get("summary") or {}  # type: ignore[assignment]
    return EXIT_FAILED if summary.get("exit_code") else EXIT_OK


def run() -> None:  # pragma: no cover - wrapper for console entry point
    raise SystemExit(main())


if __name__ == "__main__":  # pragma: no cover - module execution guard
    run()
