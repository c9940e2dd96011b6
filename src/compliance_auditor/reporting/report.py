"""Aggregate findings, compute the exit status and write rendered reports."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Dict, List, Mapping, MutableMapping, Sequence

from ..models import SEVERITY_RANK, Finding, Outcome, Severity

OUTPUT_FORMATS = ("text", "json")
STDOUT_SINK = "-"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_FATAL = 2


class ReportError(RuntimeError):
    """Raised when the rendered report cannot be written to its sink."""


@dataclass(slots=True)
class AuditReport:
    """Collection of findings plus contextual metadata."""

    findings: Sequence[Finding]
    metadata: Mapping[str, Any] = field(default_factory=dict)
    threshold: Severity = Severity.WARN
    fail_on_unknown: bool = False

    def _at_threshold(self, finding: Finding) -> bool:
        return SEVERITY_RANK[finding.severity] >= SEVERITY_RANK[self.threshold]

    @property
    def failing_findings(self) -> List[Finding]:
        """Findings that make the run fail under the configured threshold."""

        failing_outcomes = {Outcome.FAIL}
        if self.fail_on_unknown:
            failing_outcomes.add(Outcome.UNKNOWN)
        return [
            finding
            for finding in self.findings
            if finding.outcome in failing_outcomes and self._at_threshold(finding)
        ]

    @property
    def exit_code(self) -> int:
        return EXIT_FAILED if self.failing_findings else EXIT_OK

    def counts_by_outcome(self) -> dict[str, int]:
        counts: MutableMapping[Outcome, int] = {outcome: 0 for outcome in Outcome}
        for finding in self.findings:
            counts[finding.outcome] += 1
        return {outcome.value: count for outcome, count in counts.items()}

    def counts_by_severity(self) -> dict[str, dict[str, int]]:
        counts: Dict[str, Dict[str, int]] = {
            severity.value: {outcome.value: 0 for outcome in Outcome} for severity in Severity
        }
        for finding in self.findings:
            counts[finding.severity.value][finding.outcome.value] += 1
        return counts

    def summary_line(self) -> str:
        outcomes = self.counts_by_outcome()
        status = "FAILED" if self.exit_code else "PASSED"
        line = (
            f"{status}: {len(self.findings)} findings "
            f"({outcomes['pass']} pass, {outcomes['fail']} fail, {outcomes['unknown']} unknown); "
            f"threshold={self.threshold.value}"
        )
        if outcomes["unknown"] and not self.fail_on_unknown:
            line += f"; {outcomes['unknown']} unknown finding(s) need review"
        return line

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": dict(self.metadata),
            "summary": {
                "total_findings": len(self.findings),
                "threshold": self.threshold.value,
                "fail_on_unknown": self.fail_on_unknown,
                "exit_code": self.exit_code,
                "outcomes": self.counts_by_outcome(),
                "severities": self.counts_by_severity(),
                "line": self.summary_line(),
            },
            "findings": [_serialize_finding(finding) for finding in self.findings],
        }


def _serialize_finding(finding: Finding) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "rule_id": finding.rule_id,
        "resource_id": finding.resource_id,
        "category": finding.category.value,
        "outcome": finding.outcome.value,
        "severity": finding.severity.value,
        "timestamp": finding.timestamp.isoformat(),
        "message": finding.message,
    }
    if finding.cause is not None:
        payload["cause"] = finding.cause
    if finding.remediation is not None:
        payload["remediation"] = finding.remediation
    return payload


def _detail(finding: Finding) -> str:
    if finding.outcome is Outcome.UNKNOWN:
        return finding.cause or "-"
    if finding.outcome is Outcome.FAIL:
        return finding.remediation or finding.message or "-"
    return finding.message or "-"


def render_text(report: AuditReport) -> str:
    """Render findings as a simple text table followed by the summary line."""

    if not report.findings:
        return "No findings produced.\n" + report.summary_line()

    headers = ("Outcome", "Severity", "Rule ID", "Resource", "Detail")
    rows = [headers]
    for finding in report.findings:
        rows.append(
            (
                finding.outcome.value.upper(),
                finding.severity.value,
                finding.rule_id,
                finding.resource_id,
                _detail(finding),
            )
        )

    widths = [max(len(str(row[idx])) for row in rows) for idx in range(len(headers))]

    def format_row(values: tuple[str, str, str, str, str]) -> str:
        line = "  ".join(value.ljust(width) for value, width in zip(values, widths, strict=True))
        return line.rstrip()

    lines = [format_row(headers)]
    lines.append("  ".join("=" * width for width in widths))
    for row in rows[1:]:
        lines.append(format_row(row))
    lines.append("")
    lines.append(report.summary_line())
    return "\n".join(lines)


def render(report: AuditReport, output_format: str) -> str:
    if output_format not in OUTPUT_FORMATS:
        raise ValueError("format must be either 'text' or 'json'")
    if output_format == "json":
        return json.dumps(report.to_dict(), indent=2)
    return render_text(report)


class Reporter:
    """Render an :class:`AuditReport` and write it to the configured sink."""

    def __init__(
        self,
        *,
        sink: str | os.PathLike[str] | IO[str] = STDOUT_SINK,
        output_format: str = "text",
        threshold: Severity = Severity.WARN,
        fail_on_unknown: bool = False,
    ) -> None:
        if output_format not in OUTPUT_FORMATS:
            raise ValueError("format must be either 'text' or 'json'")
        self.sink = sink
        self.output_format = output_format
        self.threshold = threshold
        self.fail_on_unknown = fail_on_unknown

    # ------------------------------------------------------------------
    def report(
        self, findings: Sequence[Finding], metadata: Mapping[str, Any] | None = None
    ) -> AuditReport:
        """Aggregate ``findings``, write the rendering and return the report."""

        report = AuditReport(
            findings=list(findings),
            metadata=dict(metadata or {}),
            threshold=self.threshold,
            fail_on_unknown=self.fail_on_unknown,
        )
        self._write(render(report, self.output_format))
        return report

    # ------------------------------------------------------------------
    def _write(self, content: str) -> None:
        text = content if content.endswith("\n") else content + "\n"
        try:
            if self.sink == STDOUT_SINK:
                sys.stdout.write(text)
                sys.stdout.flush()
            elif hasattr(self.sink, "write"):
                self.sink.write(text)  # type: ignore[union-attr]
            else:
                destination = Path(self.sink)  # type: ignore[arg-type]
                destination.parent.mkdir(parents=True, exist_ok=True)
                destination.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise ReportError(f"Failed to write report to {self.sink}: {exc}") from exc


__all__ = [
    "AuditReport",
    "EXIT_FAILED",
    "EXIT_FATAL",
    "EXIT_OK",
    "OUTPUT_FORMATS",
    "ReportError",
    "Reporter",
    "render",
    "render_text",
]
