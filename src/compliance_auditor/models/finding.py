"""Finding models shared across the evaluator and reporting layers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .resource import ResourceCategory


class Severity(str, Enum):
    """Severity levels supported by the rule catalog."""

    INFO = "info"
    WARN = "warn"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: "str | Severity") -> "Severity":
        if isinstance(value, Severity):
            return value
        normalized = str(value).strip().lower()
        if normalized == "warning":
            normalized = "warn"
        return cls(normalized)


SEVERITY_RANK = {
    Severity.INFO: 0,
    Severity.WARN: 1,
    Severity.CRITICAL: 2,
}


class Outcome(str, Enum):
    """Result of evaluating one rule against one resource."""

    PASS = "pass"
    FAIL = "fail"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Finding:
    """The recorded outcome of evaluating one rule against one resource."""

    rule_id: str
    resource_id: str
    category: ResourceCategory
    outcome: Outcome
    severity: Severity
    timestamp: datetime
    message: str = ""
    cause: Optional[str] = None
    remediation: Optional[str] = None
