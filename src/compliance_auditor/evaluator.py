"""Apply catalog rules to collected resources."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Sequence

from loguru import logger

from .adapters import CollectionError
from .models import Finding, Outcome, Resource, ResourceCategory
from .rules import Rule

ALL_RESOURCES = "*"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Evaluator:
    """Produce exactly one finding per (rule, resource of the rule's category)."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or utc_now

    # ------------------------------------------------------------------
    def evaluate(
        self,
        rules: Sequence[Rule],
        resources: Sequence[Resource],
        collection_errors: Mapping[ResourceCategory, CollectionError] | None = None,
        *,
        timestamp: datetime | None = None,
    ) -> List[Finding]:
        """Evaluate rule-major: every resource against a rule before the next rule.

        A rule whose category has no resources yields a single ``unknown``
        finding, never a pass.
        """

        errors = collection_errors or {}
        stamp = timestamp or self._clock()

        by_category: Dict[ResourceCategory, List[Resource]] = {}
        for resource in resources:
            by_category.setdefault(resource.category, []).append(resource)

        findings: List[Finding] = []
        for rule in rules:
            matching = by_category.get(rule.category, [])
            if not matching:
                findings.append(self._missing(rule, errors.get(rule.category), stamp))
                continue
            for resource in matching:
                findings.append(self._evaluate_one(rule, resource, stamp))
        return findings

    # ------------------------------------------------------------------
    def _evaluate_one(self, rule: Rule, resource: Resource, stamp: datetime) -> Finding:
        try:
            compliant = rule.predicate.evaluate(resource.attributes)
        except Exception as exc:
            cause = str(exc) or type(exc).__name__
            logger.warning(
                "Rule {} could not be evaluated against {}: {}", rule.rule_id, resource.resource_id, cause
            )
            return Finding(
                rule_id=rule.rule_id,
                resource_id=resource.resource_id,
                category=rule.category,
                outcome=Outcome.UNKNOWN,
                severity=rule.severity,
                timestamp=stamp,
                message=rule.description,
                cause=cause,
            )

        outcome = Outcome.PASS if compliant else Outcome.FAIL
        return Finding(
            rule_id=rule.rule_id,
            resource_id=resource.resource_id,
            category=rule.category,
            outcome=outcome,
            severity=rule.severity,
            timestamp=stamp,
            message=rule.description,
            remediation=(rule.remediation or None) if outcome is Outcome.FAIL else None,
        )

    def _missing(self, rule: Rule, error: CollectionError | None, stamp: datetime) -> Finding:
        if error is not None:
            cause = f"collection failed: {error.cause}"
        else:
            cause = f"no {rule.category.value} resources were collected"
        return Finding(
            rule_id=rule.rule_id,
            resource_id=ALL_RESOURCES,
            category=rule.category,
            outcome=Outcome.UNKNOWN,
            severity=rule.severity,
            timestamp=stamp,
            message=rule.description,
            cause=cause,
        )


def evaluate(
    rules: Sequence[Rule],
    resources: Sequence[Resource],
    collection_errors: Mapping[ResourceCategory, CollectionError] | None = None,
) -> List[Finding]:
    """Module-level shortcut for :meth:`Evaluator.evaluate`."""

    return Evaluator().evaluate(rules, resources, collection_errors)


__all__ = ["ALL_RESOURCES", "Evaluator", "evaluate", "utc_now"]
