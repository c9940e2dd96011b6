"""Orchestration layer used by the CLI to execute an audit run."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence

from loguru import logger

from .adapters import CollectionError, ResourceCollector, collect_all
from .config import DEFAULT_MAX_WORKERS, DEFAULT_TIMEOUT
from .evaluator import Evaluator
from .models import Finding, ResourceCategory
from .rules import CatalogLoader, Rule, RuleCatalog


@dataclass(slots=True)
class AuditResult:
    """Result returned by :class:`AuditService` runs."""

    findings: List[Finding]
    collection_errors: Mapping[ResourceCategory, CollectionError]
    metadata: Mapping[str, Any]


CollectorFactory = Callable[[], ResourceCollector]


class AuditService:
    """High level service responsible for collection and rule evaluation."""

    def __init__(
        self,
        *,
        collector_factory: CollectorFactory | None = None,
        catalog_loader: CatalogLoader | None = None,
        evaluator: Evaluator | None = None,
    ) -> None:
        self._collector_factory = collector_factory
        self._catalog_loader = catalog_loader or CatalogLoader()
        self._evaluator = evaluator or Evaluator()

    # ------------------------------------------------------------------
    def load_catalog(
        self,
        catalogs: Sequence[Path | str] | None = None,
        *,
        include_default: bool = True,
    ) -> RuleCatalog:
        return self._catalog_loader.load(catalogs, include_default=include_default)

    # ------------------------------------------------------------------
    def run(
        self,
        *,
        categories: Sequence[ResourceCategory] | None = None,
        catalogs: Sequence[Path | str] | None = None,
        include_default_catalog: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> AuditResult:
        """Execute an audit run and return the resulting findings.

        Catalog errors propagate before anything is collected; collection
        failures degrade into ``unknown`` findings.
        """

        catalog = self.load_catalog(catalogs, include_default=include_default_catalog)
        rules = self._select_rules(catalog, categories)
        targeted = list(dict.fromkeys(rule.category for rule in rules))
        logger.info(
            "Loaded {} rule(s) covering {} categor{}",
            len(rules),
            len(targeted),
            "y" if len(targeted) == 1 else "ies",
        )

        collector = self._resolve_collector()
        outcome = collect_all(collector, targeted, timeout=timeout, max_workers=max_workers)

        findings = self._evaluator.evaluate(rules, outcome.resources, outcome.errors)

        metadata: Dict[str, Any] = {
            "rule_count": len(rules),
            "resource_count": len(outcome.resources),
            "categories": [category.value for category in targeted],
            "collection_errors": {
                category.value: error.cause for category, error in outcome.errors.items()
            },
        }

        return AuditResult(
            findings=findings, collection_errors=dict(outcome.errors), metadata=metadata
        )

    # ------------------------------------------------------------------
    def _select_rules(
        self, catalog: RuleCatalog, categories: Sequence[ResourceCategory] | None
    ) -> List[Rule]:
        if not categories:
            return catalog.list_rules()
        wanted = set(categories)
        return [rule for rule in catalog.list_rules() if rule.category in wanted]

    def _resolve_collector(self) -> ResourceCollector:
        if self._collector_factory is None:
            raise RuntimeError("No collector factory configured for audit service")
        return self._collector_factory()


__all__ = ["AuditResult", "AuditService"]
