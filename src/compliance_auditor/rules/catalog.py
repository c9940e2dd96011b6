"""Loading and querying the declarative rule catalog."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, MutableMapping, Sequence

import yaml

from ..models import ResourceCategory, Severity
from .predicates import Predicate, PredicateSyntaxError, parse_predicate


class CatalogError(RuntimeError):
    """Raised when catalog files cannot be loaded or contain invalid rules."""


@dataclass(frozen=True, slots=True)
class Rule:
    """A single check over one resource category."""

    rule_id: str
    category: ResourceCategory
    predicate: Predicate
    severity: Severity
    description: str = ""
    remediation: str = ""
    enabled: bool = True


SUPPORTED_VERSIONS = {1}

DEFAULT_CATALOG = Path(__file__).resolve().parent / "catalogs" / "aws-baseline.yaml"


class RuleCatalog:
    """Immutable, ordered collection of rules keyed by identifier."""

    def __init__(self, rules: Sequence[Rule]) -> None:
        index: Dict[str, Rule] = {}
        for rule in rules:
            if rule.rule_id in index:
                raise CatalogError(f"Duplicate rule identifier: {rule.rule_id}")
            index[rule.rule_id] = rule
        self._rules = tuple(rules)
        self._index = index

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def get(self, rule_id: str) -> Rule:
        try:
            return self._index[rule_id]
        except KeyError:
            raise CatalogError(f"Unknown rule identifier: {rule_id}") from None

    # ------------------------------------------------------------------
    def list_rules(self, category: ResourceCategory | str | None = None) -> List[Rule]:
        """Return enabled rules in catalog order, optionally for one category."""

        wanted = None
        if category is not None:
            try:
                wanted = ResourceCategory.parse(category)
            except ValueError as exc:
                raise CatalogError(str(exc)) from exc
        return [
            rule
            for rule in self._rules
            if rule.enabled and (wanted is None or rule.category is wanted)
        ]

    def categories(self) -> List[ResourceCategory]:
        """Return the categories targeted by enabled rules, in first-seen order."""

        seen: Dict[ResourceCategory, None] = {}
        for rule in self.list_rules():
            seen.setdefault(rule.category, None)
        return list(seen)


class CatalogLoader:
    """Load catalog files, reject duplicates and apply overrides."""

    def __init__(self, default_catalogs: Sequence[Path | str] | None = None) -> None:
        if default_catalogs is None:
            self._default_catalogs = [DEFAULT_CATALOG]
        else:
            self._default_catalogs = [Path(path) for path in default_catalogs]

    # ------------------------------------------------------------------
    def load(
        self,
        catalogs: Sequence[Path | str] | None = None,
        *,
        include_default: bool = True,
    ) -> RuleCatalog:
        """Return a catalog built from the default files plus ``catalogs``."""

        paths: List[Path] = list(self._default_catalogs) if include_default else []
        if catalogs:
            paths.extend(Path(path) for path in catalogs)
        if not paths:
            raise CatalogError("No rule catalog files were provided")

        rules: List[Rule] = []
        seen: Dict[str, Path] = {}
        overrides: List[tuple[Path, Mapping[str, Any]]] = []

        for path in paths:
            data = self._load_document(path)
            for entry in data.get("rules", []) or []:
                rule = self._parse_rule(entry, path)
                if rule.rule_id in seen:
                    raise CatalogError(
                        f"Duplicate rule identifier '{rule.rule_id}' in {path} "
                        f"(first defined in {seen[rule.rule_id]})"
                    )
                seen[rule.rule_id] = path
                rules.append(rule)

            raw_overrides = data.get("overrides")
            if raw_overrides:
                if not isinstance(raw_overrides, Mapping):
                    raise CatalogError(f"'overrides' must be a mapping in {path}")
                overrides.append((path, raw_overrides))

        by_id: MutableMapping[str, Rule] = {rule.rule_id: rule for rule in rules}
        for path, raw_overrides in overrides:
            for rule_id, settings in raw_overrides.items():
                rule = by_id.get(str(rule_id))
                if rule is None:
                    raise CatalogError(f"Override for unknown rule '{rule_id}' in {path}")
                by_id[rule.rule_id] = self._apply_override(rule, settings, path)

        return RuleCatalog([by_id[rule.rule_id] for rule in rules])

    # ------------------------------------------------------------------
    def _load_document(self, path: Path) -> Mapping[str, Any]:
        if not path.exists():
            raise CatalogError(f"Rule catalog not found: {path}")

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem errors surfaced to caller
            raise CatalogError(f"Failed to read rule catalog {path}") from exc

        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as exc:
            raise CatalogError(f"Invalid YAML in rule catalog {path}") from exc

        if not isinstance(data, Mapping):
            raise CatalogError(f"Rule catalog must be a mapping: {path}")

        version = data.get("version", 1)
        if version not in SUPPORTED_VERSIONS:
            raise CatalogError(f"Unsupported rule catalog version {version!r} in {path}")

        if not isinstance(data.get("rules", []) or [], list):
            raise CatalogError(f"'rules' must be a list in {path}")

        return data

    def _parse_rule(self, entry: Any, path: Path) -> Rule:
        if not isinstance(entry, Mapping):
            raise CatalogError(f"Rule entries must be mappings in {path}")

        rule_id = str(entry.get("id") or "").strip()
        if not rule_id:
            raise CatalogError(f"Rule without an identifier in {path}")

        try:
            category = ResourceCategory.parse(entry.get("category", ""))
        except ValueError as exc:
            raise CatalogError(f"Rule '{rule_id}' in {path}: {exc}") from exc

        severity = self._parse_severity(entry.get("severity"), rule_id, path)

        if "check" not in entry:
            raise CatalogError(f"Rule '{rule_id}' in {path} has no 'check'")
        try:
            predicate = parse_predicate(entry["check"])
        except PredicateSyntaxError as exc:
            raise CatalogError(f"Rule '{rule_id}' in {path}: {exc}") from exc

        return Rule(
            rule_id=rule_id,
            category=category,
            predicate=predicate,
            severity=severity,
            description=str(entry.get("description") or "").strip(),
            remediation=str(entry.get("remediation") or "").strip(),
            enabled=self._parse_enabled(entry.get("enabled", True), rule_id, path),
        )

    def _parse_severity(self, value: Any, rule_id: str, path: Path) -> Severity:
        if value is None:
            raise CatalogError(f"Rule '{rule_id}' in {path} has no severity")
        try:
            return Severity.parse(value)
        except ValueError as exc:
            raise CatalogError(
                f"Rule '{rule_id}' in {path} has unknown severity {value!r}"
            ) from exc

    def _parse_enabled(self, value: Any, rule_id: str, path: Path) -> bool:
        if not isinstance(value, bool):
            raise CatalogError(
                f"Rule '{rule_id}' in {path} has non-boolean 'enabled' value {value!r}"
            )
        return value

    def _apply_override(self, rule: Rule, settings: Any, path: Path) -> Rule:
        if not isinstance(settings, Mapping):
            raise CatalogError(f"Override for '{rule.rule_id}' must be a mapping in {path}")

        changes: Dict[str, Any] = {}
        if "severity" in settings:
            changes["severity"] = self._parse_severity(settings["severity"], rule.rule_id, path)
        if "enabled" in settings:
            changes["enabled"] = self._parse_enabled(settings["enabled"], rule.rule_id, path)
        if settings.get("remediation"):
            changes["remediation"] = str(settings["remediation"]).strip()

        return replace(rule, **changes) if changes else rule


def load_catalog(
    catalogs: Sequence[Path | str] | None = None,
    *,
    include_default: bool = True,
) -> RuleCatalog:
    """Convenience wrapper around :class:`CatalogLoader`."""

    return CatalogLoader().load(catalogs, include_default=include_default)


__all__ = [
    "CatalogError",
    "CatalogLoader",
    "DEFAULT_CATALOG",
    "Rule",
    "RuleCatalog",
    "load_catalog",
]
