"""Rule catalog and predicate utilities."""

from .catalog import DEFAULT_CATALOG, CatalogError, CatalogLoader, Rule, RuleCatalog, load_catalog
from .predicates import EvaluationError, Predicate, PredicateError, parse_predicate

__all__ = [
    "CatalogError",
    "CatalogLoader",
    "DEFAULT_CATALOG",
    "EvaluationError",
    "Predicate",
    "PredicateError",
    "Rule",
    "RuleCatalog",
    "load_catalog",
    "parse_predicate",
]
