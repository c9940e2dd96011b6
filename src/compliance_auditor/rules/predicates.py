"""Composable predicate combinators used by catalog rules.

Rules never run arbitrary code. A check is built from the closed set of
combinators below, each of which only reads the attribute mapping it is
given. A predicate evaluates to ``True`` when the resource is compliant.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Sequence, Tuple


class EvaluationError(RuntimeError):
    """Raised when a rule cannot be evaluated against a resource."""


class PredicateError(EvaluationError):
    """Raised when a predicate cannot read the attributes it needs."""


class PredicateSyntaxError(ValueError):
    """Raised when a predicate definition in a catalog is malformed."""


_MISSING = object()


def _read(attributes: Mapping[str, Any], name: str) -> Any:
    value = attributes.get(name, _MISSING)
    if value is _MISSING:
        raise PredicateError(f"attribute '{name}' is not defined")
    if value is None:
        raise PredicateError(f"attribute '{name}' was not observed")
    return value


def _number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PredicateError(f"attribute '{name}' is not numeric")
    return value


def _records(value: Any, name: str) -> Tuple[Mapping[str, Any], ...]:
    if not isinstance(value, tuple) or not all(isinstance(item, Mapping) for item in value):
        raise PredicateError(f"attribute '{name}' is not a list of records")
    return value


class Predicate(ABC):
    """Pure boolean check over a resource's attributes."""

    @abstractmethod
    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        """Return ``True`` when ``attributes`` satisfy the predicate."""

    @abstractmethod
    def describe(self) -> str:
        """Return a short human readable rendering of the predicate."""


@dataclass(frozen=True, slots=True)
class AttributeEquals(Predicate):
    attribute: str
    value: Any

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        return _read(attributes, self.attribute) == self.value

    def describe(self) -> str:
        return f"{self.attribute} == {self.value!r}"


@dataclass(frozen=True, slots=True)
class AttributeOneOf(Predicate):
    attribute: str
    values: Tuple[Any, ...]

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        return _read(attributes, self.attribute) in self.values

    def describe(self) -> str:
        return f"{self.attribute} in {list(self.values)!r}"


@dataclass(frozen=True, slots=True)
class AttributeInRange(Predicate):
    """Inclusive numeric range check; either bound may be open."""

    attribute: str
    minimum: float | None = None
    maximum: float | None = None

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        value = _number(_read(attributes, self.attribute), self.attribute)
        if self.minimum is not None and value < self.minimum:
            return False
        if self.maximum is not None and value > self.maximum:
            return False
        return True

    def describe(self) -> str:
        low = "-inf" if self.minimum is None else self.minimum
        high = "inf" if self.maximum is None else self.maximum
        return f"{low} <= {self.attribute} <= {high}"


@dataclass(frozen=True, slots=True)
class AttributeMatches(Predicate):
    attribute: str
    pattern: str
    _compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_compiled", re.compile(self.pattern))

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        value = _read(attributes, self.attribute)
        if not isinstance(value, str):
            raise PredicateError(f"attribute '{self.attribute}' is not a string")
        return self._compiled.search(value) is not None

    def describe(self) -> str:
        return f"{self.attribute} ~ /{self.pattern}/"


@dataclass(frozen=True, slots=True)
class AttributeContains(Predicate):
    attribute: str
    value: str

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        items = _read(attributes, self.attribute)
        if not isinstance(items, tuple):
            raise PredicateError(f"attribute '{self.attribute}' is not a list")
        return self.value in items

    def describe(self) -> str:
        return f"{self.value!r} in {self.attribute}"


@dataclass(frozen=True, slots=True)
class RangeContains(Predicate):
    """Check ``record[lower] <= value <= record[upper]``."""

    lower: str
    upper: str
    value: float

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        low = _number(_read(attributes, self.lower), self.lower)
        high = _number(_read(attributes, self.upper), self.upper)
        return low <= self.value <= high

    def describe(self) -> str:
        return f"{self.lower} <= {self.value} <= {self.upper}"


@dataclass(frozen=True, slots=True)
class AllOf(Predicate):
    predicates: Tuple[Predicate, ...]

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        return all(predicate.evaluate(attributes) for predicate in self.predicates)

    def describe(self) -> str:
        return "(" + " and ".join(p.describe() for p in self.predicates) + ")"


@dataclass(frozen=True, slots=True)
class AnyOf(Predicate):
    predicates: Tuple[Predicate, ...]

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        return any(predicate.evaluate(attributes) for predicate in self.predicates)

    def describe(self) -> str:
        return "(" + " or ".join(p.describe() for p in self.predicates) + ")"


@dataclass(frozen=True, slots=True)
class Not(Predicate):
    predicate: Predicate

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        return not self.predicate.evaluate(attributes)

    def describe(self) -> str:
        return f"not {self.predicate.describe()}"


@dataclass(frozen=True, slots=True)
class NoItem(Predicate):
    """No record in ``attribute`` satisfies ``where``."""

    attribute: str
    where: Predicate

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        items = _records(_read(attributes, self.attribute), self.attribute)
        return not any(self.where.evaluate(item) for item in items)

    def describe(self) -> str:
        return f"no {self.attribute} where {self.where.describe()}"


@dataclass(frozen=True, slots=True)
class SomeItem(Predicate):
    """At least one record in ``attribute`` satisfies ``where``."""

    attribute: str
    where: Predicate

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        items = _records(_read(attributes, self.attribute), self.attribute)
        return any(self.where.evaluate(item) for item in items)

    def describe(self) -> str:
        return f"some {self.attribute} where {self.where.describe()}"


@dataclass(frozen=True, slots=True)
class EveryItem(Predicate):
    """Every record in ``attribute`` satisfies ``where``."""

    attribute: str
    where: Predicate

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        items = _records(_read(attributes, self.attribute), self.attribute)
        return all(self.where.evaluate(item) for item in items)

    def describe(self) -> str:
        return f"every {self.attribute} where {self.where.describe()}"


# ----------------------------------------------------------------------
# Parsing


def parse_predicate(data: Any) -> Predicate:
    """Build a predicate from its catalog representation.

    A predicate is a single-key mapping naming the combinator, e.g.
    ``{"equals": {"attribute": "is_default", "value": False}}``.
    """

    if not isinstance(data, Mapping) or len(data) != 1:
        raise PredicateSyntaxError("predicate must be a mapping with exactly one combinator")

    (name, args), = data.items()
    parser = _PARSERS.get(str(name))
    if parser is None:
        raise PredicateSyntaxError(f"unknown predicate combinator '{name}'")
    return parser(args)


def _require(args: Any, combinator: str, *keys: str) -> Mapping[str, Any]:
    if not isinstance(args, Mapping):
        raise PredicateSyntaxError(f"'{combinator}' expects a mapping of arguments")
    missing = [key for key in keys if key not in args]
    if missing:
        raise PredicateSyntaxError(f"'{combinator}' is missing {', '.join(missing)}")
    return args


def _attribute(args: Mapping[str, Any], combinator: str, key: str = "attribute") -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value.strip():
        raise PredicateSyntaxError(f"'{combinator}' requires a non-empty '{key}'")
    return value.strip()


def _bound(value: Any, combinator: str, key: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PredicateSyntaxError(f"'{combinator}' {key} must be numeric")
    return value


def _parse_equals(args: Any) -> Predicate:
    args = _require(args, "equals", "attribute", "value")
    return AttributeEquals(_attribute(args, "equals"), args["value"])


def _parse_one_of(args: Any) -> Predicate:
    args = _require(args, "one_of", "attribute", "values")
    values = args["values"]
    if not isinstance(values, Sequence) or isinstance(values, str) or not values:
        raise PredicateSyntaxError("'one_of' values must be a non-empty list")
    return AttributeOneOf(_attribute(args, "one_of"), tuple(values))


def _parse_in_range(args: Any) -> Predicate:
    args = _require(args, "in_range", "attribute")
    minimum = _bound(args.get("min"), "in_range", "min")
    maximum = _bound(args.get("max"), "in_range", "max")
    if minimum is None and maximum is None:
        raise PredicateSyntaxError("'in_range' requires 'min' or 'max'")
    if minimum is not None and maximum is not None and minimum > maximum:
        raise PredicateSyntaxError("'in_range' min must not exceed max")
    return AttributeInRange(_attribute(args, "in_range"), minimum, maximum)


def _parse_matches(args: Any) -> Predicate:
    args = _require(args, "matches", "attribute", "pattern")
    pattern = args["pattern"]
    if not isinstance(pattern, str):
        raise PredicateSyntaxError("'matches' pattern must be a string")
    try:
        return AttributeMatches(_attribute(args, "matches"), pattern)
    except re.error as exc:
        raise PredicateSyntaxError(f"invalid regular expression {pattern!r}: {exc}") from exc


def _parse_contains(args: Any) -> Predicate:
    args = _require(args, "contains", "attribute", "value")
    if not isinstance(args["value"], str):
        raise PredicateSyntaxError("'contains' value must be a string")
    return AttributeContains(_attribute(args, "contains"), args["value"])


def _parse_range_contains(args: Any) -> Predicate:
    args = _require(args, "range_contains", "from", "to", "value")
    value = _bound(args["value"], "range_contains", "value")
    return RangeContains(
        _attribute(args, "range_contains", "from"),
        _attribute(args, "range_contains", "to"),
        value,
    )


def _parse_group(combinator: str, factory: Callable[[Tuple[Predicate, ...]], Predicate]):
    def parse(args: Any) -> Predicate:
        if not isinstance(args, Sequence) or isinstance(args, str) or not args:
            raise PredicateSyntaxError(f"'{combinator}' expects a non-empty list of predicates")
        return factory(tuple(parse_predicate(item) for item in args))

    return parse


def _parse_not(args: Any) -> Predicate:
    return Not(parse_predicate(args))


def _parse_quantifier(combinator: str, factory: Callable[[str, Predicate], Predicate]):
    def parse(args: Any) -> Predicate:
        args = _require(args, combinator, "attribute", "where")
        return factory(_attribute(args, combinator), parse_predicate(args["where"]))

    return parse


_PARSERS: Dict[str, Callable[[Any], Predicate]] = {
    "equals": _parse_equals,
    "one_of": _parse_one_of,
    "in_range": _parse_in_range,
    "matches": _parse_matches,
    "contains": _parse_contains,
    "range_contains": _parse_range_contains,
    "all": _parse_group("all", AllOf),
    "any": _parse_group("any", AnyOf),
    "not": _parse_not,
    "none": _parse_quantifier("none", NoItem),
    "some": _parse_quantifier("some", SomeItem),
    "every": _parse_quantifier("every", EveryItem),
}


__all__ = [
    "AllOf",
    "AnyOf",
    "AttributeContains",
    "AttributeEquals",
    "AttributeInRange",
    "AttributeMatches",
    "AttributeOneOf",
    "EvaluationError",
    "EveryItem",
    "NoItem",
    "Not",
    "Predicate",
    "PredicateError",
    "PredicateSyntaxError",
    "RangeContains",
    "SomeItem",
    "parse_predicate",
]
