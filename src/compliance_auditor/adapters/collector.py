"""Collector interfaces, retry policy and concurrent collection."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, TypeVar

from loguru import logger

from ..models import Resource, ResourceCategory

T = TypeVar("T")


class CollectionError(RuntimeError):
    """Raised when the resources of one category could not be collected."""

    def __init__(self, category: ResourceCategory, cause: str, *, transient: bool = False) -> None:
        super().__init__(f"{category.value}: {cause}")
        self.category = category
        self.cause = cause
        self.transient = transient


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded exponential backoff for transient provider errors."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Return the sleep before retrying after failed ``attempt`` (1-based)."""

        return min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 1))


def call_with_retry(
    func: Callable[[], T],
    *,
    policy: RetryPolicy,
    is_transient: Callable[[BaseException], bool],
    sleep: Callable[[float], None] = time.sleep,
    description: str = "call",
) -> T:
    """Invoke ``func`` retrying transient failures according to ``policy``.

    Non-transient errors propagate on the first attempt. The last transient
    error propagates once attempts are exhausted.
    """

    attempt = 1
    while True:
        try:
            return func()
        except Exception as exc:
            if not is_transient(exc) or attempt >= policy.max_attempts:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Transient error during {} (attempt {}/{}), retrying in {:.2f}s: {}",
                description,
                attempt,
                policy.max_attempts,
                delay,
                exc,
            )
            sleep(delay)
            attempt += 1


class ResourceCollector(ABC):
    """Abstract base class describing the collector contract."""

    @abstractmethod
    def collect(self, category: ResourceCategory) -> List[Resource]:
        """Return the resources observed for ``category``.

        Implementations raise :class:`CollectionError` when the category
        cannot be collected.
        """

    def supported_categories(self) -> Sequence[ResourceCategory]:
        return list(ResourceCategory)

    def cancel(self) -> None:
        """Ask in-flight ``collect`` calls to stop early.

        Called by :func:`collect_all` once its timeout expires. Collectors that
        finish quickly may ignore it.
        """


@dataclass(slots=True)
class CollectionOutcome:
    """Merged result of collecting several categories."""

    resources: List[Resource] = field(default_factory=list)
    errors: Dict[ResourceCategory, CollectionError] = field(default_factory=dict)
    counts: Dict[ResourceCategory, int] = field(default_factory=dict)


def collect_all(
    collector: ResourceCollector,
    categories: Sequence[ResourceCategory],
    *,
    timeout: float | None = None,
    max_workers: int = 8,
) -> CollectionOutcome:
    """Collect ``categories`` concurrently, one task per category.

    A failing category is recorded as a :class:`CollectionError` and never
    aborts the others. Categories still pending after ``timeout`` seconds are
    recorded as timed out and the collector is asked to cancel them; the run
    does not wait for them.
    """

    outcome = CollectionOutcome()
    ordered = list(dict.fromkeys(categories))
    if not ordered:
        return outcome

    supported = set(collector.supported_categories())
    executor = ThreadPoolExecutor(
        max_workers=max(1, min(max_workers, len(ordered))),
        thread_name_prefix="collector",
    )
    futures: Dict[ResourceCategory, Future[List[Resource]]] = {}
    try:
        for category in ordered:
            if category not in supported:
                outcome.errors[category] = CollectionError(
                    category, "category is not supported by this collector"
                )
                continue
            futures[category] = executor.submit(collector.collect, category)

        done, pending = wait(futures.values(), timeout=timeout)
        if pending:
            collector.cancel()
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    results: Dict[ResourceCategory, List[Resource]] = {}
    for category, future in futures.items():
        if future not in done:
            error = CollectionError(
                category, f"collection timed out after {timeout:g}s", transient=True
            )
            logger.warning("Collection of {} did not finish: {}", category.value, error.cause)
            outcome.errors[category] = error
            continue

        exc = future.exception()
        if exc is None:
            results[category] = future.result()
            continue

        if isinstance(exc, CollectionError):
            error = exc
        else:
            error = CollectionError(category, f"{type(exc).__name__}: {exc}")
        logger.warning("Collection of {} failed: {}", category.value, error.cause)
        outcome.errors[category] = error

    for category in ordered:
        if category in results:
            collected = results[category]
            outcome.resources.extend(collected)
            outcome.counts[category] = len(collected)
            logger.debug("Collected {} {} resource(s)", len(collected), category.value)

    return outcome


__all__ = [
    "CollectionError",
    "CollectionOutcome",
    "ResourceCollector",
    "RetryPolicy",
    "call_with_retry",
    "collect_all",
]
