"""Adapter layer package for collecting resources from cloud providers."""

from .aws import AwsCollector, AwsContext, CredentialsError, is_transient_error
from .collector import (
    CollectionError,
    CollectionOutcome,
    ResourceCollector,
    RetryPolicy,
    call_with_retry,
    collect_all,
)
from .snapshot import SnapshotCollector, SnapshotError

__all__ = [
    "AwsCollector",
    "AwsContext",
    "CollectionError",
    "CollectionOutcome",
    "CredentialsError",
    "ResourceCollector",
    "RetryPolicy",
    "SnapshotCollector",
    "SnapshotError",
    "call_with_retry",
    "collect_all",
    "is_transient_error",
]
