"""Data models for collected cloud resources and compliance findings."""

from .finding import SEVERITY_RANK, Finding, Outcome, Severity
from .resource import (
    RESOURCE_SCHEMAS,
    AttributeKind,
    AttributeSpec,
    Resource,
    ResourceCategory,
    ResourceSchemaError,
    validate_attributes,
)

__all__ = [
    "AttributeKind",
    "AttributeSpec",
    "Finding",
    "Outcome",
    "RESOURCE_SCHEMAS",
    "Resource",
    "ResourceCategory",
    "ResourceSchemaError",
    "SEVERITY_RANK",
    "Severity",
    "validate_attributes",
]
