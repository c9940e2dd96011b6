"""Resource models used by the compliance auditor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


class ResourceSchemaError(RuntimeError):
    """Raised when collected attributes do not match the category schema."""


class ResourceCategory(str, Enum):
    """Enumeration of the AWS resource categories the auditor understands."""

    VPC = "VPC"
    SUBNET = "Subnet"
    SECURITY_GROUP = "SecurityGroup"
    IAM_ROLE = "IAMRole"
    S3_BUCKET = "S3Bucket"
    CLOUDWATCH_ALARM = "CloudWatchAlarm"
    EC2_INSTANCE = "EC2Instance"
    CLOUDTRAIL = "CloudTrail"

    @classmethod
    def parse(cls, value: "str | ResourceCategory") -> "ResourceCategory":
        """Return the category named by ``value`` (case-insensitive)."""

        if isinstance(value, ResourceCategory):
            return value

        normalized = str(value).strip().lower()
        for category in cls:
            if category.value.lower() == normalized or category.name.lower() == normalized:
                return category
        raise ValueError(f"Unknown resource category: {value!r}")


class AttributeKind(str, Enum):
    """Value kinds allowed in resource attribute schemas."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING_LIST = "string_list"
    RECORDS = "records"


@dataclass(frozen=True, slots=True)
class AttributeSpec:
    """Schema entry describing a single resource attribute."""

    kind: AttributeKind
    nullable: bool = False
    fields: Mapping[str, "AttributeSpec"] = field(default_factory=dict)


def _s(nullable: bool = False) -> AttributeSpec:
    return AttributeSpec(AttributeKind.STRING, nullable)


def _i(nullable: bool = False) -> AttributeSpec:
    return AttributeSpec(AttributeKind.INTEGER, nullable)


def _n(nullable: bool = False) -> AttributeSpec:
    return AttributeSpec(AttributeKind.NUMBER, nullable)


def _b(nullable: bool = False) -> AttributeSpec:
    return AttributeSpec(AttributeKind.BOOLEAN, nullable)


def _records(**fields: AttributeSpec) -> AttributeSpec:
    return AttributeSpec(AttributeKind.RECORDS, False, MappingProxyType(dict(fields)))


_PERMISSION_RECORD = {
    "protocol": _s(),
    "from_port": _i(),
    "to_port": _i(),
    "cidr": _s(),
}

RESOURCE_SCHEMAS: Mapping[ResourceCategory, Mapping[str, AttributeSpec]] = MappingProxyType(
    {
        ResourceCategory.VPC: {
            "cidr_block": _s(),
            "is_default": _b(),
            "state": _s(),
            "flow_logs_enabled": _b(nullable=True),
            "tags": _records(key=_s(), value=_s()),
        },
        ResourceCategory.SUBNET: {
            "vpc_id": _s(),
            "cidr_block": _s(),
            "availability_zone": _s(),
            "map_public_ip_on_launch": _b(),
            "available_ip_address_count": _i(),
        },
        ResourceCategory.SECURITY_GROUP: {
            "group_name": _s(),
            "vpc_id": _s(nullable=True),
            "description": _s(),
            "ingress": _records(**_PERMISSION_RECORD),
            "egress": _records(**_PERMISSION_RECORD),
        },
        ResourceCategory.IAM_ROLE: {
            "role_name": _s(),
            "path": _s(),
            "max_session_duration": _i(),
            "attached_policies": _records(name=_s(), arn=_s()),
            "trust_allows_any_principal": _b(),
            "inline_policy_count": _i(nullable=True),
        },
        ResourceCategory.S3_BUCKET: {
            "block_public_acls": _b(nullable=True),
            "ignore_public_acls": _b(nullable=True),
            "block_public_policy": _b(nullable=True),
            "restrict_public_buckets": _b(nullable=True),
            "encryption_algorithm": _s(nullable=True),
            "versioning_status": _s(nullable=True),
            "logging_enabled": _b(nullable=True),
            "policy_is_public": _b(nullable=True),
        },
        ResourceCategory.CLOUDWATCH_ALARM: {
            "alarm_name": _s(),
            "namespace": _s(nullable=True),
            "metric_name": _s(nullable=True),
            "state_value": _s(),
            "actions_enabled": _b(),
            "alarm_action_count": _i(),
            "threshold": _n(nullable=True),
            "evaluation_periods": _i(),
        },
        ResourceCategory.EC2_INSTANCE: {
            "instance_type": _s(),
            "state": _s(),
            "http_tokens": _s(nullable=True),
            "public_ip_address": _s(),
            "iam_instance_profile_arn": _s(),
            "ebs_optimized": _b(),
            "monitoring_state": _s(),
        },
        ResourceCategory.CLOUDTRAIL: {
            "trail_name": _s(),
            "is_multi_region_trail": _b(),
            "log_file_validation_enabled": _b(),
            "is_logging": _b(nullable=True),
            "kms_key_id": _s(),
            "s3_bucket_name": _s(nullable=True),
        },
    }
)


def validate_attributes(
    category: ResourceCategory, attributes: Mapping[str, Any]
) -> Mapping[str, Any]:
    """Validate ``attributes`` against the category schema and freeze them."""

    schema = RESOURCE_SCHEMAS[category]
    return _validate_fields(schema, attributes, context=category.value)


def _validate_fields(
    schema: Mapping[str, AttributeSpec], values: Mapping[str, Any], *, context: str
) -> Mapping[str, Any]:
    if not isinstance(values, Mapping):
        raise ResourceSchemaError(f"{context}: attributes must be a mapping")

    unknown = sorted(set(values) - set(schema))
    if unknown:
        raise ResourceSchemaError(f"{context}: unknown attributes {', '.join(unknown)}")

    missing = sorted(set(schema) - set(values))
    if missing:
        raise ResourceSchemaError(f"{context}: missing attributes {', '.join(missing)}")

    frozen: Dict[str, Any] = {}
    for name, spec in schema.items():
        frozen[name] = _validate_value(spec, values[name], context=f"{context}.{name}")
    return MappingProxyType(frozen)


def _validate_value(spec: AttributeSpec, value: Any, *, context: str) -> Any:
    if value is None:
        if spec.nullable:
            return None
        raise ResourceSchemaError(f"{context}: value is required")

    kind = spec.kind
    if kind is AttributeKind.BOOLEAN:
        if isinstance(value, bool):
            return value
    elif kind is AttributeKind.INTEGER:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif kind is AttributeKind.NUMBER:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
    elif kind is AttributeKind.STRING:
        if isinstance(value, str):
            return value
    elif kind is AttributeKind.STRING_LIST:
        if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
            return tuple(value)
    elif kind is AttributeKind.RECORDS:
        if isinstance(value, (list, tuple)):
            return tuple(
                _validate_fields(spec.fields, item, context=f"{context}[{index}]")
                for index, item in enumerate(value)
            )

    raise ResourceSchemaError(
        f"{context}: expected {kind.value}, got {type(value).__name__}"
    )


@dataclass(frozen=True, slots=True)
class Resource:
    """Observed state of a single cloud resource."""

    category: ResourceCategory
    resource_id: str
    attributes: Mapping[str, Any]
    region: Optional[str] = None

    def __post_init__(self) -> None:
        category = ResourceCategory.parse(self.category)
        if not isinstance(self.resource_id, str) or not self.resource_id.strip():
            raise ResourceSchemaError(f"{category.value}: resource identifier must be non-empty")
        object.__setattr__(self, "category", category)
        object.__setattr__(self, "attributes", validate_attributes(category, self.attributes))
