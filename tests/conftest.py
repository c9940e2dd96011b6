"""Shared builders for resources and findings used across the test suite."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict

import pytest

from compliance_auditor.models import Resource, ResourceCategory

FIXED_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

_DEFAULTS: Dict[ResourceCategory, Dict[str, Any]] = {
    ResourceCategory.VPC: {
        "cidr_block": "10.0.0.0/16",
        "is_default": False,
        "state": "available",
        "flow_logs_enabled": True,
        "tags": [],
    },
    ResourceCategory.SUBNET: {
        "vpc_id": "vpc-1",
        "cidr_block": "10.0.1.0/24",
        "availability_zone": "eu-west-1a",
        "map_public_ip_on_launch": False,
        "available_ip_address_count": 250,
    },
    ResourceCategory.SECURITY_GROUP: {
        "group_name": "web",
        "vpc_id": "vpc-1",
        "description": "web tier",
        "ingress": [],
        "egress": [],
    },
    ResourceCategory.IAM_ROLE: {
        "role_name": "app",
        "path": "/",
        "max_session_duration": 3600,
        "attached_policies": [],
        "trust_allows_any_principal": False,
        "inline_policy_count": 0,
    },
    ResourceCategory.S3_BUCKET: {
        "block_public_acls": True,
        "ignore_public_acls": True,
        "block_public_policy": True,
        "restrict_public_buckets": True,
        "encryption_algorithm": "aws:kms",
        "versioning_status": "Enabled",
        "logging_enabled": True,
        "policy_is_public": False,
    },
    ResourceCategory.CLOUDWATCH_ALARM: {
        "alarm_name": "cpu-high",
        "namespace": "AWS/EC2",
        "metric_name": "CPUUtilization",
        "state_value": "OK",
        "actions_enabled": True,
        "alarm_action_count": 1,
        "threshold": 80.0,
        "evaluation_periods": 3,
    },
    ResourceCategory.EC2_INSTANCE: {
        "instance_type": "t3.micro",
        "state": "running",
        "http_tokens": "required",
        "public_ip_address": "",
        "iam_instance_profile_arn": "arn:aws:iam::123456789012:instance-profile/app",
        "ebs_optimized": True,
        "monitoring_state": "enabled",
    },
    ResourceCategory.CLOUDTRAIL: {
        "trail_name": "org-trail",
        "is_multi_region_trail": True,
        "log_file_validation_enabled": True,
        "is_logging": True,
        "kms_key_id": "arn:aws:kms:eu-west-1:123456789012:key/abc",
        "s3_bucket_name": "trail-logs",
    },
}


def compliant_attributes(category: ResourceCategory, **overrides: Any) -> Dict[str, Any]:
    attributes = dict(_DEFAULTS[category])
    attributes.update(overrides)
    return attributes


@pytest.fixture
def attributes_for() -> Callable[..., Dict[str, Any]]:
    """Return a factory producing a complete, compliant attribute mapping."""

    return compliant_attributes


@pytest.fixture
def make_resource() -> Callable[..., Resource]:
    """Return a factory building a validated resource with compliant defaults."""

    def factory(category: ResourceCategory, resource_id: str, **overrides: Any) -> Resource:
        return Resource(
            category=category,
            resource_id=resource_id,
            attributes=compliant_attributes(category, **overrides),
            region="eu-west-1",
        )

    return factory


@pytest.fixture
def fixed_time() -> datetime:
    return FIXED_TIME
