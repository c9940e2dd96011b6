from types import MappingProxyType

import pytest

from compliance_auditor.models import (
    Resource,
    ResourceCategory,
    ResourceSchemaError,
    Severity,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("SecurityGroup", ResourceCategory.SECURITY_GROUP),
        ("securitygroup", ResourceCategory.SECURITY_GROUP),
        ("security_group", ResourceCategory.SECURITY_GROUP),
        ("s3bucket", ResourceCategory.S3_BUCKET),
        (ResourceCategory.VPC, ResourceCategory.VPC),
    ],
)
def test_category_parse_is_case_insensitive(value, expected):
    assert ResourceCategory.parse(value) is expected


def test_category_parse_rejects_unknown_names():
    with pytest.raises(ValueError, match="Unknown resource category"):
        ResourceCategory.parse("LoadBalancer")


def test_resource_attributes_are_frozen(attributes_for):
    resource = Resource(
        category="SecurityGroup",
        resource_id="sg-1",
        attributes=attributes_for(
            ResourceCategory.SECURITY_GROUP,
            ingress=[{"protocol": "tcp", "from_port": 22, "to_port": 22, "cidr": "10.0.0.0/8"}],
        ),
    )

    assert resource.category is ResourceCategory.SECURITY_GROUP
    assert isinstance(resource.attributes, MappingProxyType)
    assert isinstance(resource.attributes["ingress"], tuple)
    assert resource.attributes["ingress"][0]["from_port"] == 22

    with pytest.raises(TypeError):
        resource.attributes["group_name"] = "other"  # type: ignore[index]
    with pytest.raises(TypeError):
        resource.attributes["ingress"][0]["cidr"] = "0.0.0.0/0"  # type: ignore[index]


def test_unknown_attribute_is_rejected(attributes_for):
    attributes = attributes_for(ResourceCategory.VPC, owner="someone")

    with pytest.raises(ResourceSchemaError, match="unknown attributes owner"):
        Resource(category=ResourceCategory.VPC, resource_id="vpc-1", attributes=attributes)


def test_missing_attribute_is_rejected(attributes_for):
    attributes = attributes_for(ResourceCategory.SUBNET)
    del attributes["cidr_block"]

    with pytest.raises(ResourceSchemaError, match="missing attributes cidr_block"):
        Resource(category=ResourceCategory.SUBNET, resource_id="subnet-1", attributes=attributes)


@pytest.mark.parametrize(
    "name, value",
    [
        ("max_session_duration", True),
        ("max_session_duration", "3600"),
        ("trust_allows_any_principal", 1),
        ("attached_policies", [{"name": "Admin"}]),
    ],
)
def test_wrong_types_are_rejected(attributes_for, name, value):
    attributes = attributes_for(ResourceCategory.IAM_ROLE, **{name: value})

    with pytest.raises(ResourceSchemaError):
        Resource(category=ResourceCategory.IAM_ROLE, resource_id="role", attributes=attributes)


def test_nullable_attributes_accept_none(attributes_for):
    resource = Resource(
        category=ResourceCategory.S3_BUCKET,
        resource_id="bucket",
        attributes=attributes_for(ResourceCategory.S3_BUCKET, policy_is_public=None),
    )

    assert resource.attributes["policy_is_public"] is None


def test_required_attributes_reject_none(attributes_for):
    with pytest.raises(ResourceSchemaError, match="value is required"):
        Resource(
            category=ResourceCategory.CLOUDTRAIL,
            resource_id="trail",
            attributes=attributes_for(ResourceCategory.CLOUDTRAIL, trail_name=None),
        )


def test_empty_resource_identifier_is_rejected(attributes_for):
    with pytest.raises(ResourceSchemaError, match="non-empty"):
        Resource(
            category=ResourceCategory.VPC,
            resource_id="  ",
            attributes=attributes_for(ResourceCategory.VPC),
        )


def test_number_attributes_accept_integers(attributes_for):
    resource = Resource(
        category=ResourceCategory.CLOUDWATCH_ALARM,
        resource_id="alarm",
        attributes=attributes_for(ResourceCategory.CLOUDWATCH_ALARM, threshold=5),
    )

    assert resource.attributes["threshold"] == 5


@pytest.mark.parametrize(
    "value, expected",
    [("info", Severity.INFO), ("WARN", Severity.WARN), ("warning", Severity.WARN), ("critical", Severity.CRITICAL)],
)
def test_severity_parse(value, expected):
    assert Severity.parse(value) is expected


def test_severity_rank_is_ordered():
    assert Severity.INFO.rank < Severity.WARN.rank < Severity.CRITICAL.rank
