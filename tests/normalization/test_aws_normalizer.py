import json

import pytest

from compliance_auditor.models import ResourceCategory
from compliance_auditor.normalization import (
    NOT_CONFIGURED,
    AwsNormalizer,
    policy_allows_any_principal,
)


@pytest.fixture
def normalizer() -> AwsNormalizer:
    return AwsNormalizer(region="eu-west-1")


def test_security_group_permissions_are_flattened(normalizer):
    resource = normalizer.security_group(
        {
            "GroupId": "sg-123",
            "GroupName": "web",
            "Description": "web tier",
            "VpcId": "vpc-1",
            "IpPermissions": [
                {
                    "IpProtocol": "tcp",
                    "FromPort": 22,
                    "ToPort": 22,
                    "IpRanges": [{"CidrIp": "0.0.0.0/0"}, {"CidrIp": "10.0.0.0/8"}],
                    "Ipv6Ranges": [{"CidrIpv6": "::/0"}],
                },
                {"IpProtocol": "-1", "IpRanges": [{"CidrIp": "192.168.0.0/16"}]},
                {"IpProtocol": "icmp", "FromPort": -1, "ToPort": -1, "IpRanges": [{"CidrIp": "1.1.1.1/32"}]},
                {"IpProtocol": "tcp", "FromPort": 80, "ToPort": 80, "UserIdGroupPairs": [{"GroupId": "sg-2"}]},
            ],
            "IpPermissionsEgress": [],
        }
    )

    assert resource.category is ResourceCategory.SECURITY_GROUP
    assert resource.resource_id == "sg-123"
    assert resource.region == "eu-west-1"
    ingress = [dict(record) for record in resource.attributes["ingress"]]
    assert ingress == [
        {"protocol": "tcp", "from_port": 22, "to_port": 22, "cidr": "0.0.0.0/0"},
        {"protocol": "tcp", "from_port": 22, "to_port": 22, "cidr": "10.0.0.0/8"},
        {"protocol": "tcp", "from_port": 22, "to_port": 22, "cidr": "::/0"},
        {"protocol": "-1", "from_port": 0, "to_port": 65535, "cidr": "192.168.0.0/16"},
        {"protocol": "icmp", "from_port": 0, "to_port": 65535, "cidr": "1.1.1.1/32"},
    ]
    assert resource.attributes["egress"] == ()


def test_vpc_flow_logs_state(normalizer):
    vpc = {"VpcId": "vpc-1", "CidrBlock": "10.0.0.0/16", "IsDefault": True, "State": "available"}

    assert normalizer.vpc(vpc, ["vpc-1"]).attributes["flow_logs_enabled"] is True
    assert normalizer.vpc(vpc, []).attributes["flow_logs_enabled"] is False
    assert normalizer.vpc(vpc, None).attributes["flow_logs_enabled"] is None
    assert normalizer.vpc(vpc, []).attributes["is_default"] is True


def test_vpc_tags_become_records(normalizer):
    resource = normalizer.vpc(
        {"VpcId": "vpc-1", "Tags": [{"Key": "owner", "Value": "platform"}]}, []
    )

    assert dict(resource.attributes["tags"][0]) == {"key": "owner", "value": "platform"}


def test_iam_role_uses_arn_and_trust_policy(normalizer):
    resource = normalizer.iam_role(
        {
            "RoleName": "deploy",
            "Arn": "arn:aws:iam::123456789012:role/deploy",
            "Path": "/",
            "MaxSessionDuration": 43200,
            "AssumeRolePolicyDocument": {
                "Version": "2012-10-17",
                "Statement": [{"Effect": "Allow", "Principal": {"AWS": "*"}, "Action": "sts:AssumeRole"}],
            },
        },
        [{"PolicyName": "AdministratorAccess", "PolicyArn": "arn:aws:iam::aws:policy/AdministratorAccess"}],
        None,
    )

    assert resource.resource_id == "arn:aws:iam::123456789012:role/deploy"
    assert resource.attributes["max_session_duration"] == 43200
    assert resource.attributes["trust_allows_any_principal"] is True
    assert resource.attributes["inline_policy_count"] is None
    assert resource.attributes["attached_policies"][0]["name"] == "AdministratorAccess"


def test_s3_bucket_distinguishes_unreadable_from_not_configured(normalizer):
    resource = normalizer.s3_bucket(
        "logs",
        region=None,
        public_access_block={},
        encryption_rules=[],
        versioning={},
        logging=None,
        policy="",
    )

    attributes = resource.attributes
    assert resource.region == "eu-west-1"
    assert attributes["block_public_acls"] is False
    assert attributes["encryption_algorithm"] == NOT_CONFIGURED
    assert attributes["versioning_status"] == "Disabled"
    assert attributes["logging_enabled"] is None
    assert attributes["policy_is_public"] is False


def test_s3_bucket_reads_configured_settings(normalizer):
    policy = json.dumps(
        {"Statement": [{"Effect": "Allow", "Principal": "*", "Action": "s3:GetObject"}]}
    )

    resource = normalizer.s3_bucket(
        "site",
        region="us-east-1",
        public_access_block={
            "BlockPublicAcls": True,
            "IgnorePublicAcls": True,
            "BlockPublicPolicy": False,
            "RestrictPublicBuckets": True,
        },
        encryption_rules=[{"ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": "aws:kms"}}],
        versioning={"Status": "Suspended"},
        logging={"LoggingEnabled": {"TargetBucket": "logs"}},
        policy=policy,
    )

    attributes = resource.attributes
    assert resource.region == "us-east-1"
    assert attributes["block_public_policy"] is False
    assert attributes["encryption_algorithm"] == "aws:kms"
    assert attributes["versioning_status"] == "Suspended"
    assert attributes["logging_enabled"] is True
    assert attributes["policy_is_public"] is True


def test_s3_bucket_unreadable_settings_are_none(normalizer):
    resource = normalizer.s3_bucket(
        "locked",
        region=None,
        public_access_block=None,
        encryption_rules=None,
        versioning=None,
        logging=None,
        policy=None,
    )

    assert all(value is None for value in resource.attributes.values())


def test_ec2_instance_absent_settings_are_empty_strings(normalizer):
    resource = normalizer.ec2_instance(
        {
            "InstanceId": "i-1",
            "InstanceType": "t3.micro",
            "State": {"Name": "running"},
            "MetadataOptions": {"HttpTokens": "optional"},
        }
    )

    assert resource.attributes["http_tokens"] == "optional"
    assert resource.attributes["iam_instance_profile_arn"] == ""
    assert resource.attributes["public_ip_address"] == ""
    assert resource.attributes["monitoring_state"] == "disabled"


def test_cloudtrail_status_and_region(normalizer):
    trail = {
        "Name": "org",
        "TrailARN": "arn:aws:cloudtrail:us-east-1:123456789012:trail/org",
        "HomeRegion": "us-east-1",
        "IsMultiRegionTrail": True,
        "LogFileValidationEnabled": True,
    }

    logging = normalizer.cloudtrail(trail, {"IsLogging": False})
    unreadable = normalizer.cloudtrail(trail, None)

    assert logging.region == "us-east-1"
    assert logging.attributes["is_logging"] is False
    assert logging.attributes["kms_key_id"] == ""
    assert unreadable.attributes["is_logging"] is None


def test_cloudwatch_alarm_counts_actions(normalizer):
    resource = normalizer.cloudwatch_alarm(
        {
            "AlarmName": "cpu",
            "AlarmArn": "arn:aws:cloudwatch:eu-west-1:123456789012:alarm:cpu",
            "StateValue": "ALARM",
            "ActionsEnabled": True,
            "AlarmActions": ["arn:aws:sns:eu-west-1:123456789012:ops"],
            "Threshold": 90,
            "EvaluationPeriods": 2,
        }
    )

    assert resource.attributes["alarm_action_count"] == 1
    assert resource.attributes["threshold"] == 90.0
    assert resource.attributes["namespace"] is None


@pytest.mark.parametrize(
    "policy, expected",
    [
        ({"Statement": [{"Effect": "Allow", "Principal": "*"}]}, True),
        ({"Statement": {"Effect": "Allow", "Principal": {"AWS": ["arn:x", "*"]}}}, True),
        ({"Statement": [{"Effect": "Deny", "Principal": "*"}]}, False),
        ({"Statement": [{"Effect": "Allow", "Principal": {"Service": "ec2.amazonaws.com"}}]}, False),
        ({"Statement": [{"Effect": "Allow", "Principal": {"Federated": "*"}}]}, True),
        ({"Statement": [{"Effect": "Allow", "Principal": {"CanonicalUser": ["*"]}}]}, True),
        (
            {
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Principal": "*",
                        "Condition": {"StringEquals": {"aws:SourceVpce": "vpce-1a2b"}},
                    }
                ]
            },
            False,
        ),
        (
            {
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Principal": {"AWS": "*"},
                        "Condition": {"StringEquals": {"sts:ExternalId": "partner"}},
                    }
                ]
            },
            False,
        ),
        ('{"Statement": [{"Effect": "Allow", "Principal": "*"}]}', True),
        ("not json", False),
        ("", False),
        (None, False),
    ],
)
def test_policy_allows_any_principal(policy, expected):
    assert policy_allows_any_principal(policy) is expected
