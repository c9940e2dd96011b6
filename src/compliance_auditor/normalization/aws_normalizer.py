"""Conversion helpers that turn raw boto3 responses into service models."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..models import Resource, ResourceCategory

ALL_PORTS = (0, 65535)
NOT_CONFIGURED = "none"


def policy_allows_any_principal(policy: Any) -> bool:
    """Return ``True`` if an unconditioned ``Allow`` statement names ``*`` as principal.

    Any principal type counts (``AWS``, ``Service``, ``Federated``,
    ``CanonicalUser``). Statements carrying a ``Condition`` block are treated
    as restricted.

    Accepts the policy document as JSON text (S3 bucket policies) or as an
    already decoded mapping (IAM trust policies). Unparseable text counts as
    not public.
    """

    if isinstance(policy, str):
        try:
            policy = json.loads(policy)
        except json.JSONDecodeError:
            return False
    if not isinstance(policy, Mapping):
        return False

    statements = policy.get("Statement", [])
    if isinstance(statements, Mapping):
        statements = [statements]

    for statement in statements:
        if not isinstance(statement, Mapping) or statement.get("Effect") != "Allow":
            continue
        if statement.get("Condition"):
            continue
        principal = statement.get("Principal")
        if principal == "*":
            return True
        if isinstance(principal, Mapping):
            for value in principal.values():
                if value == "*" or (isinstance(value, list) and "*" in value):
                    return True
    return False


class AwsNormalizer:
    """Normalize boto3 describe/list payloads into :class:`Resource` instances."""

    def __init__(self, region: str | None = None) -> None:
        self.region = region

    # ------------------------------------------------------------------
    def vpc(self, vpc: Mapping[str, Any], flow_log_vpc_ids: Optional[Iterable[str]]) -> Resource:
        vpc_id = vpc.get("VpcId", "")
        flow_logs: Optional[bool] = None
        if flow_log_vpc_ids is not None:
            flow_logs = vpc_id in set(flow_log_vpc_ids)

        return Resource(
            category=ResourceCategory.VPC,
            resource_id=vpc_id,
            region=self.region,
            attributes={
                "cidr_block": vpc.get("CidrBlock", ""),
                "is_default": bool(vpc.get("IsDefault", False)),
                "state": vpc.get("State", ""),
                "flow_logs_enabled": flow_logs,
                "tags": self._tags(vpc.get("Tags")),
            },
        )

    def subnet(self, subnet: Mapping[str, Any]) -> Resource:
        return Resource(
            category=ResourceCategory.SUBNET,
            resource_id=subnet.get("SubnetId", ""),
            region=self.region,
            attributes={
                "vpc_id": subnet.get("VpcId", ""),
                "cidr_block": subnet.get("CidrBlock", ""),
                "availability_zone": subnet.get("AvailabilityZone", ""),
                "map_public_ip_on_launch": bool(subnet.get("MapPublicIpOnLaunch", False)),
                "available_ip_address_count": int(subnet.get("AvailableIpAddressCount", 0)),
            },
        )

    def security_group(self, group: Mapping[str, Any]) -> Resource:
        return Resource(
            category=ResourceCategory.SECURITY_GROUP,
            resource_id=group.get("GroupId", ""),
            region=self.region,
            attributes={
                "group_name": group.get("GroupName", ""),
                "vpc_id": group.get("VpcId"),
                "description": group.get("Description", ""),
                "ingress": self._permissions(group.get("IpPermissions")),
                "egress": self._permissions(group.get("IpPermissionsEgress")),
            },
        )

    def iam_role(
        self,
        role: Mapping[str, Any],
        attached_policies: Iterable[Mapping[str, Any]],
        inline_policy_count: Optional[int],
    ) -> Resource:
        return Resource(
            category=ResourceCategory.IAM_ROLE,
            resource_id=role.get("Arn") or role.get("RoleName", ""),
            attributes={
                "role_name": role.get("RoleName", ""),
                "path": role.get("Path", "/"),
                "max_session_duration": int(role.get("MaxSessionDuration", 3600)),
                "attached_policies": [
                    {"name": policy.get("PolicyName", ""), "arn": policy.get("PolicyArn", "")}
                    for policy in attached_policies
                ],
                "trust_allows_any_principal": policy_allows_any_principal(
                    role.get("AssumeRolePolicyDocument")
                ),
                "inline_policy_count": inline_policy_count,
            },
        )

    def s3_bucket(
        self,
        name: str,
        *,
        region: str | None,
        public_access_block: Optional[Mapping[str, Any]],
        encryption_rules: Optional[List[Mapping[str, Any]]],
        versioning: Optional[Mapping[str, Any]],
        logging: Optional[Mapping[str, Any]],
        policy: Optional[str],
    ) -> Resource:
        """Build an S3 bucket resource.

        Each sub-read is ``None`` when it could not be performed (the
        attribute is then unobservable). "Not configured" is expressed by an
        empty mapping/list (or empty policy text), never by ``None``.
        """

        block = dict(public_access_block) if public_access_block is not None else None

        def flag(key: str) -> Optional[bool]:
            if block is None:
                return None
            return bool(block.get(key, False))

        encryption: Optional[str] = None
        if encryption_rules is not None:
            encryption = NOT_CONFIGURED
            for rule in encryption_rules:
                default = rule.get("ApplyServerSideEncryptionByDefault") or {}
                algorithm = default.get("SSEAlgorithm")
                if algorithm:
                    encryption = str(algorithm)
                    break

        versioning_status: Optional[str] = None
        if versioning is not None:
            versioning_status = str(versioning.get("Status") or "Disabled")

        return Resource(
            category=ResourceCategory.S3_BUCKET,
            resource_id=name,
            region=region or self.region,
            attributes={
                "block_public_acls": flag("BlockPublicAcls"),
                "ignore_public_acls": flag("IgnorePublicAcls"),
                "block_public_policy": flag("BlockPublicPolicy"),
                "restrict_public_buckets": flag("RestrictPublicBuckets"),
                "encryption_algorithm": encryption,
                "versioning_status": versioning_status,
                "logging_enabled": None if logging is None else bool(logging.get("LoggingEnabled")),
                "policy_is_public": None if policy is None else policy_allows_any_principal(policy),
            },
        )

    def cloudwatch_alarm(self, alarm: Mapping[str, Any]) -> Resource:
        threshold = alarm.get("Threshold")
        return Resource(
            category=ResourceCategory.CLOUDWATCH_ALARM,
            resource_id=alarm.get("AlarmArn") or alarm.get("AlarmName", ""),
            region=self.region,
            attributes={
                "alarm_name": alarm.get("AlarmName", ""),
                "namespace": alarm.get("Namespace"),
                "metric_name": alarm.get("MetricName"),
                "state_value": alarm.get("StateValue", ""),
                "actions_enabled": bool(alarm.get("ActionsEnabled", False)),
                "alarm_action_count": len(alarm.get("AlarmActions") or []),
                "threshold": float(threshold) if threshold is not None else None,
                "evaluation_periods": int(alarm.get("EvaluationPeriods", 0)),
            },
        )

    def ec2_instance(self, instance: Mapping[str, Any]) -> Resource:
        metadata = instance.get("MetadataOptions") or {}
        profile = instance.get("IamInstanceProfile") or {}
        return Resource(
            category=ResourceCategory.EC2_INSTANCE,
            resource_id=instance.get("InstanceId", ""),
            region=self.region,
            attributes={
                "instance_type": instance.get("InstanceType", ""),
                "state": (instance.get("State") or {}).get("Name", ""),
                "http_tokens": metadata.get("HttpTokens"),
                "public_ip_address": instance.get("PublicIpAddress") or "",
                "iam_instance_profile_arn": profile.get("Arn") or "",
                "ebs_optimized": bool(instance.get("EbsOptimized", False)),
                "monitoring_state": (instance.get("Monitoring") or {}).get("State", "disabled"),
            },
        )

    def cloudtrail(self, trail: Mapping[str, Any], status: Optional[Mapping[str, Any]]) -> Resource:
        is_logging: Optional[bool] = None
        if status is not None:
            is_logging = bool(status.get("IsLogging", False))

        return Resource(
            category=ResourceCategory.CLOUDTRAIL,
            resource_id=trail.get("TrailARN") or trail.get("Name", ""),
            region=trail.get("HomeRegion") or self.region,
            attributes={
                "trail_name": trail.get("Name", ""),
                "is_multi_region_trail": bool(trail.get("IsMultiRegionTrail", False)),
                "log_file_validation_enabled": bool(trail.get("LogFileValidationEnabled", False)),
                "is_logging": is_logging,
                "kms_key_id": trail.get("KmsKeyId") or "",
                "s3_bucket_name": trail.get("S3BucketName"),
            },
        )

    # ------------------------------------------------------------------
    def _tags(self, tags: Iterable[Mapping[str, Any]] | None) -> List[Dict[str, str]]:
        return [
            {"key": str(tag.get("Key", "")), "value": str(tag.get("Value", ""))}
            for tag in tags or []
        ]

    def _permissions(self, permissions: Iterable[Mapping[str, Any]] | None) -> List[Dict[str, Any]]:
        """Flatten IP permissions into one record per (protocol, ports, CIDR)."""

        records: List[Dict[str, Any]] = []
        for permission in permissions or []:
            protocol = str(permission.get("IpProtocol", "-1"))
            if protocol == "-1" or "FromPort" not in permission:
                from_port, to_port = ALL_PORTS
            else:
                from_port = int(permission["FromPort"])
                to_port = int(permission.get("ToPort", from_port))
                # ICMP uses -1 for "all types"
                if from_port < 0 or to_port < 0:
                    from_port, to_port = ALL_PORTS

            cidrs = [item.get("CidrIp") for item in permission.get("IpRanges") or []]
            cidrs += [item.get("CidrIpv6") for item in permission.get("Ipv6Ranges") or []]
            for cidr in cidrs:
                if not cidr:
                    continue
                records.append(
                    {
                        "protocol": protocol,
                        "from_port": from_port,
                        "to_port": to_port,
                        "cidr": cidr,
                    }
                )
        return records


__all__ = ["AwsNormalizer", "NOT_CONFIGURED", "policy_allows_any_principal"]
