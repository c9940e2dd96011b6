"""Read-only AWS collector built on boto3."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import boto3
from botocore.config import Config as BotocoreConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)
from loguru import logger

from ..models import Resource, ResourceCategory, ResourceSchemaError
from ..normalization import AwsNormalizer
from .collector import CollectionError, ResourceCollector, RetryPolicy, call_with_retry


class CredentialsError(RuntimeError):
    """Raised when no AWS credentials can be resolved."""


class CollectionCancelled(RuntimeError):
    """Raised inside a collector once :meth:`AwsCollector.cancel` was called."""


TRANSIENT_ERROR_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "ThrottledException",
        "RequestLimitExceeded",
        "RequestThrottled",
        "RequestThrottledException",
        "TooManyRequestsException",
        "SlowDown",
        "RequestTimeout",
        "RequestTimeoutException",
        "ServiceUnavailable",
        "InternalError",
        "InternalFailure",
        "PriorRequestNotComplete",
    }
)

_TRANSIENT_EXCEPTIONS = (
    EndpointConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionClosedError,
)

# botocore's own retries are disabled so RetryPolicy alone governs attempts.
NO_RETRY_CONFIG = BotocoreConfig(
    retries={"max_attempts": 1, "mode": "standard"},
    connect_timeout=10,
    read_timeout=30,
)


def is_transient_error(exc: BaseException) -> bool:
    """Return ``True`` for rate limiting, timeouts and server-side failures."""

    if isinstance(exc, _TRANSIENT_EXCEPTIONS):
        return True
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        if error.get("Code") in TRANSIENT_ERROR_CODES:
            return True
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return isinstance(status, int) and status >= 500
    return False


def error_code(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code", ""))
    return ""


@dataclass(slots=True)
class AwsContext:
    """Explicit AWS session handle passed to every collector call."""

    session: Any
    region: Optional[str] = None
    client_config: BotocoreConfig = field(default_factory=lambda: NO_RETRY_CONFIG)

    @classmethod
    def from_profile(cls, profile: str | None = None, region: str | None = None) -> "AwsContext":
        try:
            session = boto3.Session(profile_name=profile, region_name=region)
        except BotoCoreError as exc:
            raise CredentialsError(f"Unable to open AWS session: {exc}") from exc
        return cls(session=session, region=region or session.region_name)

    def client(self, service: str) -> Any:
        return self.session.client(service, region_name=self.region, config=self.client_config)

    def ensure_credentials(self) -> None:
        """Raise :class:`CredentialsError` when the session has no credentials."""

        try:
            credentials = self.session.get_credentials()
        except BotoCoreError as exc:
            raise CredentialsError(f"Unable to resolve AWS credentials: {exc}") from exc
        if credentials is None:
            raise CredentialsError(
                "No AWS credentials found; configure the environment, a shared "
                "credentials file or --profile"
            )


# S3 sub-read error codes that mean "not configured" rather than "unreadable".
_S3_NOT_CONFIGURED = {
    "public_access_block": {"NoSuchPublicAccessBlockConfiguration"},
    "encryption": {"ServerSideEncryptionConfigurationNotFoundError"},
    "policy": {"NoSuchBucketPolicy"},
}


class AwsCollector(ResourceCollector):
    """Collect AWS resources through read-only describe/list/get calls."""

    def __init__(
        self,
        context: AwsContext,
        *,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Any] | None = None,
        normalizer: AwsNormalizer | None = None,
    ) -> None:
        self.context = context
        self.retry_policy = retry_policy or RetryPolicy()
        self._cancelled = threading.Event()
        # Backoff waits wake up as soon as the run is cancelled.
        self._sleep = sleep or self._cancelled.wait
        self._normalizer = normalizer or AwsNormalizer(region=context.region)
        self._handlers: Dict[ResourceCategory, Callable[[], List[Resource]]] = {
            ResourceCategory.VPC: self._collect_vpcs,
            ResourceCategory.SUBNET: self._collect_subnets,
            ResourceCategory.SECURITY_GROUP: self._collect_security_groups,
            ResourceCategory.IAM_ROLE: self._collect_iam_roles,
            ResourceCategory.S3_BUCKET: self._collect_s3_buckets,
            ResourceCategory.CLOUDWATCH_ALARM: self._collect_cloudwatch_alarms,
            ResourceCategory.EC2_INSTANCE: self._collect_ec2_instances,
            ResourceCategory.CLOUDTRAIL: self._collect_cloudtrails,
        }

    def supported_categories(self) -> Sequence[ResourceCategory]:
        return list(self._handlers)

    # ------------------------------------------------------------------
    def collect(self, category: ResourceCategory) -> List[Resource]:
        handler = self._handlers.get(category)
        if handler is None:
            raise CollectionError(category, "category is not supported by the AWS collector")

        try:
            return handler()
        except CollectionError:
            raise
        except CollectionCancelled as exc:
            raise CollectionError(category, str(exc), transient=True) from exc
        except ClientError as exc:
            raise CollectionError(
                category, self._describe_client_error(exc), transient=is_transient_error(exc)
            ) from exc
        except NoCredentialsError as exc:
            raise CollectionError(category, f"credentials unavailable: {exc}") from exc
        except ResourceSchemaError as exc:
            raise CollectionError(category, f"malformed resource: {exc}") from exc
        except BotoCoreError as exc:
            raise CollectionError(
                category, f"{type(exc).__name__}: {exc}", transient=is_transient_error(exc)
            ) from exc

    def cancel(self) -> None:
        """Stop issuing API calls; pending work raises :class:`CollectionError`."""

        self._cancelled.set()

    # ------------------------------------------------------------------
    def _raise_if_cancelled(self, description: str) -> None:
        if self._cancelled.is_set():
            raise CollectionCancelled(f"collection cancelled before {description}")

    def _call(self, description: str, func: Callable[[], Any]) -> Any:
        def attempt() -> Any:
            self._raise_if_cancelled(description)
            return func()

        return call_with_retry(
            attempt,
            policy=self.retry_policy,
            is_transient=is_transient_error,
            sleep=self._sleep,
            description=description,
        )

    def _paginate(self, client: Any, method: str, result_key: str, **kwargs: Any) -> List[Any]:
        """Return every item under ``result_key`` across all pages.

        A transient failure restarts the listing from the first page.
        """

        paginator = client.get_paginator(method)

        def fetch() -> List[Any]:
            items: List[Any] = []
            for page in paginator.paginate(**kwargs):
                self._raise_if_cancelled(method)
                items.extend(page.get(result_key, []) or [])
            return items

        return self._call(method, fetch)

    def _optional(
        self,
        description: str,
        func: Callable[[], Any],
        *,
        not_configured: frozenset[str] | set[str] = frozenset(),
        empty: Any = None,
    ) -> Any:
        """Run a per-resource sub-read.

        Returns ``empty`` when the setting is simply absent and ``None`` when
        it could not be read (denied or exhausted retries), so only the rules
        depending on that attribute become unknown.
        """

        try:
            return self._call(description, func)
        except ClientError as exc:
            code = error_code(exc)
            if code in not_configured:
                return empty
            logger.warning("Could not read {}: {}", description, self._describe_client_error(exc))
            return None
        except NoCredentialsError:
            raise
        except BotoCoreError as exc:
            logger.warning("Could not read {}: {}: {}", description, type(exc).__name__, exc)
            return None

    @staticmethod
    def _describe_client_error(exc: ClientError) -> str:
        error = exc.response.get("Error", {})
        code = error.get("Code", "Unknown")
        message = error.get("Message", "")
        operation = getattr(exc, "operation_name", "")
        detail = f"{code} calling {operation}" if operation else str(code)
        return f"{detail}: {message}" if message else detail

    # Networking ---------------------------------------------------------
    def _collect_vpcs(self) -> List[Resource]:
        ec2 = self.context.client("ec2")
        vpcs = self._paginate(ec2, "describe_vpcs", "Vpcs")
        flow_log_vpcs: Optional[List[str]]
        try:
            flow_logs = self._paginate(ec2, "describe_flow_logs", "FlowLogs")
            flow_log_vpcs = [
                log["ResourceId"] for log in flow_logs if log.get("ResourceId", "").startswith("vpc-")
            ]
        except ClientError as exc:
            logger.warning("Could not read flow logs: {}", self._describe_client_error(exc))
            flow_log_vpcs = None
        except NoCredentialsError:
            raise
        except BotoCoreError as exc:
            logger.warning("Could not read flow logs: {}: {}", type(exc).__name__, exc)
            flow_log_vpcs = None
        return [self._normalizer.vpc(vpc, flow_log_vpcs) for vpc in vpcs]

    def _collect_subnets(self) -> List[Resource]:
        ec2 = self.context.client("ec2")
        subnets = self._paginate(ec2, "describe_subnets", "Subnets")
        return [self._normalizer.subnet(subnet) for subnet in subnets]

    def _collect_security_groups(self) -> List[Resource]:
        ec2 = self.context.client("ec2")
        groups = self._paginate(ec2, "describe_security_groups", "SecurityGroups")
        return [self._normalizer.security_group(group) for group in groups]

    # IAM ------------------------------------------------------------------
    def _collect_iam_roles(self) -> List[Resource]:
        iam = self.context.client("iam")
        roles = self._paginate(iam, "list_roles", "Roles")
        resources: List[Resource] = []
        for role in roles:
            name = role["RoleName"]
            attached = self._paginate(
                iam, "list_attached_role_policies", "AttachedPolicies", RoleName=name
            )
            inline = self._optional(
                f"inline policies of role {name}",
                lambda: iam.list_role_policies(RoleName=name),
            )
            inline_count = len(inline.get("PolicyNames", [])) if inline is not None else None
            resources.append(self._normalizer.iam_role(role, attached, inline_count))
        return resources

    # Storage ------------------------------------------------------------
    def _collect_s3_buckets(self) -> List[Resource]:
        s3 = self.context.client("s3")
        response = self._call("list_buckets", s3.list_buckets)
        resources: List[Resource] = []
        for bucket in response.get("Buckets", []) or []:
            resources.append(self._bucket(s3, bucket["Name"]))
        return resources

    def _bucket(self, s3: Any, name: str) -> Resource:
        location = self._optional(
            f"location of bucket {name}", lambda: s3.get_bucket_location(Bucket=name)
        )
        region = None
        if location is not None:
            region = location.get("LocationConstraint") or "us-east-1"

        public_access_block = self._optional(
            f"public access block of bucket {name}",
            lambda: s3.get_public_access_block(Bucket=name)["PublicAccessBlockConfiguration"],
            not_configured=_S3_NOT_CONFIGURED["public_access_block"],
            empty={},
        )
        encryption = self._optional(
            f"encryption of bucket {name}",
            lambda: s3.get_bucket_encryption(Bucket=name)["ServerSideEncryptionConfiguration"][
                "Rules"
            ],
            not_configured=_S3_NOT_CONFIGURED["encryption"],
            empty=[],
        )
        versioning = self._optional(
            f"versioning of bucket {name}", lambda: s3.get_bucket_versioning(Bucket=name)
        )
        logging_config = self._optional(
            f"logging of bucket {name}", lambda: s3.get_bucket_logging(Bucket=name)
        )
        policy = self._optional(
            f"policy of bucket {name}",
            lambda: s3.get_bucket_policy(Bucket=name).get("Policy", ""),
            not_configured=_S3_NOT_CONFIGURED["policy"],
            empty="",
        )

        return self._normalizer.s3_bucket(
            name,
            region=region,
            public_access_block=public_access_block,
            encryption_rules=encryption,
            versioning=versioning,
            logging=logging_config,
            policy=policy,
        )

    # Monitoring ---------------------------------------------------------
    def _collect_cloudwatch_alarms(self) -> List[Resource]:
        cloudwatch = self.context.client("cloudwatch")
        alarms = self._paginate(cloudwatch, "describe_alarms", "MetricAlarms")
        return [self._normalizer.cloudwatch_alarm(alarm) for alarm in alarms]

    def _collect_cloudtrails(self) -> List[Resource]:
        cloudtrail = self.context.client("cloudtrail")
        response = self._call("describe_trails", cloudtrail.describe_trails)
        resources: List[Resource] = []
        for trail in response.get("trailList", []) or []:
            arn = trail.get("TrailARN") or trail.get("Name")
            status: Optional[Mapping[str, Any]] = self._optional(
                f"status of trail {arn}", lambda: cloudtrail.get_trail_status(Name=arn)
            )
            resources.append(self._normalizer.cloudtrail(trail, status))
        return resources

    # Compute ------------------------------------------------------------
    def _collect_ec2_instances(self) -> List[Resource]:
        ec2 = self.context.client("ec2")
        reservations = self._paginate(ec2, "describe_instances", "Reservations")
        return [
            self._normalizer.ec2_instance(instance)
            for reservation in reservations
            for instance in reservation.get("Instances", []) or []
            if (instance.get("State") or {}).get("Name") != "terminated"
        ]


__all__ = [
    "AwsCollector",
    "AwsContext",
    "CollectionCancelled",
    "CredentialsError",
    "TRANSIENT_ERROR_CODES",
    "is_transient_error",
]
