import argparse
from pathlib import Path

import pytest

from compliance_auditor.config import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_TIMEOUT,
    AuditSettings,
    SettingsError,
)
from compliance_auditor.models import ResourceCategory, Severity


def make_args(**overrides) -> argparse.Namespace:
    values = {
        "provider": "aws",
        "region": None,
        "profile": None,
        "snapshot": None,
        "catalogs": None,
        "include_default_catalog": True,
        "categories": None,
        "fail_on": "warn",
        "fail_on_unknown": False,
        "format": "text",
        "output": None,
        "timeout": None,
        "max_workers": None,
        "verbose": False,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


def test_defaults_without_environment() -> None:
    settings = AuditSettings.from_args(make_args(), env={})

    assert settings.region is None
    assert settings.timeout == DEFAULT_TIMEOUT
    assert settings.max_workers == DEFAULT_MAX_WORKERS
    assert settings.threshold is Severity.WARN
    assert settings.metadata == {"provider": "aws", "region": "default"}


def test_environment_fallbacks() -> None:
    env = {
        "AWS_DEFAULT_REGION": "eu-central-1",
        "AWS_PROFILE": "audit",
        "COMPLIANCE_AUDITOR_TIMEOUT": "60",
        "COMPLIANCE_AUDITOR_MAX_WORKERS": "3",
    }

    settings = AuditSettings.from_args(make_args(), env=env)

    assert settings.region == "eu-central-1"
    assert settings.profile == "audit"
    assert settings.timeout == 60.0
    assert settings.max_workers == 3
    assert settings.metadata["profile"] == "audit"


def test_flags_take_precedence_over_environment() -> None:
    env = {"AWS_REGION": "us-west-2", "COMPLIANCE_AUDITOR_TIMEOUT": "60"}

    settings = AuditSettings.from_args(make_args(region="eu-west-1", timeout=5.0), env=env)

    assert settings.region == "eu-west-1"
    assert settings.timeout == 5.0


def test_categories_and_threshold_are_parsed(tmp_path: Path) -> None:
    snapshot = tmp_path / "inventory.yaml"

    settings = AuditSettings.from_args(
        make_args(categories=["s3bucket", "VPC"], fail_on="critical", snapshot=snapshot),
        env={},
    )

    assert settings.categories == (ResourceCategory.S3_BUCKET, ResourceCategory.VPC)
    assert settings.threshold is Severity.CRITICAL
    assert settings.metadata == {"provider": "aws", "snapshot": str(snapshot.resolve())}


@pytest.mark.parametrize(
    "overrides, env, message",
    [
        ({"timeout": 0}, {}, "timeout must be positive"),
        ({"max_workers": 0}, {}, "max-workers must be at least 1"),
        ({}, {"COMPLIANCE_AUDITOR_TIMEOUT": "soon"}, "must be a number"),
        ({"categories": ["Lambda"]}, {}, "Unknown resource category"),
    ],
)
def test_invalid_settings_raise(overrides, env, message) -> None:
    with pytest.raises(SettingsError, match=message):
        AuditSettings.from_args(make_args(**overrides), env=env)
