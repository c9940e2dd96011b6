"""Run settings resolved from command-line flags and the environment."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from .models import ResourceCategory, Severity

DEFAULT_TIMEOUT = 300.0
DEFAULT_MAX_WORKERS = 8
DEFAULT_THRESHOLD = Severity.WARN

ENV_TIMEOUT = "COMPLIANCE_AUDITOR_TIMEOUT"
ENV_MAX_WORKERS = "COMPLIANCE_AUDITOR_MAX_WORKERS"


class SettingsError(ValueError):
    """Raised when flags or environment values are invalid."""


@dataclass(frozen=True, slots=True)
class AuditSettings:
    """Everything a verification run needs, independent of argparse."""

    provider: str = "aws"
    region: Optional[str] = None
    profile: Optional[str] = None
    snapshot: Optional[Path] = None
    catalogs: Tuple[Path, ...] = ()
    include_default_catalog: bool = True
    categories: Tuple[ResourceCategory, ...] = ()
    threshold: Severity = DEFAULT_THRESHOLD
    fail_on_unknown: bool = False
    output_format: str = "text"
    output: Optional[Path] = None
    timeout: float = DEFAULT_TIMEOUT
    max_workers: int = DEFAULT_MAX_WORKERS
    verbose: bool = False
    metadata: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_args(
        cls, args: argparse.Namespace, env: Mapping[str, str] | None = None
    ) -> "AuditSettings":
        environ = os.environ if env is None else env

        region = args.region or environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION")
        profile = args.profile or environ.get("AWS_PROFILE")

        timeout = args.timeout
        if timeout is None:
            timeout = _env_number(environ, ENV_TIMEOUT, float, DEFAULT_TIMEOUT)
        max_workers = args.max_workers
        if max_workers is None:
            max_workers = _env_number(environ, ENV_MAX_WORKERS, int, DEFAULT_MAX_WORKERS)

        if timeout <= 0:
            raise SettingsError("timeout must be positive")
        if max_workers < 1:
            raise SettingsError("max-workers must be at least 1")

        try:
            categories = tuple(ResourceCategory.parse(name) for name in args.categories or [])
        except ValueError as exc:
            raise SettingsError(str(exc)) from exc

        snapshot = args.snapshot.resolve() if args.snapshot else None
        metadata = {"provider": args.provider}
        if snapshot is not None:
            metadata["snapshot"] = str(snapshot)
        else:
            metadata["region"] = region or "default"
            if profile:
                metadata["profile"] = profile

        return cls(
            provider=args.provider,
            region=region,
            profile=profile,
            snapshot=snapshot,
            catalogs=tuple(Path(path) for path in args.catalogs or []),
            include_default_catalog=args.include_default_catalog,
            categories=categories,
            threshold=Severity.parse(args.fail_on),
            fail_on_unknown=args.fail_on_unknown,
            output_format=args.format,
            output=args.output,
            timeout=float(timeout),
            max_workers=int(max_workers),
            verbose=args.verbose,
            metadata=metadata,
        )


def _env_number(environ: Mapping[str, str], name: str, kind: type, default: float) -> float:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return kind(raw.strip())
    except ValueError as exc:
        raise SettingsError(f"{name} must be a number, got {raw!r}") from exc


__all__ = ["AuditSettings", "DEFAULT_MAX_WORKERS", "DEFAULT_TIMEOUT", "SettingsError"]
