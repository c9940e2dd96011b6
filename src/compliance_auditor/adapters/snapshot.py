"""Collector that replays a recorded resource inventory."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

from ..models import Resource, ResourceCategory, ResourceSchemaError
from .collector import CollectionError, ResourceCollector


class SnapshotError(RuntimeError):
    """Raised when a snapshot file cannot be read."""


class SnapshotCollector(ResourceCollector):
    """Serve resources from a JSON/YAML snapshot instead of a live account.

    Expected shape::

        {"resources": {"SecurityGroup": [{"id": "sg-1", "attributes": {...}}]}}

    Categories missing from the snapshot yield no resources. Entries that do
    not match the category schema fail that category only.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path).resolve()
        self._data = self._load(self.path)

    # ------------------------------------------------------------------
    def collect(self, category: ResourceCategory) -> List[Resource]:
        entries = self._data.get(category, [])
        resources: List[Resource] = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, Mapping):
                raise CollectionError(category, f"snapshot entry {index} is not a mapping")
            try:
                resources.append(
                    Resource(
                        category=category,
                        resource_id=str(entry.get("id", "")),
                        attributes=entry.get("attributes") or {},
                        region=entry.get("region"),
                    )
                )
            except ResourceSchemaError as exc:
                raise CollectionError(category, f"malformed snapshot entry {index}: {exc}") from exc
        return resources

    # ------------------------------------------------------------------
    def _load(self, path: Path) -> Dict[ResourceCategory, List[Any]]:
        if not path.exists():
            raise SnapshotError(f"Snapshot file not found: {path}")

        with path.open("r", encoding="utf-8") as handle:
            try:
                data = yaml.safe_load(handle) or {}
            except yaml.YAMLError as exc:
                raise SnapshotError(f"Invalid snapshot file: {path}") from exc

        if not isinstance(data, Mapping):
            raise SnapshotError(f"Snapshot must be a mapping: {path}")

        raw = data.get("resources", {}) or {}
        if not isinstance(raw, Mapping):
            raise SnapshotError(f"Snapshot 'resources' must be a mapping: {path}")

        parsed: Dict[ResourceCategory, List[Any]] = {}
        for name, entries in raw.items():
            try:
                category = ResourceCategory.parse(name)
            except ValueError as exc:
                raise SnapshotError(f"{path}: {exc}") from exc
            if not isinstance(entries, list):
                raise SnapshotError(f"{path}: entries for {name} must be a list")
            parsed[category] = entries
        return parsed


__all__ = ["SnapshotCollector", "SnapshotError"]
