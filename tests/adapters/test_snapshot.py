from pathlib import Path

import pytest

from compliance_auditor.adapters import CollectionError, SnapshotCollector, SnapshotError
from compliance_auditor.models import ResourceCategory

FIXTURES = Path(__file__).resolve().parents[1] / "fixtures"


def test_snapshot_serves_resources_per_category():
    collector = SnapshotCollector(FIXTURES / "compliant.yaml")

    (group,) = collector.collect(ResourceCategory.SECURITY_GROUP)
    (role,) = collector.collect(ResourceCategory.IAM_ROLE)

    assert group.resource_id == "sg-0c1"
    assert group.region == "eu-west-1"
    assert len(group.attributes["ingress"]) == 2
    assert role.region is None
    assert role.attributes["attached_policies"][0]["name"] == "ReadOnlyAccess"


def test_json_snapshot_and_missing_categories():
    collector = SnapshotCollector(FIXTURES / "partial.json")

    (bucket,) = collector.collect(ResourceCategory.S3_BUCKET)

    assert bucket.attributes["policy_is_public"] is None
    assert collector.collect(ResourceCategory.VPC) == []


def test_malformed_entries_fail_only_their_category(tmp_path: Path):
    path = tmp_path / "snapshot.yaml"
    path.write_text(
        """
resources:
  Subnet:
    - id: subnet-1
      attributes: {vpc_id: vpc-1}
  VPC: []
""",
        encoding="utf-8",
    )
    collector = SnapshotCollector(path)

    with pytest.raises(CollectionError, match="malformed snapshot entry 0") as excinfo:
        collector.collect(ResourceCategory.SUBNET)

    assert excinfo.value.category is ResourceCategory.SUBNET
    assert collector.collect(ResourceCategory.VPC) == []


@pytest.mark.parametrize(
    "content, message",
    [
        ("[1, 2]", "must be a mapping"),
        ("resources: [1]", "'resources' must be a mapping"),
        ("resources: {Lambda: []}", "Unknown resource category"),
        ("resources: {VPC: {id: x}}", "must be a list"),
        ("resources: {VPC: [", "Invalid snapshot file"),
    ],
)
def test_invalid_snapshot_files_raise(tmp_path: Path, content: str, message: str):
    path = tmp_path / "snapshot.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(SnapshotError, match=message):
        SnapshotCollector(path)


def test_missing_snapshot_file_raises(tmp_path: Path):
    with pytest.raises(SnapshotError, match="not found"):
        SnapshotCollector(tmp_path / "absent.yaml")
