"""Tests for JSON Schema validation of strategy documents and parameter blobs."""

import jsonschema
import pytest

from cloudresources.spec.validator import (
    load_schema,
    validate_create_blob,
    validate_delete_blob,
    validate_strategy_document,
)


def _document(**tiers: dict) -> dict:
    return {
        "apiVersion": "cloudresources.io/v1",
        "kind": "StrategyConfig",
        "strategies": {"redis": tiers},
    }


def test_load_schema_known_names() -> None:
    for name in ("strategies", "elasticache-create", "elasticache-delete"):
        assert load_schema(name)["type"] == "object"


def test_load_schema_unknown_name() -> None:
    with pytest.raises(ValueError, match="Unknown schema"):
        load_schema("rds-create")


def test_valid_strategy_document() -> None:
    validate_strategy_document(
        _document(production={"region": "eu-west-1", "createStrategy": "{}", "deleteStrategy": {}})
    )


def test_missing_api_version() -> None:
    with pytest.raises(jsonschema.ValidationError, match="apiVersion"):
        validate_strategy_document({"kind": "StrategyConfig", "strategies": {}})


def test_unsupported_api_version() -> None:
    doc = _document()
    doc["apiVersion"] = "cloudresources.io/v2"
    with pytest.raises(ValueError, match="Unsupported apiVersion"):
        validate_strategy_document(doc)


def test_unknown_tier_key_rejected() -> None:
    with pytest.raises(jsonschema.ValidationError, match="strategy config validation failed"):
        validate_strategy_document(_document(production={"region": "eu-west-1", "nodes": 3}))


def test_create_blob_accepts_boto3_parameters() -> None:
    validate_create_blob(
        {
            "CacheNodeType": "cache.r5.large",
            "NumCacheClusters": 3,
            "SnapshotRetentionLimit": 7,
            "Port": 6379,
            "Tags": [{"Key": "team", "Value": "platform"}],
        }
    )


def test_create_blob_rejects_unknown_field() -> None:
    with pytest.raises(jsonschema.ValidationError, match="Additional properties"):
        validate_create_blob({"CacheNodeSize": "large"})


def test_create_blob_rejects_out_of_range() -> None:
    with pytest.raises(jsonschema.ValidationError, match="SnapshotRetentionLimit"):
        validate_create_blob({"SnapshotRetentionLimit": 90})


def test_create_blob_rejects_long_id() -> None:
    with pytest.raises(jsonschema.ValidationError):
        validate_create_blob({"ReplicationGroupId": "x" * 41})


def test_delete_blob_accepts_empty_snapshot_identifier() -> None:
    validate_delete_blob({"FinalSnapshotIdentifier": "", "RetainPrimaryCluster": True})


def test_delete_blob_rejects_wrong_type() -> None:
    with pytest.raises(jsonschema.ValidationError, match="RetainPrimaryCluster"):
        validate_delete_blob({"RetainPrimaryCluster": "yes"})
