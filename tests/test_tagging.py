"""Tests for tagging ElastiCache nodes and snapshots."""

from unittest.mock import MagicMock

from botocore.exceptions import ClientError
import pytest

from cloudresources.cache.tagging import (
    build_cache_tags,
    cluster_arn,
    find_unavailable_node,
    get_node_status,
    region_from_availability_zone,
    snapshot_arn,
    tag_elasticache_node,
)
from cloudresources.config import ProviderSettings
from cloudresources.context import ReconcileContext
from cloudresources.errors import RemoteMutationError
from cloudresources.resources import Redis

MEMBER = {"CacheClusterId": "abc-ns-redis-001", "PreferredAvailabilityZone": "eu-west-1a"}


def _settings() -> ProviderSettings:
    return ProviderSettings(cluster_id="abc", tag_key_prefix="cloud-resources.io/")


def _services(node_status: str = "available", snapshots: list | None = None) -> tuple[MagicMock, MagicMock]:
    cache_svc = MagicMock()
    cache_svc.describe_cache_clusters.return_value = {
        "CacheClusters": [{"CacheClusterId": MEMBER["CacheClusterId"], "CacheClusterStatus": node_status}]
    }
    cache_svc.describe_snapshots.return_value = {"Snapshots": snapshots or []}
    sts_svc = MagicMock()
    sts_svc.get_caller_identity.return_value = {"Account": "123456789012"}
    return cache_svc, sts_svc


def test_build_cache_tags_without_product_name() -> None:
    tags = build_cache_tags(_settings(), Redis(name="redis", namespace="ns", tier="production"))
    assert tags == [
        {"Key": "cloud-resources.io/clusterID", "Value": "abc"},
        {"Key": "cloud-resources.io/resource-type", "Value": "managed"},
        {"Key": "cloud-resources.io/resource-name", "Value": "redis"},
    ]


def test_build_cache_tags_with_product_name() -> None:
    r = Redis(name="redis", namespace="ns", tier="production", labels={"productName": "checkout"})
    tags = build_cache_tags(_settings(), r)
    assert {"Key": "cloud-resources.io/product-name", "Value": "checkout"} in tags


def test_arn_helpers() -> None:
    assert region_from_availability_zone("eu-west-1a") == "eu-west-1"
    assert cluster_arn("eu-west-1", "1", "node") == "arn:aws:elasticache:eu-west-1:1:cluster:node"
    assert snapshot_arn("eu-west-1", "1", "snap") == "arn:aws:elasticache:eu-west-1:1:snapshot:snap"


def test_tag_node_and_snapshots() -> None:
    cache_svc, sts_svc = _services(snapshots=[{"SnapshotName": "snap-1"}, {"SnapshotName": "snap-2"}])
    r = Redis(name="redis", namespace="ns", tier="production")

    tag_elasticache_node(ReconcileContext(), cache_svc, sts_svc, _settings(), r, MEMBER)

    resources = [c.kwargs["ResourceName"] for c in cache_svc.add_tags_to_resource.call_args_list]
    assert resources == [
        "arn:aws:elasticache:eu-west-1:123456789012:cluster:abc-ns-redis-001",
        "arn:aws:elasticache:eu-west-1:123456789012:snapshot:snap-1",
        "arn:aws:elasticache:eu-west-1:123456789012:snapshot:snap-2",
    ]
    cache_svc.describe_snapshots.assert_called_once_with(CacheClusterId="abc-ns-redis-001")
    cache_svc.describe_cache_clusters.assert_not_called()


def test_get_node_status() -> None:
    cache_svc, _sts_svc = _services(node_status="snapshotting")
    assert get_node_status(ReconcileContext(), cache_svc, MEMBER) == "snapshotting"
    cache_svc.describe_cache_clusters.assert_called_once_with(CacheClusterId="abc-ns-redis-001")

    cache_svc.describe_cache_clusters.return_value = {"CacheClusters": []}
    assert get_node_status(ReconcileContext(), cache_svc, MEMBER) == ""


def test_all_nodes_available_has_no_skip_message() -> None:
    cache_svc, _sts_svc = _services()
    second = {"CacheClusterId": "abc-ns-redis-002", "PreferredAvailabilityZone": "eu-west-1b"}
    assert find_unavailable_node(ReconcileContext(), cache_svc, [MEMBER, second]) is None
    assert cache_svc.describe_cache_clusters.call_count == 2


def test_unavailable_node_is_reported() -> None:
    """The first node that is not available ends the check with a skip message."""
    cache_svc, _sts_svc = _services()
    second = {"CacheClusterId": "abc-ns-redis-002", "PreferredAvailabilityZone": "eu-west-1b"}
    cache_svc.describe_cache_clusters.side_effect = [
        {"CacheClusters": [{"CacheClusterStatus": "available"}]},
        {"CacheClusters": [{"CacheClusterStatus": "modifying"}]},
    ]

    message = find_unavailable_node(ReconcileContext(), cache_svc, [MEMBER, second])

    assert message == "abc-ns-redis-002 status is modifying, skipping adding tags"
    cache_svc.add_tags_to_resource.assert_not_called()


def test_unlisted_node_is_reported_unknown() -> None:
    cache_svc, _sts_svc = _services()
    cache_svc.describe_cache_clusters.return_value = {"CacheClusters": []}
    message = find_unavailable_node(ReconcileContext(), cache_svc, [MEMBER])
    assert message == "abc-ns-redis-001 status is unknown, skipping adding tags"


def test_tag_failure_is_wrapped() -> None:
    cache_svc, sts_svc = _services()
    cache_svc.add_tags_to_resource.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "AddTagsToResource"
    )
    r = Redis(name="redis", namespace="ns", tier="production")

    with pytest.raises(RemoteMutationError) as exc_info:
        tag_elasticache_node(ReconcileContext(), cache_svc, sts_svc, _settings(), r, MEMBER)

    assert exc_info.value.operation == "AddTagsToResource"
    assert exc_info.value.status_message == "failed to add tags to aws elasticache"
