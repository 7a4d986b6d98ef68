"""Ownership tags on ElastiCache cache clusters (nodes) and their snapshots."""

import logging
from typing import Any

from cloudresources.config import ProviderSettings
from cloudresources.context import ReconcileContext
from cloudresources.resources import Redis
from cloudresources.shared.aws import IdentityAPI, RemoteCacheAPI, call_aws

logger = logging.getLogger(__name__)

AVAILABLE = "available"


def build_cache_tags(settings: ProviderSettings, r: Redis) -> list[dict[str, str]]:
    """Tags applied to every node and snapshot; product-name only when the label is set."""
    prefix = settings.tag_key_prefix
    tags = [
        {"Key": f"{prefix}clusterID", "Value": settings.cluster_id},
        {"Key": f"{prefix}resource-type", "Value": r.type},
        {"Key": f"{prefix}resource-name", "Value": r.name},
    ]
    if r.product_name:
        tags.append({"Key": f"{prefix}product-name", "Value": r.product_name})
    return tags


def region_from_availability_zone(zone: str) -> str:
    """eu-west-1a -> eu-west-1."""
    return zone[:-1]


def cluster_arn(region: str, account: str, cache_cluster_id: str) -> str:
    return f"arn:aws:elasticache:{region}:{account}:cluster:{cache_cluster_id}"


def snapshot_arn(region: str, account: str, snapshot_name: str) -> str:
    return f"arn:aws:elasticache:{region}:{account}:snapshot:{snapshot_name}"


def get_node_status(ctx: ReconcileContext, cache_svc: RemoteCacheAPI, member: dict[str, Any]) -> str:
    """Live CacheClusterStatus of one node group member, or "" when it is not listed.

    A group can report available while one of its nodes does not.
    """
    output = call_aws(
        ctx,
        "DescribeCacheClusters",
        "failed to get cache cluster output",
        cache_svc.describe_cache_clusters,
        CacheClusterId=member["CacheClusterId"],
    )
    clusters = output.get("CacheClusters", [])
    return clusters[0].get("CacheClusterStatus", "") if clusters else ""


def find_unavailable_node(
    ctx: ReconcileContext,
    cache_svc: RemoteCacheAPI,
    members: list[dict[str, Any]],
) -> str | None:
    """Check every member before any tag is applied; return a skip message for the first unavailable one."""
    for member in members:
        node_status = get_node_status(ctx, cache_svc, member)
        if node_status != AVAILABLE:
            return f"{member['CacheClusterId']} status is {node_status or 'unknown'}, skipping adding tags"
    return None


def tag_elasticache_node(
    ctx: ReconcileContext,
    cache_svc: RemoteCacheAPI,
    sts_svc: IdentityAPI,
    settings: ProviderSettings,
    r: Redis,
    member: dict[str, Any],
) -> None:
    """Tag one node group member and each of its snapshots.

    Callers check the whole node group with find_unavailable_node first; this
    does not look at the node's status.
    """
    cache_cluster_id = member["CacheClusterId"]
    logger.info("creating or updating tags on elasticache node %s and its snapshots", cache_cluster_id)

    identity = call_aws(ctx, "GetCallerIdentity", "failed to get account identity", sts_svc.get_caller_identity)
    account = identity["Account"]
    region = region_from_availability_zone(member["PreferredAvailabilityZone"])
    tags = build_cache_tags(settings, r)

    call_aws(
        ctx,
        "AddTagsToResource",
        "failed to add tags to aws elasticache",
        cache_svc.add_tags_to_resource,
        ResourceName=cluster_arn(region, account, cache_cluster_id),
        Tags=tags,
    )

    snapshots = call_aws(
        ctx,
        "DescribeSnapshots",
        "failed to describe aws elasticache snapshots",
        cache_svc.describe_snapshots,
        CacheClusterId=cache_cluster_id,
    ).get("Snapshots", [])
    for snapshot in snapshots:
        name = snapshot["SnapshotName"]
        logger.info("adding tags to snapshot %s", name)
        call_aws(
            ctx,
            "AddTagsToResource",
            "failed to add tags to aws elasticache snapshot",
            cache_svc.add_tags_to_resource,
            ResourceName=snapshot_arn(region, account, name),
            Tags=tags,
        )

    logger.info("successfully created or updated tags on elasticache node %s", cache_cluster_id)
