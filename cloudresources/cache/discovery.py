"""List ElastiCache replication groups, tolerating credential propagation delay."""

import logging
from typing import Any

from cloudresources.context import ReconcileContext
from cloudresources.errors import RemoteUnavailableError
from cloudresources.shared.aws import RemoteCacheAPI
from cloudresources.shared.retry import RetryExhaustedError, RetryPolicy, poll

logger = logging.getLogger(__name__)

# New provider credentials can take minutes to register with AWS; any listing failure is retried.
DISCOVERY_RETRY_POLICY = RetryPolicy(interval=5, timeout=300)


def get_replication_groups(
    cache_svc: RemoteCacheAPI,
    ctx: ReconcileContext,
    policy: RetryPolicy = DISCOVERY_RETRY_POLICY,
) -> list[dict[str, Any]]:
    """Return all replication groups from a single describe_replication_groups page.

    Raises:
        RemoteUnavailableError: If no call succeeded before the policy ceiling.
    """
    try:
        output = poll(lambda: cache_svc.describe_replication_groups(), policy, ctx)
    except RetryExhaustedError as e:
        raise RemoteUnavailableError(
            f"failed to list replication groups after {e.attempts} attempts: {e.last_error}",
            "error getting replication groups",
        ) from e
    groups = output.get("ReplicationGroups", [])
    logger.debug("found %d replication groups", len(groups))
    return groups


def find_replication_group(groups: list[dict[str, Any]], replication_group_id: str) -> dict[str, Any] | None:
    """Return the group whose ReplicationGroupId matches, or None."""
    for group in groups:
        if group.get("ReplicationGroupId") == replication_group_id:
            return group
    return None
