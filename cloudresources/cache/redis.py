"""ElastiCache Redis replication group requests: defaults, deterministic naming, and drift detection."""

from dataclasses import dataclass, field, replace
from typing import Any

import jsonschema

from cloudresources.errors import ConfigResolutionError
from cloudresources.resources import Redis
from cloudresources.shared.naming import (
    build_infra_name_from_object,
    build_timestamped_infra_name_from_object,
)
from cloudresources.spec.validator import validate_create_blob, validate_delete_blob

DEFAULT_CACHE_NODE_TYPE = "cache.t2.micro"
DEFAULT_ENGINE = "redis"
DEFAULT_ENGINE_VERSION = "3.2.10"
DEFAULT_DESCRIPTION = "A Redis replication group"
DEFAULT_NUM_CACHE_CLUSTERS = 2
DEFAULT_AUTOMATIC_FAILOVER = True
DEFAULT_SNAPSHOT_RETENTION = 30

# boto3 parameter name -> dataclass attribute
_CREATE_FIELDS = {
    "ReplicationGroupId": "replication_group_id",
    "ReplicationGroupDescription": "replication_group_description",
    "CacheNodeType": "cache_node_type",
    "Engine": "engine",
    "EngineVersion": "engine_version",
    "NumCacheClusters": "num_cache_clusters",
    "AutomaticFailoverEnabled": "automatic_failover_enabled",
    "SnapshotRetentionLimit": "snapshot_retention_limit",
}


def _request(pairs: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in pairs.items() if v is not None}


@dataclass
class ElastiCacheCreateConfig:
    """CreateReplicationGroup parameters. None means unset; `extra` holds other validated parameters."""

    replication_group_id: str | None = None
    replication_group_description: str | None = None
    cache_node_type: str | None = None
    engine: str | None = None
    engine_version: str | None = None
    num_cache_clusters: int | None = None
    automatic_failover_enabled: bool | None = None
    snapshot_retention_limit: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_strategy(cls, data: dict[str, Any]) -> "ElastiCacheCreateConfig":
        """Validate a decoded createStrategy blob and split known fields from the rest."""
        try:
            validate_create_blob(data)
        except jsonschema.ValidationError as e:
            raise ConfigResolutionError(f"failed to decode aws elasticache create configuration: {e.message}") from e
        known = {attr: data[key] for key, attr in _CREATE_FIELDS.items() if key in data}
        extra = {k: v for k, v in data.items() if k not in _CREATE_FIELDS}
        return cls(**known, extra=extra)

    def to_request(self) -> dict[str, Any]:
        """boto3 create_replication_group keyword arguments."""
        params = {key: getattr(self, attr) for key, attr in _CREATE_FIELDS.items()}
        return {**self.extra, **_request(params)}


@dataclass
class ElastiCacheDeleteConfig:
    """DeleteReplicationGroup parameters.

    final_snapshot_identifier keeps the difference between an absent field
    (None: no final snapshot) and a present empty one ("": take a final
    snapshot under a generated name).
    """

    replication_group_id: str | None = None
    retain_primary_cluster: bool | None = None
    final_snapshot_identifier: str | None = None

    @classmethod
    def from_strategy(cls, data: dict[str, Any]) -> "ElastiCacheDeleteConfig":
        try:
            validate_delete_blob(data)
        except jsonschema.ValidationError as e:
            raise ConfigResolutionError(f"failed to decode aws elasticache delete configuration: {e.message}") from e
        return cls(
            replication_group_id=data.get("ReplicationGroupId"),
            retain_primary_cluster=data.get("RetainPrimaryCluster"),
            final_snapshot_identifier=data.get("FinalSnapshotIdentifier"),
        )

    def to_request(self) -> dict[str, Any]:
        """boto3 delete_replication_group keyword arguments."""
        return _request(
            {
                "ReplicationGroupId": self.replication_group_id,
                "RetainPrimaryCluster": self.retain_primary_cluster,
                "FinalSnapshotIdentifier": self.final_snapshot_identifier,
            }
        )


@dataclass
class ElastiCacheUpdateRequest:
    """ModifyReplicationGroup parameters; only changed fields are set."""

    replication_group_id: str
    cache_node_type: str | None = None
    snapshot_retention_limit: int | None = None

    def to_request(self) -> dict[str, Any]:
        return _request(
            {
                "ReplicationGroupId": self.replication_group_id,
                "CacheNodeType": self.cache_node_type,
                "SnapshotRetentionLimit": self.snapshot_retention_limit,
            }
        )


def build_create_config(cluster_id: str, r: Redis, config: ElastiCacheCreateConfig) -> ElastiCacheCreateConfig:
    """Fill unset fields with defaults and the deterministic replication group id."""
    return replace(
        config,
        replication_group_id=config.replication_group_id or build_infra_name_from_object(cluster_id, r),
        replication_group_description=(
            config.replication_group_description
            if config.replication_group_description is not None
            else DEFAULT_DESCRIPTION
        ),
        cache_node_type=config.cache_node_type or DEFAULT_CACHE_NODE_TYPE,
        engine=config.engine or DEFAULT_ENGINE,
        engine_version=config.engine_version or DEFAULT_ENGINE_VERSION,
        num_cache_clusters=(
            config.num_cache_clusters if config.num_cache_clusters is not None else DEFAULT_NUM_CACHE_CLUSTERS
        ),
        automatic_failover_enabled=(
            config.automatic_failover_enabled
            if config.automatic_failover_enabled is not None
            else DEFAULT_AUTOMATIC_FAILOVER
        ),
        snapshot_retention_limit=(
            config.snapshot_retention_limit
            if config.snapshot_retention_limit is not None
            else DEFAULT_SNAPSHOT_RETENTION
        ),
    )


def build_delete_config(
    cluster_id: str,
    r: Redis,
    create_config: ElastiCacheCreateConfig,
    config: ElastiCacheDeleteConfig,
    now: float | None = None,
) -> ElastiCacheDeleteConfig:
    """Mirror the create id, default RetainPrimaryCluster to False, and name an opted-in final snapshot."""
    replication_group_id = (
        config.replication_group_id
        or create_config.replication_group_id
        or build_infra_name_from_object(cluster_id, r)
    )
    final_snapshot_identifier = config.final_snapshot_identifier
    if final_snapshot_identifier == "":
        final_snapshot_identifier = build_timestamped_infra_name_from_object(cluster_id, r, now=now)
    return replace(
        config,
        replication_group_id=replication_group_id,
        retain_primary_cluster=config.retain_primary_cluster if config.retain_primary_cluster is not None else False,
        final_snapshot_identifier=final_snapshot_identifier,
    )


def build_update_request(
    config: ElastiCacheCreateConfig,
    found: dict[str, Any],
) -> ElastiCacheUpdateRequest | None:
    """Compare the modifiable fields of a live group with the desired config.

    Returns None when nothing differs so no no-op modify is ever sent.
    """
    update = ElastiCacheUpdateRequest(replication_group_id=found["ReplicationGroupId"])
    changed = False
    if config.cache_node_type != found.get("CacheNodeType"):
        update.cache_node_type = config.cache_node_type
        changed = True
    if config.snapshot_retention_limit != found.get("SnapshotRetentionLimit"):
        update.snapshot_retention_limit = config.snapshot_retention_limit
        changed = True
    return update if changed else None
