"""AWS Redis provider: converge an ElastiCache replication group with a Redis request, one action per tick."""

from collections.abc import Callable
from datetime import datetime, timedelta
import logging
from typing import Any

from cloudresources.cache.discovery import DISCOVERY_RETRY_POLICY, find_replication_group, get_replication_groups
from cloudresources.cache.redis import (
    ElastiCacheCreateConfig,
    ElastiCacheDeleteConfig,
    build_create_config,
    build_delete_config,
    build_update_request,
)
from cloudresources.cache.tagging import find_unavailable_node, tag_elasticache_node
from cloudresources.config import (
    DEFAULT_REGION,
    ConfigManager,
    CredentialManager,
    Credentials,
    FileConfigManager,
    ProviderSettings,
    SessionCredentialManager,
    StrategyConfig,
)
from cloudresources.context import ReconcileContext
from cloudresources.errors import (
    ConfigResolutionError,
    CredentialError,
    LocalPersistenceError,
    ObjectClientError,
    ProviderError,
    ReconcileCancelledError,
    RemoteMutationError,
)
from cloudresources.monitoring.alerts import RuleClient, create_availability_alert, delete_availability_alert
from cloudresources.monitoring.metrics import (
    REDIS_AVAILABLE_METRIC,
    REDIS_INFO_METRIC,
    REDIS_MAINTENANCE_METRIC,
    MetricsRegistry,
)
from cloudresources.providers.registry import AWS_DEPLOYMENT_STRATEGY, register_provider
from cloudresources.resources import (
    DEFAULT_FINALIZER,
    STATUS_EMPTY,
    Phase,
    Redis,
    RedisCluster,
    RedisDeploymentDetails,
    ResourceClient,
    ResourceStatus,
    StatusMessage,
    add_finalizer,
    remove_finalizer,
)
from cloudresources.shared.aws import (
    REPLICATION_GROUP_NOT_FOUND,
    IdentityAPI,
    RemoteCacheAPI,
    call_aws,
    create_aws_services,
    error_code,
)
from cloudresources.shared.retry import RetryPolicy

logger = logging.getLogger(__name__)

REDIS_PROVIDER_NAME = "aws-elasticache"
REDIS_RESOURCE_TYPE = "redis"
AVAILABLE = "available"
IN_PROGRESS_RECONCILE_TIME = timedelta(seconds=60)

ServiceFactory = Callable[[StrategyConfig, Credentials], tuple[RemoteCacheAPI, IdentityAPI]]


def _epoch(value: datetime | None) -> str:
    return str(int(value.timestamp())) if value is not None else ""


def _failure_phase(err: ProviderError) -> Phase:
    # a cancelled tick made no decision; the resource is still converging
    return Phase.IN_PROGRESS if isinstance(err, ReconcileCancelledError) else Phase.FAILED


def build_redis_generic_metric_labels(r: Redis, group: dict[str, Any], cluster_id: str) -> dict[str, str]:
    """Labels shared by every per-instance metric."""
    return {
        "clusterID": cluster_id,
        "resourceID": r.name,
        "namespace": r.namespace,
        "instanceID": group["ReplicationGroupId"],
    }


def build_redis_info_metric_labels(r: Redis, group: dict[str, Any], cluster_id: str) -> dict[str, str]:
    labels = build_redis_generic_metric_labels(r, group, cluster_id)
    labels["status"] = group.get("Status", "")
    return labels


def build_service_update_metric_labels(update: dict[str, Any], cluster_id: str) -> dict[str, str]:
    """Labels for one pending service update; every key is always present."""
    return {
        "clusterID": cluster_id,
        "AutoUpdateAfterRecommendedApplyByDate": str(bool(update.get("AutoUpdateAfterRecommendedApplyByDate"))).lower(),
        "Engine": update.get("Engine", ""),
        "EstimatedUpdateTime": update.get("EstimatedUpdateTime", ""),
        "ServiceUpdateDescription": update.get("ServiceUpdateDescription", ""),
        "ServiceUpdateEndDate": _epoch(update.get("ServiceUpdateEndDate")),
        "ServiceUpdateName": update.get("ServiceUpdateName", ""),
        "ServiceUpdateRecommendedApplyByDate": _epoch(update.get("ServiceUpdateRecommendedApplyByDate")),
        "ServiceUpdateReleaseDate": _epoch(update.get("ServiceUpdateReleaseDate")),
        "ServiceUpdateSeverity": update.get("ServiceUpdateSeverity", ""),
        "ServiceUpdateStatus": update.get("ServiceUpdateStatus", ""),
        "ServiceUpdateType": update.get("ServiceUpdateType", ""),
    }


@register_provider(REDIS_PROVIDER_NAME, strategy=AWS_DEPLOYMENT_STRATEGY)
class RedisProvider:
    """Creates, converges, and deletes ElastiCache replication groups for Redis requests.

    Each call to create_redis/delete_redis is one tick: it observes the remote
    state afresh and takes at most one corrective action. Callers requeue until
    create returns a cluster or delete returns an empty status. Failures raise
    ProviderError subclasses carrying a status message for the resource.
    """

    def __init__(
        self,
        client: ResourceClient,
        rules: RuleClient,
        metrics: MetricsRegistry,
        config_manager: ConfigManager | None = None,
        credential_manager: CredentialManager | None = None,
        settings: ProviderSettings | None = None,
        service_factory: ServiceFactory = create_aws_services,
        discovery_policy: RetryPolicy = DISCOVERY_RETRY_POLICY,
    ) -> None:
        self.client = client
        self.rules = rules
        self.metrics = metrics
        self.config_manager = config_manager or FileConfigManager.from_env()
        self.credential_manager = credential_manager or SessionCredentialManager()
        self.settings = settings or ProviderSettings.from_env()
        self.service_factory = service_factory
        self.discovery_policy = discovery_policy
        self.logger = logging.LoggerAdapter(logger, {"provider": REDIS_PROVIDER_NAME})

    def get_name(self) -> str:
        return REDIS_PROVIDER_NAME

    def supports_strategy(self, strategy: str) -> bool:
        return strategy == AWS_DEPLOYMENT_STRATEGY

    def get_reconcile_time(self, r: Redis) -> timedelta:
        """Requeue quickly until the resource is complete, then at the forced reconcile interval."""
        if r.status.phase != Phase.COMPLETE:
            return IN_PROGRESS_RECONCILE_TIME
        return timedelta(seconds=self.settings.force_reconcile_seconds)

    # --- create ---

    def create_redis(self, ctx: ReconcileContext, r: Redis) -> tuple[RedisCluster | None, StatusMessage]:
        """Run one create tick; return (cluster, status) where cluster is set only once fully converged."""
        try:
            cluster, status = self._create(ctx, r)
        except ProviderError as e:
            r.status = ResourceStatus(_failure_phase(e), e.status_message)
            raise
        r.status = ResourceStatus(Phase.COMPLETE if cluster else Phase.IN_PROGRESS, status)
        return cluster, status

    def _create(self, ctx: ReconcileContext, r: Redis) -> tuple[RedisCluster | None, StatusMessage]:
        if add_finalizer(r, DEFAULT_FINALIZER):
            self._persist(ctx, r, "failed to set finalizer")

        create_config, _delete_config, strategy = self._get_elasticache_config(
            ctx, r, f"failed to retrieve aws elasticache cluster config {r.name}"
        )
        credentials = self._reconcile_credentials(ctx, r, "failed to reconcile elasticache credentials")
        cache_svc, sts_svc = self.service_factory(strategy, credentials)
        return self._create_elasticache_cluster(ctx, r, cache_svc, sts_svc, create_config)

    def _create_elasticache_cluster(
        self,
        ctx: ReconcileContext,
        r: Redis,
        cache_svc: RemoteCacheAPI,
        sts_svc: IdentityAPI,
        create_config: ElastiCacheCreateConfig,
    ) -> tuple[RedisCluster | None, StatusMessage]:
        groups = get_replication_groups(cache_svc, ctx, self.discovery_policy)
        config = build_create_config(self.settings.cluster_id, r, create_config)
        group_id = config.replication_group_id or ""

        found = find_replication_group(groups, group_id)
        if found is None:
            self.logger.info("creating elasticache replication group %s", group_id)
            call_aws(
                ctx,
                "CreateReplicationGroup",
                "error creating elasticache cluster",
                cache_svc.create_replication_group,
                **config.to_request(),
            )
            return None, "started elasticache provision"

        status = found.get("Status", "")
        ctx.note(f"createReplicationGroup() in progress, current aws elasticache status is {status}")
        self._set_service_maintenance_metrics(ctx, cache_svc)
        self._expose_redis_metrics(r, found)
        self._ensure_availability_alert(ctx, r, group_id)

        if status != AVAILABLE:
            return None, f"createReplicationGroup() in progress, current aws elasticache status is {status}"

        update = build_update_request(config, found)
        if update is not None:
            self.logger.info("changes detected on elasticache replication group %s, modifying", group_id)
            call_aws(
                ctx,
                "ModifyReplicationGroup",
                "failed to modify elasticache cluster",
                cache_svc.modify_replication_group,
                **update.to_request(),
            )
            return None, (
                f"changes detected, modifyReplicationGroup() in progress, current aws elasticache status is {status}"
            )

        node_groups = found.get("NodeGroups") or []
        node_group = node_groups[0] if node_groups else {}
        if node_group.get("Status") != AVAILABLE:
            return None, f"cache node status not available, current status: {node_group.get('Status', 'unknown')}"

        members = node_group.get("NodeGroupMembers", [])
        try:
            skip_message = find_unavailable_node(ctx, cache_svc, members)
            if skip_message is not None:
                return None, skip_message
            for member in members:
                tag_elasticache_node(ctx, cache_svc, sts_svc, self.settings, r, member)
        except RemoteMutationError as e:
            msg = f"failed to add tags to elasticache: {e.status_message}"
            raise RemoteMutationError(e.operation, f"{msg}: {e}", msg) from e

        endpoint = node_group["PrimaryEndpoint"]
        cluster = RedisCluster(RedisDeploymentDetails(uri=endpoint["Address"], port=endpoint["Port"]))
        return cluster, f"successfully created and tagged, aws elasticache status is {status}"

    # --- delete ---

    def delete_redis(self, ctx: ReconcileContext, r: Redis) -> StatusMessage:
        """Run one delete tick; an empty status means the group is gone and the finalizer removed."""
        try:
            status = self._delete(ctx, r)
        except ProviderError as e:
            r.status = ResourceStatus(_failure_phase(e), e.status_message)
            raise
        r.status = ResourceStatus(Phase.DELETE_IN_PROGRESS if status else Phase.COMPLETE, status)
        return status

    def _delete(self, ctx: ReconcileContext, r: Redis) -> StatusMessage:
        create_config, delete_config, strategy = self._get_elasticache_config(
            ctx, r, f"failed to retrieve aws elasticache config for instance {r.name}"
        )
        credentials = self._reconcile_credentials(ctx, r, "failed to reconcile aws provider credentials")
        cache_svc, _sts_svc = self.service_factory(strategy, credentials)
        return self._delete_elasticache_cluster(ctx, r, cache_svc, create_config, delete_config)

    def _delete_elasticache_cluster(
        self,
        ctx: ReconcileContext,
        r: Redis,
        cache_svc: RemoteCacheAPI,
        create_config: ElastiCacheCreateConfig,
        delete_config: ElastiCacheDeleteConfig,
    ) -> StatusMessage:
        groups = get_replication_groups(cache_svc, ctx, self.discovery_policy)
        create_config = build_create_config(self.settings.cluster_id, r, create_config)
        delete_config = build_delete_config(self.settings.cluster_id, r, create_config, delete_config)
        group_id = create_config.replication_group_id or ""

        found = find_replication_group(groups, group_id)
        if found is None:
            self.logger.info("elasticache replication group %s not found, removing finalizer", group_id)
            remove_finalizer(r, DEFAULT_FINALIZER)
            self._persist(ctx, r, "failed to update instance as part of finalizer reconcile")
            return STATUS_EMPTY

        status = found.get("Status", "")
        ctx.note(f"delete detected, deleteReplicationGroup() in progress, current aws elasticache status is {status}")
        self._expose_redis_metrics(r, found)

        if status != AVAILABLE:
            return f"delete detected, deleteReplicationGroup() in progress, current aws elasticache status is {status}"

        self._delete_availability_alert(ctx, r, group_id)

        self.logger.info("deleting elasticache replication group %s", group_id)
        try:
            call_aws(
                ctx,
                "DeleteReplicationGroup",
                "failed to delete elasticache cluster",
                cache_svc.delete_replication_group,
                **delete_config.to_request(),
            )
        except RemoteMutationError as e:
            if error_code(e.__cause__) != REPLICATION_GROUP_NOT_FOUND:
                raise
            self.logger.warning("replication group %s already gone, treating delete as started", group_id)
        return "delete detected, deleteReplicationGroup started"

    # --- shared steps ---

    def _persist(self, ctx: ReconcileContext, r: Redis, status: str) -> None:
        ctx.check()
        try:
            self.client.update(r)
        except Exception as e:
            raise LocalPersistenceError(f"{status}: {e}", status) from e

    def _get_elasticache_config(
        self,
        ctx: ReconcileContext,
        r: Redis,
        status: str,
    ) -> tuple[ElastiCacheCreateConfig, ElastiCacheDeleteConfig, StrategyConfig]:
        """Resolve the tier strategy and decode both blobs."""
        try:
            strategy = self.config_manager.read_storage_strategy(ctx, REDIS_RESOURCE_TYPE, r.tier)
            if not strategy.region:
                strategy.region = DEFAULT_REGION
            create_config = ElastiCacheCreateConfig.from_strategy(strategy.create_strategy)
            delete_config = ElastiCacheDeleteConfig.from_strategy(strategy.delete_strategy)
        except ConfigResolutionError as e:
            raise ConfigResolutionError(f"{status}: {e}", status) from e
        return create_config, delete_config, strategy

    def _reconcile_credentials(self, ctx: ReconcileContext, r: Redis, status: str) -> Credentials:
        try:
            return self.credential_manager.reconcile_provider_credentials(ctx, r.namespace)
        except CredentialError as e:
            raise CredentialError(f"{status}: {e}", status) from e

    def _expose_redis_metrics(self, r: Redis, group: dict[str, Any]) -> None:
        """Refresh the info gauge (now, labelled with status) and the 0/1 availability gauge."""
        self.logger.debug("setting redis information metric")
        cluster_id = self.settings.cluster_id
        generic_labels = build_redis_generic_metric_labels(r, group, cluster_id)
        info_labels = build_redis_info_metric_labels(r, group, cluster_id)
        self.metrics.set_metric_current_time(REDIS_INFO_METRIC, info_labels)
        available = 1 if group.get("Status") == AVAILABLE else 0
        self.metrics.set_metric(REDIS_AVAILABLE_METRIC, generic_labels, available)

    def _set_service_maintenance_metrics(self, ctx: ReconcileContext, cache_svc: RemoteCacheAPI) -> None:
        """One maintenance series per pending service update, valued at its recommended apply-by epoch."""
        output = call_aws(
            ctx,
            "DescribeServiceUpdates",
            "error creating the elasticache service maintenance metrics",
            cache_svc.describe_service_updates,
        )
        updates = output.get("ServiceUpdates", [])
        self.logger.info("there are %d elasticache service updates available", len(updates))
        for update in updates:
            apply_by = update.get("ServiceUpdateRecommendedApplyByDate")
            if apply_by is None:
                self.logger.debug("service update %s has no recommended apply-by date", update.get("ServiceUpdateName"))
                continue
            labels = build_service_update_metric_labels(update, self.settings.cluster_id)
            self.metrics.set_metric(REDIS_MAINTENANCE_METRIC, labels, float(int(apply_by.timestamp())))

    def _ensure_availability_alert(self, ctx: ReconcileContext, r: Redis, group_id: str) -> None:
        ctx.check()
        try:
            create_availability_alert(self.rules, r, group_id, self.settings.cluster_id)
        except ObjectClientError as e:
            msg = "error creating the elasticache PrometheusRule"
            raise RemoteMutationError("CreatePrometheusRule", f"{msg}: {e}", msg) from e

    def _delete_availability_alert(self, ctx: ReconcileContext, r: Redis, group_id: str) -> None:
        ctx.check()
        try:
            delete_availability_alert(self.rules, r.namespace, group_id)
        except ObjectClientError as e:
            msg = f"failed to delete elasticache alert: {e}"
            raise RemoteMutationError("DeletePrometheusRule", msg, msg) from e
