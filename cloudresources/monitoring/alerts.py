"""PrometheusRule objects that alert when an ElastiCache instance stops reporting available."""

import logging
from typing import Any, Protocol

from cloudresources.errors import ObjectAlreadyExistsError, ObjectNotFoundError
from cloudresources.resources import Redis

logger = logging.getLogger(__name__)

RULE_API_VERSION = "monitoring.coreos.com/v1"
RULE_KIND = "PrometheusRule"
MONITORING_LABELS = {"monitoring-key": "middleware"}


class RuleClient(Protocol):
    """Stores PrometheusRule objects (a Kubernetes API in production).

    create raises ObjectAlreadyExistsError; get and delete raise ObjectNotFoundError.
    Any other failed request raises ObjectClientError.
    """

    def create(self, rule: dict[str, Any]) -> None:
        ...

    def get(self, namespace: str, name: str) -> dict[str, Any]:
        ...

    def delete(self, rule: dict[str, Any]) -> None:
        ...


def create_prometheus_rule(namespace: str, rule_name: str, expression: str) -> dict[str, Any]:
    """Build a PrometheusRule with group `<rule_name>Group` holding alert `<rule_name>Alert`."""
    return {
        "apiVersion": RULE_API_VERSION,
        "kind": RULE_KIND,
        "metadata": {
            "name": rule_name,
            "namespace": namespace,
            "labels": dict(MONITORING_LABELS),
        },
        "spec": {
            "groups": [
                {
                    "name": f"{rule_name}Group",
                    "rules": [{"alert": f"{rule_name}Alert", "expr": expression}],
                }
            ],
        },
    }


def availability_alert_name(instance_id: str) -> str:
    return f"cro-aws-elasticache-{instance_id}"


def availability_alert_expression(r: Redis, instance_id: str, cluster_id: str) -> str:
    return (
        f"absent(cro_aws_elasticache_available{{namespace='{r.namespace}',instanceID='{instance_id}',"
        f"clusterID='{cluster_id}',resourceID='{r.name}'}} == 1)"
    )


def create_availability_alert(rules: RuleClient, r: Redis, instance_id: str, cluster_id: str) -> dict[str, Any]:
    """Create the availability rule for instance_id unless it already exists."""
    rule = create_prometheus_rule(
        r.namespace,
        availability_alert_name(instance_id),
        availability_alert_expression(r, instance_id, cluster_id),
    )
    try:
        rules.create(rule)
    except ObjectAlreadyExistsError:
        logger.debug("PrometheusRule %s already exists", rule["metadata"]["name"])
    else:
        logger.info("PrometheusRule %s created", rule["metadata"]["name"])
    return rule


def delete_availability_alert(rules: RuleClient, namespace: str, instance_id: str) -> bool:
    """Delete the availability rule for instance_id; return False if it was already gone."""
    name = availability_alert_name(instance_id)
    try:
        rule = rules.get(namespace, name)
        rules.delete(rule)
    except ObjectNotFoundError:
        logger.warning("PrometheusRule %s/%s not found, treating as deleted", namespace, name)
        return False
    logger.info("PrometheusRule %s/%s deleted", namespace, name)
    return True
