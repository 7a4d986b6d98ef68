"""Desired-state model for Redis requests, status phases, and finalizer helpers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

DEFAULT_FINALIZER = "finalizers.cloud-resources.io"
PRODUCT_NAME_LABEL = "productName"

StatusMessage = str
STATUS_EMPTY: StatusMessage = ""


class Phase(str, Enum):
    """Lifecycle phase recorded on the desired resource status."""

    NONE = ""
    IN_PROGRESS = "in progress"
    DELETE_IN_PROGRESS = "deleting"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class ResourceStatus:
    phase: Phase = Phase.NONE
    message: StatusMessage = STATUS_EMPTY


@dataclass
class Redis:
    """A request for a Redis instance, identified by namespace and name."""

    name: str
    namespace: str
    tier: str
    type: str = "managed"
    labels: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    status: ResourceStatus = field(default_factory=ResourceStatus)

    @property
    def product_name(self) -> str:
        return self.labels.get(PRODUCT_NAME_LABEL, "")


@dataclass
class RedisDeploymentDetails:
    uri: str
    port: int


@dataclass
class RedisCluster:
    """Connection details returned once the replication group is ready."""

    deployment_details: RedisDeploymentDetails


class ResourceClient(Protocol):
    """Persists the desired resource (finalizer changes)."""

    def update(self, resource: Redis) -> None:
        ...


def has_finalizer(resource: Redis, finalizer: str) -> bool:
    return finalizer in resource.finalizers


def add_finalizer(resource: Redis, finalizer: str) -> bool:
    """Add finalizer if missing; return True when the resource changed."""
    if has_finalizer(resource, finalizer):
        return False
    resource.finalizers.append(finalizer)
    return True


def remove_finalizer(resource: Redis, finalizer: str) -> bool:
    """Remove every occurrence of finalizer; return True when the resource changed."""
    remaining = [f for f in resource.finalizers if f != finalizer]
    changed = len(remaining) != len(resource.finalizers)
    resource.finalizers = remaining
    return changed
