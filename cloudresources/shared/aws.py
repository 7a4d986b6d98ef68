"""boto3 session setup and the subset of AWS APIs the providers call."""

from collections.abc import Callable
from typing import Any, Protocol

import boto3
import botocore.exceptions

from cloudresources.config import Credentials, StrategyConfig
from cloudresources.context import ReconcileContext
from cloudresources.errors import RemoteMutationError

REPLICATION_GROUP_NOT_FOUND = "ReplicationGroupNotFoundFault"


class RemoteCacheAPI(Protocol):
    """ElastiCache client methods used by the Redis provider (boto3 signatures)."""

    def describe_replication_groups(self, **kwargs: Any) -> dict[str, Any]: ...

    def create_replication_group(self, **kwargs: Any) -> dict[str, Any]: ...

    def modify_replication_group(self, **kwargs: Any) -> dict[str, Any]: ...

    def delete_replication_group(self, **kwargs: Any) -> dict[str, Any]: ...

    def describe_cache_clusters(self, **kwargs: Any) -> dict[str, Any]: ...

    def add_tags_to_resource(self, **kwargs: Any) -> dict[str, Any]: ...

    def describe_snapshots(self, **kwargs: Any) -> dict[str, Any]: ...

    def describe_service_updates(self, **kwargs: Any) -> dict[str, Any]: ...


class IdentityAPI(Protocol):
    """STS client method used to resolve the account id for ARNs."""

    def get_caller_identity(self, **kwargs: Any) -> dict[str, Any]: ...


def create_aws_services(
    strategy: StrategyConfig,
    credentials: Credentials,
) -> tuple[RemoteCacheAPI, IdentityAPI]:
    """Create ElastiCache and STS clients for the strategy region using provider credentials."""
    session = boto3.Session(
        aws_access_key_id=credentials.access_key_id,
        aws_secret_access_key=credentials.secret_access_key,
        aws_session_token=credentials.session_token,
        region_name=strategy.region,
    )
    return session.client("elasticache"), session.client("sts")


def error_code(err: BaseException) -> str:
    """AWS error code of a botocore ClientError, or "" for anything else."""
    if isinstance(err, botocore.exceptions.ClientError):
        return err.response.get("Error", {}).get("Code", "")
    return ""


def is_aws_error(err: BaseException) -> bool:
    return isinstance(err, (botocore.exceptions.ClientError, botocore.exceptions.BotoCoreError))


def call_aws(
    ctx: ReconcileContext,
    operation: str,
    status: str,
    fn: Callable[..., dict[str, Any]],
    **kwargs: Any,
) -> dict[str, Any]:
    """Run one AWS call after a cancellation check; wrap AWS failures as RemoteMutationError."""
    ctx.check()
    try:
        return fn(**kwargs)
    except Exception as e:
        if not is_aws_error(e):
            raise
        raise RemoteMutationError(operation, f"{status}: {e}", status) from e
