"""Provider configuration: strategy documents, provider credentials, and environment settings."""

from dataclasses import dataclass, field
import json
import os
from pathlib import Path
from typing import Any, Protocol

import boto3
import jsonschema
import yaml

from cloudresources.context import ReconcileContext
from cloudresources.errors import ConfigResolutionError, CredentialError
from cloudresources.spec.validator import STRATEGY_API_VERSION, validate_strategy_document

DEFAULT_REGION = "eu-west-1"
DEFAULT_TAG_KEY_PREFIX = "cloud-resources.io/"
DEFAULT_CLUSTER_ID = "cluster"
DEFAULT_FORCE_RECONCILE_SECONDS = 300

STRATEGY_CONFIG_PATH_ENV = "CRO_STRATEGY_CONFIG_PATH"
CLUSTER_ID_ENV = "CLUSTER_ID"
TAG_KEY_PREFIX_ENV = "TAG_KEY_PREFIX"
FORCE_RECONCILE_ENV = "ENV_FORCE_RECONCILE_TIMEOUT"

DEFAULT_STRATEGY_DOCUMENT: dict[str, Any] = {
    "apiVersion": STRATEGY_API_VERSION,
    "kind": "StrategyConfig",
    "strategies": {
        "redis": {
            "development": {"region": "", "createStrategy": {}, "deleteStrategy": {}},
            "production": {"region": "", "createStrategy": {}, "deleteStrategy": {}},
        },
    },
}


@dataclass
class StrategyConfig:
    """Resolved tier: region plus raw create/delete parameter mappings."""

    region: str
    create_strategy: dict[str, Any] = field(default_factory=dict)
    delete_strategy: dict[str, Any] = field(default_factory=dict)


@dataclass
class Credentials:
    access_key_id: str
    secret_access_key: str
    session_token: str | None = None


@dataclass
class ProviderSettings:
    """Process-wide provider settings read from the environment."""

    cluster_id: str = DEFAULT_CLUSTER_ID
    tag_key_prefix: str = DEFAULT_TAG_KEY_PREFIX
    force_reconcile_seconds: int = DEFAULT_FORCE_RECONCILE_SECONDS

    @classmethod
    def from_env(cls) -> "ProviderSettings":
        raw_timeout = os.environ.get(FORCE_RECONCILE_ENV, "").strip()
        try:
            timeout = int(raw_timeout) if raw_timeout else DEFAULT_FORCE_RECONCILE_SECONDS
        except ValueError as e:
            raise ConfigResolutionError(f"{FORCE_RECONCILE_ENV} must be an integer, got {raw_timeout!r}") from e
        return cls(
            cluster_id=os.environ.get(CLUSTER_ID_ENV, "").strip() or DEFAULT_CLUSTER_ID,
            tag_key_prefix=os.environ.get(TAG_KEY_PREFIX_ENV, DEFAULT_TAG_KEY_PREFIX),
            force_reconcile_seconds=timeout,
        )


class ConfigManager(Protocol):
    def read_storage_strategy(self, ctx: ReconcileContext, resource_type: str, tier: str) -> StrategyConfig:
        ...


class CredentialManager(Protocol):
    def reconcile_provider_credentials(self, ctx: ReconcileContext, namespace: str) -> Credentials:
        ...


def decode_blob(raw: Any, label: str) -> dict[str, Any]:
    """Decode a strategy blob (JSON string or mapping) into a dict.

    An empty string or missing blob decodes to {}; anything that is not a JSON
    object raises ConfigResolutionError.
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, (str, bytes)):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigResolutionError(f"failed to decode {label}: {e}") from e
        if not isinstance(decoded, dict):
            raise ConfigResolutionError(f"{label} must decode to a JSON object, got {type(decoded).__name__}")
        return decoded
    raise ConfigResolutionError(f"{label} must be a JSON string or mapping, got {type(raw).__name__}")


class FileConfigManager:
    """Reads tier strategies from a YAML document; uses the built-in defaults when no path is set.

    The document is re-read on every call so edits apply on the next tick.
    """

    def __init__(self, path: str | None = None) -> None:
        self.path = path

    @classmethod
    def from_env(cls) -> "FileConfigManager":
        return cls(os.environ.get(STRATEGY_CONFIG_PATH_ENV) or None)

    def _load_document(self) -> dict[str, Any]:
        if self.path is None:
            return DEFAULT_STRATEGY_DOCUMENT
        if not Path(self.path).exists():
            raise ConfigResolutionError(f"strategy config not found: {self.path}")
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigResolutionError(f"failed to parse strategy config {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigResolutionError(f"strategy config {self.path} must be a mapping")
        try:
            validate_strategy_document(data)
        except (jsonschema.ValidationError, ValueError) as e:
            raise ConfigResolutionError(str(e)) from e
        return data

    def read_storage_strategy(self, ctx: ReconcileContext, resource_type: str, tier: str) -> StrategyConfig:
        """Return the strategy for tier under resource_type."""
        ctx.check()
        strategies = self._load_document()["strategies"]
        if resource_type not in strategies:
            raise ConfigResolutionError(f"no strategies configured for resource type {resource_type!r}")
        tiers = strategies[resource_type]
        if tier not in tiers:
            available = ", ".join(sorted(tiers)) or "(none)"
            raise ConfigResolutionError(
                f"no {resource_type} strategy for tier {tier!r}. Available tiers: {available}"
            )
        entry = tiers[tier]
        return StrategyConfig(
            region=entry.get("region", ""),
            create_strategy=decode_blob(entry.get("createStrategy"), "createStrategy"),
            delete_strategy=decode_blob(entry.get("deleteStrategy"), "deleteStrategy"),
        )


class SessionCredentialManager:
    """Provider credentials from the default boto3 credential chain."""

    def __init__(self, session: boto3.Session | None = None) -> None:
        self._session = session

    def reconcile_provider_credentials(self, ctx: ReconcileContext, namespace: str) -> Credentials:
        ctx.check()
        session = self._session or boto3.Session()
        creds = session.get_credentials()
        if creds is None:
            raise CredentialError(
                f"no AWS credentials available for namespace {namespace}",
                "failed to reconcile aws provider credentials",
            )
        frozen = creds.get_frozen_credentials()
        return Credentials(
            access_key_id=frozen.access_key,
            secret_access_key=frozen.secret_key,
            session_token=frozen.token,
        )
