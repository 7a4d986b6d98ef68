"""Deterministic infrastructure names derived from a resource's identity."""

import hashlib
import re
import time

from cloudresources.resources import Redis

DEFAULT_AWS_IDENTIFIER_LENGTH = 40
_HASH_LENGTH = 8
_INVALID_CHARS = re.compile(r"[^a-z0-9-]+")
_REPEATED_HYPHENS = re.compile(r"-{2,}")


def shorten_string(s: str, n: int) -> str:
    """Normalize s into an AWS-safe identifier of at most n characters.

    Lowercases, drops characters outside [a-z0-9-], and collapses hyphens.
    Names longer than n are truncated and suffixed with a hash of the full
    normalized value, so distinct long names stay distinct.
    """
    normalized = _REPEATED_HYPHENS.sub("-", _INVALID_CHARS.sub("", s.lower())).strip("-")
    if len(normalized) <= n:
        return normalized
    digest = hashlib.sha256(normalized.encode()).hexdigest()[:_HASH_LENGTH]
    prefix = normalized[: n - _HASH_LENGTH - 1].rstrip("-")
    return f"{prefix}-{digest}"


def build_infra_name_from_object(cluster_id: str, r: Redis, n: int = DEFAULT_AWS_IDENTIFIER_LENGTH) -> str:
    """Name for the remote resource: <cluster>-<namespace>-<name>, shortened to n."""
    return shorten_string(f"{cluster_id}-{r.namespace}-{r.name}", n)


def build_timestamped_infra_name_from_object(
    cluster_id: str,
    r: Redis,
    n: int = DEFAULT_AWS_IDENTIFIER_LENGTH,
    now: float | None = None,
) -> str:
    """Like build_infra_name_from_object with the current unix time appended (used for final snapshots)."""
    ts = int(time.time() if now is None else now)
    return shorten_string(f"{cluster_id}-{r.namespace}-{r.name}-{ts}", n)
