"""Tests for deterministic infrastructure naming."""

from cloudresources.resources import Redis
from cloudresources.shared.naming import (
    DEFAULT_AWS_IDENTIFIER_LENGTH,
    build_infra_name_from_object,
    build_timestamped_infra_name_from_object,
    shorten_string,
)


def _redis(name: str = "example-redis", namespace: str = "my-ns") -> Redis:
    return Redis(name=name, namespace=namespace, tier="production")


def test_build_infra_name_is_cluster_namespace_name() -> None:
    """Short identities are joined with hyphens and left intact."""
    assert build_infra_name_from_object("abc", _redis()) == "abc-my-ns-example-redis"


def test_build_infra_name_is_deterministic() -> None:
    """Two builds from equal identities produce the same name (no randomness)."""
    first = build_infra_name_from_object("cluster-1", _redis())
    second = build_infra_name_from_object("cluster-1", Redis(name="example-redis", namespace="my-ns", tier="other"))
    assert first == second


def test_build_infra_name_differs_per_identity() -> None:
    assert build_infra_name_from_object("c", _redis(name="a")) != build_infra_name_from_object("c", _redis(name="b"))


def test_shorten_string_truncates_with_hash_suffix() -> None:
    """Long names are cut to the limit and keep a hash so distinct names stay distinct."""
    long_a = "cluster-" + "a" * 60 + "-one"
    long_b = "cluster-" + "a" * 60 + "-two"
    short_a = shorten_string(long_a, DEFAULT_AWS_IDENTIFIER_LENGTH)
    short_b = shorten_string(long_b, DEFAULT_AWS_IDENTIFIER_LENGTH)
    assert len(short_a) <= DEFAULT_AWS_IDENTIFIER_LENGTH
    assert short_a != short_b
    assert short_a == shorten_string(long_a, DEFAULT_AWS_IDENTIFIER_LENGTH)


def test_shorten_string_normalizes_characters() -> None:
    """Uppercase, dots and repeated hyphens are normalized to an AWS-safe id."""
    assert shorten_string("My.Cluster--NS_name", 40) == "mycluster-nsname"


def test_timestamped_name_includes_time() -> None:
    name = build_timestamped_infra_name_from_object("abc", _redis(), now=1700000000)
    assert name == "abc-my-ns-example-redis-1700000000"


def test_timestamped_name_changes_with_time() -> None:
    r = Redis(name="x" * 50, namespace="ns", tier="production")
    first = build_timestamped_infra_name_from_object("abc", r, now=1)
    second = build_timestamped_infra_name_from_object("abc", r, now=2)
    assert first != second
    assert len(first) <= DEFAULT_AWS_IDENTIFIER_LENGTH
