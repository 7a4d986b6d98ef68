"""Providers: each converges one resource type on one cloud (importing registers them)."""

from cloudresources.providers.aws_redis import RedisProvider

__all__ = ["RedisProvider"]
