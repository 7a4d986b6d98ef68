"""Provider registry: map deployment strategies to provider classes."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

AWS_DEPLOYMENT_STRATEGY = "aws"

T = TypeVar("T")


@dataclass
class ProviderDef:
    """Registered provider: its class and the deployment strategy it serves."""

    factory: Callable[..., Any]
    strategy: str


PROVIDERS: dict[str, ProviderDef] = {}


def register_provider(name: str, strategy: str) -> Callable[[T], T]:
    """Decorator to register a provider class in PROVIDERS."""

    def decorator(cls: T) -> T:
        PROVIDERS[name] = ProviderDef(factory=cls, strategy=strategy)  # type: ignore[arg-type]
        return cls

    return decorator


def get_provider(strategy: str) -> ProviderDef:
    """Return the provider serving strategy; raise KeyError listing the registered strategies."""
    for provider in PROVIDERS.values():
        if provider.strategy == strategy:
            return provider
    available = ", ".join(sorted({p.strategy for p in PROVIDERS.values()})) or "(none)"
    raise KeyError(f"no provider for strategy {strategy!r}. Registered strategies: {available}")
