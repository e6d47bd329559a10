"""Declarative registry of available providers."""

from typing import Any, Dict, Type
from .base import Provider
from .memory import MemoryProvider
from ..utils.errors import ConfigError

SUPPORTED_PROVIDERS: Dict[str, Type[Provider]] = {
    "memory": MemoryProvider,
}


def get_provider(name: str, **options: Any) -> Provider:
    """
    Instantiate a provider by registry name.

    Raises:
        ConfigError: If the provider is unknown or rejects the options
    """
    provider_cls = SUPPORTED_PROVIDERS.get(name)
    if provider_cls is None:
        raise ConfigError(
            f"Unknown provider '{name}'. Available providers: {', '.join(sorted(SUPPORTED_PROVIDERS))}"
        )
    try:
        return provider_cls(**options)
    except TypeError as e:
        raise ConfigError(f"Invalid options for provider '{name}': {e}")
