"""Completion back-ends for hazel."""

from hazel.config import ModelConfig

from .base import Completion, Provider, Usage
from .ollama import OllamaProvider
from .openai import OpenAIProvider

# Registry of available providers, keyed by ModelConfig.backend
PROVIDERS: dict[str, type[Provider]] = {
    "openai": OpenAIProvider,
    "azure": OpenAIProvider,
    "openai_compatible": OpenAIProvider,
    "ollama": OllamaProvider,
}


def create_provider(config: ModelConfig) -> Provider:
    """Create a provider instance for a model configuration.

    Args:
        config: Active model configuration

    Returns:
        Configured provider instance

    Raises:
        ValueError: If the backend is unknown
    """
    if config.backend not in PROVIDERS:
        available = ", ".join(PROVIDERS.keys())
        raise ValueError(f"Unknown backend '{config.backend}'. Available: {available}")

    return PROVIDERS[config.backend].from_config(config)


__all__ = [
    "Completion",
    "Provider",
    "Usage",
    "OllamaProvider",
    "OpenAIProvider",
    "PROVIDERS",
    "create_provider",
]
