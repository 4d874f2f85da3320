# src/llm/client_factory.py - v3
"""Factory: instantiate a completion client from provider name.

Adapters are registered by class path and imported lazily, so a missing
SDK only matters for the provider actually used.
"""

from __future__ import annotations

import importlib
import logging

from semkb.config.settings import Settings
from semkb.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

# Registry of provider name -> adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "anthropic": "semkb.llm.adapters.anthropic_adapter.AnthropicAdapter",
    "openai": "semkb.llm.adapters.openai_adapter.OpenAIAdapter",
    "gemini": "semkb.llm.adapters.google_adapter.GoogleAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_llm_client(
    provider: str,
    model: str | None = None,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the correct adapter from provider name.

    Args:
        provider: Provider identifier (anthropic, openai, gemini).
        model: Model name; defaults to the provider's model in settings.
        settings: Application settings (for API keys and default models).
        **kwargs: Additional provider-specific arguments.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])

    init_kwargs = dict(kwargs)
    if settings is not None:
        if provider == "anthropic":
            init_kwargs.setdefault("api_key", settings.anthropic_api_key)
            model = model or settings.anthropic_model
        elif provider == "openai":
            init_kwargs.setdefault("api_key", settings.openai_api_key)
            model = model or settings.openai_model
        elif provider == "gemini":
            init_kwargs.setdefault("api_key", settings.google_api_key)
            model = model or settings.gemini_model
    if model:
        init_kwargs["model"] = model

    logger.debug("Creating LLM client: provider=%s, model=%s", provider, model)
    return adapter_cls(**init_kwargs)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter."""
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered LLM provider: %s -> %s", name, class_path)


def available_providers() -> list[str]:
    return sorted(_PROVIDER_REGISTRY)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
