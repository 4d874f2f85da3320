# src/cache/providers/provider_cache_factory.py - v1
"""Factory: instantiate a provider cache adapter from provider name.

Adapters are registered by class path and imported lazily.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from semkb.cache.prompt_cache import SemanticPromptCache
from semkb.cache.providers.base_provider_cache import BaseProviderCache
from semkb.config.settings import Settings
from semkb.llm.base_client import BaseLLMClient
from semkb.llm.client_factory import create_llm_client
from semkb.llm.retry import RetryPolicy

logger = logging.getLogger(__name__)

_CACHE_REGISTRY: dict[str, str] = {
    "openai": "semkb.cache.providers.openai_cache.OpenAIProviderCache",
    "anthropic": "semkb.cache.providers.anthropic_cache.AnthropicProviderCache",
    "gemini": "semkb.cache.providers.gemini_cache.GeminiProviderCache",
}


class UnsupportedProviderCacheError(ValueError):
    """Raised when no cache adapter is registered for a provider."""


def create_provider_cache(
    provider: str,
    prompt_cache: SemanticPromptCache,
    client: BaseLLMClient | None = None,
    settings: Settings | None = None,
    **kwargs: Any,
) -> BaseProviderCache:
    """Build the cache adapter for ``provider``.

    Args:
        provider: Provider identifier (openai, anthropic, gemini).
        prompt_cache: Shared prompt cache.
        client: Completion client; created from settings when omitted.
        settings: Application settings (models, keys, retry, limits).
        **kwargs: Extra adapter arguments.

    Raises:
        UnsupportedProviderCacheError: If provider is not registered.
    """
    if provider not in _CACHE_REGISTRY:
        raise UnsupportedProviderCacheError(
            f"Unsupported cache provider: {provider!r}. "
            f"Available: {', '.join(sorted(_CACHE_REGISTRY))}"
        )
    cache_cls = _import_class(_CACHE_REGISTRY[provider])

    if client is None:
        client = create_llm_client(provider, settings=settings)

    init_kwargs = dict(kwargs)
    if settings is not None:
        init_kwargs.setdefault("retry_policy", RetryPolicy.from_settings(settings))
        init_kwargs.setdefault("max_tokens", settings.completion_max_tokens)
        init_kwargs.setdefault("temperature", settings.completion_temperature)
        if provider == "anthropic":
            init_kwargs.setdefault("breakpoint_threshold", settings.cache_breakpoint_threshold)
            init_kwargs.setdefault("enable_cache_control", settings.prompt_caching_enabled)

    logger.debug("Creating provider cache: provider=%s, model=%s", provider, client.model_name)
    return cache_cls(client, prompt_cache, **init_kwargs)


def register_provider_cache(name: str, class_path: str) -> None:
    """Register a custom provider cache adapter."""
    _CACHE_REGISTRY[name] = class_path
    logger.info("Registered provider cache: %s -> %s", name, class_path)


def available_provider_caches() -> list[str]:
    return sorted(_CACHE_REGISTRY)


def _import_class(class_path: str) -> type:
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
