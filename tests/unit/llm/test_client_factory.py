# tests/unit/llm/test_client_factory.py - v2
"""Tests for llm/client_factory.py - lazy provider registry."""

from __future__ import annotations

import pytest

from semkb.config.settings import Settings
from semkb.llm.adapters.anthropic_adapter import AnthropicAdapter
from semkb.llm.adapters.google_adapter import GoogleAdapter
from semkb.llm.adapters.openai_adapter import OpenAIAdapter
from semkb.llm.client_factory import (
    UnsupportedProviderError,
    available_providers,
    create_llm_client,
    register_provider,
)


class TestCreateLLMClient:
    @pytest.mark.parametrize(
        ("provider", "cls"),
        [("anthropic", AnthropicAdapter), ("openai", OpenAIAdapter), ("gemini", GoogleAdapter)],
    )
    def test_builtin_providers(self, provider, cls):
        client = create_llm_client(provider, model="m-1", api_key="k")
        assert isinstance(client, cls)
        assert client.provider_name == provider
        assert client.model_name == "m-1"

    def test_model_from_settings(self):
        s = Settings(_env_file=None, anthropic_api_key="a-key", anthropic_model="claude-test")
        client = create_llm_client("anthropic", settings=s)
        assert client.model_name == "claude-test"

    def test_unsupported(self):
        with pytest.raises(UnsupportedProviderError, match="Available: anthropic, gemini, openai"):
            create_llm_client("mistral")

    def test_register_custom(self):
        register_provider("custom-openai", "semkb.llm.adapters.openai_adapter.OpenAIAdapter")
        assert "custom-openai" in available_providers()
        assert isinstance(create_llm_client("custom-openai", model="x"), OpenAIAdapter)
