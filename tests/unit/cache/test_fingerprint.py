# tests/unit/cache/test_fingerprint.py - v2
"""Tests for cache/fingerprint.py - keys, token estimates, tokenization."""

from __future__ import annotations

from semkb.cache.fingerprint import (
    content_hash,
    embedding_key,
    estimate_tokens,
    normalize_text,
    prompt_cache_key,
    tokenize,
)


class TestPromptCacheKey:
    def test_deterministic(self):
        assert prompt_cache_key("hi", "openai", "gpt") == prompt_cache_key("hi", "openai", "gpt")

    def test_scoped_by_provider_and_model(self):
        base = prompt_cache_key("hi", "openai", "gpt")
        assert base != prompt_cache_key("hi", "anthropic", "gpt")
        assert base != prompt_cache_key("hi", "openai", "other")
        assert base.startswith("openai_gpt_")


class TestEmbeddingKey:
    def test_partitioned_by_model(self):
        assert embedding_key("x", "m1") != embedding_key("x", "m2")
        assert embedding_key("x", "m1").startswith("m1:")


class TestContentHash:
    def test_key_order_irrelevant(self):
        assert content_hash({"a": 1, "b": 2}) == content_hash({"b": 2, "a": 1})


class TestTokens:
    def test_estimate_rounds_up(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_normalize(self):
        assert normalize_text("  Hello,   World! ") == "hello world"

    def test_tokenize(self):
        assert tokenize("The quick-brown fox.") == ["the", "quick", "brown", "fox"]
        assert tokenize("!!!") == []
