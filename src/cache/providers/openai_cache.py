# src/cache/providers/openai_cache.py - v2
"""OpenAI prompt layout for automatic prefix caching.

OpenAI caches the longest repeated prompt prefix on its own, so the only
job here is ordering. The system prompt comes first, then any
``cache_hints`` sections with the knowledge context, and the variable
user query last.
"""

from __future__ import annotations

from typing import Any

from semkb.cache.fingerprint import estimate_tokens
from semkb.cache.providers.base_provider_cache import CONTEXT_ACK, BaseProviderCache
from semkb.cache.providers.models import StructuredPrompt
from semkb.llm.models import Message


class OpenAIProviderCache(BaseProviderCache):
    """Provider cache for OpenAI chat models."""

    hint_sections = (
        ("decision_history", "DECISION HISTORY:", "\n"),
        ("project_context", "PROJECT CONTEXT:", "\n"),
        ("system_patterns", "SYSTEM PATTERNS:", "\n"),
    )

    @property
    def provider_name(self) -> str:
        return "openai"

    def structure_request(
        self,
        system_prompt: str,
        context: str,
        query: str,
        metadata: dict[str, Any] | None = None,
    ) -> StructuredPrompt:
        messages = [Message(role="system", content=system_prompt)]
        cacheable = estimate_tokens(system_prompt)
        stable = self._stable_context(context, metadata)
        if stable:
            messages.append(Message(role="user", content=f"CONTEXT:\n{stable}"))
            messages.append(Message(role="assistant", content=CONTEXT_ACK))
            cacheable += estimate_tokens(stable)
        messages.append(Message(role="user", content=query))
        return self._new_prompt(messages, metadata, cacheable_tokens=cacheable)
