# src/cache/providers/gemini_cache.py - v2
"""Gemini prompt layout for implicit caching.

System instruction first, then a context/acknowledgement pair, then the
query. Gemini caches repeated prefixes implicitly; ``cacheable_tokens``
tracks how much of the prompt is eligible.
"""

from __future__ import annotations

from typing import Any

from semkb.cache.fingerprint import estimate_tokens
from semkb.cache.providers.base_provider_cache import BaseProviderCache
from semkb.cache.providers.models import StructuredPrompt
from semkb.llm.models import Message

GEMINI_ACK = "I understand the context. Ready to assist with your request."


class GeminiProviderCache(BaseProviderCache):
    """Provider cache for Google Gemini models."""

    hint_sections = (
        ("technical_specs", "## Technical Specifications", "\n"),
        ("architectural_patterns", "## Architectural Patterns", "\n"),
        ("phase_history", "## Phase History", "\n"),
        ("code_standards", "## Code Standards and Guidelines", "\n"),
    )

    high_savings = 3.0
    slow_response_ms = 2500.0
    low_hit_rate_advice = "Optimize prompt structure - place stable content at the beginning"

    @property
    def provider_name(self) -> str:
        return "gemini"

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
            messages.append(Message(role="user", content=f"Context:\n{stable}"))
            messages.append(Message(role="assistant", content=GEMINI_ACK))
            cacheable += estimate_tokens(stable)
        messages.append(Message(role="user", content=query))
        return self._new_prompt(messages, metadata, cacheable_tokens=cacheable)
