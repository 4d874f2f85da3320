# src/cache/providers/anthropic_cache.py - v2
"""Anthropic prompt layout with explicit cache breakpoints.

Stable blocks (system prompt, knowledge context) get an ephemeral
``cache_control`` marker when they are large enough to be worth caching or
when the caller hints that they will be reused.
"""

from __future__ import annotations

import logging
from typing import Any

from semkb.cache.fingerprint import estimate_tokens
from semkb.cache.providers.base_provider_cache import BaseProviderCache
from semkb.cache.providers.models import ProviderCacheReport, StructuredPrompt
from semkb.llm.models import Message

logger = logging.getLogger(__name__)

CONTEXT_PREFIX = "KNOWLEDGE CONTEXT:\n"
ANTHROPIC_ACK = "I understand the context and knowledge base. How can I assist you with this project?"


class AnthropicProviderCache(BaseProviderCache):
    """Provider cache for Anthropic Claude models.

    Args:
        breakpoint_threshold: Minimum estimated tokens for a block to get a
            cache breakpoint without an explicit hint.
        enable_cache_control: When False no breakpoints are placed.
    """

    low_hit_rate = 0.75
    high_savings = 8.0
    slow_response_ms = 3000.0
    low_hit_rate_advice = "Consider adding more cache breakpoints for stable context"
    hint_sections = (
        ("architectural_decisions", "ARCHITECTURAL DECISIONS:", "\n\n"),
        ("system_patterns", "SYSTEM PATTERNS:", "\n\n"),
        ("project_context", "PROJECT CONTEXT:", "\n"),
        ("phase_history", "PHASE HISTORY:", "\n"),
    )

    def __init__(
        self,
        *args: Any,
        breakpoint_threshold: int = 1000,
        enable_cache_control: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._breakpoint_threshold = breakpoint_threshold
        self._enable_cache_control = enable_cache_control

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def structure_request(
        self,
        system_prompt: str,
        context: str,
        query: str,
        metadata: dict[str, Any] | None = None,
    ) -> StructuredPrompt:
        hint = bool((metadata or {}).get("cache_hint", False))
        breakpoints = 0
        cacheable = 0

        system_tokens = estimate_tokens(system_prompt)
        system_mark = self._enable_cache_control and system_tokens > self._breakpoint_threshold
        messages = [Message(role="system", content=system_prompt, cache_control=system_mark)]
        if system_mark:
            breakpoints += 1
            cacheable += system_tokens
            logger.debug("Cache breakpoint on system prompt (%d tokens)", system_tokens)

        stable = self._stable_context(context, metadata)
        if stable:
            context_tokens = estimate_tokens(stable)
            context_mark = self._enable_cache_control and (
                context_tokens > self._breakpoint_threshold or hint
            )
            messages.append(
                Message(role="user", content=CONTEXT_PREFIX + stable, cache_control=context_mark)
            )
            messages.append(Message(role="assistant", content=ANTHROPIC_ACK))
            if context_mark:
                breakpoints += 1
                cacheable += context_tokens
                logger.debug("Cache breakpoint on knowledge context (%d tokens)", context_tokens)

        messages.append(Message(role="user", content=query))
        return self._new_prompt(
            messages, metadata, cacheable_tokens=cacheable, cache_breakpoints=breakpoints
        )

    def recommendations(self, report: ProviderCacheReport) -> list[str]:
        recs = super().recommendations(report)
        if not self._enable_cache_control:
            recs.append("Enable cache control for significant cost savings on repeated content")
        return recs
