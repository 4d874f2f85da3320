# src/cache/providers/base_provider_cache.py - v2
"""Abstract provider cache adapter.

Each provider lays out prompts differently to get the most out of its own
prompt caching; executing, warming and reporting are shared.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterable, Sequence

from semkb.cache.fingerprint import estimate_tokens
from semkb.cache.metrics import estimate_cost
from semkb.cache.prompt_cache import SemanticPromptCache
from semkb.cache.providers.models import (
    CachedCompletion,
    CompletionMetrics,
    ProviderCacheReport,
    StructuredPrompt,
)
from semkb.cache.warming import (
    WarmingCandidate,
    default_warming_candidates,
    select_warming_candidates,
)
from semkb.llm.base_client import BaseLLMClient
from semkb.llm.models import LLMResponse, Message
from semkb.llm.retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)

WARMING_SYSTEM_PROMPT = "You are an expert software architect and implementation specialist."
WARMING_QUERY = "Please provide a detailed analysis and implementation strategy."
CONTEXT_ACK = "I understand the context. How can I help you with this project?"

# (hint key, heading, separator for list values)
HintSection = tuple[str, str, str]


def render_hints(hints: dict[str, Any] | None, sections: Sequence[HintSection]) -> str:
    """Render ``cache_hints`` metadata as stable sections, in ``sections`` order.

    Lists are joined with the section separator and dicts become indented
    JSON. Missing or empty hints are skipped.
    """
    blocks = []
    for key, heading, separator in sections:
        value = (hints or {}).get(key)
        if not value:
            continue
        if isinstance(value, (list, tuple)):
            body = separator.join(str(item) for item in value)
        elif isinstance(value, dict):
            body = json.dumps(value, indent=2, default=str)
        else:
            body = str(value)
        blocks.append(f"{heading}\n{body}\n\n")
    return "".join(blocks)


class BaseProviderCache(ABC):
    """Prompt structuring plus cached execution for one completion provider.

    Args:
        client: Completion client bound to a model.
        prompt_cache: Shared prompt cache.
        retry_policy: Retry/timeout policy for completion calls.
        max_tokens: Completion token limit.
        temperature: Sampling temperature.
    """

    # Thresholds for provider recommendations.
    low_hit_rate = 0.70
    high_savings = 5.0
    slow_response_ms = 2000.0
    low_hit_rate_advice = "Consider implementing more aggressive prompt structuring for caching"
    # Hint sections placed ahead of the knowledge context.
    hint_sections: tuple[HintSection, ...] = ()

    def __init__(
        self,
        client: BaseLLMClient,
        prompt_cache: SemanticPromptCache,
        retry_policy: RetryPolicy | None = None,
        max_tokens: int = 4000,
        temperature: float = 0.7,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._prompt_cache = prompt_cache
        self._retry_policy = retry_policy
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._sleep = sleep

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier used in cache keys and metrics."""

    @property
    def model_name(self) -> str:
        return self._client.model_name

    @abstractmethod
    def structure_request(
        self,
        system_prompt: str,
        context: str,
        query: str,
        metadata: dict[str, Any] | None = None,
    ) -> StructuredPrompt:
        """Lay out a request so its stable parts are cacheable."""

    async def execute(
        self,
        structured: StructuredPrompt,
        options: dict[str, Any] | None = None,
    ) -> CachedCompletion:
        """Serve from the prompt cache or call the provider and store the response.

        Cache hits cost nothing; their estimated cost is reported as savings.
        """
        start = time.perf_counter()

        async def _compute() -> LLMResponse:
            response = await with_retry(
                self._client.complete,
                structured.messages,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                options=options,
                provider=self.provider_name,
                operation="complete",
                policy=self._retry_policy,
                sleep=self._sleep,
            )
            # Raw SDK objects are not worth keeping in memory.
            return response.model_copy(update={"raw_response": None})

        metadata = {
            **structured.metadata,
            "cache_hint": structured.cache_hint or self.should_cache(structured),
            "cache_breakpoints": structured.cache_breakpoints,
        }
        fetched = await self._prompt_cache.get_or_compute(
            structured.cache_content,
            self.provider_name,
            self.model_name,
            _compute,
            metadata=metadata,
        )
        elapsed_ms = (time.perf_counter() - start) * 1000
        cost = estimate_cost(self.provider_name, structured.total_tokens)
        metrics = CompletionMetrics(
            response_time_ms=elapsed_ms,
            token_count=structured.total_tokens,
            cost=0.0 if fetched.cached else cost,
            cost_savings=cost if fetched.cached else 0.0,
            cache_breakpoints=structured.cache_breakpoints,
        )
        logger.info(
            "%s completion %s in %.0fms",
            self.provider_name, "served from cache" if fetched.cached else "computed", elapsed_ms,
        )
        return CachedCompletion(
            response=fetched.payload,
            cached=fetched.cached,
            cache_key=fetched.cache_key,
            provider=self.provider_name,
            model=self.model_name,
            hit_level=fetched.hit_level,
            metrics=metrics,
        )

    async def warm_cache(
        self, candidates: Iterable[WarmingCandidate] | None = None
    ) -> int:
        """Pre-populate the cache with high-value prompts.

        Responses are placeholders: warming primes the cache layout, it does
        not spend provider calls.
        """
        if candidates is None:
            candidates = default_warming_candidates()
        selected = select_warming_candidates(candidates)
        for candidate in selected:
            structured = self.structure_request(
                WARMING_SYSTEM_PROMPT,
                candidate.content,
                WARMING_QUERY,
                {**candidate.metadata, "cache_hint": True},
            )
            placeholder = LLMResponse(
                content=f"Implementation approach for: {candidate.content[:100]}...",
                input_tokens=structured.total_tokens,
                model=self.model_name,
                provider=self.provider_name,
            )
            await self._prompt_cache.put(
                structured.cache_content,
                placeholder,
                self.provider_name,
                self.model_name,
                {
                    **candidate.metadata,
                    "warmed": True,
                    "cache_hint": True,
                    "cache_breakpoints": structured.cache_breakpoints,
                },
            )
        logger.info("%s cache warmed with %d prompts", self.provider_name, len(selected))
        return len(selected)

    def metrics(self) -> ProviderCacheReport:
        stats = self._prompt_cache.provider_metrics(self.provider_name)
        overall = self._prompt_cache.metrics()
        report = ProviderCacheReport(
            provider=self.provider_name,
            model=self.model_name,
            hit_rate=stats.hit_rate,
            total_requests=stats.requests,
            cost_savings=stats.cost_savings,
            average_response_time_ms=stats.average_response_time_ms,
            cache_size=overall.cache_size,
        )
        report.recommendations = self.recommendations(report)
        return report

    def recommendations(self, report: ProviderCacheReport) -> list[str]:
        recs: list[str] = []
        if report.total_requests and report.hit_rate < self.low_hit_rate:
            recs.append(self.low_hit_rate_advice)
        if report.cost_savings > self.high_savings:
            recs.append("Caching is highly effective - consider expanding cache size")
        if report.average_response_time_ms > self.slow_response_ms:
            recs.append("Consider optimizing prompt structure to reduce token count")
        return recs

    def should_cache(self, structured: StructuredPrompt) -> bool:
        """Whether a response is worth flagging as high value."""
        text = structured.cache_content.lower()
        return (
            structured.cache_breakpoints > 0
            or structured.cacheable_tokens > 1000
            or "architectural" in text
            or "system pattern" in text
            or "implementation strategy" in text
        )

    # --- Helpers for subclasses ---

    def _stable_context(self, context: str, metadata: dict[str, Any] | None) -> str:
        """Hint sections followed by the knowledge context."""
        return render_hints((metadata or {}).get("cache_hints"), self.hint_sections) + context

    def _new_prompt(
        self, messages: list[Message], metadata: dict[str, Any] | None, **fields: Any
    ) -> StructuredPrompt:
        metadata = dict(metadata or {})
        cache_hint = bool(metadata.pop("cache_hint", False))
        metadata.pop("cache_hints", None)
        return StructuredPrompt(
            provider=self.provider_name,
            model=self.model_name,
            messages=messages,
            total_tokens=sum(estimate_tokens(m.content) for m in messages),
            cache_hint=cache_hint,
            metadata=metadata,
            **fields,
        )
