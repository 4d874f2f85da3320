# src/cache/metrics.py - v1
"""Incremental prompt cache metrics.

Every counter is updated in O(1) per operation; reporting never scans the
cache.
"""

from __future__ import annotations

from semkb.cache.models import CacheMetrics, ProviderCacheStats

# Rough completion price per 1k tokens, used to estimate savings on hits.
COST_PER_1K_TOKENS: dict[str, float] = {
    "openai": 0.002,
    "anthropic": 0.003,
    "gemini": 0.001,
}
_DEFAULT_COST_PER_1K = 0.002


def estimate_cost(provider: str, token_count: int) -> float:
    """Estimated USD cost of sending ``token_count`` tokens to ``provider``."""
    return COST_PER_1K_TOKENS.get(provider, _DEFAULT_COST_PER_1K) * (token_count / 1000)


class CacheMetricsTracker:
    """Running counters behind CacheMetrics."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.total_requests = 0
        self.exact_hits = 0
        self.semantic_hits = 0
        self.coalesced_hits = 0
        self.misses = 0
        self.average_response_time_ms = 0.0
        self.estimated_cost_savings = 0.0
        self.cache_size = 0
        self.semantic_index_size = 0
        self.evictions = 0
        self.expirations = 0
        self._providers: dict[str, ProviderCacheStats] = {}

    @property
    def hits(self) -> int:
        return self.exact_hits + self.semantic_hits + self.coalesced_hits

    def record_hit(self, level: str, provider: str, token_estimate: int) -> float:
        """Count a hit and return the estimated savings it represents."""
        if level == "exact":
            self.exact_hits += 1
        elif level == "semantic":
            self.semantic_hits += 1
        else:
            self.coalesced_hits += 1
        saved = estimate_cost(provider, token_estimate)
        self.estimated_cost_savings += saved
        stats = self._provider(provider)
        stats.hits += 1
        stats.cost_savings += saved
        return saved

    def record_miss(self, provider: str) -> None:
        self.misses += 1
        self._provider(provider).misses += 1

    def record_request(self, provider: str, response_time_ms: float) -> None:
        """Count one lookup and fold its latency into the running mean."""
        self.total_requests += 1
        n = self.total_requests
        self.average_response_time_ms += (response_time_ms - self.average_response_time_ms) / n
        stats = self._provider(provider)
        stats.requests += 1
        stats.total_response_time_ms += response_time_ms

    def record_removal(self, reason: str) -> None:
        if reason == "evicted":
            self.evictions += 1
        elif reason == "expired":
            self.expirations += 1

    def snapshot(self) -> CacheMetrics:
        total = self.total_requests
        hit_rate = self.hits / total if total else 0.0
        return CacheMetrics(
            hit_rate=hit_rate,
            miss_rate=(self.misses / total) if total else 0.0,
            total_requests=total,
            hits=self.hits,
            exact_hits=self.exact_hits,
            semantic_hits=self.semantic_hits,
            coalesced_hits=self.coalesced_hits,
            misses=self.misses,
            average_response_time_ms=self.average_response_time_ms,
            estimated_cost_savings=self.estimated_cost_savings,
            cache_size=self.cache_size,
            semantic_index_size=self.semantic_index_size,
            evictions=self.evictions,
            expirations=self.expirations,
        )

    def provider_stats(self, provider: str) -> ProviderCacheStats:
        return self._provider(provider).model_copy()

    def all_provider_stats(self) -> dict[str, ProviderCacheStats]:
        return {name: s.model_copy() for name, s in self._providers.items()}

    def _provider(self, provider: str) -> ProviderCacheStats:
        stats = self._providers.get(provider)
        if stats is None:
            stats = ProviderCacheStats(provider=provider)
            self._providers[provider] = stats
        return stats
