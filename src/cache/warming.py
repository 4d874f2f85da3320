# src/cache/warming.py - v1
"""Cache warming candidates and cache effectiveness analytics."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Iterable

from pydantic import BaseModel, Field

from semkb.cache.metrics import estimate_cost
from semkb.cache.models import CacheEntry, CacheMetrics

logger = logging.getLogger(__name__)

# Warm only what is likely to be asked again.
WARMING_VALUE_THRESHOLD = 0.8
WARMING_MAX_CANDIDATES = 10

_PATTERN_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("React",), "React Development"),
    (("API", "REST"), "API Development"),
    (("database", "SQL"), "Database Operations"),
    (("Phase",), "Workflow Phases"),
    (("architecture",), "System Architecture"),
)


class WarmingCandidate(BaseModel):
    """Prompt content worth pre-populating in the prompt cache."""

    content: str
    priority: int = 5
    estimated_value: float = Field(default=0.5, ge=0.0, le=1.0)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def score(self) -> float:
        return self.priority * self.estimated_value


class PatternStats(BaseModel):
    pattern: str
    frequency: int
    avg_tokens: float
    cost_savings: float


class ProviderEfficiency(BaseModel):
    hit_rate: float
    cost_per_request: float


class CacheAnalytics(BaseModel):
    """Result of ``analyze_cache``."""

    popular_patterns: list[PatternStats] = Field(default_factory=list)
    provider_efficiency: dict[str, ProviderEfficiency] = Field(default_factory=dict)
    recommendations: list[str] = Field(default_factory=list)


def default_warming_candidates() -> list[WarmingCandidate]:
    """Common design and workflow prompts, best first."""
    candidates = [
        WarmingCandidate(
            content="Implement microservice architecture with Docker containers and Kubernetes orchestration",
            priority=10,
            estimated_value=0.95,
            metadata={"type": "architecture", "cache_hint": True},
        ),
        WarmingCandidate(
            content="Design RESTful API following OpenAPI 3.0 specification with proper error handling",
            priority=9,
            estimated_value=0.90,
            metadata={"type": "api_design", "cache_hint": True},
        ),
        WarmingCandidate(
            content="Implement React TypeScript component with proper props validation and error boundaries",
            priority=8,
            estimated_value=0.85,
            metadata={"type": "frontend", "cache_hint": True},
        ),
        WarmingCandidate(
            content=(
                "Phase 1: Problem exploration and solution generation. Analyze requirements, "
                "identify constraints, generate multiple solution approaches."
            ),
            priority=9,
            estimated_value=0.92,
            metadata={"type": "phase1", "cache_hint": True},
        ),
        WarmingCandidate(
            content=(
                "Phase 2: Detailed analysis and optimization. Evaluate solutions against "
                "criteria, perform trade-off analysis, select optimal approach."
            ),
            priority=8,
            estimated_value=0.88,
            metadata={"type": "phase2", "cache_hint": True},
        ),
        WarmingCandidate(
            content=(
                "Phase 3: Implementation with testing and documentation. Code implementation, "
                "unit testing, integration testing, documentation."
            ),
            priority=7,
            estimated_value=0.85,
            metadata={"type": "phase3", "cache_hint": True},
        ),
        WarmingCandidate(
            content=(
                "Perform comprehensive code review focusing on performance, security, "
                "maintainability, and adherence to coding standards"
            ),
            priority=7,
            estimated_value=0.80,
            metadata={"type": "code_review", "cache_hint": True},
        ),
        WarmingCandidate(
            content=(
                "Optimize database queries for performance, implement proper indexing, "
                "and ensure efficient data access patterns"
            ),
            priority=6,
            estimated_value=0.75,
            metadata={"type": "database_optimization", "cache_hint": True},
        ),
    ]
    return sorted(candidates, key=lambda c: c.score, reverse=True)


def select_warming_candidates(
    candidates: Iterable[WarmingCandidate],
    threshold: float = WARMING_VALUE_THRESHOLD,
    limit: int = WARMING_MAX_CANDIDATES,
) -> list[WarmingCandidate]:
    """Keep candidates whose estimated value exceeds ``threshold``, at most ``limit``."""
    selected = [c for c in candidates if c.estimated_value > threshold]
    return selected[:limit]


def extract_pattern(content: str) -> str:
    for needles, label in _PATTERN_RULES:
        if any(n in content for n in needles):
            return label
    return "General Development"


def analyze_cache(
    metrics: CacheMetrics,
    entries: Iterable[CacheEntry],
    hit_target: float = 0.80,
) -> CacheAnalytics:
    """Summarize what the prompt cache is doing and suggest adjustments."""
    entries = list(entries)

    patterns: dict[str, dict[str, float]] = defaultdict(
        lambda: {"frequency": 0, "tokens": 0, "savings": 0.0}
    )
    providers: dict[str, dict[str, float]] = defaultdict(
        lambda: {"hits": 0, "requests": 0, "savings": 0.0}
    )
    for entry in entries:
        savings = estimate_cost(entry.provider, entry.token_estimate) * entry.hit_count
        p = patterns[extract_pattern(entry.content)]
        p["frequency"] += entry.hit_count
        p["tokens"] += entry.token_estimate * entry.hit_count
        p["savings"] += savings

        s = providers[entry.provider]
        s["hits"] += entry.hit_count
        s["requests"] += entry.hit_count + 1  # the miss that stored it
        s["savings"] += savings

    popular = sorted(
        (
            PatternStats(
                pattern=name,
                frequency=int(data["frequency"]),
                avg_tokens=data["tokens"] / data["frequency"] if data["frequency"] else 0.0,
                cost_savings=data["savings"],
            )
            for name, data in patterns.items()
        ),
        key=lambda ps: ps.frequency,
        reverse=True,
    )[:10]

    efficiency = {
        name: ProviderEfficiency(
            hit_rate=data["hits"] / data["requests"],
            cost_per_request=data["savings"] / data["requests"],
        )
        for name, data in providers.items()
    }

    analytics = CacheAnalytics(popular_patterns=popular, provider_efficiency=efficiency)
    analytics.recommendations = _recommendations(analytics, metrics, hit_target)
    return analytics


def _recommendations(
    analytics: CacheAnalytics, metrics: CacheMetrics, hit_target: float
) -> list[str]:
    recs: list[str] = []
    if metrics.total_requests and metrics.hit_rate < hit_target:
        recs.append(
            f"Hit rate {metrics.hit_rate:.0%} is below the {hit_target:.0%} target - "
            "warm the cache with frequently used patterns"
        )
    if metrics.hit_rate > 0.95:
        recs.append("Excellent hit rate - consider increasing cache size to maintain it")
    if metrics.cache_size and metrics.semantic_index_size < metrics.cache_size * 0.5:
        recs.append(
            "Less than half of the cached entries are similarity-indexed - "
            "check the embedding provider"
        )
    if metrics.total_requests and metrics.evictions > metrics.total_requests * 0.1:
        recs.append("High eviction rate detected - consider increasing cache size or adjusting TTL")
    if metrics.average_response_time_ms > 2000:
        recs.append("High average lookup latency - reduce prompt size or semantic index size")

    total_savings = sum(p.cost_savings for p in analytics.popular_patterns)
    if total_savings > 10:
        recs.append(f"Caching is highly effective - saving approximately ${total_savings:.2f}")
    if len(analytics.provider_efficiency) > 1:
        best = max(analytics.provider_efficiency.items(), key=lambda kv: kv[1].hit_rate)[0]
        recs.append(f"{best} shows best cache efficiency - prioritize it for high-value content")
    return recs
