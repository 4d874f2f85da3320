# src/core/errors.py - v1
"""Error taxonomy shared by caches, providers, repository and stores.

Provider failures carry a ``kind`` ("transient" or "permanent"). Retry
policies only ever retry transient failures; exhausted retries surface as
ProviderPermanentError.
"""

from __future__ import annotations

from typing import Literal

ProviderErrorKind = Literal["transient", "permanent"]


class SemkbError(Exception):
    """Base class for all semkb errors."""


class ValidationError(SemkbError, ValueError):
    """Bad caller input. Never retried."""


class NotFoundError(SemkbError, LookupError):
    """Unknown identifier."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier!r}")


class CacheConsistencyError(SemkbError):
    """Internal cache invariant violated."""


class ProviderError(SemkbError):
    """Failure reported by an embedding or completion provider."""

    kind: ProviderErrorKind = "permanent"

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        cause: BaseException | None = None,
    ) -> None:
        self.provider = provider
        self.cause = cause
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        return self.kind == "transient"


class ProviderTransientError(ProviderError):
    """Retryable provider failure (network, 5xx, rate limit, timeout)."""

    kind: ProviderErrorKind = "transient"


class ProviderPermanentError(ProviderError):
    """Fatal provider failure (auth, unsupported model, malformed request)."""

    kind: ProviderErrorKind = "permanent"


class VectorSearchUnavailable(SemkbError):
    """Vector search path cannot serve this query (degrades to lexical)."""


_TRANSIENT_MARKERS = (
    "429", "rate limit", "rate_limit", "ratelimit", "overloaded",
    "timeout", "timed out", "temporarily", "unavailable", "connection",
    "500", "502", "503", "504", "server error", "internalserver",
)
_PERMANENT_MARKERS = (
    "401", "403", "unauthorized", "forbidden", "authentication",
    "permission", "invalid api key", "api key", "400", "badrequest",
    "bad request", "invalid", "not found", "404", "unsupported",
)


def classify_error(error: BaseException) -> ProviderErrorKind:
    """Classify an arbitrary SDK/network exception as transient or permanent.

    Already-classified ProviderErrors keep their kind. Unknown failures are
    treated as permanent so they are never retried blindly.
    """
    if isinstance(error, ProviderError):
        return error.kind
    if isinstance(error, (TimeoutError, ConnectionError)):
        return "transient"

    name = type(error).__name__.lower()
    msg = str(error).lower()
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        if status == 429 or status >= 500:
            return "transient"
        if 400 <= status < 500:
            return "permanent"

    if any(marker in name or marker in msg for marker in _PERMANENT_MARKERS):
        # "invalid" also appears in some 5xx bodies; a 5xx marker wins
        if any(c in msg for c in ("500", "502", "503", "504")):
            return "transient"
        return "permanent"
    if any(marker in name or marker in msg for marker in _TRANSIENT_MARKERS):
        return "transient"
    return "permanent"


def to_provider_error(error: BaseException, provider: str) -> ProviderError:
    """Wrap an exception in the matching ProviderError subclass."""
    if isinstance(error, ProviderError):
        return error
    if classify_error(error) == "transient":
        return ProviderTransientError(str(error) or type(error).__name__, provider, error)
    return ProviderPermanentError(str(error) or type(error).__name__, provider, error)
